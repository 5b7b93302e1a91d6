"""
Modes Module
Operator-selected rendering and range modes.
"""

from enum import Enum


class WaterfallMode(Enum):
    """What each waterfall row encodes."""
    OFF = "off"
    STRENGTH = "strength"
    DIFFERENCE = "difference"


class RangeMode(Enum):
    """Where normalization bounds come from."""
    FIXED = "fixed"
    AUTO = "auto"
