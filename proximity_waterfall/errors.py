"""
Errors Module
Exception types raised by the waterfall rendering core.
"""


class WaterfallError(Exception):
    """Base class for waterfall rendering errors."""


class UnsupportedFormat(WaterfallError):
    """Surface dimensions or color depth cannot be handled."""


class OutOfRange(WaterfallError, IndexError):
    """Pixel coordinate lies outside the raster buffer."""


class InvalidRange(WaterfallError, ValueError):
    """Empty or inverted index range, mismatched arrays or degenerate bounds."""


class BufferStateError(WaterfallError, RuntimeError):
    """Raster buffer used while not locked, or locked twice."""
