"""
Proximity Waterfall
Scrolling spectrogram rendering and peak-relative differential analysis
of paired frequency scans.
"""

from proximity_waterfall.errors import (
    WaterfallError, UnsupportedFormat, OutOfRange, InvalidRange, BufferStateError
)
from proximity_waterfall.modes import WaterfallMode, RangeMode
from proximity_waterfall.palette import Color, GradientTable
from proximity_waterfall.raster import RasterBuffer, RasterSurface, ArraySurface, QImageSurface
from proximity_waterfall.aggregator import ColumnAggregator, ReduceKind, aggregate_column
from proximity_waterfall.analysis import DifferentialAnalyzer, strength_difference
from proximity_waterfall.range_estimator import RangeState, RangeEstimator
from proximity_waterfall.controller import WaterfallController

__version__ = "1.0.0"
