"""
Aggregator Module
Reduces frequency-bin arrays to one value per output pixel column.
"""

import math
from enum import Enum
from typing import Callable, Sequence

import numpy as np

from proximity_waterfall.errors import InvalidRange


class ReduceKind(Enum):
    """How samples that share a pixel column are combined."""
    MIN = "min"
    MAX = "max"


class ColumnAggregator:
    """Min/max binning of a bin-index window onto a fixed number of columns.

    The window ``[range_start, range_end)`` is split into ``output_width``
    equal floating-point sub-ranges. Each column reduces the whole indices
    inside its sub-range; when a sub-range holds no whole index (fewer bins
    than columns) the column takes the sample at the floor of its start.
    Reads are clamped to the array, so short arrays and windows that run past
    the end degrade to repeated edge samples instead of failing.
    """

    def __init__(self, output_width: int):
        """Initialize column aggregator.

        Args:
            output_width: Number of output columns
        """
        if output_width <= 0:
            raise ValueError("output_width must be positive")
        self.output_width = output_width

    def aggregate(self, array: Sequence[float], range_start: float, range_end: float,
                  reduce_kind: ReduceKind = ReduceKind.MAX) -> np.ndarray:
        """Reduce a window of raw samples to one value per column.

        Args:
            array: Bin strengths
            range_start: First bin index of the window
            range_end: End of the window (exclusive)
            reduce_kind: MIN or MAX

        Returns:
            float64 array of ``output_width`` column values; NaN where every
            sample of a column was NaN
        """
        samples = np.asarray(array, dtype=np.float64)
        return self.aggregate_metric(lambda j: samples[j], samples.size,
                                     range_start, range_end, reduce_kind)

    def aggregate_metric(self, metric: Callable[[int], float], length: int,
                         range_start: float, range_end: float,
                         reduce_kind: ReduceKind = ReduceKind.MAX) -> np.ndarray:
        """Reduce a per-index metric instead of raw samples.

        Args:
            metric: Function returning the value at a bin index
            length: Number of valid bin indices
            range_start: First bin index of the window
            range_end: End of the window (exclusive)
            reduce_kind: MIN or MAX

        Returns:
            float64 array of ``output_width`` column values
        """
        if length <= 0:
            raise InvalidRange("Cannot aggregate an empty array")
        if not range_start < range_end:
            raise InvalidRange(f"Invalid bin range [{range_start}, {range_end})")

        reduce = min if reduce_kind == ReduceKind.MIN else max
        increment = (range_end - range_start) / self.output_width
        last = length - 1

        # Shared edges keep neighbouring columns from skipping or repeating a bin
        edges = [range_start + x * increment for x in range(self.output_width + 1)]
        columns = np.empty(self.output_width, dtype=np.float64)

        for x in range(self.output_width):
            index = edges[x]
            first = max(0, math.ceil(index))
            stop = min(length, math.ceil(edges[x + 1]))

            values = [v for v in (metric(j) for j in range(first, stop)) if not math.isnan(v)]

            if values:
                columns[x] = reduce(values)
            elif first >= stop:
                # No whole index in this column
                columns[x] = metric(min(last, max(0, math.floor(index))))
            else:
                columns[x] = math.nan

        return columns


def aggregate_column(array: Sequence[float], range_start: float, range_end: float,
                     reduce_kind: ReduceKind, output_width: int) -> np.ndarray:
    """Reduce ``array[range_start:range_end]`` onto ``output_width`` columns."""
    return ColumnAggregator(output_width).aggregate(array, range_start, range_end, reduce_kind)
