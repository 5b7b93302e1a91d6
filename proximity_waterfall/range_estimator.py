"""
Range Estimator Module
Normalization bounds for the waterfall, fixed by the operator or derived
from live scans.
"""

import threading
from dataclasses import dataclass, replace
from typing import Optional, Sequence

import numpy as np

from proximity_waterfall.analysis import DifferentialAnalyzer
from proximity_waterfall.errors import InvalidRange
from proximity_waterfall.modes import WaterfallMode


DEFAULT_STRENGTH_MIN = -50.0
DEFAULT_STRENGTH_MAX = -10.0
DEFAULT_DELTA_RANGE = 1.0


@dataclass(frozen=True)
class RangeBounds:
    """Immutable snapshot of the normalization bounds."""
    min_bound: float = DEFAULT_STRENGTH_MIN
    max_bound: float = DEFAULT_STRENGTH_MAX
    max_delta: float = DEFAULT_DELTA_RANGE

    @property
    def strength_span(self) -> float:
        return self.max_bound - self.min_bound


class RangeState:
    """Shared normalization bounds.

    Readers always see a complete snapshot; every update replaces the
    snapshot as a whole under a lock.
    """

    def __init__(self, min_bound: float = DEFAULT_STRENGTH_MIN,
                 max_bound: float = DEFAULT_STRENGTH_MAX,
                 max_delta: float = DEFAULT_DELTA_RANGE):
        self._bounds = RangeBounds(min_bound, max_bound, max_delta)
        self._lock = threading.Lock()

    def snapshot(self) -> RangeBounds:
        with self._lock:
            return self._bounds

    def update(self, min_bound: Optional[float] = None, max_bound: Optional[float] = None,
               max_delta: Optional[float] = None) -> RangeBounds:
        """Replace any of the bounds; omitted values are kept."""
        changes = {}
        if min_bound is not None:
            changes['min_bound'] = float(min_bound)
        if max_bound is not None:
            changes['max_bound'] = float(max_bound)
        if max_delta is not None:
            changes['max_delta'] = float(max_delta)

        with self._lock:
            self._bounds = replace(self._bounds, **changes)
            return self._bounds

    @property
    def min_bound(self) -> float:
        return self.snapshot().min_bound

    @property
    def max_bound(self) -> float:
        return self.snapshot().max_bound

    @property
    def max_delta(self) -> float:
        return self.snapshot().max_delta


class RangeEstimator:
    """Recomputes bounds from a scan pair in auto range mode."""

    def __init__(self, state: RangeState):
        """Initialize range estimator.

        Args:
            state: Bounds this estimator writes
        """
        self.state = state

    def estimate_strength(self, primary: Sequence[float]) -> bool:
        """Set min/max bounds to the extremes of the primary scan.

        NaN samples are skipped. An empty or all-NaN scan leaves the bounds
        unchanged.

        Returns:
            True if the bounds were updated
        """
        values = np.asarray(primary, dtype=np.float64)
        valid = values[~np.isnan(values)]
        if valid.size == 0:
            return False

        self.state.update(min_bound=float(valid.min()), max_bound=float(valid.max()))
        return True

    def estimate_difference(self, primary: Sequence[float], secondary: Sequence[float]) -> bool:
        """Set the delta bound to the largest difference over the scan pair.

        Bins where either scan is NaN are skipped. Mismatched, empty or
        all-NaN scans leave the bound unchanged.

        Returns:
            True if the bound was updated
        """
        try:
            analyzer = DifferentialAnalyzer(primary, secondary)
        except InvalidRange:
            return False

        valid = ~np.isnan(analyzer.primary) & ~np.isnan(analyzer.secondary)
        if not valid.any():
            return False

        deltas = analyzer.differences()[valid]
        deltas = deltas[~np.isnan(deltas)]
        if deltas.size == 0:
            return False

        self.state.update(max_delta=float(deltas.max()))
        return True

    def estimate(self, primary: Sequence[float], secondary: Sequence[float],
                 mode: WaterfallMode) -> bool:
        """Recompute the bounds used by ``mode``.

        Args:
            primary: Series 1 scan
            secondary: Series 2 scan
            mode: Rendering mode whose bounds are refreshed

        Returns:
            True if the state changed
        """
        if mode == WaterfallMode.STRENGTH:
            return self.estimate_strength(primary)
        if mode == WaterfallMode.DIFFERENCE:
            return self.estimate_difference(primary, secondary)
        return False
