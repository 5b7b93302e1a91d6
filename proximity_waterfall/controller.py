"""
Controller Module
Drives the scrolling waterfall: one new row per incoming scan pair.
"""

import threading
from typing import Any, Dict, Optional, Sequence

import numpy as np
from PyQt5.QtCore import QObject, pyqtSignal

from proximity_waterfall.aggregator import ColumnAggregator, ReduceKind
from proximity_waterfall.analysis import DifferentialAnalyzer
from proximity_waterfall.errors import InvalidRange, UnsupportedFormat
from proximity_waterfall.modes import WaterfallMode, RangeMode
from proximity_waterfall.palette import GradientTable
from proximity_waterfall.range_estimator import RangeBounds, RangeEstimator, RangeState
from proximity_waterfall.raster import RasterBuffer, RasterSurface, SUPPORTED_DEPTHS


class WaterfallController(QObject):
    """Renders scan pairs into a raster surface as a scrolling waterfall.

    Only one tick renders at a time. A tick that arrives while another is in
    flight is dropped rather than queued, since a newer scan will follow.
    """

    # Qt signals for view updates
    redraw_requested = pyqtSignal()
    tick_skipped = pyqtSignal(str)  # reason
    range_updated = pyqtSignal(float, float, float)  # min_bound, max_bound, max_delta

    def __init__(self, surface: RasterSurface, palette: Optional[GradientTable] = None,
                 mode: WaterfallMode = WaterfallMode.STRENGTH,
                 range_mode: RangeMode = RangeMode.AUTO):
        """Initialize waterfall controller.

        Args:
            surface: Surface the waterfall is drawn into
            palette: Gradient used for pixel colors
            mode: Initial rendering mode
            range_mode: Initial range mode
        """
        super().__init__()
        self.buffer = RasterBuffer(surface)
        self.palette = palette if palette is not None else GradientTable()

        self.range_state = RangeState()
        self.range_estimator = RangeEstimator(self.range_state)

        self._mode = mode
        self._range_mode = range_mode

        # One tick at a time
        self._tick_lock = threading.Lock()

        # Statistics
        self._stats_lock = threading.Lock()
        self.rendered_ticks = 0
        self.skipped_ticks = 0
        self.dropped_ticks = 0

    @property
    def surface(self) -> RasterSurface:
        return self.buffer.surface

    def set_mode(self, mode: WaterfallMode):
        self._mode = mode

    def get_mode(self) -> WaterfallMode:
        return self._mode

    def set_range_mode(self, range_mode: RangeMode):
        self._range_mode = range_mode

    def get_range_mode(self) -> RangeMode:
        return self._range_mode

    def set_strength_range(self, minimum: float, maximum: float):
        self.range_state.update(min_bound=minimum, max_bound=maximum)

    def set_strength_minimum(self, minimum: float):
        self.range_state.update(min_bound=minimum)

    def set_strength_maximum(self, maximum: float):
        self.range_state.update(max_bound=maximum)

    def get_strength_minimum(self) -> float:
        return self.range_state.min_bound

    def get_strength_maximum(self) -> float:
        return self.range_state.max_bound

    def set_delta_range(self, delta_range: float):
        self.range_state.update(max_delta=delta_range)

    def get_delta_range(self) -> float:
        return self.range_state.max_delta

    def calculate_ranges(self, primary: Sequence[float], secondary: Sequence[float],
                         mode: Optional[WaterfallMode] = None) -> bool:
        """Recompute bounds from a scan pair when in auto range mode.

        Args:
            primary: Series 1 scan
            secondary: Series 2 scan
            mode: Mode whose bounds are refreshed, the current mode when omitted

        Returns:
            True if the bounds changed
        """
        if self._range_mode != RangeMode.AUTO:
            return False

        if mode is None:
            mode = self._mode

        if not self.range_estimator.estimate(primary, secondary, mode):
            return False

        bounds = self.range_state.snapshot()
        self.range_updated.emit(bounds.min_bound, bounds.max_bound, bounds.max_delta)
        return True

    def refresh(self, primary: Sequence[float], secondary: Sequence[float],
                lower_index: int, upper_index: int) -> bool:
        """Add one waterfall row for a scan pair.

        Args:
            primary: Series 1 scan
            secondary: Series 2 scan
            lower_index: First bin of the displayed window
            upper_index: End of the displayed window (exclusive)

        Returns:
            True if a row was drawn and a redraw requested
        """
        if not self._tick_lock.acquire(blocking=False):
            with self._stats_lock:
                self.dropped_ticks += 1
            self.tick_skipped.emit("Previous tick still rendering, scan dropped")
            return False

        try:
            rendered = self._render_tick(primary, secondary, lower_index, upper_index)
        finally:
            self._tick_lock.release()

        if rendered:
            self.redraw_requested.emit()
        return rendered

    def _render_tick(self, primary: Sequence[float], secondary: Sequence[float],
                     lower_index: int, upper_index: int) -> bool:
        mode = self._mode
        if mode == WaterfallMode.OFF:
            return False

        primary = np.asarray(primary, dtype=np.float64)
        secondary = np.asarray(secondary, dtype=np.float64)

        self.calculate_ranges(primary, secondary, mode)
        bounds = self.range_state.snapshot()

        try:
            normalized = self._normalized_columns(mode, primary, secondary,
                                                  lower_index, upper_index, bounds)
        except InvalidRange as e:
            with self._stats_lock:
                self.skipped_ticks += 1
            self.tick_skipped.emit(str(e))
            return False

        with self.buffer.locked():
            self.buffer.scroll_down(1)
            for x, value in enumerate(normalized):
                self.buffer.set_pixel(x, 0, self.palette.color_for(value))

        with self._stats_lock:
            self.rendered_ticks += 1
        return True

    def _normalized_columns(self, mode: WaterfallMode, primary: np.ndarray, secondary: np.ndarray,
                            lower_index: int, upper_index: int, bounds: RangeBounds) -> np.ndarray:
        """Compute the new row as normalized values in [0, 1], one per column."""
        width = self.surface.width
        if width <= 0 or self.surface.height <= 0:
            raise InvalidRange("Surface has no drawable area")

        aggregator = ColumnAggregator(width)

        if mode == WaterfallMode.STRENGTH:
            if primary.size == 0:
                raise InvalidRange("Primary scan is empty")
            if not bounds.strength_span > 0:
                raise InvalidRange(
                    f"Strength range {bounds.min_bound} to {bounds.max_bound} is not positive"
                )

            values = aggregator.aggregate(primary, lower_index, upper_index, ReduceKind.MAX)
            normalized = (values - bounds.min_bound) / bounds.strength_span
        else:
            analyzer = DifferentialAnalyzer(primary, secondary)
            if not bounds.max_delta > 0:
                raise InvalidRange(f"Delta range {bounds.max_delta} is not positive")

            values = aggregator.aggregate_metric(analyzer.difference, len(analyzer),
                                                 lower_index, upper_index, ReduceKind.MAX)
            normalized = values / bounds.max_delta

        # Columns without a valid sample render as the floor color
        return np.clip(np.nan_to_num(normalized, nan=0.0), 0.0, 1.0)

    def rgb_image(self) -> np.ndarray:
        """Copy the surface as an (height, width, 3) RGB array.

        Waits for any in-flight tick, so the copy never shows a partly
        committed row.
        """
        with self._tick_lock:
            surface = self.surface
            width, height, depth = surface.width, surface.height, surface.depth
            data = surface.read_bytes()

        if width <= 0 or height <= 0:
            return np.zeros((0, 0, 3), dtype=np.uint8)
        if depth not in SUPPORTED_DEPTHS:
            raise UnsupportedFormat("Only 8, 24 and 32 bpp images are supported.")

        if depth == 8:
            gray = data.reshape(height, width)
            return np.stack([gray, gray, gray], axis=-1)

        pixels = data.reshape(height, width, depth // 8)
        return np.ascontiguousarray(pixels[:, :, 2::-1])

    def statistics(self) -> Dict[str, Any]:
        """Get tick counters and current settings.

        Returns:
            Dictionary with current statistics
        """
        bounds = self.range_state.snapshot()
        with self._stats_lock:
            return {
                'mode': self._mode.value,
                'range_mode': self._range_mode.value,
                'rendered_ticks': self.rendered_ticks,
                'skipped_ticks': self.skipped_ticks,
                'dropped_ticks': self.dropped_ticks,
                'strength_min': bounds.min_bound,
                'strength_max': bounds.max_bound,
                'delta_range': bounds.max_delta,
            }
