#!/usr/bin/env python3
"""
Tests for the waterfall controller tick pipeline.
"""

import numpy as np
import pytest

from proximity_waterfall.controller import WaterfallController
from proximity_waterfall.errors import OutOfRange, UnsupportedFormat
from proximity_waterfall.modes import RangeMode, WaterfallMode
from proximity_waterfall.palette import Color
from proximity_waterfall.raster import ArraySurface


PRIMARY = [1, 5, 3, 8, 2]
SECONDARY = [1, 5, 3, 16, 2]


class ShrinkingSurface(ArraySurface):
    """Reports one extra column the first time its width is read."""

    def __init__(self, width, height, depth=32):
        super().__init__(width, height, depth)
        self._width_reads = 0

    @property
    def width(self):
        self._width_reads += 1
        return self._width + 1 if self._width_reads == 1 else self._width


def row_colors(image, y):
    return [tuple(int(c) for c in pixel) for pixel in image[y]]


def fixed_strength_controller(surface):
    controller = WaterfallController(surface, mode=WaterfallMode.STRENGTH,
                                     range_mode=RangeMode.FIXED)
    controller.set_strength_range(-50, -10)
    return controller


def test_fixed_strength_row():
    """-20 dB between -50 and -10 normalizes to 0.75."""
    surface = ArraySurface(4, 3)
    controller = fixed_strength_controller(surface)

    assert controller.refresh([-20] * 4, [0] * 4, 0, 4)

    image = controller.rgb_image()
    assert image.shape == (3, 4, 3)
    assert row_colors(image, 0) == [(255, 254, 0)] * 4
    assert row_colors(image, 1) == [(0, 0, 0)] * 4
    assert controller.rendered_ticks == 1


def test_auto_strength_range_spans_scan():
    controller = WaterfallController(ArraySurface(4, 2), mode=WaterfallMode.STRENGTH,
                                     range_mode=RangeMode.AUTO)

    assert controller.refresh([-80, -20, -50, -40], [0] * 4, 0, 4)

    assert controller.get_strength_minimum() == -80
    assert controller.get_strength_maximum() == -20

    row = row_colors(controller.rgb_image(), 0)
    assert row[0] == (0, 1, 255)
    assert row[1] == (255, 0, 0)


def test_fixed_difference_row():
    controller = WaterfallController(ArraySurface(5, 2), mode=WaterfallMode.DIFFERENCE,
                                     range_mode=RangeMode.FIXED)
    controller.set_delta_range(200)

    assert controller.refresh(PRIMARY, SECONDARY, 0, 5)

    palette = controller.palette
    expected = [palette.color_for(v / 200) for v in (20, 100, 60, 200, 25)]
    row = row_colors(controller.rgb_image(), 0)

    assert row == [(c.r, c.g, c.b) for c in expected]
    assert row[3] == (255, 0, 0)
    assert controller.get_delta_range() == 200


def test_auto_difference_range():
    controller = WaterfallController(ArraySurface(5, 2), mode=WaterfallMode.DIFFERENCE,
                                     range_mode=RangeMode.AUTO)

    assert controller.refresh(PRIMARY, SECONDARY, 0, 5)

    assert controller.get_delta_range() == pytest.approx(200.0)
    assert row_colors(controller.rgb_image(), 0)[3] == (255, 0, 0)


def test_mismatched_scans_skip_tick():
    surface = ArraySurface(4, 2)
    before = surface.read_bytes()
    controller = WaterfallController(surface, mode=WaterfallMode.DIFFERENCE)

    assert not controller.refresh(np.zeros(100), np.zeros(50), 0, 50)

    np.testing.assert_array_equal(surface.read_bytes(), before)
    assert controller.skipped_ticks == 1
    assert controller.rendered_ticks == 0


def test_off_mode_draws_nothing():
    surface = ArraySurface(4, 2)
    before = surface.read_bytes()
    controller = WaterfallController(surface, mode=WaterfallMode.OFF)

    assert not controller.refresh([-20] * 4, [-20] * 4, 0, 4)

    np.testing.assert_array_equal(surface.read_bytes(), before)
    assert controller.statistics()['skipped_ticks'] == 0


@pytest.mark.parametrize("range_mode", [RangeMode.FIXED, RangeMode.AUTO])
def test_degenerate_strength_range_skips_tick(range_mode):
    surface = ArraySurface(4, 2)
    before = surface.read_bytes()
    controller = WaterfallController(surface, range_mode=range_mode)
    controller.set_strength_range(-30, -30)

    assert not controller.refresh([-30] * 4, [0] * 4, 0, 4)
    np.testing.assert_array_equal(surface.read_bytes(), before)


def test_non_positive_delta_range_skips_tick():
    controller = WaterfallController(ArraySurface(5, 2), mode=WaterfallMode.DIFFERENCE,
                                     range_mode=RangeMode.FIXED)
    controller.set_delta_range(0)

    assert not controller.refresh(PRIMARY, SECONDARY, 0, 5)


def test_empty_window_skips_tick():
    controller = fixed_strength_controller(ArraySurface(4, 2))

    assert not controller.refresh([-20] * 4, [0] * 4, 3, 3)
    assert not controller.refresh([], [], 0, 4)
    assert controller.skipped_ticks == 2


def test_zero_size_surface_skips_tick():
    controller = fixed_strength_controller(ArraySurface(0, 3))

    assert not controller.refresh([-20] * 4, [0] * 4, 0, 4)
    assert controller.rgb_image().shape == (0, 0, 3)


def test_rows_scroll_down():
    controller = fixed_strength_controller(ArraySurface(2, 3))

    controller.refresh([-10, -10], [0, 0], 0, 2)
    controller.refresh([-50, -50], [0, 0], 0, 2)

    image = controller.rgb_image()
    assert row_colors(image, 0) == [(0, 1, 255)] * 2
    assert row_colors(image, 1) == [(255, 0, 0)] * 2
    assert row_colors(image, 2) == [(0, 0, 0)] * 2


def test_bin_window_selects_columns():
    controller = fixed_strength_controller(ArraySurface(2, 1))
    scan = [-50, -50, -10, -50, -50, -50]

    controller.refresh(scan, scan, 2, 6)

    assert row_colors(controller.rgb_image(), 0) == [(255, 0, 0), (0, 1, 255)]


def test_nan_columns_render_floor_color():
    controller = fixed_strength_controller(ArraySurface(2, 1))

    controller.refresh([-10, np.nan], [0, 0], 0, 2)

    assert row_colors(controller.rgb_image(), 0) == [(255, 0, 0), (0, 1, 255)]


def test_gray_surface(qapp):
    controller = fixed_strength_controller(ArraySurface(3, 2, 8))

    controller.refresh([-10] * 3, [0] * 3, 0, 3)

    image = controller.rgb_image()
    assert image.shape == (2, 3, 3)
    # Luma of pure red
    assert row_colors(image, 0) == [(76, 76, 76)] * 3


def test_redraw_requested_per_rendered_row(qapp):
    controller = fixed_strength_controller(ArraySurface(2, 2))
    redraws = []
    controller.redraw_requested.connect(lambda: redraws.append(True))

    controller.refresh([-20, -20], [0, 0], 0, 2)
    controller.refresh([-20, -20], [0, 0], 2, 2)

    assert len(redraws) == 1


def test_range_updated_emitted_in_auto_mode(qapp):
    controller = WaterfallController(ArraySurface(2, 2))
    updates = []
    controller.range_updated.connect(lambda lo, hi, delta: updates.append((lo, hi, delta)))

    controller.refresh([-70, -30], [0, 0], 0, 2)

    assert updates == [(-70.0, -30.0, 1.0)]


def test_tick_dropped_while_previous_in_flight(qapp):
    surface = ArraySurface(2, 2)
    before = surface.read_bytes()
    controller = fixed_strength_controller(surface)
    reasons = []
    controller.tick_skipped.connect(reasons.append)

    controller._tick_lock.acquire()
    try:
        assert not controller.refresh([-20, -20], [0, 0], 0, 2)
    finally:
        controller._tick_lock.release()

    assert controller.dropped_ticks == 1
    assert len(reasons) == 1
    np.testing.assert_array_equal(surface.read_bytes(), before)

    assert controller.refresh([-20, -20], [0, 0], 0, 2)


def test_out_of_range_pixel_propagates_and_releases():
    surface = ShrinkingSurface(4, 2)
    before = surface.read_bytes()
    controller = fixed_strength_controller(surface)

    with pytest.raises(OutOfRange):
        controller.refresh([-20] * 5, [0] * 5, 0, 5)

    assert not controller.buffer.is_locked
    assert not controller._tick_lock.locked()
    np.testing.assert_array_equal(surface.read_bytes(), before)


def test_unsupported_depth_propagates_and_releases():
    controller = fixed_strength_controller(ArraySurface(4, 2, 16))

    with pytest.raises(UnsupportedFormat):
        controller.refresh([-20] * 4, [0] * 4, 0, 4)

    assert not controller.buffer.is_locked
    assert not controller._tick_lock.locked()

    with pytest.raises(UnsupportedFormat):
        controller.rgb_image()


def test_settings_round_trip():
    controller = WaterfallController(ArraySurface(2, 2))

    assert controller.get_mode() == WaterfallMode.STRENGTH
    assert controller.get_range_mode() == RangeMode.AUTO
    assert controller.get_strength_minimum() == -50
    assert controller.get_strength_maximum() == -10
    assert controller.get_delta_range() == 1

    controller.set_mode(WaterfallMode.DIFFERENCE)
    controller.set_range_mode(RangeMode.FIXED)
    controller.set_strength_minimum(-90)
    controller.set_strength_maximum(-5)
    controller.set_delta_range(150)

    stats = controller.statistics()
    assert stats['mode'] == 'difference'
    assert stats['range_mode'] == 'fixed'
    assert stats['strength_min'] == -90
    assert stats['strength_max'] == -5
    assert stats['delta_range'] == 150


def test_fixed_range_ignores_scan_extremes():
    controller = fixed_strength_controller(ArraySurface(2, 2))

    controller.refresh([-90, 0], [0, 0], 0, 2)

    assert controller.get_strength_minimum() == -50
    assert controller.get_strength_maximum() == -10


def test_controller_draws_on_shared_palette():
    controller = fixed_strength_controller(ArraySurface(1, 1))
    controller.refresh([-50], [0], 0, 1)

    assert controller.palette[len(controller.palette) - 1] == Color(0, 1, 255)
    assert row_colors(controller.rgb_image(), 0) == [(0, 1, 255)]


def test_dropout_bins_skipped_in_difference_mode():
    """A NaN primary bin renders as the floor color, not as an anomaly."""
    controller = WaterfallController(ArraySurface(3, 1), mode=WaterfallMode.DIFFERENCE,
                                     range_mode=RangeMode.FIXED)
    controller.set_delta_range(500)

    assert controller.refresh([1, np.nan, 1], [0, 5, 0], 0, 3)

    assert row_colors(controller.rgb_image(), 0) == [(0, 1, 255)] * 3


def test_dropout_bin_does_not_mask_column_neighbours():
    controller = WaterfallController(ArraySurface(2, 1), mode=WaterfallMode.DIFFERENCE,
                                     range_mode=RangeMode.FIXED)
    controller.set_delta_range(100)

    controller.refresh([4, np.nan, 1, 1], [4, 50, 0, 0], 0, 4)

    # Column 0 holds bins 0 and 1; only bin 0 (4 / 4 * 100) counts
    assert row_colors(controller.rgb_image(), 0)[0] == (255, 0, 0)


class ModeSwitchingScan:
    """Scan that changes the controller's mode while it is being read."""

    def __init__(self, values, controller, mode):
        self.values = values
        self.controller = controller
        self.mode = mode

    def __array__(self, dtype=None, copy=None):
        self.controller.set_mode(self.mode)
        return np.asarray(self.values, dtype=dtype)


def test_auto_range_follows_mode_of_running_tick():
    controller = WaterfallController(ArraySurface(4, 1), mode=WaterfallMode.STRENGTH,
                                     range_mode=RangeMode.AUTO)
    scan = ModeSwitchingScan([-80, -20, -50, -40], controller, WaterfallMode.DIFFERENCE)

    assert controller.refresh(scan, [0, 0, 0, 0], 0, 4)

    assert controller.get_mode() == WaterfallMode.DIFFERENCE
    assert controller.get_strength_minimum() == -80
    assert controller.get_strength_maximum() == -20
    assert controller.get_delta_range() == 1
    assert row_colors(controller.rgb_image(), 0)[1] == (255, 0, 0)


def test_calculate_ranges_for_explicit_mode():
    controller = WaterfallController(ArraySurface(2, 1), mode=WaterfallMode.STRENGTH)

    assert controller.calculate_ranges(PRIMARY, SECONDARY, WaterfallMode.DIFFERENCE)

    assert controller.get_delta_range() == pytest.approx(200.0)
    assert controller.get_strength_minimum() == -50
