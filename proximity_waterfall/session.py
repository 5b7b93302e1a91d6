"""
Session Module
Runs a waterfall: scan source in, rendered rows out, with console status
and keyboard controls.
"""

import threading
import time
from typing import Any, Dict, Optional

import keyboard
import numpy as np
from PyQt5.QtCore import Qt

from proximity_waterfall.config import Configuration
from proximity_waterfall.controller import WaterfallController
from proximity_waterfall.display import CLIDisplay
from proximity_waterfall.errors import UnsupportedFormat, WaterfallError
from proximity_waterfall.modes import WaterfallMode, RangeMode
from proximity_waterfall.raster import QImageSurface
from proximity_waterfall.scan_source import SimulatedScanSource


MODE_CYCLE = [WaterfallMode.OFF, WaterfallMode.STRENGTH, WaterfallMode.DIFFERENCE]


class WaterfallSession:
    """Connects a scan source to a waterfall controller."""

    def __init__(self, config: Configuration, display: CLIDisplay,
                 source: Optional[SimulatedScanSource] = None):
        """Initialize waterfall session.

        Args:
            config: Configuration object
            display: Display object for output
            source: Scan source, simulated from the scan config when omitted
        """
        self.config = config
        self.display = display

        self.surface = QImageSurface.create(config.waterfall.width, config.waterfall.height,
                                            config.waterfall.depth)
        self.controller = WaterfallController(
            self.surface,
            mode=config.waterfall.waterfall_mode,
            range_mode=config.waterfall.waterfall_range_mode,
        )
        self.controller.set_strength_range(config.waterfall.strength_min, config.waterfall.strength_max)
        self.controller.set_delta_range(config.waterfall.delta_range)

        # Diagnostics arrive on the scan thread; the display serializes them
        self.controller.tick_skipped.connect(self.display.print_tick_skipped, Qt.DirectConnection)
        self.controller.range_updated.connect(self.display.print_range_update, Qt.DirectConnection)

        self.source = source if source is not None else SimulatedScanSource(config.scan)
        self.source.set_data_callback(self.handle_scan)
        self.source.error_callback = self._on_source_error

        self.lower_index, self.upper_index = config.bin_window()

        # Session state
        self.is_running = False
        self.should_stop = False
        self.start_time = 0
        self.scan_count = 0
        self.failed_ticks = 0
        self.error: Optional[str] = None

        # Thread synchronization
        self.data_lock = threading.Lock()
        self.keyboard_thread = None

    def handle_scan(self, primary: np.ndarray, secondary: np.ndarray) -> bool:
        """Render one scan pair.

        Args:
            primary: Series 1 scan
            secondary: Series 2 scan

        Returns:
            True if a row was drawn
        """
        with self.data_lock:
            max_scans = self.config.session.max_scans
            if max_scans and self.scan_count >= max_scans:
                return False
            self.scan_count += 1

        try:
            return self.controller.refresh(primary, secondary, self.lower_index, self.upper_index)
        except UnsupportedFormat as e:
            # Every later tick would fail the same way
            self.error = str(e)
            self.display.print_error(f"Waterfall tick failed: {e}")
            self.should_stop = True
            return False
        except WaterfallError as e:
            with self.data_lock:
                self.failed_ticks += 1
            self.display.print_warning(f"Waterfall tick failed: {e}")
            return False

    def _on_source_error(self, message: str):
        self.error = message
        self.display.print_error(message)
        self.should_stop = True

    def handle_key(self, key_name: str):
        """Apply a keyboard control.

        Args:
            key_name: Lower-case key name
        """
        if key_name == 'q':
            self.should_stop = True
        elif key_name == 'm':
            current = MODE_CYCLE.index(self.controller.get_mode())
            mode = MODE_CYCLE[(current + 1) % len(MODE_CYCLE)]
            self.controller.set_mode(mode)
            self.display.print_info(f"Waterfall mode: {mode.value}")
        elif key_name == 'a':
            if self.controller.get_range_mode() == RangeMode.AUTO:
                range_mode = RangeMode.FIXED
            else:
                range_mode = RangeMode.AUTO
            self.controller.set_range_mode(range_mode)
            self.display.print_info(f"Range mode: {range_mode.value}")
        elif key_name in ('+', '=', '-'):
            step = 1.0 if key_name != '-' else -1.0
            self.controller.set_strength_range(self.controller.get_strength_minimum() + step,
                                               self.controller.get_strength_maximum() + step)
            self.display.print_info(
                f"Strength range: {self.controller.get_strength_minimum():.1f} to "
                f"{self.controller.get_strength_maximum():.1f} dB"
            )
        elif key_name == 's':
            self.display.print_statistics(self.get_statistics())

    def _keyboard_monitor(self):
        """Monitor for keyboard input to control the session."""
        try:
            while self.is_running and not self.should_stop:
                event = keyboard.read_event()
                if event.event_type == keyboard.KEY_DOWN:
                    self.handle_key(event.name.lower())

        except Exception as e:
            self.display.print_warning(f"Keyboard monitoring error: {e}")

    def _finished(self) -> bool:
        max_scans = self.config.session.max_scans
        return bool(max_scans) and self.scan_count >= max_scans

    def is_done(self) -> bool:
        return not self.is_running or self.should_stop or self._finished()

    def start(self, enable_keyboard: bool = True) -> bool:
        """Print the session header and start producing rows.

        Args:
            enable_keyboard: Listen for keyboard controls

        Returns:
            True if the scan source started
        """
        self.display.print_header("Proximity Waterfall Monitor")
        self.display.print_config_info(self._config_info())

        valid, message = self.source.validate_config()
        if not valid:
            self.display.print_error(message)
            return False

        if enable_keyboard:
            self.display.print_controls()

        self.is_running = True
        self.should_stop = False
        self.start_time = time.time()
        self.scan_count = 0
        self.failed_ticks = 0
        self.error = None

        if enable_keyboard:
            self.keyboard_thread = threading.Thread(target=self._keyboard_monitor)
            self.keyboard_thread.daemon = True
            self.keyboard_thread.start()

        self.source.start()
        return True

    def finish(self) -> bool:
        """Stop the source, save the snapshot and print the summary.

        Returns:
            True if the session completed without a waterfall error
        """
        self.source.stop()
        self.is_running = False

        duration = time.time() - self.start_time
        snapshot_file = self.save_snapshot()

        self.display.print_completion_message(self.scan_count, duration, snapshot_file)

        final_stats = self.get_statistics()
        final_stats['total_duration_s'] = duration
        self.display.print_statistics(final_stats)

        return self.error is None

    def run(self, enable_keyboard: bool = True) -> bool:
        """Run the session until stopped, interrupted or ``max_scans`` is reached.

        Args:
            enable_keyboard: Listen for keyboard controls

        Returns:
            True if the session completed without a waterfall error
        """
        try:
            if not self.start(enable_keyboard):
                return False

            reported = 0
            try:
                while not self.is_done():
                    time.sleep(0.05)
                    if self.scan_count != reported:
                        reported = self.scan_count
                        self.display.print_status(reported, self.controller.rendered_ticks,
                                                  self.source.scan_rate)

            except KeyboardInterrupt:
                self.display.print_info("Waterfall interrupted by user")
                self.should_stop = True

            return self.finish()

        except Exception as e:
            self.display.print_error(f"Waterfall session error: {e}")
            return False
        finally:
            self.cleanup()

    def save_snapshot(self, file_path: Optional[str] = None) -> str:
        """Save the waterfall image.

        Args:
            file_path: Target file, defaults to the configured snapshot file

        Returns:
            Path written, or an empty string if nothing was saved
        """
        file_path = file_path or self.config.session.snapshot_file
        if not file_path:
            return ""

        if not self.surface.save(file_path):
            self.display.print_warning(f"Could not save waterfall image to {file_path}")
            return ""
        return file_path

    def stop(self):
        """Stop the session."""
        self.should_stop = True
        self.is_running = False

    def cleanup(self):
        """Clean up resources."""
        self.is_running = False
        self.should_stop = True

        self.source.stop()

        if self.keyboard_thread and self.keyboard_thread.is_alive():
            self.keyboard_thread.join(timeout=1.0)

    def _config_info(self) -> Dict[str, Any]:
        return {
            'width': self.config.waterfall.width,
            'height': self.config.waterfall.height,
            'depth': self.config.waterfall.depth,
            'mode': self.controller.get_mode().value,
            'range_mode': self.controller.get_range_mode().value,
            'lower_index': self.lower_index,
            'upper_index': self.upper_index,
        }

    def get_statistics(self) -> Dict[str, Any]:
        """Get current session statistics.

        Returns:
            Dictionary with current statistics
        """
        stats = {'scan_count': self.scan_count, 'failed_ticks': self.failed_ticks,
                 'scan_rate_hz': self.source.scan_rate}
        stats.update(self.controller.statistics())

        if self.start_time > 0:
            stats['elapsed_time_s'] = time.time() - self.start_time

        if self.error:
            stats['error'] = self.error

        return stats
