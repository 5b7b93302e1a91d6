"""
Scan Source Module
Simulated source of synchronized two-series frequency scans.
"""

import threading
import time
from typing import Callable, Optional, Tuple

import numpy as np

from proximity_waterfall.config import ScanConfig


class SimulatedScanSource:
    """Generates scan pairs: a noisy floor with peaks, and a second series
    in which some peaks are reradiated stronger."""

    def __init__(self, config: Optional[ScanConfig] = None,
                 data_callback: Optional[Callable] = None,
                 error_callback: Optional[Callable] = None):
        """Initialize scan source.

        Args:
            config: Scan parameters
            data_callback: Function called for each new scan pair.
                          Signature: callback(primary, secondary)
            error_callback: Function called with a message if the worker fails
        """
        self.config = config if config is not None else ScanConfig()
        self.data_callback = data_callback
        self.error_callback = error_callback

        self.is_running = False
        self.scan_thread = None
        self.latest_primary = None
        self.latest_secondary = None

        self.rng = np.random.default_rng(self.config.seed)

        # Statistics
        self.scan_count = 0
        self.last_scan_time = 0
        self.scan_rate = 0.0

    def validate_config(self) -> Tuple[bool, str]:
        """Validate the current configuration."""
        if self.config.num_bins <= 0:
            return False, "Number of bins must be positive"

        if self.config.scan_rate_hz <= 0:
            return False, "Scan rate must be positive"

        for b in list(self.config.peak_bins) + list(self.config.reradiation_bins):
            if not (0 <= b < self.config.num_bins):
                return False, f"Peak bin {b} must be between 0 and {self.config.num_bins - 1}"

        if not (0.0 <= self.config.nan_probability < 1.0):
            return False, "NaN probability must be in [0, 1)"

        return True, "Configuration valid"

    def _series(self) -> np.ndarray:
        n = self.config.num_bins
        levels = self.config.noise_floor + self.config.noise_std * self.rng.standard_normal(n)

        for b in self.config.peak_bins:
            levels[b] += self.config.peak_strength + self.config.noise_std * self.rng.standard_normal()

        return levels

    def _drop_samples(self, levels: np.ndarray) -> np.ndarray:
        if self.config.nan_probability > 0:
            mask = self.rng.random(levels.size) < self.config.nan_probability
            levels[mask] = np.nan
        return levels

    def generate_scan(self) -> Tuple[np.ndarray, np.ndarray]:
        """Generate one synchronized scan pair.

        Returns:
            Tuple of (primary, secondary) float32 arrays
        """
        primary = self._series()
        secondary = self._series()

        for b in self.config.reradiation_bins:
            secondary[b] = primary[b] * self.config.reradiation_gain

        primary = self._drop_samples(primary)
        secondary = self._drop_samples(secondary)

        return primary.astype(np.float32), secondary.astype(np.float32)

    def _emit_scan_data(self, primary: np.ndarray, secondary: np.ndarray):
        """Emit scan data to callback or store locally."""
        self.latest_primary = primary
        self.latest_secondary = secondary

        if self.data_callback:
            self.data_callback(primary, secondary)

    def set_data_callback(self, callback: Callable):
        """Set the callback function for scan data.

        Args:
            callback: Function called for each new scan pair.
                     Signature: callback(primary, secondary)
        """
        self.data_callback = callback

    def start(self):
        """Start producing scans on a worker thread."""
        if self.is_running:
            return

        self.is_running = True
        self.scan_count = 0
        self.last_scan_time = 0

        self.scan_thread = threading.Thread(target=self._scan_worker)
        self.scan_thread.daemon = True
        self.scan_thread.start()

    def stop(self):
        """Stop producing scans."""
        if not self.is_running:
            return

        self.is_running = False

        if self.scan_thread and self.scan_thread.is_alive() \
                and self.scan_thread is not threading.current_thread():
            self.scan_thread.join(timeout=2.0)

    def _scan_worker(self):
        """Worker thread for scan generation."""
        try:
            interval = 1.0 / self.config.scan_rate_hz

            while self.is_running:
                primary, secondary = self.generate_scan()
                self._emit_scan_data(primary, secondary)

                self.scan_count += 1
                current_time = time.time()
                if self.last_scan_time > 0:
                    self.scan_rate = 1.0 / max(current_time - self.last_scan_time, 1e-6)
                self.last_scan_time = current_time

                time.sleep(interval)

        except Exception as e:
            if self.error_callback:
                self.error_callback(f"Scan source error: {e}")
        finally:
            self.is_running = False

    def get_scan_stats(self) -> Tuple[int, float]:
        """Get current scan statistics.

        Returns:
            Tuple of (scan_count, scan_rate)
        """
        return self.scan_count, self.scan_rate
