"""
Display Module
Handles CLI output, status updates and diagnostics.
"""

import os
import sys
import threading
from typing import Any, Dict
from termcolor import colored


class CLIDisplay:
    """Manages command-line output for a waterfall session."""

    def __init__(self, use_colors: bool = True, verbose: bool = False):
        """Initialize CLI display.

        Args:
            use_colors: Use colored output when the terminal supports it
            verbose: Print per-tick diagnostics
        """
        self.use_colors = use_colors
        self.verbose = verbose

        self.warning_count = 0
        self.display_lock = threading.Lock()

        # Check terminal capabilities
        self._check_terminal_capabilities()

    def _check_terminal_capabilities(self):
        """Check if terminal supports colors."""
        if not sys.stdout.isatty():
            self.use_colors = False
            return

        term = os.environ.get('TERM', '').lower()
        if 'color' not in term and term not in ['xterm', 'xterm-256color', 'screen']:
            self.use_colors = False

    def _print(self, text: str, color: str = None, attrs=None, **kwargs):
        if color and self.use_colors:
            print(colored(text, color, attrs=attrs), **kwargs)
        else:
            print(text, **kwargs)

    def print_header(self, title: str, subtitle: str = "", width: int = 80):
        """Print a formatted header.

        Args:
            title: Main title text
            subtitle: Optional subtitle
            width: Total width of header
        """
        with self.display_lock:
            separator = "=" * width
            self._print(separator, 'cyan')
            self._print(title.center(width), 'cyan', attrs=['bold'])
            if subtitle:
                self._print(subtitle.center(width), 'cyan')
            self._print(separator, 'cyan')

    def print_config_info(self, config_info: Dict[str, Any]):
        """Print configuration information.

        Args:
            config_info: Dictionary with configuration details
        """
        with self.display_lock:
            print(f"Raster: {config_info.get('width', 0)}x{config_info.get('height', 0)} "
                  f"@ {config_info.get('depth', 0)} bpp")
            print(f"Mode: {config_info.get('mode', 'unknown')} "
                  f"({config_info.get('range_mode', 'unknown')} range)")
            print(f"Bin Window: {config_info.get('lower_index', 0)} - {config_info.get('upper_index', 0)}")
            print()

    def print_controls(self):
        """Print available keyboard controls."""
        with self.display_lock:
            controls = [
                "[m] Cycle mode",
                "[a] Auto/fixed range",
                "[+/-] Shift strength range",
                "[s] Show stats",
                "[q] Quit"
            ]
            print(f"Controls: {' | '.join(controls)}")
            print()

    def print_tick_skipped(self, reason: str):
        """Print why a tick was skipped (verbose only)."""
        if not self.verbose:
            return
        with self.display_lock:
            self._print(f"Tick skipped: {reason}", 'yellow')

    def print_range_update(self, min_bound: float, max_bound: float, max_delta: float):
        """Print new normalization bounds (verbose only)."""
        if not self.verbose:
            return
        with self.display_lock:
            self._print(f"Range: {min_bound:.1f} to {max_bound:.1f} dB, delta {max_delta:.1f} %", 'white')

    def print_status(self, scan_count: int, rendered: int, scan_rate: float = 0.0):
        """Print a one-line session status.

        Args:
            scan_count: Number of scans received
            rendered: Number of rows drawn
            scan_rate: Scans per second
        """
        with self.display_lock:
            rate_str = f" ({scan_rate:.1f} Hz)" if scan_rate > 0 else ""
            status_line = f"Scan {scan_count}{rate_str} | Rows drawn: {rendered}"
            self._print(f"\r{status_line}", 'green', end="", flush=True)

    def print_statistics(self, stats: Dict[str, Any]):
        """Print current statistics.

        Args:
            stats: Dictionary with statistics to display
        """
        with self.display_lock:
            print()
            self._print("Current Statistics:", 'cyan', attrs=['bold'])

            for key, value in stats.items():
                if isinstance(value, float):
                    print(f"  {key}: {value:.2f}")
                else:
                    print(f"  {key}: {value}")
            print()

    def print_completion_message(self, scan_count: int = 0, duration: float = 0,
                                 snapshot_file: str = ""):
        """Print completion message.

        Args:
            scan_count: Total scans received
            duration: Total duration in seconds
            snapshot_file: Path of the saved waterfall image, if any
        """
        with self.display_lock:
            print()
            self._print(f"Waterfall stopped after {scan_count} scans", 'yellow')

            if snapshot_file:
                self._print(f"Waterfall image saved to {snapshot_file}", 'green', attrs=['bold'])

            if duration > 0:
                self._print(f"Duration: {duration:.1f} seconds", 'white')

            print()

    def print_error(self, message: str):
        """Print an error message."""
        with self.display_lock:
            self._print(f"Error: {message}", 'red', attrs=['bold'])

    def print_warning(self, message: str):
        """Print a warning message."""
        with self.display_lock:
            self.warning_count += 1
            self._print(f"Warning: {message}", 'yellow')

    def print_info(self, message: str):
        """Print an info message."""
        with self.display_lock:
            self._print(message, 'cyan')
