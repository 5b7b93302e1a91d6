"""
Configuration Management Module
Handles loading and validation of waterfall monitor configuration.
"""

import yaml
import os
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field, asdict

from proximity_waterfall.modes import WaterfallMode, RangeMode


@dataclass
class WaterfallConfig:
    """Waterfall raster and normalization configuration."""
    width: int = 800
    height: int = 400
    depth: int = 32
    mode: str = "strength"
    range_mode: str = "auto"
    strength_min: float = -50.0
    strength_max: float = -10.0
    delta_range: float = 1.0

    @property
    def waterfall_mode(self) -> WaterfallMode:
        return WaterfallMode(self.mode)

    @property
    def waterfall_range_mode(self) -> RangeMode:
        return RangeMode(self.range_mode)


@dataclass
class ScanConfig:
    """Simulated scan source configuration."""
    num_bins: int = 2048
    scan_rate_hz: float = 10.0
    noise_floor: float = 5.0
    noise_std: float = 1.0
    peak_bins: List[int] = field(default_factory=lambda: [256, 700, 1024, 1600])
    peak_strength: float = 40.0
    reradiation_gain: float = 1.5
    reradiation_bins: List[int] = field(default_factory=lambda: [700, 1600])
    nan_probability: float = 0.0
    lower_index: Optional[int] = None
    upper_index: Optional[int] = None
    seed: Optional[int] = None


@dataclass
class SessionConfig:
    """Session run configuration."""
    max_scans: int = 0
    snapshot_file: str = ""


@dataclass
class DisplayConfig:
    """Console output configuration."""
    use_colors: bool = True
    verbose: bool = False


class Configuration:
    """Main configuration manager for the waterfall monitor."""

    def __init__(self, config_file: str = "config.yaml"):
        """Initialize configuration from file.

        Args:
            config_file: Path to YAML configuration file
        """
        self.config_file = config_file
        self.waterfall: WaterfallConfig = None
        self.scan: ScanConfig = None
        self.session: SessionConfig = None
        self.display: DisplayConfig = None

        self.load()

    def load(self) -> None:
        """Load configuration from YAML file."""
        if not os.path.exists(self.config_file):
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        with open(self.config_file, 'r') as f:
            config_data = yaml.safe_load(f) or {}

        self.apply(config_data)

    def apply(self, config_data: Dict[str, Any]) -> None:
        """Replace every section from a parsed configuration dictionary."""
        self.waterfall = WaterfallConfig(**(config_data.get('waterfall') or {}))
        self.scan = ScanConfig(**(config_data.get('scan') or {}))
        self.session = SessionConfig(**(config_data.get('session') or {}))
        self.display = DisplayConfig(**(config_data.get('display') or {}))

        # Validate configuration
        self.validate()

    def validate(self) -> None:
        """Validate configuration parameters."""
        # Waterfall validation
        if self.waterfall.width <= 0 or self.waterfall.height <= 0:
            raise ValueError("waterfall width and height must be positive")
        if self.waterfall.depth not in (8, 24, 32):
            raise ValueError("waterfall depth must be 8, 24 or 32 bits per pixel")
        if self.waterfall.mode not in [m.value for m in WaterfallMode]:
            raise ValueError("mode must be one of off, strength, difference")
        if self.waterfall.range_mode not in [m.value for m in RangeMode]:
            raise ValueError("range_mode must be fixed or auto")
        if self.waterfall.strength_max <= self.waterfall.strength_min:
            raise ValueError("strength_max must be greater than strength_min")
        if self.waterfall.delta_range <= 0:
            raise ValueError("delta_range must be positive")

        # Scan validation
        if self.scan.num_bins <= 0:
            raise ValueError("num_bins must be positive")
        if self.scan.scan_rate_hz <= 0:
            raise ValueError("scan_rate_hz must be positive")
        if self.scan.noise_std < 0:
            raise ValueError("noise_std must be non-negative")
        if not (0.0 <= self.scan.nan_probability < 1.0):
            raise ValueError("nan_probability must be in [0, 1)")
        for b in list(self.scan.peak_bins) + list(self.scan.reradiation_bins):
            if not (0 <= b < self.scan.num_bins):
                raise ValueError(f"peak bin {b} outside 0..{self.scan.num_bins - 1}")

        lower, upper = self.bin_window()
        if not (0 <= lower < upper <= self.scan.num_bins):
            raise ValueError("lower_index/upper_index must describe a window inside the scan")

        # Session validation
        if self.session.max_scans < 0:
            raise ValueError("max_scans must be non-negative")

    def bin_window(self):
        """Get the displayed bin window, defaulting to the whole scan."""
        lower = self.scan.lower_index if self.scan.lower_index is not None else 0
        upper = self.scan.upper_index if self.scan.upper_index is not None else self.scan.num_bins
        return lower, upper

    def to_dict(self) -> Dict[str, Any]:
        return {
            'waterfall': asdict(self.waterfall),
            'scan': asdict(self.scan),
            'session': asdict(self.session),
            'display': asdict(self.display),
        }

    def save(self, config_file: Optional[str] = None) -> None:
        """Save current configuration to YAML file.

        Args:
            config_file: Optional different file path to save to
        """
        save_file = config_file or self.config_file

        with open(save_file, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, indent=2)

    def __str__(self) -> str:
        """String representation of configuration."""
        lower, upper = self.bin_window()
        return (
            f"Waterfall Monitor Configuration:\n"
            f"  Raster: {self.waterfall.width}x{self.waterfall.height} @ {self.waterfall.depth} bpp\n"
            f"  Mode: {self.waterfall.mode} ({self.waterfall.range_mode} range)\n"
            f"  Strength Range: {self.waterfall.strength_min} - {self.waterfall.strength_max} dB\n"
            f"  Delta Range: {self.waterfall.delta_range} %\n"
            f"  Bins: {self.scan.num_bins} (window {lower} - {upper})\n"
            f"  Scan Rate: {self.scan.scan_rate_hz} Hz"
        )
