"""
Analysis Module
Peak-relative differential metric between two synchronized scans.

The difference at a bin is the secondary scan's strength expressed as a
percentage of the nearest local peak in the primary scan. A reradiated
signal that shows up in the secondary series near an ambient peak reads
above 100; bins whose nearest primary peak is not positive read 0.
"""

import math
from typing import Optional, Sequence

import numpy as np

from proximity_waterfall.errors import InvalidRange


def find_peaks(array: Sequence[float]) -> np.ndarray:
    """Find local peaks in a scan.

    A peak is a non-NaN sample strictly greater than each of its neighbours.
    NaN neighbours are ignored, so edge samples only have to beat their one
    interior neighbour and a single-sample scan is its own peak. Flat tops
    are not peaks.

    Args:
        array: Bin strengths

    Returns:
        Sorted array of peak indices
    """
    values = np.asarray(array, dtype=np.float64)
    if values.size == 0:
        return np.zeros(0, dtype=np.intp)

    filled = np.where(np.isnan(values), -np.inf, values)
    padded = np.concatenate(([-np.inf], filled, [-np.inf]))
    centre = padded[1:-1]

    mask = (centre > padded[:-2]) & (centre > padded[2:]) & ~np.isnan(values)
    return np.flatnonzero(mask)


def nearest_peak_strengths(array: Sequence[float], peaks: Optional[np.ndarray] = None) -> np.ndarray:
    """Get the nearest-peak strength for every bin of a scan.

    Equal distances resolve to the lower peak index. Bins of a scan without
    any peak use their own strength (0 for NaN).

    Args:
        array: Bin strengths
        peaks: Precomputed peak indices, found from ``array`` when omitted

    Returns:
        float64 array the same length as ``array``
    """
    values = np.asarray(array, dtype=np.float64)
    if peaks is None:
        peaks = find_peaks(values)

    if peaks.size == 0:
        return np.where(np.isnan(values), 0.0, values)

    indices = np.arange(values.size)
    pos = np.searchsorted(peaks, indices)
    below = peaks[np.clip(pos - 1, 0, peaks.size - 1)]
    above = peaks[np.clip(pos, 0, peaks.size - 1)]

    use_below = (pos > 0) & ((pos == peaks.size) | (indices - below <= above - indices))
    return values[np.where(use_below, below, above)]


class DifferentialAnalyzer:
    """Differential metric over one synchronized pair of scans.

    Peak tables for both scans are built once, so evaluating every bin of a
    scan costs O(N log P) rather than a peak search per bin.
    """

    def __init__(self, primary: Sequence[float], secondary: Sequence[float]):
        """Initialize analyzer.

        Args:
            primary: Ambient scan (series 1)
            secondary: Proximity scan (series 2), same length as ``primary``
        """
        self.primary = np.asarray(primary, dtype=np.float64)
        self.secondary = np.asarray(secondary, dtype=np.float64)

        if self.primary.size == 0 or self.primary.size != self.secondary.size:
            raise InvalidRange(
                f"Scans must be non-empty and equal length "
                f"({self.primary.size} vs {self.secondary.size})"
            )

        self.primary_peaks = find_peaks(self.primary)
        self.secondary_peaks = find_peaks(self.secondary)
        self._primary_nearest = nearest_peak_strengths(self.primary, self.primary_peaks)
        self._secondary_nearest = nearest_peak_strengths(self.secondary, self.secondary_peaks)

    def __len__(self) -> int:
        return self.primary.size

    def _check_index(self, index: int) -> None:
        if index < 0 or index >= self.primary.size:
            raise InvalidRange(f"Bin index {index} outside 0..{self.primary.size - 1}")

    def primary_peak_strength(self, index: int) -> float:
        self._check_index(index)
        return float(self._primary_nearest[index])

    def secondary_peak_strength(self, index: int) -> float:
        self._check_index(index)
        return float(self._secondary_nearest[index])

    def difference(self, index: int) -> float:
        """Secondary strength at ``index`` as a percentage of the nearest primary peak.

        Returns NaN for a dropout bin (NaN primary sample) so callers skip
        it, and exactly 0 when the peak is not positive. A NaN secondary
        sample under a positive peak also gives NaN.
        """
        peak = self.primary_peak_strength(index)
        if math.isnan(self.primary[index]):
            return math.nan
        if not peak > 0:
            return 0.0
        return float(self.secondary[index]) / peak * 100.0

    def differences(self) -> np.ndarray:
        """Evaluate ``difference`` for every bin."""
        peaks = self._primary_nearest
        positive = peaks > 0
        safe_peaks = np.where(positive, peaks, 1.0)
        values = np.where(positive, self.secondary / safe_peaks * 100.0, 0.0)
        return np.where(np.isnan(self.primary), np.nan, values)

    def nearest_peak_ratio(self, index: int) -> float:
        """Nearest secondary peak as a percentage of the nearest primary peak."""
        peak = self.primary_peak_strength(index)
        if math.isnan(self.primary[index]):
            return math.nan
        if not peak > 0:
            return 0.0
        return self.secondary_peak_strength(index) / peak * 100.0


def strength_difference(primary: Sequence[float], secondary: Sequence[float], index: int) -> float:
    """One-shot form of ``DifferentialAnalyzer.difference``."""
    return DifferentialAnalyzer(primary, secondary).difference(index)


def strength_ratio(primary: Sequence[float], secondary: Sequence[float], index: int) -> float:
    """Ratio of the two raw samples at ``index``; 0 when the primary sample is 0."""
    if primary[index] == 0:
        return 0.0
    return float(secondary[index]) / float(primary[index])


def strength_delta(primary: Sequence[float], secondary: Sequence[float], index: int) -> float:
    """Raw difference ``secondary - primary`` at ``index``; 0 when the primary sample is 0."""
    if primary[index] == 0:
        return 0.0
    return float(secondary[index]) - float(primary[index])


def surround_noise_floor(array: Sequence[float], index: int, width: int) -> float:
    """Mean strength of a ``width``-bin window centred on ``index``.

    The window is shifted inward at the array edges so it keeps its width
    whenever the array is long enough. NaN samples are skipped.

    Args:
        array: Bin strengths
        index: Centre bin
        width: Window width in bins

    Returns:
        Mean strength, or NaN if the window holds no valid sample
    """
    values = np.asarray(array, dtype=np.float64)
    if values.size == 0 or width <= 0:
        return math.nan

    start = index - width // 2
    start = min(max(0, start), max(0, values.size - width))
    window = values[start:start + width]
    window = window[~np.isnan(window)]

    if window.size == 0:
        return math.nan
    return float(window.mean())
