"""
Palette Module
Color gradient table used to map normalized values onto waterfall pixels.
"""

import numpy as np
from dataclasses import dataclass
from typing import List


PHASE_STEPS = 255


@dataclass(frozen=True)
class Color:
    """A single pixel color."""
    r: int
    g: int
    b: int
    a: int = 255

    @classmethod
    def gray(cls, level: int) -> "Color":
        return cls(level, level, level)


def build_gradient(steps: int = PHASE_STEPS) -> np.ndarray:
    """Build the gradient as an (N, 4) uint8 array of R, G, B, A rows.

    The sweep runs in four linear phases: red to yellow (green rises),
    yellow to green (red falls), green to cyan (blue rises) and cyan to
    blue (green falls). Each phase contributes ``steps`` colors.

    Args:
        steps: Number of colors per phase

    Returns:
        Array of shape (4 * steps, 4)
    """
    if steps <= 0:
        raise ValueError("steps must be positive")

    rising = np.arange(0, steps, dtype=np.int32)
    falling = np.arange(steps, 0, -1, dtype=np.int32)
    full = np.full(steps, steps, dtype=np.int32)
    zero = np.zeros(steps, dtype=np.int32)

    phases = [
        (full, rising, zero),
        (falling, full, zero),
        (zero, full, rising),
        (zero, falling, full),
    ]

    red = np.concatenate([p[0] for p in phases])
    green = np.concatenate([p[1] for p in phases])
    blue = np.concatenate([p[2] for p in phases])

    # Scale phase positions onto the 0-255 channel range
    scale = 255.0 / steps
    table = np.empty((red.size, 4), dtype=np.uint8)
    table[:, 0] = np.round(red * scale).astype(np.uint8)
    table[:, 1] = np.round(green * scale).astype(np.uint8)
    table[:, 2] = np.round(blue * scale).astype(np.uint8)
    table[:, 3] = 255
    table.setflags(write=False)
    return table


class GradientTable:
    """Immutable ordered palette indexed by normalized position."""

    def __init__(self, steps: int = PHASE_STEPS):
        """Initialize the gradient table.

        Args:
            steps: Number of colors per phase (255 gives 1020 colors)
        """
        self._table = build_gradient(steps)
        self._colors = tuple(Color(int(r), int(g), int(b), int(a)) for r, g, b, a in self._table)

    def __len__(self) -> int:
        return len(self._colors)

    def __getitem__(self, index: int) -> Color:
        return self._colors[index]

    @property
    def array(self) -> np.ndarray:
        """Read-only (N, 4) uint8 view of the palette."""
        return self._table

    def colors(self) -> List[Color]:
        return list(self._colors)

    def index_for(self, normalized: float, inverted: bool = True) -> int:
        """Get the palette index for a normalized value.

        Values outside [0, 1] are clamped and NaN is treated as 0. With
        ``inverted`` the strongest value (1.0) maps to the first color.

        Args:
            normalized: Value in [0, 1]
            inverted: Map 1.0 to index 0 instead of the last index

        Returns:
            Palette index, rounded down
        """
        if np.isnan(normalized):
            normalized = 0.0
        normalized = min(1.0, max(0.0, float(normalized)))

        position = 1.0 - normalized if inverted else normalized
        return int(position * (len(self._colors) - 1))

    def color_for(self, normalized: float, inverted: bool = True) -> Color:
        """Get the palette color for a normalized value."""
        return self._colors[self.index_for(normalized, inverted)]
