"""
Raster Module
Pixel surfaces and the lockable raster buffer the waterfall is drawn into.
"""

import numpy as np
from contextlib import contextmanager
from typing import Iterator, Optional
from PyQt5.QtGui import QImage, QColor

from proximity_waterfall.errors import UnsupportedFormat, OutOfRange, BufferStateError
from proximity_waterfall.palette import Color


SUPPORTED_DEPTHS = (8, 24, 32)

# QImage formats and the depth the raster buffer sees them as
QIMAGE_FORMAT_DEPTHS = {
    QImage.Format_Grayscale8: 8,
    QImage.Format_Indexed8: 8,
    QImage.Format_BGR888: 24,
    QImage.Format_RGB888: 24,
    QImage.Format_RGB32: 32,
    QImage.Format_ARGB32: 32,
    QImage.Format_ARGB32_Premultiplied: 32,
}

# Formats whose byte order is R,G,B rather than the buffer's B,G,R
QIMAGE_SWAPPED_FORMATS = (QImage.Format_RGB888,)

QIMAGE_CREATE_FORMATS = {
    8: QImage.Format_Grayscale8,
    24: QImage.Format_BGR888,
    32: QImage.Format_ARGB32,
}


class RasterSurface:
    """Backing image the raster buffer reads from and commits to.

    Bytes are exchanged tightly packed, row by row, in the buffer's channel
    order: B,G,R,A for 32 bpp, B,G,R for 24 bpp and one gray byte for 8 bpp.
    """

    @property
    def width(self) -> int:
        raise NotImplementedError

    @property
    def height(self) -> int:
        raise NotImplementedError

    @property
    def depth(self) -> int:
        raise NotImplementedError

    def read_bytes(self) -> np.ndarray:
        raise NotImplementedError

    def write_bytes(self, data: np.ndarray) -> None:
        raise NotImplementedError


class ArraySurface(RasterSurface):
    """Surface backed by a plain numpy byte array."""

    def __init__(self, width: int, height: int, depth: int = 32):
        """Initialize an opaque black surface.

        Args:
            width: Width in pixels
            height: Height in pixels
            depth: Bits per pixel
        """
        self._width = width
        self._height = height
        self._depth = depth

        bytes_per_pixel = max(1, depth // 8)
        self._data = np.zeros(max(0, width) * max(0, height) * bytes_per_pixel, dtype=np.uint8)
        if depth == 32:
            self._data[3::4] = 255

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def depth(self) -> int:
        return self._depth

    def read_bytes(self) -> np.ndarray:
        return self._data.copy()

    def write_bytes(self, data: np.ndarray) -> None:
        data = np.asarray(data, dtype=np.uint8).ravel()
        if data.size != self._data.size:
            raise ValueError(f"Expected {self._data.size} bytes, got {data.size}")
        self._data[:] = data

    def rows(self) -> np.ndarray:
        """Get a read-only (height, width * bytes_per_pixel) view of the surface."""
        view = self._data.reshape(self._height, -1)
        view.setflags(write=False)
        return view


class QImageSurface(RasterSurface):
    """Surface wrapping a Qt image."""

    def __init__(self, image: QImage):
        """Initialize surface.

        Args:
            image: QImage to draw into; it is modified in place on commit
        """
        self.image = image

    @classmethod
    def create(cls, width: int, height: int, depth: int = 32) -> "QImageSurface":
        """Create a surface on a new opaque black image.

        Args:
            width: Width in pixels
            height: Height in pixels
            depth: Bits per pixel, one of 8, 24 or 32

        Returns:
            New QImageSurface
        """
        if depth not in QIMAGE_CREATE_FORMATS:
            raise UnsupportedFormat("Only 8, 24 and 32 bpp images are supported.")

        image = QImage(width, height, QIMAGE_CREATE_FORMATS[depth])
        image.fill(QColor(0, 0, 0))
        return cls(image)

    @property
    def width(self) -> int:
        return self.image.width()

    @property
    def height(self) -> int:
        return self.image.height()

    @property
    def depth(self) -> int:
        return QIMAGE_FORMAT_DEPTHS.get(self.image.format(), self.image.depth())

    def _swapped(self) -> bool:
        return self.image.format() in QIMAGE_SWAPPED_FORMATS

    def _scan_lines(self) -> np.ndarray:
        """Writable view of the image memory without scan-line padding."""
        height = self.image.height()
        bytes_per_line = self.image.bytesPerLine()
        logical_bytes_per_line = self.image.width() * self.depth // 8

        ptr = self.image.bits()
        if ptr is None:
            raise UnsupportedFormat("Null images have no pixel data")
        ptr.setsize(height * bytes_per_line)

        memory = np.frombuffer(ptr, dtype=np.uint8).reshape((height, bytes_per_line))
        return memory[:, :logical_bytes_per_line]

    def read_bytes(self) -> np.ndarray:
        if self.image.isNull():
            return np.zeros(0, dtype=np.uint8)

        rows = self._scan_lines().copy()
        if self._swapped():
            rows = rows.reshape(self.height, self.width, 3)[:, :, ::-1]
        return np.ascontiguousarray(rows).ravel()

    def write_bytes(self, data: np.ndarray) -> None:
        rows = np.asarray(data, dtype=np.uint8).reshape(self.height, -1)
        if self._swapped():
            rows = rows.reshape(self.height, self.width, 3)[:, :, ::-1].reshape(self.height, -1)
        self._scan_lines()[:, :] = rows

    def save(self, file_path: str) -> bool:
        """Save the image to a file; the format follows the extension."""
        return self.image.save(file_path)


class RasterBuffer:
    """Owned working copy of a surface's pixels, mutated only while locked."""

    def __init__(self, surface: RasterSurface):
        """Initialize raster buffer.

        Args:
            surface: Backing surface read on acquire and written on release
        """
        self.surface = surface
        self.pixels: Optional[np.ndarray] = None
        self.width = 0
        self.height = 0
        self.depth = 0
        self._locked = False

    @property
    def bytes_per_pixel(self) -> int:
        return self.depth // 8

    @property
    def is_locked(self) -> bool:
        return self._locked

    def acquire(self) -> None:
        """Copy the surface pixels into the working buffer and lock it."""
        if self._locked:
            raise BufferStateError("Raster buffer is already locked")

        width = self.surface.width
        height = self.surface.height
        depth = self.surface.depth

        if width <= 0 or height <= 0:
            raise UnsupportedFormat(f"Surface size {width}x{height} is not drawable")

        if depth not in SUPPORTED_DEPTHS:
            raise UnsupportedFormat("Only 8, 24 and 32 bpp images are supported.")

        pixels = np.array(self.surface.read_bytes(), dtype=np.uint8).ravel()
        expected = width * height * (depth // 8)
        if pixels.size != expected:
            raise UnsupportedFormat(f"Surface delivered {pixels.size} bytes, expected {expected}")

        self.width = width
        self.height = height
        self.depth = depth
        self.pixels = pixels
        self._locked = True

    def release(self, commit: bool = True) -> None:
        """Unlock the buffer, writing the working copy back to the surface.

        Args:
            commit: Write changes back; False discards them
        """
        if not self._locked:
            return

        try:
            if commit:
                self.surface.write_bytes(self.pixels)
        finally:
            self._locked = False

    @contextmanager
    def locked(self) -> Iterator["RasterBuffer"]:
        """Hold the lock for the duration of a block.

        Changes are committed when the block completes and discarded when it
        raises, so the surface never holds a half-drawn row.
        """
        self.acquire()
        committed = False
        try:
            yield self
            committed = True
        finally:
            self.release(commit=committed)

    def _offset(self, x: int, y: int) -> int:
        if not self._locked:
            raise BufferStateError("Raster buffer must be locked for pixel access")

        if x < 0 or y < 0 or x >= self.width or y >= self.height:
            raise OutOfRange(f"Pixel ({x}, {y}) outside {self.width}x{self.height} raster")

        return ((y * self.width) + x) * self.bytes_per_pixel

    def get_pixel(self, x: int, y: int) -> Color:
        """Get the color of the specified pixel."""
        i = self._offset(x, y)
        pixels = self.pixels

        if self.depth == 32:
            return Color(int(pixels[i + 2]), int(pixels[i + 1]), int(pixels[i]), int(pixels[i + 3]))
        if self.depth == 24:
            return Color(int(pixels[i + 2]), int(pixels[i + 1]), int(pixels[i]))

        # 8 bpp: one gray channel
        return Color.gray(int(pixels[i]))

    def set_pixel(self, x: int, y: int, color: Color) -> None:
        """Set the color of the specified pixel."""
        i = self._offset(x, y)
        pixels = self.pixels

        if self.depth == 32:
            pixels[i:i + 4] = (color.b, color.g, color.r, color.a)
        elif self.depth == 24:
            pixels[i:i + 3] = (color.b, color.g, color.r)
        else:
            pixels[i] = (color.r * 299 + color.g * 587 + color.b * 114) // 1000

    def scroll_down(self, rows: int = 1) -> None:
        """Shift every row down, dropping the bottom rows.

        The top ``rows`` rows keep their old content and are expected to be
        overwritten with the newest scan.
        """
        if not self._locked:
            raise BufferStateError("Raster buffer must be locked to scroll")

        if rows <= 0:
            return

        view = self.pixels.reshape(self.height, -1)
        if rows < self.height:
            view[rows:] = view[:-rows].copy()
