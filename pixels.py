"""RGBA8 pixel buffer shared by every preprocessing and decoding stage."""

from dataclasses import dataclass, field

import numpy as np

# Perceptual weights used everywhere a single brightness value is needed
LUMA_WEIGHTS = (0.299, 0.587, 0.114)


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """Row-major RGBA image, 4 bytes per pixel, no row padding.

    Backed by a read-only uint8 array of shape (height, width, 4). Transforms
    never write into it; they allocate and return a new buffer.
    """

    width: int
    height: int
    data: np.ndarray = field(repr=False, compare=False)

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Invalid dimensions {self.width}x{self.height}")
        if self.data.dtype != np.uint8:
            raise ValueError(f"Pixel data must be uint8, got {self.data.dtype}")
        if self.data.shape != (self.height, self.width, 4):
            raise ValueError(
                f"Pixel data shape {self.data.shape} does not match "
                f"{self.width}x{self.height} RGBA"
            )
        self.data.setflags(write=False)

    @classmethod
    def from_bytes(cls, width: int, height: int, pixels: bytes) -> "PixelBuffer":
        expected = width * height * 4
        if len(pixels) != expected:
            raise ValueError(
                f"Expected {expected} bytes for {width}x{height} RGBA, got {len(pixels)}"
            )
        arr = np.frombuffer(bytes(pixels), dtype=np.uint8).reshape((height, width, 4))
        return cls(width, height, arr.copy())

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "PixelBuffer":
        """Wrap a copy of an (h, w, 4) uint8 array."""
        if arr.ndim != 3 or arr.shape[2] != 4:
            raise ValueError(f"Expected (h, w, 4) RGBA array, got shape {arr.shape}")
        h, w = arr.shape[:2]
        return cls(w, h, np.ascontiguousarray(arr, dtype=np.uint8).copy())

    @property
    def pixels(self) -> bytes:
        return self.data.tobytes()

    @property
    def rgb(self) -> np.ndarray:
        return self.data[:, :, :3]

    @property
    def alpha(self) -> np.ndarray:
        return self.data[:, :, 3]

    def __eq__(self, other):
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and np.array_equal(self.data, other.data)
        )


def luma_of(rgb: np.ndarray) -> np.ndarray:
    """floor(0.299R + 0.587G + 0.114B) over the last axis, as uint8."""
    rgb = rgb.astype(np.float64)
    wr, wg, wb = LUMA_WEIGHTS
    luma = wr * rgb[..., 0] + wg * rgb[..., 1] + wb * rgb[..., 2]
    return np.floor(luma).astype(np.uint8)


def luma_of_color(color: tuple[int, int, int]) -> int:
    wr, wg, wb = LUMA_WEIGHTS
    r, g, b = color
    return int(wr * r + wg * g + wb * b)


def with_rgb(source: PixelBuffer, rgb: np.ndarray, alpha: np.ndarray | None = None) -> PixelBuffer:
    """New buffer with the given RGB planes and the source's (or given) alpha."""
    out = np.empty((source.height, source.width, 4), dtype=np.uint8)
    out[:, :, :3] = rgb
    out[:, :, 3] = source.alpha if alpha is None else alpha
    return PixelBuffer(source.width, source.height, out)


def with_gray(source: PixelBuffer, gray: np.ndarray) -> PixelBuffer:
    """New buffer with one 2-D plane written into R, G and B."""
    return with_rgb(source, gray[:, :, np.newaxis])
