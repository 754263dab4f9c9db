"""Pure pixel-buffer transforms used to build preprocessing passes.

Every function takes a PixelBuffer and returns a new one with the same
width and height. Inputs are never modified. Alpha passes through unless
the transform says otherwise (flatten_transparent forces it opaque,
denoise_light blurs it with the color channels).
"""

import numpy as np

from pixels import PixelBuffer, luma_of, luma_of_color, with_gray, with_rgb

# Window side length per adaptive threshold preset
THRESHOLD_WINDOWS = {
    "small": 8,
    "medium": 16,
    "large": 32,
}

DEFAULT_ALPHA_THRESHOLD = 252

_BACKGROUNDS = {
    "white": (255, 255, 255),
    "black": (0, 0, 0),
}


def _binary(mask_black: np.ndarray) -> np.ndarray:
    return np.where(mask_black, 0, 255).astype(np.uint8)


def luminance(buf: PixelBuffer) -> np.ndarray:
    """2-D uint8 luma plane (alpha ignored)."""
    return luma_of(buf.rgb)


def grayscale(buf: PixelBuffer) -> PixelBuffer:
    return with_gray(buf, luminance(buf))


def invert(buf: PixelBuffer) -> PixelBuffer:
    return with_rgb(buf, 255 - buf.rgb)


def adaptive_threshold(buf: PixelBuffer, preset: str = "medium") -> PixelBuffer:
    """Binarize each pixel against the mean luma of its surrounding window.

    The window is (2*half + 1) pixels square with half = window >> 1. Samples
    outside the image are clamped to the nearest edge pixel, so every window
    holds the same number of samples. A pixel is black when its luma is
    less than or equal to the window mean, white otherwise.
    """
    if preset not in THRESHOLD_WINDOWS:
        raise ValueError(
            f"Unknown threshold preset {preset!r}, expected one of {sorted(THRESHOLD_WINDOWS)}"
        )
    gray = luminance(buf).astype(np.int64)
    if gray.size == 0:
        return with_gray(buf, gray.astype(np.uint8))

    half = THRESHOLD_WINDOWS[preset] >> 1
    side = 2 * half + 1
    padded = np.pad(gray, half, mode="edge")

    # Summed-area table with a zero row/column in front
    sat = np.zeros((padded.shape[0] + 1, padded.shape[1] + 1), dtype=np.int64)
    sat[1:, 1:] = padded.cumsum(axis=0).cumsum(axis=1)
    sums = sat[side:, side:] - sat[:-side, side:] - sat[side:, :-side] + sat[:-side, :-side]

    # gray <= sums / count, kept in integers
    return with_gray(buf, _binary(gray * (side * side) <= sums))


def denoise_light(buf: PixelBuffer) -> PixelBuffer:
    """3x3 box blur over R, G, B and A.

    Edge pixels average only the neighbours that exist; nothing wraps.
    """
    h, w = buf.height, buf.width
    src = np.pad(buf.data.astype(np.int64), ((1, 1), (1, 1), (0, 0)))
    present = np.pad(np.ones((h, w), dtype=np.int64), 1)

    sums = np.zeros((h, w, 4), dtype=np.int64)
    counts = np.zeros((h, w), dtype=np.int64)
    for dy in range(3):
        for dx in range(3):
            sums += src[dy:dy + h, dx:dx + w]
            counts += present[dy:dy + h, dx:dx + w]

    out = (sums // counts[:, :, np.newaxis]).astype(np.uint8)
    return PixelBuffer(w, h, out)


def has_transparency(buf: PixelBuffer, threshold: int = DEFAULT_ALPHA_THRESHOLD) -> bool:
    return bool(np.any(buf.alpha <= threshold))


def flatten_transparent(
    buf: PixelBuffer,
    background: str = "white",
    alpha_threshold: int = DEFAULT_ALPHA_THRESHOLD,
) -> PixelBuffer:
    """Composite onto a solid color so alpha no longer affects decoding.

    Pixels with alpha <= alpha_threshold take the background color; all
    pixels come out fully opaque.
    """
    if background not in _BACKGROUNDS:
        raise ValueError(f"background must be 'white' or 'black', got {background!r}")
    rgb = buf.rgb.copy()
    rgb[buf.alpha <= alpha_threshold] = _BACKGROUNDS[background]
    opaque = np.full((buf.height, buf.width), 255, dtype=np.uint8)
    return with_rgb(buf, rgb, alpha=opaque)


def color_hint_binarize(
    buf: PixelBuffer,
    foreground: tuple[int, int, int] | None = None,
    background: tuple[int, int, int] | None = None,
) -> PixelBuffer:
    """Global luma binarization, optionally steered by a color hint.

    With both colors, the threshold sits at the integer midpoint of their
    lumas. Without a hint, the mean luma of the whole buffer is used as a
    cheap stand-in for Otsu's threshold.
    """
    gray = luminance(buf)
    if foreground is not None and background is not None:
        thresh = (luma_of_color(foreground) + luma_of_color(background)) >> 1
    elif gray.size:
        thresh = int(gray.sum(dtype=np.int64)) / gray.size
    else:
        thresh = 128
    return with_gray(buf, _binary(gray <= thresh))


def color_distance_threshold(
    buf: PixelBuffer,
    foreground: tuple[int, int, int],
    background: tuple[int, int, int],
) -> PixelBuffer:
    """Black where a pixel is at least as close to foreground as to background."""
    rgb = buf.rgb.astype(np.int64)
    d_fg = ((rgb - np.array(foreground, dtype=np.int64)) ** 2).sum(axis=2)
    d_bg = ((rgb - np.array(background, dtype=np.int64)) ** 2).sum(axis=2)
    return with_gray(buf, _binary(d_fg <= d_bg))
