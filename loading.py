"""Load an image from a path, raw bytes or base64 into an RGBA PixelBuffer."""

import base64
import binascii
import io
import logging
import re
from pathlib import Path

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from errors import ImageLoadError
from models import DEFAULT_DOWNSCALE_MAX_DIM
from pixels import PixelBuffer

logger = logging.getLogger("qrscan")

_DATA_URL_PREFIX = re.compile(r"^data:([^;]+);base64,")


def _source_bytes(source) -> bytes:
    """Raw encoded image bytes from any supported source."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    if isinstance(source, Path):
        return source.read_bytes()
    if isinstance(source, str):
        text = source.strip()
        match = _DATA_URL_PREFIX.match(text)
        if match:
            text = text[match.end():]
        elif len(text) < 1024 and Path(text).is_file():
            return Path(text).read_bytes()
        try:
            return base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ImageLoadError(f"Not a readable file or base64 image: {e}") from e
    raise TypeError(f"Unsupported image source type: {type(source).__name__}")


def to_pixel_buffer(image: Image.Image, max_dim: int = DEFAULT_DOWNSCALE_MAX_DIM) -> PixelBuffer:
    """Convert an open PIL image to RGBA, downscaling so max(w, h) <= max_dim."""
    image = ImageOps.exif_transpose(image)
    if image.mode != "RGBA":
        image = image.convert("RGBA")

    w, h = image.size
    longest = max(w, h)
    if longest > max_dim:
        scale = max_dim / longest
        out_w, out_h = max(1, round(w * scale)), max(1, round(h * scale))
        image = image.resize((out_w, out_h), Image.Resampling.BILINEAR)
        logger.debug("Downscaled %dx%d -> %dx%d", w, h, out_w, out_h)

    return PixelBuffer.from_array(np.asarray(image, dtype=np.uint8))


def load_pixel_buffer(source, max_dim: int = DEFAULT_DOWNSCALE_MAX_DIM) -> PixelBuffer:
    """Decode an image file, bytes, base64 string or data URL into a PixelBuffer."""
    try:
        data = _source_bytes(source)
    except OSError as e:
        raise ImageLoadError(f"Failed to read image: {e}") from e

    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            return to_pixel_buffer(image, max_dim)
    except (UnidentifiedImageError, OSError) as e:
        raise ImageLoadError(f"Failed to decode image: {e}") from e
