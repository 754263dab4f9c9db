"""Shared fixtures: synthetic QR buffers and scripted fake engines."""

import io

import numpy as np
import pytest
import qrcode
from PIL import Image

from engines import Engines, NativeSupport, NativeSupportCache
from models import ENGINE_NATIVE, ENGINE_SOFTWARE, DecodeResult, ResultMeta
from pixels import PixelBuffer

QR_TEXT = "qrscan-test-1"


def qr_modules(text: str) -> np.ndarray:
    """21x21 boolean module matrix (version 1), True for dark modules."""
    qr = qrcode.QRCode(version=1, error_correction=qrcode.constants.ERROR_CORRECT_L, border=0)
    qr.add_data(text)
    qr.make(fit=False)
    return np.array(qr.get_matrix(), dtype=bool)


def render_qr(
    text: str = QR_TEXT,
    module_px: int = 6,
    quiet: int = 4,
    dark=(0, 0, 0, 255),
    light=(255, 255, 255, 255),
) -> PixelBuffer:
    modules = np.pad(qr_modules(text), quiet)
    mask = modules.repeat(module_px, axis=0).repeat(module_px, axis=1)
    arr = np.empty(mask.shape + (4,), dtype=np.uint8)
    arr[...] = light
    arr[mask] = dark
    return PixelBuffer.from_array(arr)


def to_png(buf: PixelBuffer) -> bytes:
    out = io.BytesIO()
    Image.fromarray(np.array(buf.data)).save(out, format="PNG")
    return out.getvalue()


def solid(width: int, height: int, rgba=(128, 128, 128, 255)) -> PixelBuffer:
    arr = np.empty((height, width, 4), dtype=np.uint8)
    arr[...] = rgba
    return PixelBuffer.from_array(arr)


class ScriptedNative:
    """Native stand-in answering by call index (0 is the untouched source)."""

    def __init__(self, script: dict[int, str] | None = None, every: str | None = None):
        self.script = script or {}
        self.every = every
        self.calls: list[PixelBuffer] = []

    async def decode(self, buf):
        idx = len(self.calls)
        self.calls.append(buf)
        text = self.script.get(idx, self.every)
        return DecodeResult(text=text, meta=ResultMeta(engine=ENGINE_NATIVE)) if text else None


class ScriptedSoftware:
    """Software stand-in answering by call index (0 is the first pass)."""

    def __init__(self, script: dict[int, str] | None = None, every: str | None = None):
        self.script = script or {}
        self.every = every
        self.calls: list[PixelBuffer] = []

    def decode(self, buf):
        idx = len(self.calls)
        self.calls.append(buf)
        text = self.script.get(idx, self.every)
        return DecodeResult(text=text, meta=ResultMeta(engine=ENGINE_SOFTWARE)) if text else None


@pytest.fixture
def qr_buffer() -> PixelBuffer:
    return render_qr()


@pytest.fixture
def transparent_qr_buffer() -> PixelBuffer:
    """Light modules on a fully transparent background; invisible on white."""
    return render_qr(dark=(255, 255, 255, 255), light=(0, 0, 0, 0))


@pytest.fixture
def noise_buffer() -> PixelBuffer:
    rng = np.random.default_rng(1234)
    arr = rng.integers(0, 256, size=(64, 64, 4), dtype=np.uint8)
    arr[:, :, 3] = 255
    return PixelBuffer.from_array(arr)


@pytest.fixture
def gray_buffer() -> PixelBuffer:
    return solid(8, 8)


@pytest.fixture
def supported_native() -> NativeSupportCache:
    return NativeSupportCache(probe=lambda: NativeSupport(available=True, supports_qr=True))


@pytest.fixture
def unsupported_native() -> NativeSupportCache:
    return NativeSupportCache(probe=lambda: NativeSupport(available=False, supports_qr=False))


@pytest.fixture
def scripted():
    """Factory for Engines built from scripted fakes."""

    def make(native: dict[int, str] | None = None, software: dict[int, str] | None = None,
             native_every: str | None = None, software_every: str | None = None) -> Engines:
        return Engines(
            native=ScriptedNative(native, native_every),
            software=ScriptedSoftware(software, software_every),
        )

    return make
