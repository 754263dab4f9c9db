"""Decode engines: OpenCV's native detector and a software decoder.

Both share one contract, decode(buffer) -> DecodeResult | None. Neither ever
raises into the caller; any failure inside an engine means "no result".
The native engine is awaited because the underlying detector runs off the
event loop thread.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Protocol

import cv2
import numpy as np
import zxingcpp

from models import ENGINE_NATIVE, ENGINE_SOFTWARE, DecodeResult, Point, ResultMeta
from pixels import PixelBuffer
from transforms import luminance

logger = logging.getLogger("qrscan")


class NativeDecoder(Protocol):
    async def decode(self, buf: PixelBuffer) -> DecodeResult | None: ...


class SoftwareDecoder(Protocol):
    def decode(self, buf: PixelBuffer) -> DecodeResult | None: ...


@dataclass(frozen=True)
class NativeSupport:
    available: bool
    supports_qr: bool

    @property
    def usable(self) -> bool:
        return self.available and self.supports_qr


def probe_opencv() -> NativeSupport:
    """Check whether this OpenCV build ships a usable QR detector."""
    if not hasattr(cv2, "QRCodeDetector"):
        return NativeSupport(available=False, supports_qr=False)
    try:
        cv2.QRCodeDetector()
    except cv2.error as e:
        logger.debug("OpenCV QRCodeDetector unavailable: %s", e)
        return NativeSupport(available=True, supports_qr=False)
    return NativeSupport(available=True, supports_qr=True)


class NativeSupportCache:
    """Holds the result of the native capability probe.

    Support is a fact about the platform, so the probe runs at most once per
    cache. The cache is owned by whoever builds the engines; one process-wide
    instance backs default_engines().
    """

    def __init__(self, probe: Callable[[], NativeSupport] = probe_opencv):
        self._probe = probe
        self._support: NativeSupport | None = None
        self._lock = threading.Lock()

    @property
    def probed(self) -> bool:
        return self._support is not None

    def get(self) -> NativeSupport:
        support = self._support
        if support is not None:
            return support
        with self._lock:
            if self._support is None:
                try:
                    self._support = self._probe()
                except Exception as e:
                    logger.warning("Native detector probe failed: %s", e)
                    self._support = NativeSupport(available=False, supports_qr=False)
                logger.debug("Native QR support: %s", self._support)
            return self._support


def _opencv_detect(buf: PixelBuffer) -> DecodeResult | None:
    bgr = buf.data[:, :, [2, 1, 0]]
    text, points, _ = cv2.QRCodeDetector().detectAndDecode(bgr)
    if not text:
        return None
    corners = None
    if points is not None:
        corners = tuple(Point(float(x), float(y)) for x, y in np.asarray(points).reshape(-1, 2))
    return DecodeResult(text=text, points=corners or None, meta=ResultMeta(engine=ENGINE_NATIVE))


class NativeEngine:
    """OpenCV QRCodeDetector, gated by a one-time support probe."""

    name = ENGINE_NATIVE

    def __init__(
        self,
        support: NativeSupportCache,
        detect: Callable[[PixelBuffer], DecodeResult | None] = _opencv_detect,
    ):
        self._support = support
        self._detect = detect

    async def decode(self, buf: PixelBuffer) -> DecodeResult | None:
        if not self._support.get().usable:
            return None
        if buf.width == 0 or buf.height == 0:
            return None
        try:
            return await asyncio.to_thread(self._detect, buf)
        except Exception as e:
            logger.debug("Native detector failed: %s", e)
            return None


def _zxing_points(position) -> tuple[Point, ...] | None:
    if position is None:
        return None
    corners = (position.top_left, position.top_right, position.bottom_right, position.bottom_left)
    return tuple(Point(float(p.x), float(p.y)) for p in corners)


def _read_zxing(lum: np.ndarray) -> DecodeResult | None:
    results = zxingcpp.read_barcodes(lum, formats=zxingcpp.BarcodeFormat.QRCode)
    if not results or not results[0].text:
        return None
    r = results[0]
    return DecodeResult(
        text=r.text,
        points=_zxing_points(getattr(r, "position", None)),
        meta=ResultMeta(engine=ENGINE_SOFTWARE),
    )


def _read_zbar(lum: np.ndarray) -> DecodeResult | None:
    # Imported here: pyzbar needs the system zbar library at import time
    from pyzbar.pyzbar import ZBarSymbol, decode as pyzbar_decode

    h, w = lum.shape
    results = pyzbar_decode((lum.tobytes(), w, h), symbols=[ZBarSymbol.QRCODE])
    if not results:
        return None
    r = results[0]
    text = r.data.decode("utf-8", errors="replace")
    if not text:
        return None
    corners = tuple(Point(float(p.x), float(p.y)) for p in r.polygon)
    return DecodeResult(text=text, points=corners or None, meta=ResultMeta(engine=ENGINE_SOFTWARE))


SOFTWARE_BACKENDS: dict[str, Callable[[np.ndarray], DecodeResult | None]] = {
    "zxing": _read_zxing,
    "zbar": _read_zbar,
}


class SoftwareEngine:
    """Synchronous decoder fed with the buffer's luma plane."""

    name = ENGINE_SOFTWARE

    def __init__(self, backend: str = "zxing"):
        if backend not in SOFTWARE_BACKENDS:
            raise ValueError(
                f"Unknown software backend {backend!r}, expected one of {sorted(SOFTWARE_BACKENDS)}"
            )
        self.backend = backend
        self._read = SOFTWARE_BACKENDS[backend]

    def decode(self, buf: PixelBuffer) -> DecodeResult | None:
        if buf.width == 0 or buf.height == 0:
            return None
        try:
            return self._read(luminance(buf))
        except Exception as e:
            logger.debug("Software decoder (%s) failed: %s", self.backend, e)
            return None


@dataclass(frozen=True)
class Engines:
    native: NativeDecoder
    software: SoftwareDecoder


DEFAULT_SUPPORT_CACHE = NativeSupportCache()


def default_engines(
    backend: str = "zxing",
    support: NativeSupportCache | None = None,
) -> Engines:
    return Engines(
        native=NativeEngine(support or DEFAULT_SUPPORT_CACHE),
        software=SoftwareEngine(backend),
    )
