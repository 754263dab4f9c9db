"""QR decoding across preprocessing passes with native → software fallback.

Order: native detector on the untouched image, then for every pass the
native detector followed by the software decoder. decode_first stops at the
first hit; decode_all walks every pass and keeps one result per text.
"""

import asyncio
import logging
from contextlib import aclosing

from engines import Engines, default_engines
from models import ENGINE_NATIVE, ENGINE_SOFTWARE, DecodeOptions, DecodeResult
from pixels import PixelBuffer
from preprocess import build_passes

logger = logging.getLogger("qrscan")


def _resolve(options: DecodeOptions | None, engines: Engines | None) -> tuple[DecodeOptions, Engines]:
    if options is None:
        options = DecodeOptions()
    if engines is None:
        engines = default_engines(options.software_backend)
    return options, engines


async def _attempts(buf: PixelBuffer, options: DecodeOptions, engines: Engines):
    """Yield (engine, pass name, result or None) in traversal order."""
    yield ENGINE_NATIVE, None, await engines.native.decode(buf)

    for p in build_passes(buf, options):
        yield ENGINE_NATIVE, p.name, await engines.native.decode(p.buffer)
        yield ENGINE_SOFTWARE, p.name, engines.software.decode(p.buffer)


async def decode_first(
    buf: PixelBuffer,
    options: DecodeOptions | None = None,
    engines: Engines | None = None,
) -> DecodeResult | None:
    """Return the first QR code found, or None if no pass decodes."""
    options, engines = _resolve(options, engines)

    # Stopping early leaves later passes and engines untried
    async with aclosing(_attempts(buf, options, engines)) as attempts:
        async for engine, pass_name, result in attempts:
            if result is None:
                logger.debug("No result from %s on %s", engine, pass_name or "source")
                continue
            logger.info("QR decoded by %s on %s", engine, pass_name or "source")
            return result.annotate(engine, pass_name)

    return None


async def decode_all(
    buf: PixelBuffer,
    options: DecodeOptions | None = None,
    engines: Engines | None = None,
) -> list[DecodeResult]:
    """Return every distinct QR text found across all passes.

    The first occurrence of a text wins; later duplicates are dropped no
    matter which engine or pass found them.
    """
    options, engines = _resolve(options, engines)

    seen: set[str] = set()
    results: list[DecodeResult] = []
    async for engine, pass_name, result in _attempts(buf, options, engines):
        if result is None:
            continue
        if result.text in seen:
            logger.debug("Skipping duplicate from %s on %s", engine, pass_name or "source")
            continue
        seen.add(result.text)
        results.append(result.annotate(engine, pass_name))

    logger.info("Decoded %d distinct QR code(s)", len(results))
    return results


def decode_qr(
    buf: PixelBuffer,
    options: DecodeOptions | None = None,
    engines: Engines | None = None,
) -> DecodeResult | None:
    """Blocking decode_first for threads without a running event loop."""
    return asyncio.run(decode_first(buf, options, engines))


def decode_qr_all(
    buf: PixelBuffer,
    options: DecodeOptions | None = None,
    engines: Engines | None = None,
) -> list[DecodeResult]:
    """Blocking decode_all for threads without a running event loop."""
    return asyncio.run(decode_all(buf, options, engines))
