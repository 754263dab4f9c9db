"""Print decoded QR results as plain text or JSON lines."""

import json
import logging
import sys
from typing import TextIO

from models import DecodeResult

logger = logging.getLogger("qrscan")


def format_text(source: str, result: DecodeResult) -> str:
    where = result.meta.pass_name or "source"
    return f"{source}: {result.text}  [{result.meta.engine}, {where}]"


def format_json(source: str, result: DecodeResult) -> str:
    return json.dumps({"source": source, **result.to_dict()}, ensure_ascii=False)


def emit_results(
    source: str,
    results: list[DecodeResult],
    as_json: bool = False,
    stream: TextIO | None = None,
) -> int:
    """Write one line per result; return how many were written."""
    stream = stream or sys.stdout
    fmt = format_json if as_json else format_text
    for result in results:
        stream.write(fmt(source, result) + "\n")
    if not results:
        logger.warning("No QR code found in %s", source)
    stream.flush()
    return len(results)
