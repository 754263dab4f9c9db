"""Shared helpers: config file, logging, JSON-lines event log."""

import json
import logging
import time
from pathlib import Path

logger = logging.getLogger("qrscan")

CONFIG_PATH = Path(__file__).parent / "config.json"

DEFAULT_CONFIG = {
    "aggressive": False,
    "max_passes": 6,
    "downscale_max_dim": 1400,
    "try_invert": True,
    "color_hint": None,
    "use_worker": True,
    "software_backend": "zxing",
    "timeout_s": None,
    "log_file": "",
}


def load_config(path: str | Path | None = None) -> dict:
    """Defaults overlaid with the JSON config file, if it exists."""
    cfg = dict(DEFAULT_CONFIG)
    path = Path(path) if path else CONFIG_PATH
    if path.exists():
        with open(path) as f:
            cfg.update(json.load(f))
    else:
        logger.debug("No config file at %s, using defaults", path)
    return cfg


def save_config(cfg: dict, path: str | Path | None = None):
    with open(Path(path) if path else CONFIG_PATH, "w") as f:
        json.dump(cfg, f, indent=2)


class JsonLinesLogger:
    """Append structured JSON lines to a log file."""

    def __init__(self, path: str):
        self._path = Path(path)

    def log(self, event: str, **data):
        entry = {"ts": time.time(), "event": event, **data}
        with open(self._path, "a") as f:
            f.write(json.dumps(entry) + "\n")


def setup_logging(level: int = logging.INFO):
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
