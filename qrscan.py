"""Command-line entry point: load images → run decode passes → print results."""

import argparse
import logging
import sys
from pathlib import Path

from errors import DecodeError, DecodeTimeout, ImageLoadError
from models import ColorHint, DecodeOptions
from output import emit_results
from qrscan_utils import JsonLinesLogger, load_config, setup_logging
from worker import DecodeWorker, decode_bytes, decode_bytes_all

logger = logging.getLogger("qrscan")

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_LOAD_ERROR = 2


def _rgb_arg(value: str) -> tuple[int, int, int]:
    try:
        r, g, b = (int(v) for v in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected R,G,B, got {value!r}")
    if not all(0 <= c <= 255 for c in (r, g, b)):
        raise argparse.ArgumentTypeError(f"color components must be 0-255, got {value!r}")
    return r, g, b


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Decode QR codes from image files.")
    parser.add_argument("images", nargs="+", help="Image files to decode")
    parser.add_argument("--all", action="store_true", help="Report every distinct QR code")
    parser.add_argument("--aggressive", action="store_true", default=None,
                        help="Try up to 12 preprocessing passes")
    parser.add_argument("--max-passes", type=int, help="Preprocessing pass budget")
    parser.add_argument("--no-invert", action="store_true", help="Skip inverted passes")
    parser.add_argument("--max-dim", type=int, help="Downscale images larger than this")
    parser.add_argument("--fg", type=_rgb_arg, help="Foreground color hint R,G,B")
    parser.add_argument("--bg", type=_rgb_arg, help="Background color hint R,G,B")
    parser.add_argument("--hint-method", choices=("luma", "distance"), default="luma")
    parser.add_argument("--backend", choices=("zxing", "zbar"), help="Software decoder")
    parser.add_argument("--json", action="store_true", help="Print JSON lines")
    parser.add_argument("--no-worker", action="store_true", help="Decode on the main thread")
    parser.add_argument("--timeout", type=float, help="Per-image timeout in seconds")
    parser.add_argument("--config", help="Path to config.json")
    parser.add_argument("--log-file", help="Append JSON-lines events to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def options_from_args(args, config: dict) -> DecodeOptions:
    options = DecodeOptions.from_config(config)
    hint = options.color_hint
    if args.fg or args.bg:
        hint = ColorHint(foreground=args.fg, background=args.bg, method=args.hint_method)
    return options.merged(
        aggressive=args.aggressive,
        max_passes=args.max_passes,
        downscale_max_dim=args.max_dim,
        try_invert=False if args.no_invert else None,
        color_hint=hint,
        use_worker=False if args.no_worker else None,
        software_backend=args.backend,
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    config = load_config(args.config)
    options = options_from_args(args, config)
    timeout = args.timeout if args.timeout is not None else config.get("timeout_s")
    log_file = args.log_file or config.get("log_file")
    jlog = JsonLinesLogger(log_file) if log_file else None

    if jlog:
        jlog.log("start", images=len(args.images))

    status = EXIT_OK
    with DecodeWorker() as worker:
        for image in args.images:
            try:
                data = Path(image).read_bytes()
                if args.all:
                    results = decode_bytes_all(data, options, worker=worker, timeout=timeout)
                else:
                    result = decode_bytes(data, options, worker=worker, timeout=timeout)
                    results = [result] if result else []
            except (OSError, ImageLoadError, DecodeError, DecodeTimeout) as e:
                logger.error("%s: %s", image, e)
                status = EXIT_LOAD_ERROR
                continue

            emit_results(image, results, as_json=args.json)
            if jlog:
                for r in results:
                    jlog.log("qr_decoded", image=image, content=r.text, engine=r.meta.engine,
                             pass_name=r.meta.pass_name)
                if not results:
                    jlog.log("no_result", image=image)
            if not results and status == EXIT_OK:
                status = EXIT_NOT_FOUND

    if jlog:
        jlog.log("stop", status=status)
    return status


if __name__ == "__main__":
    sys.exit(main())
