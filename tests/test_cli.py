"""
Tests for the command-line entry point.
"""

import json
from pathlib import Path

import numpy as np
import pytest

from conftest import QR_TEXT, render_qr, to_png
from models import ColorHint
from pixels import PixelBuffer
from qrscan import EXIT_LOAD_ERROR, EXIT_NOT_FOUND, EXIT_OK, build_parser, main, options_from_args
from qrscan_utils import DEFAULT_CONFIG


@pytest.fixture
def qr_png(tmp_path):
    path = tmp_path / "qr.png"
    path.write_bytes(to_png(render_qr()))
    return path


@pytest.fixture
def blank_png(tmp_path):
    path = tmp_path / "blank.png"
    path.write_bytes(to_png(PixelBuffer.from_array(np.full((40, 40, 4), 255, dtype=np.uint8))))
    return path


class TestOptionsFromArgs:
    def test_flags_override_config(self):
        args = build_parser().parse_args(
            ["x.png", "--aggressive", "--no-invert", "--fg", "0,0,0", "--bg", "255,255,255"]
        )
        options = options_from_args(args, DEFAULT_CONFIG)
        assert options.aggressive
        assert not options.try_invert
        assert options.color_hint == ColorHint((0, 0, 0), (255, 255, 255), "luma")

    def test_defaults_come_from_config(self):
        args = build_parser().parse_args(["x.png"])
        options = options_from_args(args, {**DEFAULT_CONFIG, "max_passes": 3})
        assert options.max_passes == 3
        assert not options.aggressive

    def test_bad_color_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["x.png", "--fg", "1,2"])


class TestMain:
    def test_decodes_file(self, qr_png, capsys):
        assert main([str(qr_png), "--no-worker"]) == EXIT_OK
        assert QR_TEXT in capsys.readouterr().out

    def test_json_output(self, qr_png, capsys):
        assert main([str(qr_png), "--json", "--all"]) == EXIT_OK
        lines = capsys.readouterr().out.strip().splitlines()
        record = json.loads(lines[0])
        assert record["text"] == QR_TEXT
        assert record["format"] == "QR_CODE"
        assert record["source"] == str(qr_png)

    def test_not_found(self, blank_png):
        assert main([str(blank_png), "--no-worker"]) == EXIT_NOT_FOUND

    def test_missing_file(self, tmp_path):
        assert main([str(tmp_path / "missing.png")]) == EXIT_LOAD_ERROR

    def test_event_log(self, qr_png, blank_png, tmp_path):
        log_path = tmp_path / "events.jsonl"
        status = main([str(qr_png), str(blank_png), "--log-file", str(log_path)])
        assert status == EXIT_NOT_FOUND
        events = [json.loads(line)["event"] for line in log_path.read_text().splitlines()]
        assert events == ["start", "qr_decoded", "no_result", "stop"]


class TestPackaging:
    def test_console_script_points_at_cli_module(self):
        tomllib = pytest.importorskip("tomllib")
        root = Path(__file__).resolve().parent.parent
        with open(root / "pyproject.toml", "rb") as f:
            project = tomllib.load(f)
        assert project["project"]["scripts"]["qrscan"] == "qrscan:main"
        modules = project["tool"]["setuptools"]["py-modules"]
        assert "main" not in modules
        assert "utils" not in modules
        for name in modules:
            assert (root / f"{name}.py").is_file()
