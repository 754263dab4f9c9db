"""
Tests for the background decode worker and its request/response contract.
"""

import threading
import time

import pytest

import worker
from conftest import QR_TEXT, render_qr, to_png
from errors import DecodeError, DecodeTimeout
from models import DecodeOptions
from worker import (
    DecodeRequest,
    DecodeResponse,
    DecodeWorker,
    decode_bytes,
    decode_bytes_all,
    handle_request,
)


@pytest.fixture
def png_bytes() -> bytes:
    return to_png(render_qr())


class TestHandleRequest:
    """The function that runs on the worker side of the boundary."""

    def test_first_mode(self, png_bytes):
        response = handle_request(DecodeRequest(data=png_bytes))
        assert response.ok
        assert response.result.text == QR_TEXT
        assert response.results is None

    def test_all_mode(self, png_bytes):
        response = handle_request(DecodeRequest(data=png_bytes, mode="all"))
        assert [r.text for r in response.results] == [QR_TEXT]

    def test_errors_become_messages(self):
        response = handle_request(DecodeRequest(data=b"not an image"))
        assert not response.ok
        assert "Failed to decode" in response.error
        assert response.result is None


class TestDecodeWorker:
    """Thread hosting, timeout and caller-thread fallback."""

    def test_submit_runs_request(self, png_bytes):
        with DecodeWorker() as w:
            response = w.submit(DecodeRequest(data=png_bytes))
        assert response.result.text == QR_TEXT

    def test_closed_worker_falls_back_to_caller_thread(self, png_bytes):
        w = DecodeWorker()
        w.close()
        response = w.submit(DecodeRequest(data=png_bytes))
        assert response.result.text == QR_TEXT

    def test_timeout_abandons_request(self, monkeypatch):
        def slow(request):
            time.sleep(0.5)
            return DecodeResponse()

        monkeypatch.setattr(worker, "handle_request", slow)
        with DecodeWorker() as w:
            with pytest.raises(DecodeTimeout):
                w.submit(DecodeRequest(data=b""), timeout=0.05)

    def test_request_after_timeout_gets_fresh_thread(self, monkeypatch):
        release = threading.Event()

        def stuck_on_slow(request):
            if request.data == b"slow":
                release.wait(5)
            return DecodeResponse(error=request.data.decode())

        monkeypatch.setattr(worker, "handle_request", stuck_on_slow)
        try:
            with DecodeWorker() as w:
                with pytest.raises(DecodeTimeout):
                    w.submit(DecodeRequest(data=b"slow"), timeout=0.1)
                response = w.submit(DecodeRequest(data=b"fast"), timeout=2)
            assert response.error == "fast"
        finally:
            release.set()

    def test_decode_threads_are_daemons(self, monkeypatch):
        release = threading.Event()

        def slow(request):
            release.wait(5)
            return DecodeResponse()

        monkeypatch.setattr(worker, "handle_request", slow)
        try:
            with DecodeWorker() as w:
                with pytest.raises(DecodeTimeout):
                    w.submit(DecodeRequest(data=b""), timeout=0.05)
            decode_threads = [t for t in threading.enumerate() if t.name == "qrscan-decode"]
            assert decode_threads
            assert all(t.daemon for t in decode_threads)
        finally:
            release.set()


class TestDecodeBytes:
    """Top-level byte entry points."""

    def test_decode_bytes_in_worker(self, png_bytes):
        assert decode_bytes(png_bytes).text == QR_TEXT

    def test_decode_bytes_inline(self, png_bytes):
        result = decode_bytes(png_bytes, DecodeOptions(use_worker=False))
        assert result.text == QR_TEXT

    def test_decode_bytes_all_with_shared_worker(self, png_bytes):
        with DecodeWorker() as w:
            results = decode_bytes_all(png_bytes, worker=w)
        assert [r.text for r in results] == [QR_TEXT]

    def test_error_response_raises(self):
        with pytest.raises(DecodeError):
            decode_bytes(b"garbage", DecodeOptions(use_worker=False))

    def test_no_qr_is_none(self):
        blank = to_png(render_qr(dark=(255, 255, 255, 255)))
        assert decode_bytes(blank) is None
        assert decode_bytes_all(blank) == []
