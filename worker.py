"""Run decodes on a background thread behind a request/response boundary.

A request carries the raw encoded image bytes and the options; the response
carries a result, a list of results, or an error message. Nothing else
crosses the boundary. If the background thread cannot take the work, the
request runs on the caller's thread instead.
"""

import logging
import queue
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeout
from dataclasses import dataclass, field

from decoder import decode_qr, decode_qr_all
from errors import DecodeError, DecodeTimeout
from loading import load_pixel_buffer
from models import DecodeOptions, DecodeResult

logger = logging.getLogger("qrscan")

MODE_FIRST = "first"
MODE_ALL = "all"


@dataclass(frozen=True)
class DecodeRequest:
    data: bytes
    options: DecodeOptions = field(default_factory=DecodeOptions)
    mode: str = MODE_FIRST


@dataclass(frozen=True)
class DecodeResponse:
    result: DecodeResult | None = None
    results: list[DecodeResult] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def handle_request(request: DecodeRequest) -> DecodeResponse:
    """Load, decode and wrap the outcome. Never raises."""
    try:
        buf = load_pixel_buffer(request.data, request.options.downscale_max_dim)
        if request.mode == MODE_ALL:
            return DecodeResponse(results=decode_qr_all(buf, request.options))
        return DecodeResponse(result=decode_qr(buf, request.options))
    except Exception as e:
        logger.error("Decode request failed: %s", e)
        return DecodeResponse(error=str(e) or type(e).__name__)


def _serve(jobs: queue.Queue):
    """Worker thread body: answer queued requests until a None arrives."""
    while True:
        job = jobs.get()
        if job is None:
            return
        request, future = job
        if not future.set_running_or_notify_cancel():
            continue
        try:
            future.set_result(handle_request(request))
        except Exception as e:
            future.set_exception(e)


class DecodeWorker:
    """Daemon background thread that serves DecodeRequests in order.

    A request that times out is abandoned together with its thread: the
    thread is told to stop once the stuck decode returns, and the next
    request gets a fresh thread. Daemon threads never hold up interpreter
    exit.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: queue.Queue | None = None
        self._closed = False

    def _start(self) -> queue.Queue:
        jobs = queue.Queue()
        threading.Thread(target=_serve, args=(jobs,), name="qrscan-decode", daemon=True).start()
        return jobs

    def _enqueue(self, request: DecodeRequest) -> Future:
        with self._lock:
            if self._closed:
                raise RuntimeError("decode worker is closed")
            if self._jobs is None:
                self._jobs = self._start()
            future = Future()
            self._jobs.put((request, future))
            return future

    def _retire(self, stuck: Future):
        """Hand the thread running `stuck` its stop signal and move waiting jobs on."""
        with self._lock:
            jobs, self._jobs = self._jobs, None
            if jobs is None:
                return
            waiting = []
            while True:
                try:
                    job = jobs.get_nowait()
                except queue.Empty:
                    break
                if job is not None and job[1] is not stuck:
                    waiting.append(job)
            jobs.put(None)
            if waiting and not self._closed:
                self._jobs = self._start()
                for job in waiting:
                    self._jobs.put(job)

    def submit(self, request: DecodeRequest, timeout: float | None = None) -> DecodeResponse:
        """Run a request on the worker thread and wait for its response.

        Raises DecodeTimeout if no response arrives within timeout seconds;
        the pending work is abandoned and its outcome discarded.
        """
        try:
            future = self._enqueue(request)
        except RuntimeError as e:
            logger.warning("Decode worker unavailable (%s), running on caller thread", e)
            return handle_request(request)

        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            if not future.cancel():
                logger.warning("Abandoning decode after %ss, starting a new worker thread", timeout)
                self._retire(future)
            raise DecodeTimeout(f"Decode did not finish within {timeout}s") from None

    def close(self):
        with self._lock:
            self._closed = True
            if self._jobs is not None:
                self._jobs.put(None)
                self._jobs = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def _dispatch(
    request: DecodeRequest,
    worker: DecodeWorker | None,
    timeout: float | None,
) -> DecodeResponse:
    if not request.options.use_worker:
        return handle_request(request)
    if worker is not None:
        return worker.submit(request, timeout)
    with DecodeWorker() as own:
        return own.submit(request, timeout)


def decode_bytes(
    data: bytes,
    options: DecodeOptions | None = None,
    worker: DecodeWorker | None = None,
    timeout: float | None = None,
) -> DecodeResult | None:
    """Decode the first QR code in an encoded image."""
    request = DecodeRequest(data=bytes(data), options=options or DecodeOptions(), mode=MODE_FIRST)
    response = _dispatch(request, worker, timeout)
    if not response.ok:
        raise DecodeError(response.error)
    return response.result


def decode_bytes_all(
    data: bytes,
    options: DecodeOptions | None = None,
    worker: DecodeWorker | None = None,
    timeout: float | None = None,
) -> list[DecodeResult]:
    """Decode every distinct QR code in an encoded image."""
    request = DecodeRequest(data=bytes(data), options=options or DecodeOptions(), mode=MODE_ALL)
    response = _dispatch(request, worker, timeout)
    if not response.ok:
        raise DecodeError(response.error)
    return response.results or []
