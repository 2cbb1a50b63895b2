"""Bounded hand-off between a transport thread and a frame parser."""

from __future__ import annotations

import logging
import queue
import threading
from typing import TYPE_CHECKING, Callable, List, Optional

from framecodec.controllers.frame_parser import FrameParser
from framecodec.model.frames import ParsedFrame

if TYPE_CHECKING:
    from framecodec.infra.settings_store import CodecSettings

logger = logging.getLogger("FrameCodec.Stream")

DEFAULT_QUEUE_SIZE = 256


class StreamController:
    """Route received chunks through a bounded queue to one parser.

    The transport side only calls :meth:`submit`.  Chunks are parsed either
    by the worker thread started with :meth:`start` or synchronously with
    :meth:`process_pending`, never both, so the parser always has a single
    caller.  When the queue is full the chunk is dropped and reported through
    ``on_error``.
    """

    def __init__(
        self,
        parser: FrameParser,
        *,
        settings: Optional["CodecSettings"] = None,
        maxsize: Optional[int] = None,
    ):
        if maxsize is None:
            maxsize = settings.stream_queue_size if settings else DEFAULT_QUEUE_SIZE
        if maxsize < 1:
            raise ValueError("maxsize must be positive")
        self.parser = parser
        self.running = False
        self.dropped_chunks = 0
        self._queue: "queue.Queue[bytes]" = queue.Queue(maxsize=maxsize)
        self._worker: Optional[threading.Thread] = None
        self._lock = threading.RLock()
        self.on_frame: Optional[Callable[[ParsedFrame], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None
        self.on_status: Optional[Callable[[str], None]] = None

    @property
    def maxsize(self) -> int:
        return self._queue.maxsize

    @property
    def pending_chunks(self) -> int:
        return self._queue.qsize()

    def submit(self, data: bytes) -> bool:
        """Queue a chunk without blocking; returns ``False`` if it was dropped."""
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError("data must be bytes-like")
        try:
            self._queue.put_nowait(bytes(data))
            return True
        except queue.Full:
            with self._lock:
                self.dropped_chunks += 1
            logger.warning("stream queue full, dropped %d-byte chunk", len(data))
            self._emit_error(f"stream queue full, dropped {len(data)} bytes")
            return False

    def process_pending(self) -> List[ParsedFrame]:
        """Parse every queued chunk on the calling thread."""
        with self._lock:
            if self._worker_alive():
                raise RuntimeError("worker thread is running")
            return self._drain()

    def flush(self) -> List[ParsedFrame]:
        """Release an open-ended frame still buffered at end of stream."""
        with self._lock:
            if self._worker_alive():
                raise RuntimeError("worker thread is running")
            frames = self.parser.flush()
            for frame in frames:
                self._emit_frame(frame)
            return frames

    def start(self) -> None:
        with self._lock:
            # avoid starting twice
            if self._worker_alive():
                return
            self.running = True

            def _loop():
                self._emit_status("stream worker started")
                while self.running:
                    try:
                        chunk = self._queue.get(timeout=0.1)
                    except queue.Empty:
                        continue
                    try:
                        self._dispatch(chunk)
                    except Exception as e:
                        logger.exception("stream worker failed on chunk")
                        self._emit_error(f"parse failure: {e}")

            self._worker = threading.Thread(target=_loop, daemon=True)
            self._worker.start()

    def stop(self, drain: bool = True, timeout: float = 1.0) -> None:
        """Stop the worker, then optionally parse what is still queued.

        Queued chunks are only drained once the worker has exited; a worker
        still busy after ``timeout`` keeps the parser and the queue.
        """
        with self._lock:
            worker = self._worker
            self.running = False
        if worker is not None and threading.current_thread() is worker:
            # called from a callback; the loop exits after the current chunk
            self._emit_status("stream worker stopping")
            return
        if worker is not None:
            worker.join(timeout=timeout)
        with self._lock:
            if self._worker_alive():
                logger.warning("stream worker did not exit within %.1fs", timeout)
                self._emit_error("stream worker still busy, queue not drained")
                return
            self._worker = None
            if drain:
                self._drain()
        self._emit_status("stream worker stopped")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _worker_alive(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def _drain(self) -> List[ParsedFrame]:
        frames: List[ParsedFrame] = []
        while True:
            try:
                chunk = self._queue.get_nowait()
            except queue.Empty:
                break
            frames.extend(self._dispatch(chunk))
        return frames

    def _dispatch(self, chunk: bytes) -> List[ParsedFrame]:
        frames = self.parser.feed(chunk)
        for frame in frames:
            self._emit_frame(frame)
        return frames

    def _emit_frame(self, frame: ParsedFrame) -> None:
        if self.on_frame:
            self.on_frame(frame)

    def _emit_error(self, msg: str) -> None:
        if self.on_error:
            self.on_error(msg)

    def _emit_status(self, msg: str) -> None:
        if self.on_status:
            self.on_status(msg)
