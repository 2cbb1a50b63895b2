"""Locate frame boundaries in an accumulating byte stream.

The synchronizer owns the carryover buffer of one stream.  Bytes arrive with
:meth:`FrameSynchronizer.push` in arbitrary chunks; :meth:`next_frame` hands
back one complete candidate frame at a time (header and footer included) and
removes it from the buffer.

Boundary rules, by what the protocol declares:

* nothing: fixed-size frames are cut back to back; a frame ending in an
  open string/bytes/hex field takes the whole buffer.
* header: bytes before the header are discarded.  The search looks at most
  ``max_scan_window`` bytes ahead per pass.
* footer: fixed-size frames must carry the footer at the expected position;
  variable frames end at the first footer after the minimum frame length.
  A candidate that exceeds ``max_frame_length``, or that reaches another
  header before any footer, is abandoned.
* header only with an open field: the frame ends at the next header, or on
  :meth:`flush` at end of stream.

Discards are reported as :class:`FramingError` diagnostics, never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from framecodec.model.errors import FramingError
from framecodec.model.protocol import Protocol

logger = logging.getLogger("FrameCodec.Synchronizer")

BytesLike = Union[bytes, bytearray, memoryview]

DEFAULT_MAX_SCAN_WINDOW = 4096
DEFAULT_MAX_FRAME_LENGTH = 4096

_NEED_MORE = None
_ABANDONED = -1


class SyncState(Enum):
    SCANNING = "scanning"
    ACCUMULATING = "accumulating"
    EMIT = "emit"


@dataclass
class SyncStats:
    frames: int = 0
    dropped_bytes: int = 0
    abandoned_frames: int = 0


class FrameSynchronizer:
    def __init__(
        self,
        protocol: Protocol,
        *,
        max_scan_window: int = DEFAULT_MAX_SCAN_WINDOW,
        max_frame_length: int = DEFAULT_MAX_FRAME_LENGTH,
        on_framing_error: Optional[Callable[[FramingError], None]] = None,
    ) -> None:
        if max_scan_window < 1:
            raise ValueError("max_scan_window must be positive")
        if max_frame_length < 1:
            raise ValueError("max_frame_length must be positive")
        self._protocol = protocol
        self._header = protocol.header or b""
        self._footer = protocol.footer or b""
        self._fixed_length = protocol.fixed_frame_length
        self._min_length = protocol.min_frame_length
        self.max_scan_window = max_scan_window
        # a well-formed frame must always fit
        self.max_frame_length = max(max_frame_length, self._min_length)
        self.on_framing_error = on_framing_error
        self._buf = bytearray()
        self._state = SyncState.SCANNING
        self.stats = SyncStats()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def protocol(self) -> Protocol:
        return self._protocol

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def pending(self) -> int:
        return len(self._buf)

    @property
    def buffer(self) -> bytes:
        return bytes(self._buf)

    def push(self, data: BytesLike) -> None:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError("data must be bytes-like")
        self._buf += data
        limit = self.max_scan_window + self.max_frame_length
        if len(self._buf) > limit:
            self._drop(len(self._buf) - limit, "carryover buffer overflow")
            self._state = SyncState.SCANNING

    def next_frame(self) -> Optional[bytes]:
        """Return the next complete frame, or ``None`` until more bytes arrive."""
        while self._buf:
            if self._state is SyncState.SCANNING:
                if not self._scan_header():
                    return None
                self._state = SyncState.ACCUMULATING

            end = self._locate_end()
            if end is _NEED_MORE:
                return None
            if end == _ABANDONED:
                continue
            return self._emit(end)
        return None

    def flush(self) -> Optional[bytes]:
        """Release a buffered open-ended frame at end of stream.

        Only frames whose end cannot be detected from the stream itself
        (an open field and no footer) are released; anything else stays
        buffered because it is known to be incomplete.
        """
        if self._footer or self._fixed_length is not None or not self._buf:
            return None
        if self._header and not self._buf.startswith(self._header):
            return None
        if len(self._buf) < self._min_length:
            return None
        return self._emit(len(self._buf))

    def reset(self) -> None:
        self._buf.clear()
        self._state = SyncState.SCANNING

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _emit(self, end: int) -> bytes:
        self._state = SyncState.EMIT
        frame = bytes(self._buf[:end])
        del self._buf[:end]
        self.stats.frames += 1
        self._state = SyncState.SCANNING
        return frame

    def _drop(self, count: int, reason: str) -> None:
        if count <= 0:
            return
        del self._buf[:count]
        self.stats.dropped_bytes += count
        error = FramingError(reason, dropped=count)
        logger.debug("%s: %s", self._protocol.name, error)
        if self.on_framing_error:
            self.on_framing_error(error)

    def _abandon(self, reason: str, drop: int) -> int:
        self.stats.abandoned_frames += 1
        self._drop(drop, reason)
        self._state = SyncState.SCANNING
        return _ABANDONED

    def _scan_header(self) -> bool:
        header = self._header
        if not header:
            return bool(self._buf)

        while True:
            limit = min(len(self._buf), self.max_scan_window + len(header) - 1)
            idx = self._buf.find(header, 0, limit)
            if idx >= 0:
                self._drop(idx, "discarded bytes before header")
                return True
            if len(self._buf) > self.max_scan_window:
                self._drop(self.max_scan_window, "header not found within scan window")
                continue
            # keep a possible partial header at the tail
            self._drop(len(self._buf) - (len(header) - 1), "header not found")
            return False

    def _locate_end(self) -> Optional[int]:
        if self._footer:
            return self._locate_footer()

        if self._fixed_length:
            if len(self._buf) < self._fixed_length:
                return _NEED_MORE
            return self._fixed_length

        if len(self._buf) < self._min_length:
            return _NEED_MORE
        if not self._header:
            return len(self._buf)

        start = max(len(self._header), self._min_length)
        idx = self._buf.find(self._header, start)
        if idx >= 0:
            return idx
        if len(self._buf) >= self.max_frame_length:
            return self._abandon(
                "next header not found within maximum frame length", len(self._header)
            )
        return _NEED_MORE

    def _locate_footer(self) -> Optional[int]:
        footer = self._footer
        if self._fixed_length:
            end = self._fixed_length
            if len(self._buf) < end:
                return _NEED_MORE
            if self._buf[end - len(footer) : end] == footer:
                return end
            return self._abandon(
                "footer not found at expected position", len(self._header) or 1
            )

        start = max(len(self._header), self._min_length - len(footer))
        idx = self._buf.find(footer, start)
        if self._header:
            next_header = self._buf.find(self._header, start)
            if next_header >= 0 and (idx < 0 or next_header < idx):
                # footer lost; the next frame starts at next_header
                return self._abandon("footer missing before next header", next_header)
        if idx >= 0 and idx + len(footer) <= self.max_frame_length:
            return idx + len(footer)
        if len(self._buf) >= self.max_frame_length:
            if self._header:
                drop = len(self._header)
            else:
                drop = self.max_frame_length - (len(footer) - 1)
            return self._abandon("footer not found within maximum frame length", drop)
        return _NEED_MORE
