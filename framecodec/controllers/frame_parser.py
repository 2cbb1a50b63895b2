"""Turn raw stream bytes into validated, structured frames."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, List, Optional, Union

from framecodec.model.errors import ChecksumMismatch, DecodeError, FramingError
from framecodec.model.frames import ParsedField, ParsedFrame
from framecodec.model.protocol import Protocol
from framecodec.protocols import checksum
from framecodec.protocols.field_codec import decode_field
from framecodec.protocols.synchronizer import (
    DEFAULT_MAX_FRAME_LENGTH,
    DEFAULT_MAX_SCAN_WINDOW,
    FrameSynchronizer,
    SyncStats,
)

if TYPE_CHECKING:
    from framecodec.infra.settings_store import CodecSettings

logger = logging.getLogger("FrameCodec.Parser")

BytesLike = Union[bytes, bytearray, memoryview]


def _invalid(protocol: Protocol, raw: bytes, error: str) -> ParsedFrame:
    return ParsedFrame(
        protocol_name=protocol.name, raw_data=raw, fields=[], valid=False, error=error
    )


def decode_frame(protocol: Protocol, raw: BytesLike) -> ParsedFrame:
    """Decode exactly one frame, header and footer included.

    Never raises for bad input: header/footer mismatches, short frames,
    checksum mismatches and field decode errors all come back as a frame with
    ``valid=False`` and a description in ``error``.  Fields that could be
    decoded are always included.
    """
    raw = bytes(raw)
    header = protocol.header or b""
    footer = protocol.footer or b""
    width = protocol.checksum_width

    if header and not raw.startswith(header):
        return _invalid(protocol, raw, "header mismatch")
    if len(raw) < len(header) + width + len(footer):
        return _invalid(protocol, raw, "frame too short")
    if footer and not raw.endswith(footer):
        return _invalid(protocol, raw, "footer mismatch")

    body_end = len(raw) - len(footer)
    payload = raw[len(header) : body_end - width]
    trailer = raw[body_end - width : body_end]

    errors: List[str] = []
    if width:
        actual = checksum.compute(protocol.checksum, payload)
        if actual != trailer:
            errors.append(str(ChecksumMismatch(expected=trailer, actual=actual)))

    fields: List[ParsedField] = []
    for field in protocol.fields:
        try:
            fields.append(decode_field(payload, field))
        except DecodeError as exc:
            errors.append(str(exc))

    return ParsedFrame(
        protocol_name=protocol.name,
        raw_data=raw,
        fields=fields,
        valid=not errors,
        error="; ".join(errors) if errors else None,
    )


class FrameParser:
    """Incremental parser for one stream.

    Owns mutable carryover state: one instance per connection, and ``feed``
    must not be called concurrently.

    Usage::

        parser = FrameParser(protocol)
        for frame in parser.feed(chunk):
            ...
    """

    def __init__(
        self,
        protocol: Protocol,
        *,
        settings: Optional["CodecSettings"] = None,
        max_scan_window: Optional[int] = None,
        max_frame_length: Optional[int] = None,
        on_framing_error: Optional[Callable[[FramingError], None]] = None,
    ) -> None:
        if max_scan_window is None:
            max_scan_window = (
                settings.max_scan_window if settings else DEFAULT_MAX_SCAN_WINDOW
            )
        if max_frame_length is None:
            max_frame_length = (
                settings.max_frame_length if settings else DEFAULT_MAX_FRAME_LENGTH
            )
        self._protocol = protocol
        self._sync = FrameSynchronizer(
            protocol,
            max_scan_window=max_scan_window,
            max_frame_length=max_frame_length,
            on_framing_error=on_framing_error,
        )

    @property
    def protocol(self) -> Protocol:
        return self._protocol

    @property
    def pending(self) -> int:
        """Bytes held in the carryover buffer."""
        return self._sync.pending

    @property
    def stats(self) -> SyncStats:
        return self._sync.stats

    def feed(self, data: BytesLike) -> List[ParsedFrame]:
        """Append ``data`` and return every frame it completes, in stream order."""
        self._sync.push(data)
        frames: List[ParsedFrame] = []
        while True:
            raw = self._sync.next_frame()
            if raw is None:
                break
            frames.append(self._decode(raw))
        return frames

    def flush(self) -> List[ParsedFrame]:
        """Emit a buffered open-ended frame at end of stream, if any."""
        raw = self._sync.flush()
        if raw is None:
            return []
        return [self._decode(raw)]

    def reset(self) -> None:
        self._sync.reset()

    def _decode(self, raw: bytes) -> ParsedFrame:
        frame = decode_frame(self._protocol, raw)
        if frame.valid:
            logger.debug(
                "%s: frame of %d bytes, %d fields",
                self._protocol.name,
                len(raw),
                len(frame.fields),
            )
        else:
            logger.info("%s: invalid frame (%s)", self._protocol.name, frame.error)
        return frame
