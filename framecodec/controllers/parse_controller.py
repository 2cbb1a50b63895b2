"""Protocol registry and per-stream parser routing."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Hashable, List, Mapping, Optional

from framecodec.controllers.frame_builder import encode_frame
from framecodec.controllers.frame_parser import FrameParser, decode_frame
from framecodec.infra.settings_store import CodecSettings, load_codec_settings
from framecodec.model.errors import FramingError
from framecodec.model.frames import ParsedFrame
from framecodec.model.protocol import Protocol
from framecodec.protocols.validator import ensure_valid

logger = logging.getLogger("FrameCodec.Parser")


class ParseController:
    """Holds the registered protocols and one incremental parser per stream.

    Protocols are immutable snapshots keyed by ``Protocol.id``.  Registering
    a new snapshot under an existing id replaces it; stream parsers built
    from the old snapshot are discarded on their next ``feed``.
    """

    def __init__(self, settings: Optional[CodecSettings] = None):
        self.settings = settings if settings is not None else load_codec_settings()
        self._protocols: Dict[str, Protocol] = {}
        self._active_id: Optional[str] = None
        self._streams: Dict[Hashable, FrameParser] = {}
        self._lock = threading.RLock()
        self.on_framing_error: Optional[Callable[[Hashable, FramingError], None]] = None

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------
    def register_protocol(self, protocol: Protocol, validate: bool = True) -> Protocol:
        if validate:
            ensure_valid(protocol)
        with self._lock:
            self._protocols[protocol.id] = protocol
        logger.info("registered protocol '%s' (%s)", protocol.name, protocol.id)
        return protocol

    def remove_protocol(self, protocol_id: str) -> bool:
        with self._lock:
            removed = self._protocols.pop(protocol_id, None)
            if removed is None:
                return False
            if self._active_id == protocol_id:
                self._active_id = None
        logger.info("removed protocol '%s'", removed.name)
        return True

    def set_active_protocol(self, protocol_id: Optional[str]) -> None:
        with self._lock:
            if protocol_id is not None and protocol_id not in self._protocols:
                raise KeyError(f"unknown protocol id: {protocol_id}")
            self._active_id = protocol_id

    def active_protocol(self) -> Optional[Protocol]:
        with self._lock:
            if self._active_id is None:
                return None
            return self._protocols.get(self._active_id)

    def get_protocols(self) -> List[Protocol]:
        with self._lock:
            return list(self._protocols.values())

    def get_protocol(self, protocol_id: str) -> Optional[Protocol]:
        with self._lock:
            return self._protocols.get(protocol_id)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------
    def parse(self, data: bytes) -> Optional[ParsedFrame]:
        """Decode ``data`` as exactly one frame of the active protocol."""
        protocol = self.active_protocol()
        if protocol is None:
            return None
        return decode_frame(protocol, data)

    def parse_with_protocol(self, data: bytes, protocol_id: str) -> ParsedFrame:
        protocol = self.get_protocol(protocol_id)
        if protocol is None:
            raise KeyError(f"unknown protocol id: {protocol_id}")
        return decode_frame(protocol, data)

    def feed(self, stream_id: Hashable, data: bytes) -> List[ParsedFrame]:
        """Feed a chunk of ``stream_id`` and return the frames it completes."""
        protocol = self.active_protocol()
        if protocol is None:
            return []
        return self._parser_for(stream_id, protocol).feed(data)

    def flush_stream(self, stream_id: Hashable) -> List[ParsedFrame]:
        with self._lock:
            parser = self._streams.get(stream_id)
        if parser is None:
            return []
        return parser.flush()

    def close_stream(self, stream_id: Hashable) -> None:
        with self._lock:
            self._streams.pop(stream_id, None)

    def stream_ids(self) -> List[Hashable]:
        with self._lock:
            return list(self._streams)

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------
    def encode(
        self, values: Mapping[str, Any], protocol_id: Optional[str] = None
    ) -> bytes:
        if protocol_id is None:
            protocol = self.active_protocol()
            if protocol is None:
                raise KeyError("no active protocol")
        else:
            protocol = self.get_protocol(protocol_id)
            if protocol is None:
                raise KeyError(f"unknown protocol id: {protocol_id}")
        return encode_frame(protocol, values)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _parser_for(self, stream_id: Hashable, protocol: Protocol) -> FrameParser:
        with self._lock:
            parser = self._streams.get(stream_id)
            if parser is None or parser.protocol is not protocol:
                parser = FrameParser(
                    protocol,
                    settings=self.settings,
                    on_framing_error=lambda err: self._emit_framing_error(
                        stream_id, err
                    ),
                )
                self._streams[stream_id] = parser
            return parser

    def _emit_framing_error(self, stream_id: Hashable, error: FramingError) -> None:
        if self.on_framing_error:
            self.on_framing_error(stream_id, error)
