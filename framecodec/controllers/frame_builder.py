"""Build transmittable frames from field values."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, List, Mapping, Optional

from framecodec.model.errors import EncodeError
from framecodec.model.protocol import Protocol, ProtocolField
from framecodec.protocols import checksum
from framecodec.protocols.field_codec import encode_field, value_length

logger = logging.getLogger("FrameCodec.Encoder")


def _resolve_fields(
    protocol: Protocol, values: Mapping[str, Any]
) -> List[ProtocolField]:
    """Give an open string/bytes/hex field the length of its value."""
    resolved: List[ProtocolField] = []
    fixed_extent = protocol.payload_extent
    for field in protocol.fields:
        if not field.is_open:
            resolved.append(field)
            continue
        if field.offset < fixed_extent:
            # another field already occupies the space after this one
            raise EncodeError("length mismatch", field=field.name)
        length = value_length(field, values[field.name]) if field.name in values else 0
        resolved.append(replace(field, length=length))
    return resolved


def encode_frame(protocol: Protocol, values: Optional[Mapping[str, Any]] = None) -> bytes:
    """Encode ``values`` (field name -> value) into one complete frame.

    Layout: header, payload, checksum over the payload, footer.  Fields
    missing from ``values`` are left zeroed.  When the protocol declares a
    ``frame_length`` the payload is padded to fill it.

    Raises:
        EncodeError: on unknown field names or a value that does not fit its
            field.  No partial frame is produced.
    """
    values = dict(values or {})
    known = set(protocol.field_names())
    unknown = sorted(name for name in values if name not in known)
    if unknown:
        raise EncodeError(f"unknown field(s): {', '.join(unknown)}")

    fields = _resolve_fields(protocol, values)
    extent = max((field.end for field in fields), default=0)
    capacity = protocol.payload_capacity
    if capacity is not None:
        if extent > capacity:
            raise EncodeError(
                f"payload of {extent} bytes exceeds frame capacity of {capacity}"
            )
        extent = capacity

    payload = bytearray(extent)
    for field in fields:
        if field.name in values:
            encode_field(field, values[field.name], payload)

    frame = b"".join(
        (
            protocol.header or b"",
            bytes(payload),
            checksum.compute(protocol.checksum, payload),
            protocol.footer or b"",
        )
    )
    logger.debug("%s: encoded %d-byte frame", protocol.name, len(frame))
    return frame


class FrameEncoder:
    """Encode frames for one protocol snapshot."""

    def __init__(self, protocol: Protocol):
        self.protocol = protocol

    def build(self, values: Optional[Mapping[str, Any]] = None) -> bytes:
        return encode_frame(self.protocol, values)
