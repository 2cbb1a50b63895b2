"""Convert plain protocol descriptions into :class:`Protocol` snapshots.

Descriptions arrive as mappings, either the camelCase records the persistence
layer stores (``fieldType``, ``byteOrder``, ``createdAt``) or snake_case keys
written by hand in YAML.  Header and footer may be a list of byte values or
hex text such as ``"AA 55"``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from framecodec.model.errors import ProtocolValidationError
from framecodec.model.protocol import (
    ByteOrder,
    ChecksumType,
    FieldType,
    Protocol,
    ProtocolField,
)
from framecodec.protocols.field_codec import parse_hex

_MISSING = object()


def _get(item: Dict[str, Any], *keys: str, default: Any = _MISSING) -> Any:
    for key in keys:
        if key in item:
            return item[key]
    return default


def _ensure_int(value: Any, *, context: str) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProtocolValidationError(f"{context} must be an integer")
    return value


def _ensure_optional_int(value: Any, *, context: str) -> Optional[int]:
    if value is None:
        return None
    return _ensure_int(value, context=context)


def _ensure_str(value: Any, *, context: str) -> str:
    if not isinstance(value, str):
        raise ProtocolValidationError(f"{context} must be a string")
    return value


def _ensure_optional_str(value: Any, *, context: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ProtocolValidationError(f"{context} must be a string")
    return value


def _ensure_bool(value: Any, *, context: str) -> bool:
    if not isinstance(value, bool):
        raise ProtocolValidationError(f"{context} must be a boolean")
    return value


def _parse_byte_sequence(value: Any, *, context: str) -> Optional[bytes]:
    if value is None:
        return None
    if isinstance(value, str):
        try:
            return parse_hex(value) or None
        except ValueError as exc:
            raise ProtocolValidationError(f"{context}: {exc}") from exc
    if isinstance(value, (bytes, bytearray)):
        return bytes(value) or None
    if not isinstance(value, list):
        raise ProtocolValidationError(f"{context} must be a list of bytes or hex text")

    out = bytearray()
    for idx, item in enumerate(value):
        byte = _ensure_int(item, context=f"{context}[{idx}]")
        if not 0 <= byte <= 0xFF:
            raise ProtocolValidationError(f"{context}[{idx}] must be between 0 and 255")
        out.append(byte)
    return bytes(out) or None


def _parse_enum(parser, value: Any, *, context: str):
    try:
        return parser(value)
    except ValueError as exc:
        raise ProtocolValidationError(f"{context}: {exc}") from exc


def _parse_field(item: Any, *, context: str) -> ProtocolField:
    if not isinstance(item, dict):
        raise ProtocolValidationError(f"{context} must be a mapping")

    name = _ensure_str(item.get("name"), context=f"{context}.name")
    field_type = _parse_enum(
        FieldType.parse,
        _get(item, "fieldType", "field_type", "type", default=None),
        context=f"{context}.fieldType",
    )
    offset = _ensure_int(item.get("offset"), context=f"{context}.offset")
    length = _ensure_optional_int(item.get("length"), context=f"{context}.length")
    byte_order = _parse_enum(
        ByteOrder.parse,
        _get(item, "byteOrder", "byte_order", default=ByteOrder.BIG_ENDIAN),
        context=f"{context}.byteOrder",
    )
    description = _ensure_optional_str(
        item.get("description"), context=f"{context}.description"
    )
    visible = _ensure_bool(item.get("visible", True), context=f"{context}.visible")

    return ProtocolField(
        name=name,
        field_type=field_type,
        offset=offset,
        length=length,
        byte_order=byte_order,
        description=description,
        visible=visible,
    )


def parse_protocol_spec(raw: Dict[str, Any]) -> Protocol:
    """Build a :class:`Protocol` from one description mapping.

    Only the shape of the description is checked here; layout rules are left
    to :func:`framecodec.protocols.validator.validate_protocol`.
    """
    if not isinstance(raw, dict):
        raise ProtocolValidationError("Protocol description must be a mapping")

    name = _ensure_str(raw.get("name"), context="name")
    raw_fields = raw.get("fields", [])
    if not isinstance(raw_fields, list):
        raise ProtocolValidationError("fields must be a list")
    fields: List[ProtocolField] = [
        _parse_field(item, context=f"fields[{idx}]")
        for idx, item in enumerate(raw_fields)
    ]

    extras: Dict[str, Any] = {}
    protocol_id = raw.get("id")
    if protocol_id is not None:
        extras["id"] = _ensure_str(protocol_id, context="id")
    created_at = _get(raw, "createdAt", "created_at", default=None)
    if created_at is not None:
        extras["created_at"] = _ensure_int(created_at, context="createdAt")
    updated_at = _get(raw, "updatedAt", "updated_at", default=None)
    if updated_at is not None:
        extras["updated_at"] = _ensure_int(updated_at, context="updatedAt")

    return Protocol(
        name=name,
        fields=tuple(fields),
        header=_parse_byte_sequence(raw.get("header"), context="header"),
        footer=_parse_byte_sequence(raw.get("footer"), context="footer"),
        checksum=_parse_enum(
            ChecksumType.parse, raw.get("checksum"), context="checksum"
        ),
        frame_length=_ensure_optional_int(
            _get(raw, "frameLength", "frame_length", default=None),
            context="frameLength",
        ),
        description=_ensure_optional_str(raw.get("description"), context="description"),
        **extras,
    )


def dump_protocol_spec(protocol: Protocol) -> Dict[str, Any]:
    """Inverse of :func:`parse_protocol_spec`, using the camelCase record keys."""
    record: Dict[str, Any] = {
        "id": protocol.id,
        "name": protocol.name,
        "description": protocol.description,
        "header": list(protocol.header) if protocol.header else None,
        "footer": list(protocol.footer) if protocol.footer else None,
        "checksum": protocol.checksum.value,
        "fields": [
            {
                "name": item.name,
                "fieldType": item.field_type.value,
                "offset": item.offset,
                "length": item.length,
                "byteOrder": item.byte_order.value,
                "description": item.description,
                "visible": item.visible,
            }
            for item in protocol.fields
        ],
        "createdAt": protocol.created_at,
        "updatedAt": protocol.updated_at,
    }
    if protocol.frame_length is not None:
        record["frameLength"] = protocol.frame_length
    return record
