"""Decode and encode single typed fields.

Numeric types go through :mod:`struct` with the field's byte-order prefix.
``string``/``bytes``/``hex`` fields occupy ``length`` bytes; a field without a
length consumes the rest of the buffer when decoding.
"""

from __future__ import annotations

import re
import struct
from typing import Any, Dict, Union

from framecodec.model.errors import DecodeError, EncodeError
from framecodec.model.frames import ParsedField, format_hex
from framecodec.model.protocol import FieldType, ProtocolField

BytesLike = Union[bytes, bytearray, memoryview]

_NUMERIC_FORMATS: Dict[FieldType, str] = {
    FieldType.UINT8: "B",
    FieldType.INT8: "b",
    FieldType.UINT16: "H",
    FieldType.INT16: "h",
    FieldType.UINT32: "I",
    FieldType.INT32: "i",
    FieldType.UINT64: "Q",
    FieldType.INT64: "q",
    FieldType.FLOAT32: "f",
    FieldType.FLOAT64: "d",
}

_NON_HEX = re.compile(r"[^0-9A-Fa-f]")


def numeric_format(field: ProtocolField) -> str:
    return field.byte_order.struct_prefix + _NUMERIC_FORMATS[field.field_type]


def integer_range(field_type: FieldType) -> tuple[int, int]:
    bits = field_type.size * 8
    if field_type.is_signed:
        return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    return 0, (1 << bits) - 1


def parse_hex(text: str) -> bytes:
    """Turn ``"aa 55 0x1f"``-style text into bytes.

    Separators and a ``0x`` prefix on each token are ignored.
    """
    tokens = [tok[2:] if tok.lower().startswith("0x") else tok for tok in text.split()]
    cleaned = _NON_HEX.sub("", "".join(tokens))
    if len(cleaned) % 2:
        raise ValueError(f"odd number of hex digits in {text!r}")
    return bytes.fromhex(cleaned)


# ----------------------------------------------------------------------
# Decoding
# ----------------------------------------------------------------------
def decode_field(buffer: BytesLike, field: ProtocolField) -> ParsedField:
    """Decode ``field`` from ``buffer`` (the payload region of one frame).

    Raises:
        DecodeError: when ``offset + size`` runs past the end of ``buffer``.
    """
    available = len(buffer)
    size = field.size
    if size is None:
        size = available - field.offset
    if field.offset < 0 or size < 0 or field.offset + size > available:
        raise DecodeError("out of bounds", field=field.name)

    raw = bytes(buffer[field.offset : field.offset + size])
    return ParsedField(
        name=field.name,
        field_type=field.field_type,
        raw_bytes=raw,
        value=_decode_value(field, raw),
        description=field.description,
    )


def _decode_value(field: ProtocolField, raw: bytes) -> Any:
    ftype = field.field_type
    if ftype in _NUMERIC_FORMATS:
        try:
            return struct.unpack(numeric_format(field), raw)[0]
        except struct.error as exc:
            raise DecodeError(str(exc), field=field.name) from exc
    if ftype is FieldType.STRING:
        return raw.decode("utf-8", errors="replace").rstrip("\x00")
    if ftype is FieldType.BYTES:
        return raw
    if ftype is FieldType.HEX:
        return format_hex(raw)
    raise DecodeError(f"unsupported field type {ftype.value}", field=field.name)


# ----------------------------------------------------------------------
# Encoding
# ----------------------------------------------------------------------
def _coerce_integer(field: ProtocolField, value: Any) -> int:
    if isinstance(value, bool):
        raise EncodeError("expected an integer, got bool", field=field.name)
    if isinstance(value, str):
        try:
            value = int(value.strip(), 0)
        except ValueError as exc:
            raise EncodeError(f"invalid integer {value!r}", field=field.name) from exc
    elif isinstance(value, float):
        if not value.is_integer():
            raise EncodeError(f"non-integral value {value!r}", field=field.name)
        value = int(value)
    elif not isinstance(value, int):
        raise EncodeError(
            f"expected an integer, got {type(value).__name__}", field=field.name
        )
    low, high = integer_range(field.field_type)
    if not low <= value <= high:
        raise EncodeError("value out of range", field=field.name)
    return int(value)


def _coerce_float(field: ProtocolField, value: Any) -> float:
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError as exc:
            raise EncodeError(f"invalid number {value!r}", field=field.name) from exc
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise EncodeError(f"expected a number, got {type(value).__name__}", field=field.name)


def _raw_value(field: ProtocolField, value: Any) -> bytes:
    """Unpadded bytes for a string/bytes/hex value."""
    ftype = field.field_type
    if ftype is FieldType.STRING:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value)
        return str(value).encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return parse_hex(value)
        except ValueError as exc:
            raise EncodeError(str(exc), field=field.name) from exc
    if isinstance(value, (list, tuple)):
        try:
            return bytes(value)
        except (TypeError, ValueError) as exc:
            raise EncodeError(f"invalid byte list: {exc}", field=field.name) from exc
    raise EncodeError(
        f"cannot encode {type(value).__name__} as {ftype.value}", field=field.name
    )


def value_length(field: ProtocolField, value: Any) -> int:
    """Number of bytes a string/bytes/hex value needs when written."""
    return len(_raw_value(field, value))


def encode_value(field: ProtocolField, value: Any) -> bytes:
    """Encode ``value`` into exactly ``field.size`` bytes."""
    ftype = field.field_type
    if ftype in _NUMERIC_FORMATS:
        if ftype.is_integer:
            number = _coerce_integer(field, value)
        else:
            number = _coerce_float(field, value)
        try:
            return struct.pack(numeric_format(field), number)
        except (struct.error, OverflowError) as exc:
            raise EncodeError("value out of range", field=field.name) from exc

    size = field.size
    if size is None:
        raise EncodeError("length mismatch", field=field.name)
    raw = _raw_value(field, value)
    if len(raw) > size:
        raise EncodeError("length mismatch", field=field.name)
    return raw + b"\x00" * (size - len(raw))


def encode_field(field: ProtocolField, value: Any, out_buffer: bytearray) -> None:
    """Write ``value`` into ``out_buffer`` at the field's offset.

    Raises:
        EncodeError: when the value does not fit the field, or the field does
            not fit ``out_buffer``.
    """
    data = encode_value(field, value)
    end = field.offset + len(data)
    if field.offset < 0 or end > len(out_buffer):
        raise EncodeError("out of bounds", field=field.name)
    out_buffer[field.offset : end] = data
