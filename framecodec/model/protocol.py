"""Protocol description data model.

A protocol is handed to the parser and encoder as an immutable snapshot:
header/footer byte sequences, the ordered field table and an optional checksum
selector.  Editing goes through :meth:`Protocol.updated`, which returns a new
snapshot, so a decode pass never observes a description changing under it.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple


def _parse_member(enum_cls, value: Any, aliases: Optional[Dict[str, str]] = None):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        if aliases and key in aliases:
            key = aliases[key]
        for member in enum_cls:
            if member.value.lower() == key or member.name.lower() == key:
                return member
    raise ValueError(f"Unknown {enum_cls.__name__}: {value!r}")


class FieldType(Enum):
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    STRING = "string"
    BYTES = "bytes"
    HEX = "hex"

    @classmethod
    def parse(cls, value: Any) -> "FieldType":
        return _parse_member(cls, value)

    @property
    def size(self) -> Optional[int]:
        """Byte width for numeric types, ``None`` for length-driven types."""
        return _FIXED_SIZES.get(self)

    @property
    def is_variable(self) -> bool:
        return self.size is None

    @property
    def is_integer(self) -> bool:
        return self.value.startswith(("uint", "int"))

    @property
    def is_signed(self) -> bool:
        return self.value.startswith("int")

    @property
    def is_float(self) -> bool:
        return self in (FieldType.FLOAT32, FieldType.FLOAT64)


_FIXED_SIZES: Dict[FieldType, int] = {
    FieldType.UINT8: 1,
    FieldType.INT8: 1,
    FieldType.UINT16: 2,
    FieldType.INT16: 2,
    FieldType.UINT32: 4,
    FieldType.INT32: 4,
    FieldType.FLOAT32: 4,
    FieldType.UINT64: 8,
    FieldType.INT64: 8,
    FieldType.FLOAT64: 8,
}


class ByteOrder(Enum):
    BIG_ENDIAN = "bigEndian"
    LITTLE_ENDIAN = "littleEndian"

    @classmethod
    def parse(cls, value: Any) -> "ByteOrder":
        return _parse_member(
            cls,
            value,
            aliases={
                "big": "bigendian",
                "be": "bigendian",
                "little": "littleendian",
                "le": "littleendian",
            },
        )

    @property
    def struct_prefix(self) -> str:
        return ">" if self is ByteOrder.BIG_ENDIAN else "<"


class ChecksumType(Enum):
    NONE = "none"
    SUM8 = "sum8"
    SUM16 = "sum16"
    XOR8 = "xor8"
    CRC8 = "crc8"
    CRC16 = "crc16"
    CRC32 = "crc32"

    @classmethod
    def parse(cls, value: Any) -> "ChecksumType":
        if value is None:
            return cls.NONE
        return _parse_member(cls, value)

    @property
    def width(self) -> int:
        return _CHECKSUM_WIDTHS[self]


_CHECKSUM_WIDTHS: Dict[ChecksumType, int] = {
    ChecksumType.NONE: 0,
    ChecksumType.SUM8: 1,
    ChecksumType.XOR8: 1,
    ChecksumType.CRC8: 1,
    ChecksumType.SUM16: 2,
    ChecksumType.CRC16: 2,
    ChecksumType.CRC32: 4,
}


def _now_ms() -> int:
    return int(time.time() * 1000)


def _as_sequence(value: Any) -> Optional[bytes]:
    if value is None:
        return None
    data = bytes(value)
    return data or None


@dataclass(frozen=True)
class ProtocolField:
    name: str
    field_type: FieldType
    offset: int
    length: Optional[int] = None
    byte_order: ByteOrder = ByteOrder.BIG_ENDIAN
    description: Optional[str] = None
    visible: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "field_type", FieldType.parse(self.field_type))
        object.__setattr__(self, "byte_order", ByteOrder.parse(self.byte_order))

    @property
    def size(self) -> Optional[int]:
        """Fixed width for numerics, ``length`` for string/bytes/hex."""
        fixed = self.field_type.size
        if fixed is not None:
            return fixed
        return self.length

    @property
    def end(self) -> Optional[int]:
        size = self.size
        if size is None:
            return None
        return self.offset + size

    @property
    def is_open(self) -> bool:
        """True for a string/bytes/hex field whose length is left unspecified."""
        return self.field_type.is_variable and self.length is None


@dataclass(frozen=True)
class Protocol:
    """One frame layout.

    ``fields`` offsets are relative to the payload, i.e. the first byte after
    the header.  The checksum (when selected) immediately follows the payload
    and covers the payload only.  ``frame_length`` optionally declares the
    total size of every frame, header and footer included.
    """

    name: str
    fields: Tuple[ProtocolField, ...] = ()
    header: Optional[bytes] = None
    footer: Optional[bytes] = None
    checksum: ChecksumType = ChecksumType.NONE
    frame_length: Optional[int] = None
    description: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: int = field(default_factory=_now_ms)
    updated_at: int = field(default_factory=_now_ms)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(self, "header", _as_sequence(self.header))
        object.__setattr__(self, "footer", _as_sequence(self.footer))
        object.__setattr__(self, "checksum", ChecksumType.parse(self.checksum))

    # ------------------------------------------------------------------
    # Layout helpers
    # ------------------------------------------------------------------
    @property
    def header_length(self) -> int:
        return len(self.header) if self.header else 0

    @property
    def footer_length(self) -> int:
        return len(self.footer) if self.footer else 0

    @property
    def checksum_width(self) -> int:
        return self.checksum.width

    @property
    def overhead(self) -> int:
        return self.header_length + self.checksum_width + self.footer_length

    @property
    def open_field(self) -> Optional[ProtocolField]:
        for item in self.fields:
            if item.is_open:
                return item
        return None

    @property
    def payload_extent(self) -> int:
        """Largest ``offset + size`` across fields with a resolvable size."""
        ends = [item.end for item in self.fields if item.end is not None]
        return max(ends, default=0)

    @property
    def payload_capacity(self) -> Optional[int]:
        if self.frame_length is None:
            return None
        return self.frame_length - self.overhead

    @property
    def fixed_frame_length(self) -> Optional[int]:
        """Total frame size when every field has a known size, else ``None``."""
        if self.open_field is not None:
            return None
        if self.frame_length is not None:
            return max(self.frame_length, self.payload_extent + self.overhead)
        return self.payload_extent + self.overhead

    @property
    def min_frame_length(self) -> int:
        extent = self.payload_extent
        open_item = self.open_field
        if open_item is not None:
            extent = max(extent, open_item.offset)
        return extent + self.overhead

    def get_field(self, name: str) -> Optional[ProtocolField]:
        for item in self.fields:
            if item.name == name:
                return item
        return None

    def field_names(self) -> Iterable[str]:
        return [item.name for item in self.fields]

    def updated(self, **changes: Any) -> "Protocol":
        """Return a new snapshot with ``changes`` applied and ``updated_at`` refreshed."""
        changes.setdefault("updated_at", _now_ms())
        return replace(self, **changes)
