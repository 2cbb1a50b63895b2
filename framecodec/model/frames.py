"""Decode results handed to display and log collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from framecodec.model.protocol import FieldType


def format_hex(data: bytes) -> str:
    """Render bytes as uppercase hex pairs separated by single spaces."""
    return " ".join(f"{byte:02X}" for byte in data)


def format_value(field_type: FieldType, value: Any) -> str:
    if field_type is FieldType.FLOAT32:
        return f"{value:.6f}"
    if field_type is FieldType.FLOAT64:
        return f"{value:.10f}"
    if field_type is FieldType.BYTES:
        return format_hex(value)
    return str(value)


@dataclass(frozen=True)
class ParsedField:
    name: str
    field_type: FieldType
    raw_bytes: bytes
    value: Any
    description: Optional[str] = None

    @property
    def text(self) -> str:
        return format_value(self.field_type, self.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "fieldType": self.field_type.value,
            "rawBytes": list(self.raw_bytes),
            "value": self.text,
            "description": self.description,
        }


@dataclass
class ParsedFrame:
    protocol_name: str
    raw_data: bytes
    fields: List[ParsedField] = field(default_factory=list)
    valid: bool = True
    error: Optional[str] = None

    def get_field(self, name: str) -> Optional[ParsedField]:
        for item in self.fields:
            if item.name == name:
                return item
        return None

    def values(self) -> Dict[str, Any]:
        return {item.name: item.value for item in self.fields}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "protocolName": self.protocol_name,
            "rawData": list(self.raw_data),
            "fields": [item.to_dict() for item in self.fields],
            "valid": self.valid,
            "error": self.error,
        }
