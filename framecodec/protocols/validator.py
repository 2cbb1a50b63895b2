"""Structural checks run on a protocol before it is used."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from framecodec.model.errors import ProtocolValidationError
from framecodec.model.protocol import Protocol


@dataclass(frozen=True)
class ValidationIssue:
    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


def validate_protocol(protocol: Protocol) -> List[ValidationIssue]:
    """Return every structural problem found; an empty list means valid."""
    issues: List[ValidationIssue] = []

    if not protocol.name or not protocol.name.strip():
        issues.append(ValidationIssue("name", "protocol name must not be empty"))

    seen: Dict[str, int] = {}
    for idx, field in enumerate(protocol.fields):
        context = f"fields[{idx}]"
        if not field.name or not field.name.strip():
            issues.append(ValidationIssue(f"{context}.name", "field name must not be empty"))
        elif field.name in seen:
            issues.append(
                ValidationIssue(
                    f"{context}.name",
                    f"duplicate field name '{field.name}' (also fields[{seen[field.name]}])",
                )
            )
        else:
            seen[field.name] = idx

        if field.offset < 0:
            issues.append(
                ValidationIssue(f"{context}.offset", "offset must be non-negative")
            )

        if field.field_type.is_variable:
            if field.length is None:
                issues.append(
                    ValidationIssue(
                        f"{context}.length",
                        f"{field.field_type.value} field requires an explicit length",
                    )
                )
            elif field.length <= 0:
                issues.append(
                    ValidationIssue(f"{context}.length", "length must be positive")
                )

    capacity = protocol.payload_capacity
    if capacity is not None:
        if capacity < 0:
            issues.append(
                ValidationIssue(
                    "frame_length",
                    f"frame length {protocol.frame_length} cannot hold "
                    f"{protocol.overhead} bytes of header, checksum and footer",
                )
            )
        else:
            for idx, field in enumerate(protocol.fields):
                end = field.end
                if end is not None and end > capacity:
                    issues.append(
                        ValidationIssue(
                            f"fields[{idx}]",
                            f"field '{field.name}' ends at byte {end}, beyond the "
                            f"{capacity}-byte payload",
                        )
                    )

    return issues


def ensure_valid(protocol: Protocol) -> Protocol:
    """Return ``protocol`` unchanged, or raise :class:`ProtocolValidationError`."""
    issues = validate_protocol(protocol)
    if issues:
        summary = "; ".join(str(issue) for issue in issues)
        raise ProtocolValidationError(
            f"Protocol '{protocol.name}' is invalid: {summary}", issues
        )
    return protocol
