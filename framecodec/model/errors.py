"""Error taxonomy shared by the codec components.

Only :class:`ProtocolValidationError` and :class:`EncodeError` are raised to
callers.  :class:`FramingError`, :class:`ChecksumMismatch` and
:class:`DecodeError` are recoverable: the parser records them on the emitted
frame or reports them as diagnostics and keeps going.
"""

from __future__ import annotations

from typing import Iterable, Optional


class FrameCodecError(Exception):
    """Base class for every codec error."""


class ProtocolValidationError(FrameCodecError, ValueError):
    """Raised when a protocol description is malformed."""

    def __init__(self, message: str, issues: Iterable[object] = ()) -> None:
        super().__init__(message)
        self.issues = tuple(issues)


class FramingError(FrameCodecError):
    """Header/footer not found within the scan or frame-length window."""

    def __init__(self, reason: str, dropped: int = 0) -> None:
        super().__init__(f"{reason} ({dropped} bytes dropped)")
        self.reason = reason
        self.dropped = dropped


class ChecksumMismatch(FrameCodecError):
    def __init__(self, expected: bytes, actual: bytes) -> None:
        super().__init__(
            "checksum mismatch: frame carries "
            f"{bytes(expected).hex(' ').upper() or '(none)'}, "
            f"computed {bytes(actual).hex(' ').upper()}"
        )
        self.expected = bytes(expected)
        self.actual = bytes(actual)


class DecodeError(FrameCodecError):
    def __init__(self, message: str, field: Optional[str] = None) -> None:
        text = f"{field}: {message}" if field else message
        super().__init__(text)
        self.message = message
        self.field = field


class EncodeError(FrameCodecError, ValueError):
    def __init__(self, message: str, field: Optional[str] = None) -> None:
        text = f"{field}: {message}" if field else message
        super().__init__(text)
        self.message = message
        self.field = field
