"""Persisted codec settings.

``QSettings`` access lives here so callers never repeat group names or key
strings.  Values are stored in an INI file in the user scope; anything that
fails to parse falls back to the defaults in :class:`CodecSettings`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from PySide6.QtCore import QSettings

ORGANIZATION = "FrameCodec"
APPLICATION = "FrameCodec"
GROUP = "Parser"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class CodecSettings:
    """Limits and logging preferences applied to every new stream parser."""

    max_scan_window: int = 4096
    max_frame_length: int = 4096
    stream_queue_size: int = 256
    log_level: str = "INFO"

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level, logging.INFO)


def _settings() -> QSettings:
    return QSettings(QSettings.IniFormat, QSettings.UserScope, ORGANIZATION, APPLICATION)


def _read_positive_int(settings: QSettings, key: str, default: int) -> int:
    raw = settings.value(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value >= 1 else default


def _read_log_level(settings: QSettings, default: str) -> str:
    raw = str(settings.value("log_level", default) or "").strip().upper()
    return raw if raw in _LOG_LEVELS else default


# ---- Codec settings --------------------------------------------------------


def load_codec_settings(defaults: Optional[CodecSettings] = None) -> CodecSettings:
    defaults = defaults or CodecSettings()
    settings = _settings()
    settings.beginGroup(GROUP)
    try:
        data = CodecSettings(
            max_scan_window=_read_positive_int(
                settings, "max_scan_window", defaults.max_scan_window
            ),
            max_frame_length=_read_positive_int(
                settings, "max_frame_length", defaults.max_frame_length
            ),
            stream_queue_size=_read_positive_int(
                settings, "stream_queue_size", defaults.stream_queue_size
            ),
            log_level=_read_log_level(settings, defaults.log_level),
        )
    finally:
        settings.endGroup()
    return data


def save_codec_settings(data: CodecSettings) -> None:
    settings = _settings()
    settings.beginGroup(GROUP)
    try:
        settings.setValue("max_scan_window", int(data.max_scan_window))
        settings.setValue("max_frame_length", int(data.max_frame_length))
        settings.setValue("stream_queue_size", int(data.stream_queue_size))
        settings.setValue("log_level", str(data.log_level).upper())
    finally:
        settings.endGroup()
        settings.sync()


def apply_default_codec_settings() -> None:
    save_codec_settings(CodecSettings())


def clear_codec_settings() -> None:
    settings = _settings()
    settings.beginGroup(GROUP)
    try:
        settings.remove("")
    finally:
        settings.endGroup()
        settings.sync()


# ---- Import / export ---------------------------------------------------------


def export_codec_settings() -> Dict[str, Any]:
    """Snapshot of the stored keys, suitable for :func:`import_codec_settings`."""

    settings = _settings()
    settings.beginGroup(GROUP)
    try:
        return {key: settings.value(key) for key in settings.childKeys()}
    finally:
        settings.endGroup()


def import_codec_settings(snapshot: Dict[str, Any]) -> None:
    settings = _settings()
    settings.beginGroup(GROUP)
    try:
        for key, value in snapshot.items():
            settings.setValue(key, value)
    finally:
        settings.endGroup()
        settings.sync()


def export_to_ini(path: str) -> None:
    dest = QSettings(path, QSettings.IniFormat)
    dest.beginGroup(GROUP)
    try:
        for key, value in export_codec_settings().items():
            dest.setValue(key, value)
    finally:
        dest.endGroup()
        dest.sync()


def import_from_ini(path: str) -> None:
    src = QSettings(path, QSettings.IniFormat)
    src.beginGroup(GROUP)
    try:
        snapshot = {key: src.value(key) for key in src.childKeys()}
    finally:
        src.endGroup()
    import_codec_settings(snapshot)
