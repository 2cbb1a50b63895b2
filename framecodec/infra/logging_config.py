"""Logging setup for applications embedding the codec.

Every component logs to a child of the ``FrameCodec`` logger
(``FrameCodec.Parser``, ``FrameCodec.Synchronizer``, ``FrameCodec.Encoder``,
``FrameCodec.Stream``); handlers live only on the parent.  Nothing is
installed at import time unless ``FRAMECODEC_INIT_LOGGING_ON_IMPORT=1``.
"""

from __future__ import annotations

import os
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Tuple

if TYPE_CHECKING:
    from framecodec.infra.settings_store import CodecSettings


LOGGER_NAME = "FrameCodec"
LOG_PATH = Path.cwd() / "framecodec.log"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3


def _build_handlers(log_path: Path) -> Tuple[RotatingFileHandler, logging.Handler]:
    formatter = logging.Formatter(LOG_FORMAT)
    rotating = RotatingFileHandler(
        str(log_path),
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    rotating.setFormatter(formatter)

    # only problems reach the terminal; frame-level detail goes to the file
    console = logging.StreamHandler()
    console.setLevel(logging.WARNING)
    console.setFormatter(formatter)
    return rotating, console


def _file_handler(codec_logger: logging.Logger) -> Optional[RotatingFileHandler]:
    for handler in codec_logger.handlers:
        if isinstance(handler, RotatingFileHandler):
            return handler
    return None


def configure_logging(
    log_path: Path = LOG_PATH, level: int = logging.INFO
) -> Tuple[logging.Logger, Optional[RotatingFileHandler]]:
    """Install the file and console handlers on ``FrameCodec`` once.

    Later calls leave the existing handlers (and their log path) alone and
    return them.
    """
    codec_logger = logging.getLogger(LOGGER_NAME)
    if not codec_logger.handlers:
        codec_logger.setLevel(level)
        for handler in _build_handlers(log_path):
            codec_logger.addHandler(handler)
    return codec_logger, _file_handler(codec_logger)


def shutdown_logging() -> List[logging.Handler]:
    """Detach and close the handlers installed by :func:`configure_logging`."""
    codec_logger = logging.getLogger(LOGGER_NAME)
    removed = list(codec_logger.handlers)
    for handler in removed:
        codec_logger.removeHandler(handler)
        handler.close()
    return removed


logger: logging.Logger = logging.getLogger(LOGGER_NAME)
file_handler: Optional[RotatingFileHandler] = None
if os.environ.get("FRAMECODEC_INIT_LOGGING_ON_IMPORT", "0") == "1":
    logger, file_handler = configure_logging(LOG_PATH)


def initialize_app_environment(
    log_path: Path = LOG_PATH, settings: Optional["CodecSettings"] = None
) -> logging.Logger:
    """Configure logging at the persisted (or given) level.  Idempotent."""
    global logger, file_handler
    if settings is None:
        from framecodec.infra.settings_store import load_codec_settings

        settings = load_codec_settings()
    logger, file_handler = configure_logging(log_path, settings.logging_level)
    logger.setLevel(settings.logging_level)
    return logger
