import logging
from logging.handlers import RotatingFileHandler

import pytest

from framecodec.infra import logging_config
from framecodec.infra.settings_store import CodecSettings, save_codec_settings


@pytest.fixture
def clean_logger():
    app_logger = logging.getLogger(logging_config.LOGGER_NAME)
    saved = list(app_logger.handlers)
    saved_level = app_logger.level
    for handler in saved:
        app_logger.removeHandler(handler)
    yield app_logger
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()
    for handler in saved:
        app_logger.addHandler(handler)
    app_logger.setLevel(saved_level)


def test_configure_logging_is_idempotent(tmp_path, clean_logger):
    log_path = tmp_path / "codec.log"
    logger, file_h = logging_config.configure_logging(log_path)
    assert isinstance(file_h, RotatingFileHandler)
    assert file_h.maxBytes == 5 * 1024 * 1024
    assert file_h.backupCount == 3
    count = len(logger.handlers)

    again, file_again = logging_config.configure_logging(tmp_path / "other.log")
    assert again is logger
    assert file_again is file_h
    assert len(again.handlers) == count == 2


def test_component_loggers_reach_file(tmp_path, clean_logger):
    log_path = tmp_path / "codec.log"
    _, file_h = logging_config.configure_logging(log_path)
    logging.getLogger("FrameCodec.Parser").info("frame decoded")
    file_h.flush()
    text = log_path.read_text(encoding="utf-8")
    assert "FrameCodec.Parser: frame decoded" in text


def test_initialize_applies_level_from_settings(tmp_path, clean_logger):
    logger = logging_config.initialize_app_environment(
        tmp_path / "codec.log", settings=CodecSettings(log_level="DEBUG")
    )
    assert logger.level == logging.DEBUG


def test_initialize_reads_stored_level(tmp_path, clean_logger):
    save_codec_settings(CodecSettings(log_level="WARNING"))
    logger = logging_config.initialize_app_environment(tmp_path / "codec.log")
    assert logger.level == logging.WARNING


def test_shutdown_logging_closes_handlers(tmp_path, clean_logger):
    logging_config.configure_logging(tmp_path / "codec.log")
    removed = logging_config.shutdown_logging()
    assert len(removed) == 2
    assert clean_logger.handlers == []
    # a fresh configure installs new handlers again
    _, file_h = logging_config.configure_logging(tmp_path / "again.log")
    assert file_h is not None and file_h not in removed
