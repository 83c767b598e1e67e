"""Logger utility tests."""

import logging
from logging.handlers import RotatingFileHandler

from taskclaim.config import Settings
from taskclaim.utils import logger as logger_module
from taskclaim.utils.logger import get_app_logger, init_app_logger, setup_logger


class TestSetupLogger:
    """SUT: setup_logger"""

    def test_level_and_console_handler(self):
        logger = setup_logger("taskclaim.test.console", log_level="debug")
        assert logger.level == logging.DEBUG
        assert any(isinstance(h, logging.StreamHandler) for h in logger.handlers)

    def test_unknown_level_falls_back_to_info(self):
        logger = setup_logger("taskclaim.test.unknown", log_level="chatty")
        assert logger.level == logging.INFO

    def test_file_handler_creates_directory(self, tmp_path):
        log_file = tmp_path / "logs" / "app.log"
        logger = setup_logger("taskclaim.test.file", log_file=str(log_file))
        logger.info("hello")
        for handler in logger.handlers:
            handler.flush()

        assert log_file.exists()
        assert "hello" in log_file.read_text()

    def test_rotating_file_handler_when_size_given(self, tmp_path):
        logger = setup_logger(
            "taskclaim.test.rotate",
            log_file=str(tmp_path / "app.log"),
            max_bytes=1024,
            backup_count=2
        )
        rotating = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(rotating) == 1
        assert rotating[0].maxBytes == 1024
        assert rotating[0].backupCount == 2

    def test_no_duplicate_handlers(self):
        first = setup_logger("taskclaim.test.dup")
        count = len(first.handlers)
        second = setup_logger("taskclaim.test.dup")
        assert second is first
        assert len(second.handlers) == count


class TestAppLogger:
    """SUT: init_app_logger / get_app_logger"""

    def test_init_sets_app_logger(self, monkeypatch):
        monkeypatch.setattr(logger_module, "app_logger", None)
        logger = init_app_logger(Settings(log_level="WARNING", log_file=None))
        assert logger.name == "taskclaim"
        assert get_app_logger() is logger

    def test_default_when_uninitialized(self, monkeypatch):
        monkeypatch.setattr(logger_module, "app_logger", None)
        assert get_app_logger().name == "taskclaim"

    def test_http_client_logs_quieted(self, monkeypatch):
        monkeypatch.setattr(logger_module, "app_logger", None)
        logging.getLogger("httpx").setLevel(logging.INFO)
        init_app_logger(Settings(log_level="INFO", log_file=None, debug=False))
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING

    def test_http_client_logs_kept_in_debug(self, monkeypatch):
        monkeypatch.setattr(logger_module, "app_logger", None)
        logging.getLogger("httpx").setLevel(logging.NOTSET)
        init_app_logger(Settings(log_level="INFO", log_file=None, debug=True))
        assert logging.getLogger("httpx").level == logging.NOTSET
