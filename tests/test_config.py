"""Tests for configuration and logging setup."""

import logging
from pathlib import Path

import pytest
from rich.logging import RichHandler

from bookqueue.config import Config, get_config, reset_config
from bookqueue.logging_setup import configure_logging


@pytest.fixture(autouse=True)
def clean_config():
    reset_config()
    yield
    reset_config()


class TestConfig:
    """Tests for loading configuration from the environment."""

    def test_defaults(self, monkeypatch):
        for name in (
            "BOOKQUEUE_SHARE_BASE_URL",
            "BOOKQUEUE_READ_RETRY_MAX",
            "BOOKQUEUE_READ_RETRY_DELAY",
            "BOOKQUEUE_LOG_LEVEL",
        ):
            monkeypatch.delenv(name, raising=False)

        config = Config.from_env()

        assert config.share_base_url == "http://localhost:5173"
        assert config.read_retry_max == 3
        assert config.read_retry_delay == 0.5
        assert config.log_level == "WARNING"

    def test_from_env(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("BOOKQUEUE_DB_PATH", str(tmp_path / "q.db"))
        monkeypatch.setenv("BOOKQUEUE_SHARE_BASE_URL", "https://books.example.com/")
        monkeypatch.setenv("BOOKQUEUE_READ_RETRY_MAX", "5")
        monkeypatch.setenv("BOOKQUEUE_LOG_LEVEL", "debug")

        config = get_config()

        assert config.db_path == tmp_path / "q.db"
        assert config.share_base_url == "https://books.example.com"
        assert config.read_retry_max == 5
        assert config.log_level == "DEBUG"
        assert get_config() is config

    def test_validate(self, config: Config):
        assert config.validate() == []

        config.read_retry_max = 0
        config.share_base_url = "ftp://books"

        errors = config.validate()
        assert len(errors) == 2


class TestLogging:
    """Tests for the rich logging handler."""

    def test_configure_logging_installs_single_handler(self):
        configure_logging("INFO")
        configure_logging("DEBUG")

        logger = logging.getLogger("bookqueue")
        handlers = [h for h in logger.handlers if isinstance(h, RichHandler)]

        assert len(handlers) == 1
        assert logger.level == logging.DEBUG
        assert logger.propagate is False
