"""
Tests for worker logging setup.
"""

import logging
from pathlib import Path

import pytest

from worker import logging_config
from worker.config import AppConfig, get_config


@pytest.fixture
def fresh_logger():
    names = []

    def make(name):
        names.append(name)
        return name

    yield make
    for name in names:
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


class TestSetupLogging:

    def test_worker_logger_writes_to_configured_dir(self):
        assert (Path(get_config().LOG_DIR) / "listing_worker.log").exists()

    def test_dir_and_level_come_from_config(self, tmp_path, monkeypatch, fresh_logger):
        config = AppConfig(LOG_DIR=str(tmp_path / "logs"), LOG_LEVEL="WARNING")
        monkeypatch.setattr(logging_config, "get_config", lambda: config)

        logger = logging_config.setup_logging(fresh_logger("listing_worker_cfg"))

        assert logger.level == logging.WARNING
        assert (tmp_path / "logs" / "listing_worker_cfg.log").exists()
        assert (tmp_path / "logs" / "listing_worker_cfg_errors.log").exists()

    def test_explicit_arguments_win(self, tmp_path, fresh_logger):
        logger = logging_config.setup_logging(fresh_logger("listing_worker_args"), log_dir=tmp_path, level="debug")

        assert logger.level == logging.DEBUG
        assert (tmp_path / "listing_worker_args.log").exists()

    def test_handlers_attached_once(self, tmp_path, fresh_logger):
        name = fresh_logger("listing_worker_once")
        first = logging_config.setup_logging(name, log_dir=tmp_path)
        second = logging_config.setup_logging(name, log_dir=tmp_path)
        assert first is second
        assert len(second.handlers) == 3
