"""Tests for roster logging setup."""

import logging

import pytest

from roster.logging_config import configure_ops_log, configure_quiet_mode


@pytest.fixture
def roster_logger():
    logger = logging.getLogger("roster")
    level, handlers = logger.level, list(logger.handlers)
    yield logger
    for h in logger.handlers:
        if h not in handlers:
            logger.removeHandler(h)
            h.close()
    logger.setLevel(level)


class TestQuietMode:

    def test_quiet_sets_warning(self, roster_logger):
        roster_logger.setLevel(logging.DEBUG)
        configure_quiet_mode(quiet=True)
        assert roster_logger.level == logging.WARNING

    def test_not_quiet_leaves_level(self, roster_logger):
        roster_logger.setLevel(logging.DEBUG)
        configure_quiet_mode(quiet=False)
        assert roster_logger.level == logging.DEBUG


class TestOpsLog:

    def test_writes_info_to_store(self, tmp_path, roster_logger):
        configure_quiet_mode(quiet=True)
        handler = configure_ops_log(tmp_path / "store")
        logging.getLogger("roster.records").info("added member %s", "abc")
        handler.flush()
        text = (tmp_path / "store" / "roster-ops.log").read_text()
        assert "INFO added member abc" in text

    def test_debug_not_written(self, tmp_path, roster_logger):
        handler = configure_ops_log(tmp_path)
        logging.getLogger("roster").debug("chatter")
        handler.flush()
        assert "chatter" not in (tmp_path / "roster-ops.log").read_text()
