"""Unit tests for root logging setup."""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from chain_mesh.core.logging_config import QUIET_LOGGERS, configure_logging
from chain_mesh.core.logging_utils import get_module_logger

pytestmark = pytest.mark.usefixtures("restore_root_logging")


class TestConfigureLogging:

    def test_file_only_logging_writes_component_lines(self, tmp_path):
        log_file = tmp_path / "logs" / "master.log"

        handlers = configure_logging("debug", console=False, log_file=log_file)
        get_module_logger("Supervisor").info("Launching %d chain(s)", 2)

        assert len(handlers) == 1
        assert isinstance(handlers[0], RotatingFileHandler)
        text = log_file.read_text(encoding="utf-8")
        assert "| INFO     | chain_mesh.Supervisor | [Supervisor] Launching 2 chain(s)" in text
        assert logging.getLogger().level == logging.DEBUG

    def test_reconfiguring_replaces_previous_handlers(self, tmp_path):
        first = configure_logging("info", console=True, log_file=tmp_path / "a.log")
        second = configure_logging("warning", console=False, log_file=tmp_path / "b.log")

        root_handlers = logging.getLogger().handlers
        assert len(first) == 2
        assert not any(handler in root_handlers for handler in first)
        assert root_handlers == second

    def test_quiet_loggers_only_show_errors(self, tmp_path):
        configure_logging("debug", console=False, log_file=tmp_path / "m.log")

        for name in QUIET_LOGGERS:
            assert logging.getLogger(name).level == logging.ERROR

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError):
            configure_logging("chatty", console=False)
