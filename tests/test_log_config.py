"""
Relay logging configuration tests

File: tests/test_log_config.py
"""

import logging

import pytest

from hookrelay.helpers.log_config import (
    ContextAdapter,
    LogSubsystem,
    RedactionFilter,
    configure_logging,
    get_logger,
    is_configured,
    log_duration,
    reset_configuration,
    set_subsystem_level,
)


def read_log(path) -> str:
    for handler in logging.getLogger("relay").handlers:
        handler.flush()
    return path.read_text(encoding="utf-8")


class TestConfigureLogging:
    """Tests for configure_logging function"""

    def test_configure_once(self):
        configure_logging(level="INFO", enable_console=False)
        assert is_configured()

        configure_logging(level="DEBUG", enable_console=False)
        assert logging.getLogger("relay").level == logging.INFO

    def test_no_console(self):
        configure_logging(enable_console=False)
        assert logging.getLogger("relay").handlers == []

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "relay.log"
        configure_logging(level="DEBUG", log_file=str(log_file), enable_console=False)

        get_logger(LogSubsystem.WEBHOOK).info("webhook received")
        assert "[relay.webhook] INFO: webhook received" in read_log(log_file)


class TestGetLogger:
    """Tests for get_logger function"""

    def test_subsystem_name(self):
        assert get_logger(LogSubsystem.WEBHOOK).name == "relay.webhook"
        assert get_logger(LogSubsystem.SESSION).name == "relay.gateway.session"

    def test_with_context(self):
        log = get_logger(LogSubsystem.SESSION, context={"delivery": "wa-msg-1"})
        assert isinstance(log, ContextAdapter)

        msg, kwargs = log.process("hello", {"extra": {"attempt": 1}})
        assert kwargs["extra"] == {"delivery": "wa-msg-1", "attempt": 1}

    def test_set_subsystem_level(self):
        set_subsystem_level(LogSubsystem.CONFIG, "WARNING")
        assert logging.getLogger("relay.config").level == logging.WARNING
        set_subsystem_level(LogSubsystem.CONFIG, "NOTSET")


class TestRedactionFilter:
    """Tests for RedactionFilter class"""

    def record(self, msg, *args) -> logging.LogRecord:
        return logging.LogRecord(
            name="relay.gateway", level=logging.INFO, pathname="", lineno=0,
            msg=msg, args=args, exc_info=None,
        )

    def test_masks_secret_in_args(self):
        redaction = RedactionFilter({"GATEWAY_TOKEN": "s3cret"})
        record = self.record("Connecting to ws://localhost:18789/?token=%s", "s3cret")

        assert redaction.filter(record) is True
        assert record.getMessage() == "Connecting to ws://localhost:18789/?token=§§secret(GATEWAY_TOKEN)"

    def test_longest_secret_first(self):
        redaction = RedactionFilter({"SHORT": "abc", "LONG": "abcdef"})
        assert redaction.mask_values("x abcdef y abc") == "x §§secret(LONG) y §§secret(SHORT)"

    def test_empty_values_ignored(self):
        redaction = RedactionFilter({"HOOK": None, "EMPTY": ""})
        record = self.record("nothing to mask")

        assert redaction.filter(record) is True
        assert record.getMessage() == "nothing to mask"

    def test_child_logger_records_masked(self, tmp_path):
        log_file = tmp_path / "relay.log"
        configure_logging(
            level="INFO",
            log_file=str(log_file),
            secrets={"WHATSAPP_HOOK_TOKEN": "hook-secret"},
            enable_console=False,
        )

        get_logger(LogSubsystem.SESSION).info("token was hook-secret")
        content = read_log(log_file)
        assert "hook-secret" not in content
        assert "token was §§secret(WHATSAPP_HOOK_TOKEN)" in content


class TestLogDuration:
    """Tests for log_duration context manager"""

    def test_logs_duration(self, caplog):
        log = get_logger(LogSubsystem.GATEWAY)
        with caplog.at_level(logging.DEBUG, logger="relay.gateway"):
            with log_duration(log, "gateway_probe"):
                pass

        assert "gateway_probe completed in" in caplog.text

    def test_logs_on_exception(self, caplog):
        log = get_logger(LogSubsystem.GATEWAY)
        with caplog.at_level(logging.DEBUG, logger="relay.gateway"):
            with pytest.raises(ValueError):
                with log_duration(log, "failing_operation"):
                    raise ValueError("Test error")

        assert "failing_operation completed in" in caplog.text


class TestResetConfiguration:
    """Tests for reset_configuration function"""

    def test_reset_clears_state(self, tmp_path):
        configure_logging(log_file=str(tmp_path / "relay.log"), enable_console=False)
        root = logging.getLogger("relay")
        assert root.handlers
        assert root.propagate is False

        reset_configuration()
        assert not is_configured()
        assert root.handlers == []
        assert root.propagate is True
