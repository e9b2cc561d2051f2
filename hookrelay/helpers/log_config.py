"""
Relay Logging Configuration

Standard logging under the "relay" logger tree, one child logger per
subsystem. Configured secrets (gateway token, hook token) are masked before
records reach any handler; the gateway URL carries its token in the query
string, so connection logs would otherwise leak it.

Usage:
    from hookrelay.helpers.log_config import configure_logging, get_logger, LogSubsystem

    configure_logging(level="INFO", secrets={"GATEWAY_TOKEN": token})
    log = get_logger(LogSubsystem.WEBHOOK)
    log.info("Received message")
"""

import logging
import os
import sys
import threading
import time
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Optional


ROOT_LOGGER = "relay"


class LogSubsystem(str, Enum):
    """Log subsystem classification"""
    GATEWAY = "relay.gateway"
    SESSION = "relay.gateway.session"
    WEBHOOK = "relay.webhook"
    CHANNEL = "relay.channels"
    CONFIG = "relay.config"


_configured = False
_config_lock = threading.Lock()


class RedactionFilter(logging.Filter):
    """
    Masks registered secret values in log messages

    Each secret is replaced by the placeholder §§secret(NAME).
    """

    def __init__(self, secrets: Optional[Dict[str, str]] = None):
        super().__init__()
        self._secrets: Dict[str, str] = {}
        for name, value in (secrets or {}).items():
            self.register(name, value)

    def register(self, name: str, value: Optional[str]):
        if value:
            self._secrets[name] = value

    def mask_values(self, text: str) -> str:
        # Longest first so a secret containing another is masked whole
        for name, value in sorted(self._secrets.items(), key=lambda kv: -len(kv[1])):
            text = text.replace(value, f"§§secret({name})")
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        masked = self.mask_values(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


class ContextAdapter(logging.LoggerAdapter):
    """
    Logger adapter that supports context injection

    Usage:
        log = get_logger(LogSubsystem.SESSION, context={"delivery": "wa-msg-1"})
    """

    def process(self, msg, kwargs):
        extra = kwargs.get('extra', {})
        if self.extra:
            extra = {**self.extra, **extra}
        kwargs['extra'] = extra
        return msg, kwargs


def configure_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    secrets: Optional[Dict[str, str]] = None,
    enable_console: bool = True
) -> None:
    """
    Configure relay logging

    Call once at startup; subsequent calls are ignored.

    Args:
        level: Log level (DEBUG/INFO/WARNING/ERROR/CRITICAL)
        log_file: Optional log file path
        format_string: Custom format string
        secrets: Name -> value mapping of secrets to mask
        enable_console: Whether to log to stdout
    """
    global _configured

    with _config_lock:
        if _configured:
            return
        _configured = True

    fmt = format_string or "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
    formatter = logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S")
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    redaction = RedactionFilter(secrets)

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(numeric_level)
    root.propagate = False

    handlers = []
    if enable_console:
        handlers.append(logging.StreamHandler(sys.stdout))

    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as e:
            root.warning(f"Failed to create log file handler: {e}")

    # Handler-level filter: logger filters do not see records from child loggers
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(numeric_level)
        handler.addFilter(redaction)
        root.addHandler(handler)

    root.info(f"Relay logging configured (level={level}, redacted={len(secrets or {})})")


def get_logger(subsystem: LogSubsystem, context: Optional[Dict[str, Any]] = None) -> logging.Logger:
    """Get a logger for a subsystem, optionally bound to a context dict"""
    logger = logging.getLogger(subsystem.value)
    if context:
        return ContextAdapter(logger, context)
    return logger


def set_subsystem_level(subsystem: LogSubsystem, level: str) -> None:
    logging.getLogger(subsystem.value).setLevel(getattr(logging, level.upper(), logging.INFO))


@contextmanager
def log_duration(logger: logging.Logger, operation: str, level: int = logging.DEBUG):
    """
    Log how long the wrapped block took

    Example:
        >>> with log_duration(log, "gateway_delivery"):
        ...     await client.deliver(text)
    """
    start = time.time()
    try:
        yield
    finally:
        duration_ms = (time.time() - start) * 1000
        logger.log(level, f"{operation} completed in {duration_ms:.2f}ms")


def is_configured() -> bool:
    return _configured


def reset_configuration() -> None:
    """Remove relay handlers (tests only)"""
    global _configured
    _configured = False

    root = logging.getLogger(ROOT_LOGGER)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    root.propagate = True
