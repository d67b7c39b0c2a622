"""Logging for the Gmail connector with OAuth secret and address redaction.

Every handler installed here renders through RedactingFormatter, so tokens,
client secrets, authorization codes and mailbox local parts never reach a log
sink in clear, whatever module emitted them.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

from gmail_connector.lib.config import app_config


class LogRedactor:
    """Mask OAuth material and email addresses in rendered log text."""

    # (pattern, replacement) applied in order
    RULES = [
        # Mailbox local part; the domain stays for troubleshooting
        (re.compile(r"\b[A-Za-z0-9._%+-]+@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b"), r"***@\1"),
        # Google access tokens
        (re.compile(r"ya29\.[A-Za-z0-9_-]+"), "ya29.***"),
        # Google refresh tokens
        (re.compile(r"1//[A-Za-z0-9_-]+"), "1//***"),
        # OAuth client secrets
        (re.compile(r"GOCSPX-[A-Za-z0-9_-]+"), "GOCSPX-***"),
        # Authorization codes in callback URLs (uvicorn access log)
        (re.compile(r"([?&]code=)[^&\s\"]+"), r"\1***"),
    ]

    @classmethod
    def redact(cls, text: Any) -> str:
        """Return ``text`` with every rule applied."""
        text = text if isinstance(text, str) else str(text)
        for pattern, replacement in cls.RULES:
            text = pattern.sub(replacement, text)
        return text


class RedactingFormatter(logging.Formatter):
    """Formatter that redacts the fully rendered record, args included."""

    def format(self, record: logging.LogRecord) -> str:
        return LogRedactor.redact(super().format(record))


def _formatter() -> RedactingFormatter:
    return RedactingFormatter(fmt=app_config.log_format, datefmt=app_config.log_date_format)


def configure_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Attach a redacting stream handler to a logger once.

    Args:
        name: Logger name (usually __name__)
        level: Log level name (default: LOG_LEVEL from the app config)

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel((level or app_config.log_level).upper())

    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(_formatter())
    logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get the connector logger for a module."""
    return configure_logger(name)


def log_to_file(log_file: Path, name: str = "gmail_connector") -> logging.Handler:
    """
    Also write records of ``name`` and its children to ``log_file``.

    Module loggers propagate to the package logger, so one handler here
    captures the whole connector. Calling it again for the same file returns
    the existing handler.

    Args:
        log_file: Destination file; parent directories are created
        name: Logger the handler is attached to

    Returns:
        The file handler
    """
    logger = logging.getLogger(name)
    target = os.path.abspath(log_file)

    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return handler

    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file)
    handler.setFormatter(_formatter())
    logger.addHandler(handler)
    return handler


class SyncLogger:
    """
    Logger for watch and history operations.

    Messages carry ``key=value`` fields after the text, e.g.
    ``History cursor advanced | previous=100 | current=120 | new_messages=3``.
    """

    def __init__(self, name: str):
        self.logger = get_logger(name)

    def _log(self, level: int, message: str, fields: Dict[str, Any]) -> None:
        if fields:
            message = " | ".join([message] + [f"{key}={value}" for key, value in fields.items()])
        self.logger.log(level, message)

    def debug(self, message: str, **fields: Any) -> None:
        self._log(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._log(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._log(logging.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._log(logging.ERROR, message, fields)

    def log_cursor_advance(
        self,
        previous: Optional[int],
        current: int,
        new_messages: int,
    ) -> None:
        """Record a history fetch that moved the cursor."""
        self.info(
            "History cursor advanced",
            previous=previous,
            current=current,
            new_messages=new_messages,
        )


def get_sync_logger(name: str) -> SyncLogger:
    """Get a SyncLogger for a module."""
    return SyncLogger(name)
