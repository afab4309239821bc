"""
Secure Logging Module
=====================

Logging setup for fileencrypt with secret filtering.

Features:
- Key material and passphrases are redacted from every record
- Rotating log files with size limits
- Components log under the "fileencrypt" namespace
"""

from __future__ import annotations

import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Optional, Pattern

from fileencrypt.core.config import LoggingConfig


PACKAGE_LOGGER: Final[str] = "fileencrypt"

# Patterns for sensitive data detection
_SENSITIVE_PATTERNS: Final[list[tuple[str, Pattern[str]]]] = [
    ("passphrase", re.compile(r'(?i)(password|passphrase|passwd)\s*[=:]\s*["\']?[^\s"\']+["\']?')),
    ("key_value", re.compile(r'(?i)(key[_-]?value|key[_-]?material|secret)\s*[=:]\s*["\']?[^\s"\']+["\']?')),
    # Base64 encoded blobs (key material, ciphertext dumps)
    ("base64_secret", re.compile(r'\b[A-Za-z0-9+]{40,}={0,2}')),
    # Hex encoded blobs
    ("hex_secret", re.compile(r'(?i)(?:0x)?[a-f0-9]{32,}')),
]

_REDACTED_TEXT: Final[str] = "[REDACTED]"


class SecureLogFilter(logging.Filter):
    """
    Log filter that removes sensitive information from log messages.

    Scans messages and their string arguments for key material and
    passphrases and replaces them with [REDACTED].
    """

    def __init__(self, name: str = "", additional_patterns: Optional[list[Pattern[str]]] = None) -> None:
        """
        Initialize the secure log filter.

        Args:
            name: Logger name filter (empty string matches all)
            additional_patterns: Additional regex patterns to redact
        """
        super().__init__(name)
        self._additional_patterns = additional_patterns or []

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact the record in place. Records are never dropped."""
        if record.msg and isinstance(record.msg, str):
            record.msg = self._sanitize(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._sanitize(v) if isinstance(v, str) else v
                               for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    self._sanitize(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        return True

    def _sanitize(self, text: str) -> str:
        """Remove sensitive data from text."""
        result = text

        for name, pattern in _SENSITIVE_PATTERNS:
            result = pattern.sub(f"{name}={_REDACTED_TEXT}", result)

        for pattern in self._additional_patterns:
            result = pattern.sub(_REDACTED_TEXT, result)

        return result


class SecureRotatingFileHandler(RotatingFileHandler):
    """
    Rotating file handler that creates its directory privately.
    """

    def __init__(
        self,
        filename: str | Path,
        mode: str = "a",
        maxBytes: int = 10 * 1024 * 1024,
        backupCount: int = 5,
        encoding: str = "utf-8",
    ) -> None:
        log_path = Path(filename).resolve()

        log_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

        super().__init__(
            str(log_path),
            mode=mode,
            maxBytes=maxBytes,
            backupCount=backupCount,
            encoding=encoding,
        )


def get_secure_logger(
    name: str,
    log_dir: Optional[Path] = None,
    level: str = "INFO",
    enable_console: bool = True,
    enable_file: bool = True,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    fmt: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt: str = "%Y-%m-%d %H:%M:%S",
) -> logging.Logger:
    """
    Create a logger with automatic secret filtering.

    Args:
        name: Logger name (typically __name__)
        log_dir: Directory for log files (file output is skipped without one)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_console: Whether to output to stderr
        enable_file: Whether to output to a rotating file
        max_file_size: Maximum log file size before rotation
        backup_count: Number of backup files to keep
        fmt: Record format
        datefmt: Timestamp format

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, level.upper()))

    secure_filter = SecureLogFilter()

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter(fmt, datefmt="%H:%M:%S"))
        console_handler.addFilter(secure_filter)
        logger.addHandler(console_handler)

    if enable_file and log_dir:
        log_file = log_dir / f"{name.replace('.', '_')}.log"

        file_handler = SecureRotatingFileHandler(
            filename=log_file,
            maxBytes=max_file_size,
            backupCount=backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s",
            datefmt=datefmt,
        ))
        file_handler.addFilter(secure_filter)
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def configure_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Configure the package logger from a LoggingConfig.

    Call once at application startup. Component loggers
    (fileencrypt.stream, fileencrypt.encryption, ...) inherit its handlers.

    Args:
        config: Logging settings (defaults apply when omitted)

    Returns:
        The "fileencrypt" logger
    """
    config = config or LoggingConfig()
    return get_secure_logger(
        PACKAGE_LOGGER,
        log_dir=config.log_dir,
        level=config.level,
        enable_console=config.enable_console,
        enable_file=config.enable_file,
        max_file_size=config.max_file_size_bytes,
        backup_count=config.backup_count,
        fmt=config.format,
        datefmt=config.date_format,
    )
