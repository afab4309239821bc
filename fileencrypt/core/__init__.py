"""
Core module - Contains configuration, logging, errors and crypto primitives.
"""

from fileencrypt.core.config import FileEncryptConfig, LoggingConfig, StorageConfig
from fileencrypt.core.logging import configure_logging, get_secure_logger, SecureLogFilter

__all__ = [
    "FileEncryptConfig",
    "LoggingConfig",
    "StorageConfig",
    "configure_logging",
    "get_secure_logger",
    "SecureLogFilter",
]
