"""
Configuration Module
====================

Provides immutable, environment-aware configuration for the encrypted
stream layer.

Features:
- Immutable configuration after initialization
- Environment variable override support (FILEENCRYPT_ prefix)
- Base directory is mandatory (an empty value is a hard error)
- Private directory permissions for physical storage
"""

from __future__ import annotations

import os
import platform
import re
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Any, Optional
import hashlib

from fileencrypt.core.errors import ConfigurationError


DEFAULT_SCHEME: Final[str] = "encrypt"
DEFAULT_DIRECTORY_MODE: Final[int] = stat.S_IRWXU  # 700 - owner only

# Setting name used by the original file_encrypt deployments
_LEGACY_BASE_DIR_KEY: Final[str] = "encrypted_file_path"

_SCHEME_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")

# Keys that must never be picked up from the environment
_SENSITIVE_KEYS: Final[frozenset[str]] = frozenset({
    "password", "passphrase", "secret", "key_value", "token", "salt",
})


def _is_sensitive_key(key: str) -> bool:
    """Check if a configuration key might contain sensitive data."""
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in _SENSITIVE_KEYS)


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Where and how ciphertext is stored on disk."""

    base_directory: Path
    scheme: str = DEFAULT_SCHEME
    directory_mode: int = DEFAULT_DIRECTORY_MODE

    def __post_init__(self) -> None:
        """Validate storage settings."""
        if self.base_directory is None or str(self.base_directory).strip() == "":
            raise ConfigurationError("Base directory for encrypted files must be set")
        # Path("") collapses to "."; treat that the same as unset
        if not isinstance(self.base_directory, Path):
            object.__setattr__(self, "base_directory", Path(self.base_directory))
        if str(self.base_directory) == ".":
            raise ConfigurationError("Base directory for encrypted files must be set")
        if not _SCHEME_PATTERN.match(self.scheme):
            raise ConfigurationError(f"Invalid stream scheme: {self.scheme!r}")
        if not 0 <= self.directory_mode <= 0o777:
            raise ConfigurationError(f"Invalid directory mode: {oct(self.directory_mode)}")


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Immutable logging configuration."""

    level: str = "INFO"
    max_file_size_bytes: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 5
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    enable_console: bool = True
    enable_file: bool = False
    log_dir: Optional[Path] = None

    def __post_init__(self) -> None:
        """Validate logging settings."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.level.upper() not in valid_levels:
            raise ConfigurationError(f"Invalid log level: {self.level}")
        if self.enable_file and self.log_dir is None:
            raise ConfigurationError("File logging requires log_dir")


class FileEncryptConfig:
    """
    Centralized, immutable configuration with environment override support.

    Usage:
        config = FileEncryptConfig.load()
        base = config.storage.base_directory
        config.ensure_base_directory()
    """

    __slots__ = ("_storage", "_logging", "_frozen", "_config_hash")

    _instance: Optional[FileEncryptConfig] = None

    def __init__(
        self,
        storage: StorageConfig,
        logging: Optional[LoggingConfig] = None,
    ) -> None:
        """Initialize configuration. Use FileEncryptConfig.load() to read the environment."""
        object.__setattr__(self, "_frozen", False)
        object.__setattr__(self, "_storage", storage)
        object.__setattr__(self, "_logging", logging or LoggingConfig())
        object.__setattr__(self, "_config_hash", self._compute_hash())
        object.__setattr__(self, "_frozen", True)

    @classmethod
    def for_directory(cls, base_directory: Path | str, **storage_kwargs: Any) -> FileEncryptConfig:
        """Shortcut for a configuration rooted at base_directory."""
        return cls(storage=StorageConfig(base_directory=Path(base_directory), **storage_kwargs))

    def _compute_hash(self) -> str:
        """Compute a hash of the configuration for integrity checking."""
        config_str = f"{self._storage}|{self._logging}"
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @property
    def storage(self) -> StorageConfig:
        """Get storage configuration."""
        return self._storage

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration."""
        return self._logging

    @property
    def config_hash(self) -> str:
        """Get configuration integrity hash."""
        return self._config_hash

    @classmethod
    def load(cls, env_prefix: str = "FILEENCRYPT") -> FileEncryptConfig:
        """
        Load configuration from environment variables.

        Environment variables are prefixed with FILEENCRYPT_ and use
        double underscores for nested values.

        Examples:
            FILEENCRYPT_STORAGE__BASE_DIRECTORY=/data/enc
            FILEENCRYPT_ENCRYPTED_FILE_PATH=/data/enc
            FILEENCRYPT_STORAGE__SCHEME=vault
            FILEENCRYPT_LOGGING__LEVEL=DEBUG

        Args:
            env_prefix: Prefix for environment variables (default: FILEENCRYPT)

        Returns:
            Configured FileEncryptConfig instance

        Raises:
            ConfigurationError: If the base directory is not set or invalid
        """
        env_overrides = cls._parse_env_overrides(env_prefix)

        base_directory = env_overrides.get(
            "storage.base_directory", env_overrides.get(_LEGACY_BASE_DIR_KEY, "")
        )
        if not base_directory:
            raise ConfigurationError(
                f"{env_prefix.upper()}_STORAGE__BASE_DIRECTORY is not set"
            )

        storage_kwargs: dict[str, Any] = {"base_directory": Path(base_directory)}
        if "storage.scheme" in env_overrides:
            storage_kwargs["scheme"] = env_overrides["storage.scheme"]
        if "storage.directory_mode" in env_overrides:
            try:
                storage_kwargs["directory_mode"] = int(env_overrides["storage.directory_mode"], 8)
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid directory mode: {env_overrides['storage.directory_mode']!r}"
                ) from e

        logging_kwargs: dict[str, Any] = {}
        if "logging.level" in env_overrides:
            logging_kwargs["level"] = env_overrides["logging.level"]
        if "logging.enable_console" in env_overrides:
            logging_kwargs["enable_console"] = env_overrides["logging.enable_console"].lower() == "true"
        if "logging.enable_file" in env_overrides:
            logging_kwargs["enable_file"] = env_overrides["logging.enable_file"].lower() == "true"
        if "logging.log_dir" in env_overrides:
            logging_kwargs["log_dir"] = Path(env_overrides["logging.log_dir"])

        return cls(
            storage=StorageConfig(**storage_kwargs),
            logging=LoggingConfig(**logging_kwargs) if logging_kwargs else None,
        )

    @staticmethod
    def _parse_env_overrides(prefix: str) -> dict[str, str]:
        """Parse environment variables with the given prefix."""
        overrides: dict[str, str] = {}
        prefix_upper = f"{prefix.upper()}_"

        for key, value in os.environ.items():
            if key.startswith(prefix_upper):
                # FILEENCRYPT_SECTION__KEY -> section.key
                config_key = key[len(prefix_upper):].lower().replace("__", ".")

                if _is_sensitive_key(config_key):
                    continue

                overrides[config_key] = value

        return overrides

    @classmethod
    def get_instance(cls) -> FileEncryptConfig:
        """Get or create the process-wide configuration instance."""
        if cls._instance is None:
            cls._instance = cls.load()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the process-wide instance. Use only for testing."""
        cls._instance = None

    def ensure_base_directory(self) -> bool:
        """
        Create the base directory with private permissions if it is absent.

        Returns:
            True if the directory was created by this call

        Raises:
            OSError: If the directory cannot be created
        """
        directory = self._storage.base_directory
        if directory.is_dir():
            return False

        directory.mkdir(mode=self._storage.directory_mode, parents=True, exist_ok=True)

        # mkdir honours the umask; set the mode explicitly on Unix-like systems
        if platform.system().lower() != "windows":
            directory.chmod(self._storage.directory_mode)
        return True

    def __repr__(self) -> str:
        """Safe string representation."""
        return (
            f"FileEncryptConfig(hash={self._config_hash}, "
            f"scheme={self._storage.scheme}, base={self._storage.base_directory})"
        )

    def __setattr__(self, name: str, value: Any) -> None:
        """Prevent modification after initialization."""
        if hasattr(self, "_frozen") and self._frozen:
            raise AttributeError("FileEncryptConfig is immutable after initialization")
        super().__setattr__(name, value)
