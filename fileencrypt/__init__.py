"""
fileencrypt - Transparent Encryption for Virtual Files
======================================================

Files addressed as encrypt://<profile-id>/<path> are stored encrypted
under a base directory and appear as plain byte streams to callers.

Notes:
- No plaintext ever reaches disk
- Ciphertext is bound to the profile that wrote it
- Failed writes leave the previous file intact
"""

from fileencrypt.core.config import FileEncryptConfig
from fileencrypt.core.errors import (
    ConfigurationError,
    DecryptionError,
    EncryptionError,
    FileEncryptError,
    IntegrityError,
    MalformedUriError,
    PathTraversalError,
    ProfileNotFoundError,
)
from fileencrypt.core.logging import configure_logging, get_secure_logger
from fileencrypt.encryption import ProfileEncryptionService
from fileencrypt.profiles import EncryptionProfile, Key, ProfileRegistry
from fileencrypt.stream import EncryptStream, EncryptStreamWrapper, PathTranslator

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "DecryptionError",
    "EncryptionError",
    "EncryptionProfile",
    "EncryptStream",
    "EncryptStreamWrapper",
    "FileEncryptConfig",
    "FileEncryptError",
    "IntegrityError",
    "Key",
    "MalformedUriError",
    "PathTranslator",
    "PathTraversalError",
    "ProfileEncryptionService",
    "ProfileNotFoundError",
    "ProfileRegistry",
    "configure_logging",
    "get_secure_logger",
    "__version__",
]
