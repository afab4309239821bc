"""
Error Taxonomy
==============

Every failure raised by fileencrypt derives from FileEncryptError.

Filesystem failures (permission denied, disk full, failed mkdir) are
NOT wrapped: OSError and its subclasses propagate unchanged.
"""

from __future__ import annotations

from typing import Optional


class FileEncryptError(Exception):
    """Base class for all fileencrypt errors."""
    pass


class ConfigurationError(FileEncryptError, ValueError):
    """Raised when settings are missing or invalid."""
    pass


class MalformedUriError(FileEncryptError, ValueError):
    """Raised when a virtual URI cannot be parsed or has no profile id."""

    def __init__(self, message: str, uri: Optional[str] = None) -> None:
        super().__init__(message)
        self.uri = uri


class PathTraversalError(MalformedUriError):
    """
    Raised when a target path would resolve outside the base directory.

    Always raised before any physical I/O takes place.
    """
    pass


class ProfileNotFoundError(FileEncryptError, LookupError):
    """Raised when a profile id does not resolve to a usable profile."""

    def __init__(self, profile_id: str, reason: str = "") -> None:
        message = f"Missing profile: {profile_id}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.profile_id = profile_id


class EncryptionError(FileEncryptError):
    """Raised when encryption fails."""
    pass


class DecryptionError(FileEncryptError):
    """
    Raised when decryption fails.

    The message is kept generic so the cause is not leaked.
    """
    pass


class IntegrityError(DecryptionError):
    """
    Raised when authentication tag verification fails.

    This indicates tampering, corruption, the wrong key, or ciphertext
    that was bound to a different profile.
    """
    pass
