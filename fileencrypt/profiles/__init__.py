"""
Profiles module - keys, encryption profiles and the profile resolver.
"""

from fileencrypt.profiles.registry import (
    EncryptionProfile,
    Key,
    ProfileRegistry,
    ProfileResolver,
    ResolvedProfile,
    SUPPORTED_METHODS,
)

__all__ = [
    "EncryptionProfile",
    "Key",
    "ProfileRegistry",
    "ProfileResolver",
    "ResolvedProfile",
    "SUPPORTED_METHODS",
]
