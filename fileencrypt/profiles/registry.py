"""
Encryption Profile Registry
===========================

Keys and encryption profiles, and the resolver that maps a profile id
(the authority part of an encrypt:// URI) to usable key material.

A profile names a cipher and the key it uses:

    Key("testing_key_256", key_size=256, value=b"...32 bytes...")
    EncryptionProfile("encryption_profile_1", encryption_method="aes-256-gcm",
                      encryption_key="testing_key_256")
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Final, Iterator, Optional, Protocol, runtime_checkable

from fileencrypt.core.crypto.aead import CIPHERS
from fileencrypt.core.crypto.kdf import derive_key_argon2
from fileencrypt.core.errors import ConfigurationError, ProfileNotFoundError


SUPPORTED_METHODS: Final[frozenset[str]] = frozenset(CIPHERS)
SUPPORTED_KEY_SIZES: Final[frozenset[int]] = frozenset({128, 192, 256})
KEY_PROVIDERS: Final[frozenset[str]] = frozenset({"config", "passphrase"})


@dataclass(frozen=True)
class Key:
    """
    A named key.

    Attributes:
        id: Machine name referenced by profiles
        key_size: Key size in bits (128, 192 or 256)
        value: Raw key bytes ("config" provider) or a passphrase
            ("passphrase" provider)
        provider: "config" or "passphrase"
        salt: Argon2id salt, required for the "passphrase" provider
        label: Human readable name
    """

    id: str
    key_size: int
    value: bytes | str = field(repr=False)
    provider: str = "config"
    salt: Optional[bytes] = field(default=None, repr=False)
    label: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise ConfigurationError("Key id cannot be empty")
        if self.key_size not in SUPPORTED_KEY_SIZES:
            raise ConfigurationError(f"Unsupported key size: {self.key_size}")
        if self.provider not in KEY_PROVIDERS:
            raise ConfigurationError(f"Unknown key provider: {self.provider}")
        if self.provider == "passphrase":
            if not isinstance(self.value, str) or not self.value:
                raise ConfigurationError("Passphrase keys need a non-empty passphrase")
            if not self.salt:
                raise ConfigurationError("Passphrase keys need a salt")
        else:
            raw = self.value.encode("utf-8") if isinstance(self.value, str) else self.value
            if len(raw) * 8 != self.key_size:
                raise ConfigurationError(
                    f"Key {self.id!r} is {len(raw) * 8} bits, expected {self.key_size}"
                )

    def material(self) -> bytes:
        """Return the key bytes, stretching passphrases with Argon2id."""
        if self.provider == "passphrase":
            return derive_key_argon2(self.value, self.salt, length=self.key_size // 8)
        if isinstance(self.value, str):
            return self.value.encode("utf-8")
        return bytes(self.value)


@dataclass(frozen=True)
class EncryptionProfile:
    """A named pairing of an encryption method and a key."""

    id: str
    encryption_method: str
    encryption_key: str
    label: str = ""
    method_configuration: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise ConfigurationError("Profile id cannot be empty")
        if self.encryption_method not in SUPPORTED_METHODS:
            raise ConfigurationError(
                f"Unsupported encryption method: {self.encryption_method}"
            )


@dataclass(frozen=True)
class ResolvedProfile:
    """A profile together with the key bytes it uses."""

    profile: EncryptionProfile
    key_material: bytes = field(repr=False)

    @property
    def id(self) -> str:
        return self.profile.id

    @property
    def encryption_method(self) -> str:
        return self.profile.encryption_method


@runtime_checkable
class ProfileResolver(Protocol):
    """Looks up profiles by id."""

    def resolve(self, profile_id: str) -> ResolvedProfile:
        """
        Resolve a profile id.

        Raises:
            ProfileNotFoundError: If the id is unknown or its key is missing
        """
        ...


class ProfileRegistry:
    """
    In-memory, thread-safe profile resolver.

    Usage:
        registry = ProfileRegistry()
        registry.add_key(Key("k1", key_size=256, value=secrets.token_bytes(32)))
        registry.add_profile(EncryptionProfile("p1", "aes-256-gcm", "k1"))
        resolved = registry.resolve("p1")
    """

    def __init__(self) -> None:
        self._keys: dict[str, Key] = {}
        self._profiles: dict[str, EncryptionProfile] = {}
        # Key material by key id; passphrase keys are stretched once
        self._material_cache: dict[str, bytes] = {}
        self._lock = threading.RLock()
        self._log = logging.getLogger("fileencrypt.profiles")

    def add_key(self, key: Key) -> None:
        """Register or replace a key."""
        with self._lock:
            self._keys[key.id] = key
            self._material_cache.pop(key.id, None)
        self._log.debug("Registered key %s (%d bits, %s)", key.id, key.key_size, key.provider)

    def remove_key(self, key_id: str) -> None:
        """Remove a key. Profiles that use it stop resolving."""
        with self._lock:
            self._keys.pop(key_id, None)
            self._material_cache.pop(key_id, None)

    def add_profile(self, profile: EncryptionProfile) -> None:
        """
        Register or replace a profile.

        Raises:
            ConfigurationError: If the profile references an unknown key
        """
        with self._lock:
            if profile.encryption_key not in self._keys:
                raise ConfigurationError(
                    f"Profile {profile.id!r} references unknown key {profile.encryption_key!r}"
                )
            self._profiles[profile.id] = profile
        self._log.debug("Registered profile %s (%s)", profile.id, profile.encryption_method)

    def remove_profile(self, profile_id: str) -> None:
        with self._lock:
            self._profiles.pop(profile_id, None)

    def get_profile(self, profile_id: str) -> Optional[EncryptionProfile]:
        with self._lock:
            return self._profiles.get(profile_id)

    def resolve(self, profile_id: str) -> ResolvedProfile:
        """
        Resolve a profile id to its profile and key material.

        Raises:
            ProfileNotFoundError: If the profile or its key is missing
        """
        with self._lock:
            profile = self._profiles.get(profile_id)
            if profile is None:
                raise ProfileNotFoundError(profile_id)

            key = self._keys.get(profile.encryption_key)
            if key is None:
                raise ProfileNotFoundError(profile_id, f"key {profile.encryption_key!r} is missing")

            material = self._material_cache.get(key.id)
            if material is None:
                material = key.material()
                self._material_cache[key.id] = material

        return ResolvedProfile(profile=profile, key_material=material)

    def profile_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._profiles)

    def __contains__(self, profile_id: object) -> bool:
        with self._lock:
            return profile_id in self._profiles

    def __iter__(self) -> Iterator[EncryptionProfile]:
        with self._lock:
            return iter(list(self._profiles.values()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._profiles)
