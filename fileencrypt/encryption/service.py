"""
Profile Encryption Service
==========================

Encrypts and decrypts whole buffers under a named encryption profile.

Each call resolves the profile, derives a cipher key from the profile's
key material with HKDF (bound to the method and profile id), and wraps
the AEAD output in an Envelope. The profile id is authenticated as AAD,
so ciphertext written under one profile never decrypts under another.
"""

from __future__ import annotations

import logging
from typing import Final, Protocol, runtime_checkable

from cryptography.exceptions import InvalidTag

from fileencrypt.core.crypto.aead import get_cipher
from fileencrypt.core.crypto.kdf import expand_key_hkdf
from fileencrypt.core.errors import DecryptionError, EncryptionError, IntegrityError
from fileencrypt.encryption.envelope import Envelope
from fileencrypt.profiles.registry import ProfileResolver, ResolvedProfile


_KDF_CONTEXT: Final[bytes] = b"fileencrypt-v1"


@runtime_checkable
class EncryptionService(Protocol):
    """Whole-buffer encryption keyed by profile id."""

    def encrypt(self, plaintext: bytes, profile_id: str) -> bytes:
        ...

    def decrypt(self, ciphertext: bytes, profile_id: str) -> bytes:
        ...


class ProfileEncryptionService:
    """
    EncryptionService backed by a ProfileResolver.

    Usage:
        service = ProfileEncryptionService(registry)
        blob = service.encrypt(b"hello", "p1")
        assert service.decrypt(blob, "p1") == b"hello"

    Errors:
        ProfileNotFoundError propagates from the resolver unchanged.
        Cipher failures surface as EncryptionError / DecryptionError,
        and a failed tag check as IntegrityError.
    """

    __slots__ = ("_resolver", "_log")

    def __init__(self, resolver: ProfileResolver) -> None:
        self._resolver = resolver
        self._log = logging.getLogger("fileencrypt.encryption")

    @property
    def resolver(self) -> ProfileResolver:
        return self._resolver

    def encrypt(self, plaintext: bytes, profile_id: str) -> bytes:
        """
        Encrypt plaintext under a profile.

        Raises:
            ProfileNotFoundError: If the profile does not resolve
            EncryptionError: If the cipher fails
        """
        resolved = self._resolver.resolve(profile_id)
        cipher = get_cipher(resolved.encryption_method)

        try:
            key = self._derive_key(resolved, cipher.key_size)
            result = cipher.encrypt(bytes(plaintext), key, aad=profile_id.encode("utf-8"))
        except (ValueError, TypeError) as e:
            raise EncryptionError(f"Encryption failed for profile {profile_id}: {e}") from e

        envelope = Envelope(
            method=resolved.encryption_method,
            nonce=result.nonce,
            ciphertext=result.ciphertext,
        )
        self._log.debug(
            "Encrypted %d bytes with profile %s (%s)",
            len(plaintext), profile_id, resolved.encryption_method,
        )
        return envelope.to_bytes()

    def decrypt(self, ciphertext: bytes, profile_id: str) -> bytes:
        """
        Decrypt an envelope produced by encrypt().

        Raises:
            ProfileNotFoundError: If the profile does not resolve
            DecryptionError: If the data is not a valid envelope or was
                written with a different method
            IntegrityError: If authentication fails
        """
        resolved = self._resolver.resolve(profile_id)
        envelope = Envelope.from_bytes(bytes(ciphertext))

        if envelope.method != resolved.encryption_method:
            raise DecryptionError(
                f"File was encrypted with {envelope.method}, "
                f"profile {profile_id} uses {resolved.encryption_method}"
            )

        cipher = get_cipher(envelope.method)
        key = self._derive_key(resolved, cipher.key_size)

        try:
            plaintext = cipher.decrypt(
                envelope.ciphertext,
                envelope.nonce,
                key,
                aad=profile_id.encode("utf-8"),
            )
        except InvalidTag as e:
            raise IntegrityError(f"Authentication failed for profile {profile_id}") from e
        except ValueError as e:
            raise DecryptionError(f"Decryption failed for profile {profile_id}: {e}") from e

        self._log.debug("Decrypted %d bytes with profile %s", len(plaintext), profile_id)
        return plaintext

    @staticmethod
    def _derive_key(resolved: ResolvedProfile, length: int) -> bytes:
        info = b"|".join([
            _KDF_CONTEXT,
            resolved.encryption_method.encode("ascii"),
            resolved.id.encode("utf-8"),
        ])
        return expand_key_hkdf(resolved.key_material, length, info=info)
