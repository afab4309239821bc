"""
Profile Ciphers
===============

AEAD ciphers selectable by an encryption profile's method name.

    aes-256-gcm          AES-GCM, 256-bit key
    chacha20-poly1305    ChaCha20-Poly1305 (RFC 8439), 256-bit key

Both use a fresh 96-bit random nonce per call and append a 128-bit tag.
The method id is the byte written into the ciphertext envelope and must
never be reassigned.

WARNING:
    - Never reuse (key, nonce) pairs
    - decrypt() raises InvalidTag before any plaintext is returned
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import ClassVar, Final, Optional, Type

from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

KEY_SIZE: Final[int] = 32  # 256 bits
NONCE_SIZE: Final[int] = 12  # 96 bits
TAG_SIZE: Final[int] = 16  # 128 bits


@dataclass(frozen=True, slots=True)
class SealedData:
    """
    Output of one encryption.

    Attributes:
        nonce: Nonce used for this call (stored alongside the ciphertext)
        ciphertext: Encrypted data with the tag appended
    """

    nonce: bytes
    ciphertext: bytes

    def __repr__(self) -> str:
        return f"SealedData(nonce_len={len(self.nonce)}, ciphertext_len={len(self.ciphertext)})"


class AeadCipher:
    """
    Base for profile ciphers; subclasses pick the primitive.

    Usage:
        cipher = get_cipher("aes-256-gcm")
        sealed = cipher.encrypt(plaintext, key, aad=b"p1")
        plaintext = cipher.decrypt(sealed.ciphertext, sealed.nonce, key, aad=b"p1")
    """

    __slots__ = ()

    name: ClassVar[str]
    method_id: ClassVar[int]
    primitive: ClassVar[Type[AESGCM] | Type[ChaCha20Poly1305]]
    key_size: ClassVar[int] = KEY_SIZE
    nonce_size: ClassVar[int] = NONCE_SIZE

    def _check_key(self, key: bytes) -> None:
        if len(key) != self.key_size:
            raise ValueError(f"{self.name} key must be exactly {self.key_size} bytes")

    def encrypt(self, plaintext: bytes, key: bytes, aad: Optional[bytes] = None) -> SealedData:
        """
        Encrypt plaintext (may be empty).

        Raises:
            ValueError: If the key has the wrong size
        """
        self._check_key(key)
        nonce = secrets.token_bytes(self.nonce_size)
        return SealedData(nonce=nonce, ciphertext=self.primitive(key).encrypt(nonce, plaintext, aad))

    def decrypt(
        self,
        ciphertext: bytes,
        nonce: bytes,
        key: bytes,
        aad: Optional[bytes] = None,
    ) -> bytes:
        """
        Verify and decrypt.

        Raises:
            ValueError: If the key, nonce or ciphertext length is invalid
            cryptography.exceptions.InvalidTag: If authentication fails
        """
        self._check_key(key)
        if len(nonce) != self.nonce_size:
            raise ValueError(f"Nonce must be exactly {self.nonce_size} bytes")
        if len(ciphertext) < TAG_SIZE:
            raise ValueError("Ciphertext too short (missing authentication tag)")

        return self.primitive(key).decrypt(nonce, ciphertext, aad)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name})"


class AesGcmCipher(AeadCipher):
    """AES-256-GCM, the default profile cipher."""

    __slots__ = ()

    name = "aes-256-gcm"
    method_id = 1
    primitive = AESGCM


class ChaCha20Cipher(AeadCipher):
    """ChaCha20-Poly1305, for hosts without AES acceleration."""

    __slots__ = ()

    name = "chacha20-poly1305"
    method_id = 2
    primitive = ChaCha20Poly1305


CIPHERS: Final[dict[str, AeadCipher]] = {
    cipher.name: cipher for cipher in (AesGcmCipher(), ChaCha20Cipher())
}


def get_cipher(method: str) -> AeadCipher:
    """
    Look up a cipher by method name.

    Raises:
        KeyError: If the method is not supported
    """
    try:
        return CIPHERS[method]
    except KeyError:
        raise KeyError(f"Unsupported encryption method: {method}") from None
