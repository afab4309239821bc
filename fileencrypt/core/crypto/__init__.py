"""
Cryptographic primitives used by profile encryption.

AEAD ciphers (AES-256-GCM, ChaCha20-Poly1305) and the key derivation
that turns profile key material into cipher keys.
"""

from fileencrypt.core.crypto.aead import (
    CIPHERS,
    AeadCipher,
    AesGcmCipher,
    ChaCha20Cipher,
    SealedData,
    get_cipher,
)
from fileencrypt.core.crypto.kdf import derive_key_argon2, expand_key_hkdf

__all__ = [
    "CIPHERS",
    "AeadCipher",
    "AesGcmCipher",
    "ChaCha20Cipher",
    "SealedData",
    "get_cipher",
    "derive_key_argon2",
    "expand_key_hkdf",
]
