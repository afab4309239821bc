"""
Key Derivation Functions
========================

Turns profile key material into cipher keys.

Implements:
    - Argon2id for passphrase-based keys
    - HKDF-SHA256 for expanding raw key material to a cipher key
"""

from __future__ import annotations

from typing import Final, Optional

from argon2.low_level import hash_secret_raw, Type
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

# Argon2id parameters (OWASP recommended)
ARGON2_TIME_COST: Final[int] = 3
ARGON2_MEMORY_COST: Final[int] = 65536  # 64 MB
ARGON2_PARALLELISM: Final[int] = 4

MIN_SALT_LENGTH: Final[int] = 16


def derive_key_argon2(
    passphrase: str,
    salt: bytes,
    length: int = 32,
    time_cost: int = ARGON2_TIME_COST,
    memory_cost: int = ARGON2_MEMORY_COST,
    parallelism: int = ARGON2_PARALLELISM,
) -> bytes:
    """
    Derive key material from a passphrase using Argon2id.

    Args:
        passphrase: The passphrase
        salt: Random salt (at least 16 bytes, stored with the key record)
        length: Output length in bytes
        time_cost: Argon2 iterations
        memory_cost: Argon2 memory in KiB
        parallelism: Argon2 lanes

    Returns:
        Derived key bytes

    Raises:
        ValueError: If the salt is too short
    """
    if len(salt) < MIN_SALT_LENGTH:
        raise ValueError(f"Salt must be at least {MIN_SALT_LENGTH} bytes")

    return hash_secret_raw(
        secret=passphrase.encode("utf-8"),
        salt=salt,
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
        hash_len=length,
        type=Type.ID,
    )


def expand_key_hkdf(
    key_material: bytes,
    length: int,
    info: bytes = b"",
    salt: Optional[bytes] = None,
) -> bytes:
    """
    Expand key material using HKDF-SHA256.

    Args:
        key_material: Input key material
        length: Output length
        info: Context/application info (domain separation)
        salt: Optional salt

    Returns:
        Expanded key bytes
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=salt,
        info=info,
    )
    return hkdf.derive(key_material)
