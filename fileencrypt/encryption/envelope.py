"""
Ciphertext Envelope
===================

On-disk format of an encrypted physical file.

Format:
    HEADER (8 bytes):
        - MAGIC: 4 bytes ("FENC")
        - VERSION: 1 byte
        - METHOD: 1 byte (cipher id)
        - NONCE_LEN: 1 byte
        - RESERVED: 1 byte
    NONCE: NONCE_LEN bytes
    CIPHERTEXT: remaining bytes (includes the authentication tag)
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Final

from fileencrypt.core.crypto.aead import CIPHERS
from fileencrypt.core.errors import DecryptionError


MAGIC_BYTES: Final[bytes] = b"FENC"
ENVELOPE_VERSION: Final[int] = 1
HEADER_FORMAT: Final[str] = "<4sBBBB"
HEADER_SIZE: Final[int] = struct.calcsize(HEADER_FORMAT)

METHOD_IDS: Final[dict[str, int]] = {name: cipher.method_id for name, cipher in CIPHERS.items()}
METHOD_NAMES: Final[dict[int, str]] = {v: k for k, v in METHOD_IDS.items()}


@dataclass(frozen=True, slots=True)
class Envelope:
    """A parsed ciphertext envelope."""

    method: str
    nonce: bytes
    ciphertext: bytes
    version: int = ENVELOPE_VERSION

    def to_bytes(self) -> bytes:
        header = struct.pack(
            HEADER_FORMAT,
            MAGIC_BYTES,
            self.version,
            METHOD_IDS[self.method],
            len(self.nonce),
            0,  # Reserved
        )
        return header + self.nonce + self.ciphertext

    @classmethod
    def from_bytes(cls, data: bytes) -> Envelope:
        """
        Parse an envelope.

        Raises:
            DecryptionError: If data is not a valid envelope
        """
        if len(data) < HEADER_SIZE:
            raise DecryptionError("Data too short for an encrypted file")

        magic, version, method_id, nonce_len, _ = struct.unpack(
            HEADER_FORMAT, data[:HEADER_SIZE]
        )

        if magic != MAGIC_BYTES:
            raise DecryptionError("Invalid file format (bad magic bytes)")

        if version != ENVELOPE_VERSION:
            raise DecryptionError(f"Unsupported envelope version: {version}")

        method = METHOD_NAMES.get(method_id)
        if method is None:
            raise DecryptionError(f"Unknown encryption method id: {method_id}")

        nonce_end = HEADER_SIZE + nonce_len
        if len(data) < nonce_end:
            raise DecryptionError("Data truncated (incomplete nonce)")

        return cls(
            method=method,
            nonce=data[HEADER_SIZE:nonce_end],
            ciphertext=data[nonce_end:],
            version=version,
        )

    def __repr__(self) -> str:
        return f"Envelope(method={self.method}, ciphertext_len={len(self.ciphertext)})"
