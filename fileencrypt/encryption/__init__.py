"""
Encryption module - profile-keyed whole-buffer encryption.
"""

from fileencrypt.encryption.envelope import Envelope
from fileencrypt.encryption.service import EncryptionService, ProfileEncryptionService

__all__ = ["Envelope", "EncryptionService", "ProfileEncryptionService"]
