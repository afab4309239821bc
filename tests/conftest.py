"""Shared fixtures: keys and profiles mirroring the functional test setup."""

from pathlib import Path

import pytest

from fileencrypt import (
    EncryptionError,
    EncryptionProfile,
    EncryptStreamWrapper,
    FileEncryptConfig,
    Key,
    ProfileEncryptionService,
    ProfileRegistry,
)


KEY_128 = b"mustbesixteenbit"
KEY_256 = b"mustbesixteenbitmustbesixteenbit"


class RecordingService:
    """Delegating encryption service that records calls and can fail on demand."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = []
        self.fail_encrypt = False

    def encrypt(self, plaintext, profile_id):
        self.calls.append(("encrypt", profile_id))
        if self.fail_encrypt:
            raise EncryptionError("injected failure")
        return self.inner.encrypt(plaintext, profile_id)

    def decrypt(self, ciphertext, profile_id):
        self.calls.append(("decrypt", profile_id))
        return self.inner.decrypt(ciphertext, profile_id)


@pytest.fixture
def registry() -> ProfileRegistry:
    registry = ProfileRegistry()
    registry.add_key(Key("testing_key_128", key_size=128, value=KEY_128, label="Testing Key 128 bit"))
    registry.add_key(Key("testing_key_256", key_size=256, value=KEY_256, label="Testing Key 256 bit"))
    registry.add_profile(EncryptionProfile(
        "encryption_profile_1", "aes-256-gcm", "testing_key_128", label="Encryption profile 1",
    ))
    registry.add_profile(EncryptionProfile(
        "encryption_profile_2", "chacha20-poly1305", "testing_key_256", label="Encryption profile 2",
    ))
    registry.add_profile(EncryptionProfile("p1", "aes-256-gcm", "testing_key_256"))
    return registry


@pytest.fixture
def service(registry) -> ProfileEncryptionService:
    return ProfileEncryptionService(registry)


@pytest.fixture
def recording_service(service) -> RecordingService:
    return RecordingService(service)


@pytest.fixture
def base_dir(tmp_path) -> Path:
    return tmp_path / "data" / "enc"


@pytest.fixture
def wrapper(base_dir, recording_service) -> EncryptStreamWrapper:
    return EncryptStreamWrapper(FileEncryptConfig.for_directory(base_dir), recording_service)
