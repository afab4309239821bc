"""
Encrypt Stream Wrapper
======================

Entry point for transparent encryption: hands out EncryptStream handles
for encrypt://<profile-id>/<path> URIs, keeps the file info map, and
offers directory helpers that share the same path translation.

Usage:
    registry = ProfileRegistry()
    ...
    wrapper = EncryptStreamWrapper(
        FileEncryptConfig.for_directory("/data/enc"),
        ProfileEncryptionService(registry),
    )
    with wrapper.open("encrypt://p1/docs/report.txt", "wb") as f:
        f.write(b"hello")
"""

from __future__ import annotations

import logging
import os
import platform
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Final, Optional

from fileencrypt.core.config import FileEncryptConfig
from fileencrypt.encryption.service import EncryptionService
from fileencrypt.stream.handle import EncryptStream, TEMP_SUFFIX
from fileencrypt.stream.modes import OpenMode
from fileencrypt.stream.paths import PathTranslator, ensure_within_base


@dataclass(frozen=True, slots=True)
class FileInfo:
    """Plaintext size of the last decrypt or encrypt of a logical file."""

    size: int
    updated_at: str


class EncryptStreamWrapper:
    """
    Factory and bookkeeping for encrypted stream handles.

    Collaborators are injected: the configuration supplies the base
    directory and scheme, the encryption service does all cipher work.
    """

    name: Final[str] = "Encrypted files"
    description: Final[str] = "Encrypted local files."

    def __init__(
        self,
        config: FileEncryptConfig,
        encryption_service: EncryptionService,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._config = config
        self._service = encryption_service
        self._translator = PathTranslator(
            config.storage.base_directory, scheme=config.storage.scheme
        )
        self._file_info: dict[str, FileInfo] = {}
        self._info_lock = threading.Lock()
        self._log = logger or logging.getLogger("fileencrypt.wrapper")

    @property
    def config(self) -> FileEncryptConfig:
        return self._config

    @property
    def translator(self) -> PathTranslator:
        return self._translator

    @property
    def base_directory(self) -> Path:
        return self._config.storage.base_directory

    @property
    def scheme(self) -> str:
        return self._translator.scheme

    # ------------------------------------------------------------------
    # Streams
    # ------------------------------------------------------------------

    def open(self, uri: str, mode: str = "rb") -> EncryptStream:
        """
        Open a virtual URI.

        Raises:
            ValueError: Invalid mode
            MalformedUriError: Missing or invalid profile id, bad scheme
            PathTraversalError: Path leaves the base directory
            ProfileNotFoundError: Profile does not resolve
            DecryptionError: Existing ciphertext cannot be decrypted
            OSError: Base directory creation or the physical read failed
        """
        open_mode = OpenMode.parse(mode)

        # Translation is pure; rejected URIs never reach the filesystem
        resolved = self._translator.resolve(uri)

        if self._config.ensure_base_directory():
            self._log.info("Created encrypted files directory %s", self.base_directory)

        return EncryptStream.open(
            resolved,
            open_mode,
            self._service,
            base_directory=self.base_directory,
            directory_mode=self._config.storage.directory_mode,
            record_file_info=self._record_file_info,
        )

    def read_bytes(self, uri: str) -> bytes:
        """Return the decrypted content of a virtual file."""
        with self.open(uri, "rb") as stream:
            return stream.read()

    def write_bytes(self, uri: str, data: bytes) -> int:
        """Replace the content of a virtual file, returning the bytes written."""
        with self.open(uri, "wb") as stream:
            return stream.write(data)

    # ------------------------------------------------------------------
    # File info
    # ------------------------------------------------------------------

    def _record_file_info(self, name: str, size: int) -> None:
        info = FileInfo(size=size, updated_at=datetime.now(timezone.utc).isoformat())
        with self._info_lock:
            self._file_info[name] = info

    def get_file_info(self, uri: str) -> Optional[FileInfo]:
        with self._info_lock:
            return self._file_info.get(uri)

    @property
    def file_info(self) -> dict[str, FileInfo]:
        """Snapshot of the file info map, keyed by virtual URI."""
        with self._info_lock:
            return dict(self._file_info)

    # ------------------------------------------------------------------
    # Paths and directories
    # ------------------------------------------------------------------

    def dirname(self, uri: str) -> str:
        return self._translator.directory_of(uri)

    def realpath(self, uri: str) -> Path:
        """Physical path of a virtual URI (no filesystem access)."""
        return self._translator.resolve(uri).physical_path

    def _checked_path(self, uri: str) -> Path:
        path = self.realpath(uri)
        ensure_within_base(self.base_directory, path)
        return path

    def exists(self, uri: str) -> bool:
        return self.realpath(uri).exists()

    def is_file(self, uri: str) -> bool:
        return self.realpath(uri).is_file()

    def is_dir(self, uri: str) -> bool:
        return self.realpath(uri).is_dir()

    def remove(self, uri: str) -> None:
        """
        Delete the ciphertext of a virtual file.

        Raises:
            FileNotFoundError: If it does not exist
        """
        path = self._checked_path(uri)
        path.unlink()
        with self._info_lock:
            self._file_info.pop(uri, None)
        self._log.debug("Removed %s", uri)

    def mkdir(self, uri: str, parents: bool = False, exist_ok: bool = False) -> None:
        """Create a directory with the configured private mode."""
        self._config.ensure_base_directory()
        path = self._checked_path(uri)
        path.mkdir(mode=self._config.storage.directory_mode, parents=parents, exist_ok=exist_ok)
        if platform.system().lower() != "windows":
            path.chmod(self._config.storage.directory_mode)

    def rmdir(self, uri: str) -> None:
        """Remove an empty directory."""
        path = self._checked_path(uri)
        if path == self.base_directory:
            raise PermissionError(f"Refusing to remove the profile root: {uri}")
        path.rmdir()

    def listdir(self, uri: str) -> list[str]:
        """
        List entry names in a virtual directory.

        Temporary files left by interrupted writes are skipped.
        """
        path = self._checked_path(uri)
        return sorted(
            entry for entry in os.listdir(path)
            if not entry.endswith(TEMP_SUFFIX)
        )

    def rename(self, src: str, dst: str) -> None:
        """
        Move a virtual file within the same profile.

        Raises:
            ValueError: If the profiles differ (ciphertext is bound to its profile)
        """
        src_resolved = self._translator.resolve(src)
        dst_resolved = self._translator.resolve(dst)
        if src_resolved.profile_id != dst_resolved.profile_id:
            raise ValueError(
                f"Cannot move between profiles {src_resolved.profile_id!r} "
                f"and {dst_resolved.profile_id!r}; copy through a stream instead"
            )

        ensure_within_base(self.base_directory, src_resolved.physical_path)
        ensure_within_base(self.base_directory, dst_resolved.physical_path)
        os.replace(src_resolved.physical_path, dst_resolved.physical_path)
        with self._info_lock:
            info = self._file_info.pop(src, None)
            if info is not None:
                self._file_info[dst] = info

    def __repr__(self) -> str:
        return f"EncryptStreamWrapper(scheme={self.scheme!r}, base={self.base_directory})"
