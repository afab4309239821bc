"""
Encrypting Stream Handle
========================

A byte-oriented file object over one virtual URI.

Lifecycle:
1. open: existing ciphertext is read and decrypted into an in-memory buffer
2. read/write/seek/truncate operate on the buffer only
3. close: unless opened read-only, the buffer is encrypted with the
   profile captured at open and atomically replaces the physical file

Handles are single-use and not thread-safe. A writable handle that is
discarded without close() loses its writes; nothing is persisted from
a finalizer.
"""

from __future__ import annotations

import io
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from fileencrypt.core.memory import wipe_stream
from fileencrypt.encryption.service import EncryptionService
from fileencrypt.stream.modes import OpenMode
from fileencrypt.stream.paths import ResolvedPath, ensure_within_base


# Callback receiving (logical name, plaintext size) after decrypt or encrypt
FileInfoRecorder = Callable[[str, int], None]

TEMP_SUFFIX = ".fenc-tmp"


class EncryptStream:
    """
    Open handle on an encrypted file.

    Created by EncryptStreamWrapper.open(); not instantiated directly.

    Attributes:
        name: The virtual URI this handle is bound to
        mode: The mode string the handle was opened with
        profile_id: Profile captured at open, reused at close
        physical_path: Ciphertext location captured at open, written at close
    """

    __slots__ = (
        "_resolved", "_mode", "_service", "_buffer", "_closed",
        "_record", "_base_directory", "_directory_mode", "_log",
    )

    def __init__(
        self,
        resolved: ResolvedPath,
        mode: OpenMode,
        service: EncryptionService,
        base_directory: Path,
        directory_mode: int = 0o700,
        record_file_info: Optional[FileInfoRecorder] = None,
    ) -> None:
        self._resolved = resolved
        self._mode = mode
        self._service = service
        self._base_directory = base_directory
        self._directory_mode = directory_mode
        self._record = record_file_info
        self._buffer = io.BytesIO()
        self._closed = True
        self._log = logging.getLogger("fileencrypt.stream")

    @classmethod
    def open(
        cls,
        resolved: ResolvedPath,
        mode: OpenMode,
        service: EncryptionService,
        base_directory: Path,
        directory_mode: int = 0o700,
        record_file_info: Optional[FileInfoRecorder] = None,
    ) -> EncryptStream:
        """
        Open a handle, decrypting existing content into memory.

        A missing physical file gives an empty buffer (a new logical file).

        Raises:
            FileExistsError: Mode "x" and the file already exists
            IsADirectoryError: The physical path is a directory
            ProfileNotFoundError: The profile does not resolve
            DecryptionError: Existing ciphertext cannot be decrypted
            OSError: The physical file cannot be read
        """
        stream = cls(resolved, mode, service, base_directory, directory_mode, record_file_info)
        stream._load()
        return stream

    def _load(self) -> None:
        path = self._resolved.physical_path
        size = 0

        ensure_within_base(self._base_directory, path)

        if path.is_dir():
            raise IsADirectoryError(f"Is a directory: {self._resolved.uri}")

        if path.exists():
            if self._mode.exclusive:
                raise FileExistsError(f"File exists: {self._resolved.uri}")

            raw = path.read_bytes()
            # Decryption errors propagate; a corrupt file never opens as empty
            plaintext = self._service.decrypt(raw, self._resolved.profile_id)
            if not self._mode.truncate:
                self._buffer.write(plaintext)
                size = len(plaintext)
                if not self._mode.append:
                    self._buffer.seek(0)

            self._log.debug(
                "Opened %s (%s): decrypted %d bytes", self._resolved.uri, self._mode, len(plaintext)
            )
        else:
            self._log.debug("Opened %s (%s): new file", self._resolved.uri, self._mode)

        self._notify(size)
        self._closed = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._resolved.uri

    @property
    def mode(self) -> str:
        return self._mode.raw

    @property
    def profile_id(self) -> str:
        return self._resolved.profile_id

    @property
    def physical_path(self) -> Path:
        return self._resolved.physical_path

    @property
    def closed(self) -> bool:
        return self._closed

    def readable(self) -> bool:
        self._check_open()
        return self._mode.readable

    def writable(self) -> bool:
        self._check_open()
        return self._mode.writable

    def seekable(self) -> bool:
        self._check_open()
        return True

    def isatty(self) -> bool:
        self._check_open()
        return False

    def fileno(self) -> int:
        raise io.UnsupportedOperation("fileno")

    # ------------------------------------------------------------------
    # Buffer operations
    # ------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError(f"I/O operation on closed file: {self._resolved.uri}")

    def _check_readable(self) -> None:
        self._check_open()
        if not self._mode.readable:
            raise io.UnsupportedOperation("read")

    def _check_writable(self) -> None:
        self._check_open()
        if not self._mode.writable:
            raise io.UnsupportedOperation("write")

    def read(self, size: int = -1) -> bytes:
        self._check_readable()
        return self._buffer.read(size)

    def readline(self, size: int = -1) -> bytes:
        self._check_readable()
        return self._buffer.readline(size)

    def readlines(self, hint: int = -1) -> list[bytes]:
        self._check_readable()
        return self._buffer.readlines(hint)

    def readinto(self, b: bytearray | memoryview) -> int:
        self._check_readable()
        return self._buffer.readinto(b)

    def __iter__(self) -> Iterator[bytes]:
        self._check_readable()
        return self

    def __next__(self) -> bytes:
        line = self.readline()
        if not line:
            raise StopIteration
        return line

    def write(self, data: bytes | bytearray | memoryview) -> int:
        self._check_writable()
        if self._mode.append:
            self._buffer.seek(0, io.SEEK_END)
        return self._buffer.write(data)

    def writelines(self, lines: Iterable[bytes]) -> None:
        for line in lines:
            self.write(line)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        self._check_open()
        return self._buffer.seek(offset, whence)

    def tell(self) -> int:
        self._check_open()
        return self._buffer.tell()

    def truncate(self, size: Optional[int] = None) -> int:
        self._check_writable()
        return self._buffer.truncate(size)

    def getvalue(self) -> bytes:
        """Return the whole plaintext buffer regardless of the cursor."""
        self._check_open()
        return self._buffer.getvalue()

    def flush(self) -> None:
        """No-op; content is persisted on close."""
        self._check_open()

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    def close(self) -> None:
        """
        Close the handle, encrypting and persisting the buffer if writable.

        Read-only handles never touch physical storage. On failure the
        handle stays open with its buffer intact and the previous
        physical content is left untouched.

        Raises:
            ProfileNotFoundError: The profile no longer resolves
            EncryptionError: The buffer cannot be encrypted
            OSError: The ciphertext cannot be written
        """
        if self._closed:
            return

        if self._mode.read_only:
            self._release()
            self._log.debug("Closed %s (read-only, not rewritten)", self._resolved.uri)
            return

        plaintext = self._buffer.getvalue()

        # Encrypt before touching the disk so a cipher failure leaves the file alone
        ciphertext = self._service.encrypt(plaintext, self._resolved.profile_id)
        self._replace_physical(ciphertext)

        self._notify(len(plaintext))
        self._release()
        self._log.debug(
            "Closed %s: encrypted %d bytes to %s",
            self._resolved.uri, len(plaintext), self._resolved.physical_path,
        )

    def _release(self) -> None:
        wipe_stream(self._buffer)
        self._closed = True

    def _notify(self, size: int) -> None:
        if self._record is not None:
            self._record(self._resolved.uri, size)

    def _ensure_parent(self, parent: Path) -> None:
        """Create missing directories between the base directory and parent."""
        missing = []
        current = parent
        while current != self._base_directory and not current.exists():
            missing.append(current)
            current = current.parent

        for directory in reversed(missing):
            directory.mkdir(mode=self._directory_mode, exist_ok=True)

    def _replace_physical(self, data: bytes) -> None:
        """Write data to a sibling temp file, fsync it, then os.replace it in."""
        target = self._resolved.physical_path
        ensure_within_base(self._base_directory, target)
        self._ensure_parent(target.parent)

        fd, temp_name = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=TEMP_SUFFIX, dir=target.parent
        )
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_name, target)
        except BaseException:
            try:
                os.unlink(temp_name)
            except FileNotFoundError:
                pass
            raise

    def __enter__(self) -> EncryptStream:
        self._check_open()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"EncryptStream(name={self._resolved.uri!r}, mode={self._mode.raw!r}, {state})"
