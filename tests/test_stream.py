"""Tests for the encrypting stream lifecycle."""

import io
import os
import sys

import pytest

from fileencrypt import (
    DecryptionError,
    EncryptionError,
    MalformedUriError,
    PathTraversalError,
    ProfileNotFoundError,
)


posix_only = pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")


# ---------------------------------------------------------------------------
# Open
# ---------------------------------------------------------------------------


class TestOpen:
    """Decrypt-on-open behaviour."""

    def test_new_file_is_empty(self, wrapper):
        with wrapper.open("encrypt://p1/new.txt", "r+b") as f:
            assert f.read() == b""

    def test_read_missing_file_is_empty(self, wrapper, base_dir):
        """Opening a missing file read-only gives an empty buffer and writes nothing."""
        with wrapper.open("encrypt://p1/missing.txt", "rb") as f:
            assert f.read() == b""
        assert not (base_dir / "missing.txt").exists()

    @posix_only
    def test_creates_private_base_directory(self, wrapper, base_dir):
        assert not base_dir.exists()
        wrapper.open("encrypt://p1/a.txt", "rb").close()
        assert base_dir.is_dir()
        assert base_dir.stat().st_mode & 0o777 == 0o700

    def test_existing_content_decrypted(self, wrapper):
        wrapper.write_bytes("encrypt://p1/a.txt", b"line one\nline two\n")
        with wrapper.open("encrypt://p1/a.txt", "rb") as f:
            assert f.tell() == 0
            assert f.readline() == b"line one\n"
            assert list(f) == [b"line two\n"]

    def test_empty_profile_fails(self, wrapper):
        with pytest.raises(MalformedUriError):
            wrapper.open("encrypt:///foo.txt", "wb")

    def test_unknown_profile_fails(self, wrapper, base_dir):
        wrapper.write_bytes("encrypt://p1/a.txt", b"data")
        with pytest.raises(ProfileNotFoundError):
            wrapper.open("encrypt://nope/a.txt", "rb")

    def test_corrupt_ciphertext_fails(self, wrapper, base_dir):
        base_dir.mkdir(parents=True)
        (base_dir / "bad.txt").write_bytes(b"definitely not ciphertext")
        with pytest.raises(DecryptionError):
            wrapper.open("encrypt://p1/bad.txt", "rb")

    def test_zero_byte_file_is_not_empty_plaintext(self, wrapper, base_dir):
        base_dir.mkdir(parents=True)
        (base_dir / "zero.txt").write_bytes(b"")
        with pytest.raises(DecryptionError):
            wrapper.open("encrypt://p1/zero.txt", "r+b")

    def test_wrong_profile_fails(self, wrapper):
        """Ciphertext is bound to the profile that wrote it."""
        wrapper.write_bytes("encrypt://p1/a.txt", b"secret")
        with pytest.raises(DecryptionError):
            wrapper.open("encrypt://encryption_profile_1/a.txt", "rb")

    def test_directory_target_fails(self, wrapper, base_dir):
        base_dir.mkdir(parents=True)
        (base_dir / "docs").mkdir()
        with pytest.raises(IsADirectoryError):
            wrapper.open("encrypt://p1/docs", "rb")

    def test_invalid_mode(self, wrapper):
        with pytest.raises(ValueError):
            wrapper.open("encrypt://p1/a.txt", "rt")

    def test_exclusive_create(self, wrapper):
        with wrapper.open("encrypt://p1/x.txt", "xb") as f:
            f.write(b"first")
        with pytest.raises(FileExistsError):
            wrapper.open("encrypt://p1/x.txt", "xb")
        assert wrapper.read_bytes("encrypt://p1/x.txt") == b"first"


class TestTraversal:
    """Traversal is rejected before any physical I/O."""

    @pytest.mark.parametrize("uri", [
        "encrypt://p1/../outside.txt",
        "encrypt://p1/docs/../../outside.txt",
        "encrypt://p1/..\\outside.txt",
    ])
    def test_rejected(self, wrapper, recording_service, base_dir, tmp_path, uri):
        (tmp_path / "data").mkdir()
        (tmp_path / "data" / "outside.txt").write_bytes(b"keep")

        with pytest.raises(PathTraversalError):
            wrapper.open(uri, "wb")

        assert recording_service.calls == []
        assert not base_dir.exists()
        assert (tmp_path / "data" / "outside.txt").read_bytes() == b"keep"

    @posix_only
    def test_symlinked_directory_rejected(self, wrapper, recording_service, base_dir, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        base_dir.mkdir(parents=True)
        (base_dir / "link").symlink_to(outside, target_is_directory=True)

        with pytest.raises(PathTraversalError):
            wrapper.write_bytes("encrypt://p1/link/escaped.txt", b"secret")

        assert recording_service.calls == []
        assert list(outside.iterdir()) == []

    @posix_only
    def test_symlinked_file_not_read(self, wrapper, recording_service, base_dir, tmp_path):
        outside = tmp_path / "outside.bin"
        outside.write_bytes(b"not yours")
        base_dir.mkdir(parents=True)
        (base_dir / "leak.bin").symlink_to(outside)

        with pytest.raises(PathTraversalError):
            wrapper.open("encrypt://p1/leak.bin", "rb")
        assert recording_service.calls == []

    @posix_only
    def test_symlink_created_before_close(self, wrapper, base_dir, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        f = wrapper.open("encrypt://p1/sub/a.txt", "wb")
        f.write(b"secret")
        (base_dir / "sub").symlink_to(outside, target_is_directory=True)

        with pytest.raises(PathTraversalError):
            f.close()

        assert not f.closed
        assert list(outside.iterdir()) == []

    @posix_only
    def test_helpers_check_symlinks(self, wrapper, base_dir, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "victim.txt").write_bytes(b"keep")
        base_dir.mkdir(parents=True)
        (base_dir / "link").symlink_to(outside, target_is_directory=True)

        with pytest.raises(PathTraversalError):
            wrapper.remove("encrypt://p1/link/victim.txt")
        with pytest.raises(PathTraversalError):
            wrapper.listdir("encrypt://p1/link")
        assert (outside / "victim.txt").read_bytes() == b"keep"


# ---------------------------------------------------------------------------
# Buffer operations
# ---------------------------------------------------------------------------


class TestBufferOperations:
    """Reads and writes only touch memory until close."""

    def test_no_physical_write_before_close(self, wrapper, base_dir):
        f = wrapper.open("encrypt://p1/a.txt", "wb")
        f.write(b"pending")
        assert not (base_dir / "a.txt").exists()
        f.close()
        assert (base_dir / "a.txt").exists()

    def test_seek_and_overwrite(self, wrapper):
        wrapper.write_bytes("encrypt://p1/a.txt", b"hello world")
        with wrapper.open("encrypt://p1/a.txt", "r+b") as f:
            f.seek(6)
            f.write(b"WORLD")
        assert wrapper.read_bytes("encrypt://p1/a.txt") == b"hello WORLD"

    def test_truncate(self, wrapper):
        wrapper.write_bytes("encrypt://p1/a.txt", b"hello world")
        with wrapper.open("encrypt://p1/a.txt", "r+b") as f:
            f.truncate(5)
        assert wrapper.read_bytes("encrypt://p1/a.txt") == b"hello"

    def test_write_mode_truncates(self, wrapper):
        wrapper.write_bytes("encrypt://p1/a.txt", b"hello world")
        with wrapper.open("encrypt://p1/a.txt", "wb") as f:
            f.write(b"bye")
        assert wrapper.read_bytes("encrypt://p1/a.txt") == b"bye"

    def test_append_mode(self, wrapper):
        wrapper.write_bytes("encrypt://p1/log.txt", b"line1\n")
        with wrapper.open("encrypt://p1/log.txt", "ab") as f:
            f.seek(0)
            f.write(b"line2\n")
        assert wrapper.read_bytes("encrypt://p1/log.txt") == b"line1\nline2\n"

    def test_append_plus_reads(self, wrapper):
        wrapper.write_bytes("encrypt://p1/log.txt", b"abc")
        with wrapper.open("encrypt://p1/log.txt", "a+b") as f:
            f.write(b"def")
            f.seek(0)
            assert f.read() == b"abcdef"

    def test_writelines(self, wrapper):
        with wrapper.open("encrypt://p1/a.txt", "wb") as f:
            f.writelines([b"a\n", b"b\n"])
        assert wrapper.read_bytes("encrypt://p1/a.txt") == b"a\nb\n"

    def test_readinto(self, wrapper):
        wrapper.write_bytes("encrypt://p1/a.txt", b"abcdef")
        buf = bytearray(4)
        with wrapper.open("encrypt://p1/a.txt", "rb") as f:
            assert f.readinto(buf) == 4
        assert bytes(buf) == b"abcd"

    def test_read_on_write_only(self, wrapper):
        with wrapper.open("encrypt://p1/a.txt", "wb") as f:
            with pytest.raises(io.UnsupportedOperation):
                f.read()

    def test_write_on_read_only(self, wrapper):
        with wrapper.open("encrypt://p1/a.txt", "rb") as f:
            with pytest.raises(io.UnsupportedOperation):
                f.write(b"x")
            with pytest.raises(io.UnsupportedOperation):
                f.truncate(0)

    def test_capabilities(self, wrapper):
        with wrapper.open("encrypt://p1/a.txt", "r+b") as f:
            assert f.readable() and f.writable() and f.seekable()
            assert not f.isatty()
            with pytest.raises(io.UnsupportedOperation):
                f.fileno()

    def test_text_rejected_by_buffer(self, wrapper):
        with wrapper.open("encrypt://p1/a.txt", "wb") as f:
            with pytest.raises(TypeError):
                f.write("text")

    def test_attributes(self, wrapper, base_dir):
        with wrapper.open("encrypt://p1/docs/a.txt", "wb") as f:
            assert f.name == "encrypt://p1/docs/a.txt"
            assert f.mode == "wb"
            assert f.profile_id == "p1"
            assert f.physical_path == base_dir / "docs" / "a.txt"


# ---------------------------------------------------------------------------
# Close
# ---------------------------------------------------------------------------


class TestClose:
    """Conditional re-encryption on close."""

    def test_ciphertext_on_disk(self, wrapper, base_dir):
        wrapper.write_bytes("encrypt://p1/a.txt", b"top secret plaintext")
        raw = (base_dir / "a.txt").read_bytes()
        assert raw.startswith(b"FENC")
        assert b"top secret plaintext" not in raw

    def test_read_only_close_does_not_rewrite(self, wrapper, recording_service, base_dir):
        wrapper.write_bytes("encrypt://p1/a.txt", b"stable")
        path = base_dir / "a.txt"
        before = path.read_bytes()
        before_stat = path.stat()
        recording_service.calls.clear()

        with wrapper.open("encrypt://p1/a.txt", "rb") as f:
            f.read()

        assert path.read_bytes() == before
        assert path.stat().st_mtime_ns == before_stat.st_mtime_ns
        assert recording_service.calls == [("decrypt", "p1")]

    def test_update_close_reencrypts(self, wrapper, recording_service):
        wrapper.write_bytes("encrypt://p1/a.txt", b"hello")
        recording_service.calls.clear()
        wrapper.open("encrypt://p1/a.txt", "r+b").close()
        assert recording_service.calls == [("decrypt", "p1"), ("encrypt", "p1")]
        assert wrapper.read_bytes("encrypt://p1/a.txt") == b"hello"

    def test_closed_handle_unusable(self, wrapper):
        f = wrapper.open("encrypt://p1/a.txt", "wb")
        f.close()
        assert f.closed
        with pytest.raises(ValueError):
            f.write(b"x")
        with pytest.raises(ValueError):
            f.read()
        with pytest.raises(ValueError):
            f.seek(0)

    def test_double_close(self, wrapper, recording_service):
        f = wrapper.open("encrypt://p1/a.txt", "wb")
        f.close()
        f.close()
        assert recording_service.calls.count(("encrypt", "p1")) == 1

    def test_creates_parent_directories(self, wrapper, base_dir):
        wrapper.write_bytes("encrypt://p1/docs/2024/report.txt", b"q1")
        assert (base_dir / "docs" / "2024" / "report.txt").is_file()

    @posix_only
    def test_parent_directories_are_private(self, wrapper, base_dir):
        wrapper.write_bytes("encrypt://p1/docs/report.txt", b"q1")
        assert (base_dir / "docs").stat().st_mode & 0o777 == 0o700

    def test_no_temp_files_left(self, wrapper, base_dir):
        wrapper.write_bytes("encrypt://p1/a.txt", b"one")
        wrapper.write_bytes("encrypt://p1/a.txt", b"two")
        assert os.listdir(base_dir) == ["a.txt"]

    def test_discarded_write_handle_loses_data(self, wrapper, base_dir):
        f = wrapper.open("encrypt://p1/a.txt", "wb")
        f.write(b"never closed")
        del f
        assert not (base_dir / "a.txt").exists()

    def test_profile_cached_at_open(self, wrapper, registry):
        """The profile id read at open is the one used at close."""
        f = wrapper.open("encrypt://p1/a.txt", "wb")
        registry.remove_profile("p1")
        f.write(b"data")
        with pytest.raises(ProfileNotFoundError) as exc_info:
            f.close()
        assert exc_info.value.profile_id == "p1"


class TestCloseFailures:
    """A failed close leaves the previous content intact."""

    def test_encrypt_failure(self, wrapper, recording_service, base_dir):
        wrapper.write_bytes("encrypt://p1/a.txt", b"original")
        before = (base_dir / "a.txt").read_bytes()

        f = wrapper.open("encrypt://p1/a.txt", "wb")
        f.write(b"replacement")
        recording_service.fail_encrypt = True

        with pytest.raises(EncryptionError):
            f.close()

        assert (base_dir / "a.txt").read_bytes() == before
        assert not f.closed
        assert f.getvalue() == b"replacement"

        recording_service.fail_encrypt = False
        f.close()
        assert f.closed
        assert wrapper.read_bytes("encrypt://p1/a.txt") == b"replacement"

    def test_replace_failure(self, wrapper, base_dir, monkeypatch):
        wrapper.write_bytes("encrypt://p1/a.txt", b"original")
        before = (base_dir / "a.txt").read_bytes()

        def broken_replace(src, dst):
            raise OSError(28, "No space left on device")

        f = wrapper.open("encrypt://p1/a.txt", "wb")
        f.write(b"replacement")
        monkeypatch.setattr(os, "replace", broken_replace)

        with pytest.raises(OSError):
            f.close()

        monkeypatch.undo()
        assert (base_dir / "a.txt").read_bytes() == before
        assert os.listdir(base_dir) == ["a.txt"]


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------


class TestScenario:
    """Write, reopen, close without changes."""

    def test_report_roundtrip(self, wrapper, service, base_dir):
        uri = "encrypt://p1/docs/report.txt"

        with wrapper.open(uri, "r+b") as f:
            assert f.read() == b""
            f.write(b"hello")

        physical = base_dir / "docs" / "report.txt"
        assert service.decrypt(physical.read_bytes(), "p1") == b"hello"

        with wrapper.open(uri, "r+b") as f:
            assert f.read() == b"hello"

        assert service.decrypt(physical.read_bytes(), "p1") == b"hello"

    @pytest.mark.parametrize("profile", ["encryption_profile_1", "encryption_profile_2"])
    def test_each_profile(self, wrapper, profile):
        uri = f"encrypt://{profile}/files/data.bin"
        payload = bytes(range(256)) * 4
        wrapper.write_bytes(uri, payload)
        assert wrapper.read_bytes(uri) == payload

    def test_empty_file_roundtrip(self, wrapper, base_dir):
        wrapper.write_bytes("encrypt://p1/empty.txt", b"")
        assert (base_dir / "empty.txt").stat().st_size > 0
        assert wrapper.read_bytes("encrypt://p1/empty.txt") == b""
