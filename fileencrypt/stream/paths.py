"""
Virtual Path Translation
========================

Maps virtual URIs of the form

    encrypt://<profile-id>/<relative/path>

to the profile id, the normalized target path, and the physical path
under the configured base directory. Everything here is pure: no
filesystem access happens during translation.
"""

from __future__ import annotations

import logging
import os
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final
from urllib.parse import SplitResult, urlsplit

from fileencrypt.core.config import DEFAULT_SCHEME
from fileencrypt.core.errors import MalformedUriError, PathTraversalError


_TRIM_CHARS: Final[str] = "/\\"
_SEGMENT_SPLIT: Final[re.Pattern[str]] = re.compile(r"[\\/]")
_PROFILE_ID_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9_.\-]+$")
# urlsplit silently drops tab, CR and LF; any control character is refused
_CONTROL_CHARS: Final[re.Pattern[str]] = re.compile(r"[\x00-\x1f\x7f]")


@dataclass(frozen=True, slots=True)
class ResolvedPath:
    """Everything a stream needs to know about one virtual URI."""

    uri: str
    profile_id: str
    target: str
    physical_path: Path


def normalize(path: str) -> str:
    """
    Strip leading and trailing forward slashes and backslashes.

    Interior separators and whitespace are left alone, so
    normalize(normalize(p)) == normalize(p).
    """
    return path.strip(_TRIM_CHARS)


class PathTranslator:
    """
    Translates virtual URIs for one scheme and base directory.

    Usage:
        translator = PathTranslator(Path("/data/enc"))
        translator.extract_profile_id("encrypt://p1/docs/report.txt")  # "p1"
        translator.target_path("encrypt://p1/docs/report.txt")         # "docs/report.txt"
        translator.physical_path("docs/report.txt")  # /data/enc/docs/report.txt
    """

    __slots__ = ("_base_directory", "_scheme", "_log")

    def __init__(self, base_directory: Path | str, scheme: str = DEFAULT_SCHEME) -> None:
        self._base_directory = Path(base_directory)
        self._scheme = scheme.lower()
        self._log = logging.getLogger("fileencrypt.paths")

    @property
    def base_directory(self) -> Path:
        return self._base_directory

    @property
    def scheme(self) -> str:
        return self._scheme

    def _split(self, uri: str) -> SplitResult:
        if not isinstance(uri, str) or "://" not in uri:
            raise MalformedUriError(f"Not a virtual URI: {uri!r}", uri=uri)
        if _CONTROL_CHARS.search(uri):
            self._log.warning("Rejected URI with control characters: %r", uri)
            raise MalformedUriError(f"URI contains control characters: {uri!r}", uri=uri)
        try:
            parts = urlsplit(uri)
        except ValueError as e:
            raise MalformedUriError(f"Cannot parse URI {uri!r}: {e}", uri=uri) from e

        if parts.scheme != self._scheme:
            raise MalformedUriError(
                f"Unexpected scheme {parts.scheme!r} (expected {self._scheme!r})", uri=uri
            )
        return parts

    def extract_profile_id(self, uri: str) -> str:
        """
        Return the profile id (the authority component) of a URI.

        Raises:
            MalformedUriError: If the authority is empty or not a valid id
        """
        profile_id = self._split(uri).netloc
        if not profile_id:
            self._log.warning("Rejected URI without profile id: %s", uri)
            raise MalformedUriError(f"URI has no encryption profile: {uri!r}", uri=uri)
        if not _PROFILE_ID_PATTERN.match(profile_id):
            raise MalformedUriError(f"Invalid encryption profile id: {profile_id!r}", uri=uri)
        return profile_id

    def target_path(self, uri: str) -> str:
        """Return the normalized relative path of a URI ("" for the root)."""
        return normalize(self._split(uri).path)

    def directory_of(self, uri: str) -> str:
        """
        Return the virtual URI of the parent directory, keeping the profile id.

        The parent of a top-level entry is the profile root ("encrypt://p1/").
        """
        profile_id = self.extract_profile_id(uri)
        parent = posixpath.dirname(self.target_path(uri))
        if parent == ".":
            parent = ""
        return self.build_uri(profile_id, parent)

    def build_uri(self, profile_id: str, target: str = "") -> str:
        return f"{self._scheme}://{profile_id}/{normalize(target)}"

    def physical_path(self, relative_path: str) -> Path:
        """
        Join the base directory with a normalized relative path.

        Raises:
            PathTraversalError: If any segment is ".." or the joined path
                leaves the base directory
        """
        target = normalize(relative_path)

        if ".." in _SEGMENT_SPLIT.split(target):
            self._log.warning("Rejected traversal in path: %s", relative_path)
            raise PathTraversalError(f"Path traversal detected: {relative_path!r}")

        if not target:
            return self._base_directory

        joined = self._base_directory / target

        # Lexical containment check; must not touch the filesystem
        base = os.path.normpath(os.path.abspath(self._base_directory))
        candidate = os.path.normpath(os.path.abspath(joined))
        if os.path.commonpath([base, candidate]) != base:
            self._log.warning("Rejected path outside base directory: %s", relative_path)
            raise PathTraversalError(f"Path escapes base directory: {relative_path!r}")

        return joined

    def resolve(self, uri: str) -> ResolvedPath:
        """
        Translate a URI in one step.

        Raises:
            MalformedUriError: If the URI or its profile id is malformed
            PathTraversalError: If the path leaves the base directory
        """
        profile_id = self.extract_profile_id(uri)
        target = self.target_path(uri)
        return ResolvedPath(
            uri=uri,
            profile_id=profile_id,
            target=target,
            physical_path=self.physical_path(target),
        )


def ensure_within_base(base_directory: Path, path: Path) -> None:
    """
    Check that path still lies under base_directory once symlinks are followed.

    Unlike PathTranslator.physical_path this touches the filesystem, so it
    runs right before physical I/O. Missing trailing components are fine.

    Raises:
        PathTraversalError: If the resolved path leaves the base directory
    """
    base = os.path.normcase(str(base_directory.resolve()))
    candidate = os.path.normcase(str(path.resolve()))
    if os.path.commonpath([base, candidate]) != base:
        logging.getLogger("fileencrypt.paths").warning(
            "Rejected path resolving outside base directory: %s", path
        )
        raise PathTraversalError(f"Path resolves outside base directory: {path}")
