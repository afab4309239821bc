"""
Open Modes
==========

Parsing of fopen-style mode strings for encrypted streams.

Streams are byte streams; "b" is accepted and implied, "t" is rejected.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final


_BASE_MODES: Final[frozenset[str]] = frozenset("rwax")
_ALLOWED: Final[frozenset[str]] = frozenset("rwax+b")


@dataclass(frozen=True, slots=True)
class OpenMode:
    """A validated open mode."""

    raw: str
    base: str
    update: bool

    @classmethod
    def parse(cls, mode: str) -> OpenMode:
        """
        Validate a mode string.

        Raises:
            ValueError: If the mode is not one of r, w, a, x with optional
                "+" and "b"
        """
        if not isinstance(mode, str) or not mode:
            raise ValueError(f"invalid mode: {mode!r}")
        if "t" in mode:
            raise ValueError(f"encrypted streams are binary only: {mode!r}")
        if set(mode) - _ALLOWED or len(set(mode)) != len(mode):
            raise ValueError(f"invalid mode: {mode!r}")

        bases = [c for c in mode if c in _BASE_MODES]
        if len(bases) != 1:
            raise ValueError(
                f"mode must have exactly one of create/read/write/append: {mode!r}"
            )

        return cls(raw=mode, base=bases[0], update="+" in mode)

    @property
    def read_only(self) -> bool:
        """Opened for reading with no intent to modify; close never writes."""
        return self.base == "r" and not self.update

    @property
    def readable(self) -> bool:
        return self.base == "r" or self.update

    @property
    def writable(self) -> bool:
        return not self.read_only

    @property
    def truncate(self) -> bool:
        return self.base == "w"

    @property
    def append(self) -> bool:
        return self.base == "a"

    @property
    def exclusive(self) -> bool:
        return self.base == "x"

    def __str__(self) -> str:
        return self.raw
