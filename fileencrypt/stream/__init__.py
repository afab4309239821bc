"""
Stream module - virtual path translation and encrypting stream handles.
"""

from fileencrypt.stream.handle import EncryptStream
from fileencrypt.stream.modes import OpenMode
from fileencrypt.stream.paths import PathTranslator, ResolvedPath, normalize
from fileencrypt.stream.wrapper import EncryptStreamWrapper, FileInfo

__all__ = [
    "EncryptStream",
    "EncryptStreamWrapper",
    "FileInfo",
    "OpenMode",
    "PathTranslator",
    "ResolvedPath",
    "normalize",
]
