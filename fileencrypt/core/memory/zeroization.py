"""
Memory Zeroization Utilities
============================

Explicit zeroization of plaintext buffers before they are released.

Notes:
- This is best-effort; Python may hold other copies of the data
- Buffers must be mutable (bytearray, memoryview, BytesIO)
"""

from __future__ import annotations

import ctypes
import io


def secure_zero(data: bytearray | memoryview) -> None:
    """
    Securely zero a byte buffer.

    Uses ctypes for bytearrays, with a Python-level loop for memoryviews
    and as a fallback.

    Args:
        data: Mutable byte buffer to zero
    """
    if len(data) == 0:
        return

    if isinstance(data, memoryview):
        data[:] = bytes(len(data))
        return

    try:
        addr = ctypes.addressof(
            (ctypes.c_char * len(data)).from_buffer(data)
        )
        ctypes.memset(addr, 0, len(data))
    except (TypeError, ValueError):
        for i in range(len(data)):
            data[i] = 0


def wipe_stream(buffer: io.BytesIO) -> None:
    """
    Zero the contents of an in-memory stream and close it.

    The exported view is released before closing; BytesIO refuses to
    close (or resize) while a view is alive.
    """
    if buffer.closed:
        return

    view = buffer.getbuffer()
    try:
        secure_zero(view)
    finally:
        view.release()
    buffer.close()
