"""
Memory module - zeroization of plaintext buffers.
"""

from fileencrypt.core.memory.zeroization import secure_zero, wipe_stream

__all__ = ["secure_zero", "wipe_stream"]
