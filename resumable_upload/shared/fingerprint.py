"""
Streaming content fingerprint.

Client and server must produce byte-identical strings for the same content,
so both sides go through these helpers. MD5 is used as a fast checksum, not
as a security boundary.
"""
import hashlib
import logging
from pathlib import Path
from typing import BinaryIO, Union

logger = logging.getLogger(__name__)

HASH_WINDOW = 10 * 1024 * 1024  # 10MB read window


def fingerprint_stream(stream: BinaryIO, window: int = HASH_WINDOW) -> str:
    """
    Hash a binary stream window by window.

    Memory use is bounded by `window`, never by the stream length.
    """
    if window <= 0:
        raise ValueError("window must be positive")

    hasher = hashlib.md5()
    while True:
        data = stream.read(window)
        if not data:
            break
        hasher.update(data)
    return hasher.hexdigest()


def fingerprint_file(path: Union[str, Path], window: int = HASH_WINDOW) -> str:
    """Hash a file on disk. Raises OSError if it cannot be read to the end."""
    with open(path, "rb") as f:
        digest = fingerprint_stream(f, window)
    logger.debug(f"Fingerprint of {path}: {digest}")
    return digest
