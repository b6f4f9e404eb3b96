"""
Content-addressed hashing using SHA-256.

Provides the deterministic hash shared by the object store (addressing)
and import transactions (copy verification).
"""

import hashlib
import string
from pathlib import Path
from typing import Union

from ..errors import InvalidHashError


HASH_LENGTH = 64
_HEX_DIGITS = frozenset(string.hexdigits.lower())

Content = Union[str, bytes]


def to_bytes(content: Content) -> bytes:
    """
    Get the exact byte representation that is hashed and stored.

    Text is encoded as UTF-8, binary content is used as-is.
    """
    if isinstance(content, str):
        return content.encode('utf-8')
    if isinstance(content, (bytes, bytearray, memoryview)):
        return bytes(content)
    raise TypeError(f"Content must be str or bytes, got {type(content).__name__}")


def compute_hash(data: bytes) -> str:
    """
    Compute hash of raw bytes.

    Returns lowercase hex-encoded SHA-256 digest (64 characters).
    """
    return hashlib.sha256(data).hexdigest()


def hash_content(content: Content) -> str:
    """Compute hash of text (over its UTF-8 encoding) or bytes."""
    return compute_hash(to_bytes(content))


def hash_file(path: Union[str, Path], chunk_size: int = 64 * 1024) -> str:
    """
    Compute hash of a file's bytes.

    Reads in chunks so large attachments are never held in memory at once.
    Raises OSError if the file cannot be read.
    """
    digest = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(chunk_size), b''):
            digest.update(chunk)
    return digest.hexdigest()


def verify_hash(data: bytes, expected_hash: str) -> bool:
    """
    Verify that data matches expected hash.

    Returns True if match, False otherwise.
    """
    return compute_hash(data) == expected_hash


def is_valid_hash(value: str) -> bool:
    """Check that value is a 64-character lowercase hex digest."""
    return (
        isinstance(value, str)
        and len(value) == HASH_LENGTH
        and all(c in _HEX_DIGITS for c in value)
    )


def ensure_valid_hash(value: str) -> str:
    """Return value unchanged, or raise InvalidHashError if malformed."""
    if not is_valid_hash(value):
        raise InvalidHashError(value)
    return value


def get_hash_prefix(hash_str: str, prefix_length: int = 2) -> str:
    """
    Get prefix of hash for directory sharding.

    Default is 2 characters, creating 256 subdirectories.
    """
    if len(hash_str) < prefix_length:
        raise ValueError(f"Hash too short for prefix length {prefix_length}")
    return hash_str[:prefix_length]
