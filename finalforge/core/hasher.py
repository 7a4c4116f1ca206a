"""Hashing helpers for artifact integrity and content addressing."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import BinaryIO

_CHUNK_SIZE = 1024 * 1024


def sha1_hex(data: bytes) -> str:
    """Return the SHA-1 hex digest of raw bytes."""
    return hashlib.sha1(data).hexdigest()


def digest_stream(stream: BinaryIO, algorithm: str = "sha1") -> str:
    """Hash a binary stream in chunks without loading it into memory."""
    h = hashlib.new(algorithm)
    for chunk in iter(lambda: stream.read(_CHUNK_SIZE), b""):
        h.update(chunk)
    return h.hexdigest()


def sha1_file(path: Path) -> str:
    """SHA-1 of a file, the checksum recorded in release manifests."""
    with open(path, "rb") as f:
        return digest_stream(f, "sha1")


def sha256_file(path: Path) -> str:
    """SHA-256 of a file, the address used by the local blobstore."""
    with open(path, "rb") as f:
        return digest_stream(f, "sha256")
