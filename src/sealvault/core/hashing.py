"""SHA-256 checksums for plaintext and container files."""

from __future__ import annotations

import hashlib
import hmac
from pathlib import Path

from .exceptions import ResourceError


CHUNK_SIZE = 65536  # 64KB
DIGEST_SIZE = 32
HEX_DIGEST_LENGTH = DIGEST_SIZE * 2


def checksum(data: bytes) -> str:
    """Return the SHA-256 hex digest of ``data``."""
    return hashlib.sha256(data).hexdigest()


def verify_checksum(data: bytes, digest: str) -> bool:
    """Recompute the digest of ``data`` and compare it in constant time."""
    if not isinstance(digest, str) or len(digest) != HEX_DIGEST_LENGTH:
        return False
    return hmac.compare_digest(checksum(data), digest.lower())


def calculate_sha256(file_path: str | Path) -> str:
    """SHA-256 hex digest of a file on disk, read in CHUNK_SIZE blocks."""
    digest = hashlib.sha256()
    try:
        with open(file_path, "rb") as f:
            for block in iter(lambda: f.read(CHUNK_SIZE), b""):
                digest.update(block)
    except OSError as e:
        raise ResourceError(f"Failed to hash {file_path}: {e}") from e
    return digest.hexdigest()
