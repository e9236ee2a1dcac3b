"""Cryptographic random source used for salts and nonces.

Salts and nonces draw from a RandomSource; SystemRandomSource is the default.
"""

from __future__ import annotations

import os

from sealvault.core.exceptions import ValidationError


class RandomSource:
    """Interface for a cryptographically secure byte source."""

    def token_bytes(self, n: int) -> bytes:
        raise NotImplementedError


class SystemRandomSource(RandomSource):
    """Random source backed by the operating system CSPRNG."""

    def token_bytes(self, n: int) -> bytes:
        return os.urandom(n)


_default_source = SystemRandomSource()


def default_random_source() -> RandomSource:
    return _default_source


def random_bytes(n: int, rng: RandomSource | None = None) -> bytes:
    """Draw ``n`` fresh bytes from ``rng`` (or the system source) and check the length."""
    source = rng or _default_source
    out = source.token_bytes(n)
    if not isinstance(out, (bytes, bytearray)) or len(out) != n:
        raise ValidationError(f"random source returned {len(out) if out else 0} bytes, expected {n}")
    return bytes(out)
