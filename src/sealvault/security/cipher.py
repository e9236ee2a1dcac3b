"""AES-256-GCM authenticated cipher.

``AESGCM.encrypt`` returns ``ciphertext || tag``. The split into a
:class:`SealedPayload` happens once, in :class:`AesGcmProvider`; the rest of
the package only ever sees the structured pair.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from sealvault.core.exceptions import AuthenticationError, ValidationError
from .entropy import RandomSource, random_bytes


KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16
ALG_ID_AESGCM = 1


@dataclass(frozen=True)
class SealedPayload:
    """Ciphertext and its authentication tag, kept as two distinct fields."""

    ciphertext: bytes
    tag: bytes

    def __post_init__(self):
        if not isinstance(self.ciphertext, (bytes, bytearray)):
            raise ValidationError("Ciphertext must be bytes")
        if not isinstance(self.tag, (bytes, bytearray)) or len(self.tag) != TAG_SIZE:
            raise ValidationError(f"Authentication tag must be exactly {TAG_SIZE} bytes")


def generate_nonce(rng: Optional[RandomSource] = None) -> bytes:
    """Return a fresh 96-bit nonce. Never reuse one under the same key."""
    return random_bytes(NONCE_SIZE, rng)


def _check_key_and_nonce(key: bytes, nonce: bytes) -> None:
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
        raise ValidationError(f"Key must be exactly {KEY_SIZE} bytes")
    if not isinstance(nonce, (bytes, bytearray)) or len(nonce) != NONCE_SIZE:
        raise ValidationError(f"Nonce must be exactly {NONCE_SIZE} bytes")


class AeadProvider:
    """Authenticated encryption: seal produces a payload, open verifies it."""

    alg_id = 0
    name = ""

    def seal(
        self, plaintext: bytes, key: bytes, nonce: bytes, associated_data: Optional[bytes] = None
    ) -> SealedPayload:
        raise NotImplementedError

    def open(
        self, payload: SealedPayload, key: bytes, nonce: bytes, associated_data: Optional[bytes] = None
    ) -> bytes:
        raise NotImplementedError


class AesGcmProvider(AeadProvider):
    alg_id = ALG_ID_AESGCM
    name = "aes-256-gcm"

    def seal(self, plaintext, key, nonce, associated_data=None):
        _check_key_and_nonce(key, nonce)
        ct_full = AESGCM(bytes(key)).encrypt(bytes(nonce), bytes(plaintext), associated_data)
        return SealedPayload(ciphertext=ct_full[:-TAG_SIZE], tag=ct_full[-TAG_SIZE:])

    def open(self, payload, key, nonce, associated_data=None):
        _check_key_and_nonce(key, nonce)
        if len(payload.tag) != TAG_SIZE:
            raise ValidationError(f"Authentication tag must be exactly {TAG_SIZE} bytes")
        aead = AESGCM(bytes(key))
        try:
            return aead.decrypt(bytes(nonce), bytes(payload.ciphertext) + bytes(payload.tag), associated_data)
        except InvalidTag:
            # same outcome for wrong key, bad ciphertext, bad tag or bad nonce
            raise AuthenticationError() from None


_default_provider = AesGcmProvider()


def default_aead() -> AeadProvider:
    return _default_provider


def seal(plaintext: bytes, key: bytes, nonce: bytes, associated_data: Optional[bytes] = None) -> SealedPayload:
    return _default_provider.seal(plaintext, key, nonce, associated_data)


def open_payload(
    payload: SealedPayload, key: bytes, nonce: bytes, associated_data: Optional[bytes] = None
) -> bytes:
    return _default_provider.open(payload, key, nonce, associated_data)
