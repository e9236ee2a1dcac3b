"""Security helpers: key derivation, authenticated encryption and randomness.

This package provides the two cryptographic units of SealVault:
- PBKDF2-HMAC-SHA256 (default) or Argon2id password-based key derivation
- AES-256-GCM sealing into a (ciphertext, tag) pair

Both are exposed behind small provider interfaces so the orchestration in
``sealvault.core.engine`` does not depend on a particular implementation.
"""

from .entropy import RandomSource, SystemRandomSource, default_random_source
from .kdf import (
    KdfParams,
    KdfProvider,
    Pbkdf2Provider,
    Argon2idProvider,
    generate_salt,
    derive_key,
    check_kdf_params,
    provider_for,
)
from .cipher import (
    SealedPayload,
    AeadProvider,
    AesGcmProvider,
    generate_nonce,
    seal,
    open_payload,
)

__all__ = [
    "RandomSource",
    "SystemRandomSource",
    "default_random_source",
    "KdfParams",
    "KdfProvider",
    "Pbkdf2Provider",
    "Argon2idProvider",
    "generate_salt",
    "derive_key",
    "provider_for",
    "check_kdf_params",
    "SealedPayload",
    "AeadProvider",
    "AesGcmProvider",
    "generate_nonce",
    "seal",
    "open_payload",
]
