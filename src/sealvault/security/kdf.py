from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from sealvault.core.exceptions import ValidationError
from .entropy import RandomSource, random_bytes


SALT_SIZE = 32
KEY_SIZE = 32

PBKDF2_SHA256 = "pbkdf2-sha256"
ARGON2ID = "argon2id"
DEFAULT_ITERATIONS = 100_000

# Upper bounds for parameters read back from a blob
MAX_ITERATIONS = 10_000_000
MAX_TIME_COST = 64
MAX_MEMORY_COST = 4 * 1024 * 1024  # KiB, 4 GiB
MAX_PARALLELISM = 64


@dataclass(frozen=True)
class KdfParams:
    """Parameters needed to re-derive a key; stored with every blob."""

    algorithm: str = PBKDF2_SHA256
    iterations: int = DEFAULT_ITERATIONS
    time_cost: int = 3
    memory_cost: int = 65536
    parallelism: int = 1
    key_length: int = KEY_SIZE

    @classmethod
    def argon2id(cls, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 1) -> "KdfParams":
        return cls(
            algorithm=ARGON2ID,
            iterations=0,
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
        )


class KdfProvider:
    """Turns a password and salt into a symmetric key."""

    algorithm = ""

    def derive(self, password: bytes, salt: bytes, params: KdfParams) -> bytes:
        raise NotImplementedError


class Pbkdf2Provider(KdfProvider):
    algorithm = PBKDF2_SHA256

    def derive(self, password: bytes, salt: bytes, params: KdfParams) -> bytes:
        if params.iterations < 1:
            raise ValidationError("PBKDF2 iteration count must be positive")
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=params.key_length,
            salt=salt,
            iterations=params.iterations,
        )
        return kdf.derive(password)


class Argon2idProvider(KdfProvider):
    algorithm = ARGON2ID

    def derive(self, password: bytes, salt: bytes, params: KdfParams) -> bytes:
        try:
            return hash_secret_raw(
                secret=password,
                salt=salt,
                time_cost=params.time_cost,
                memory_cost=params.memory_cost,
                parallelism=params.parallelism,
                hash_len=params.key_length,
                type=Type.ID,
            )
        except HashingError as e:
            raise ValidationError(f"Invalid Argon2id parameters: {e}") from e


_PROVIDERS: Dict[str, KdfProvider] = {
    PBKDF2_SHA256: Pbkdf2Provider(),
    ARGON2ID: Argon2idProvider(),
}


def provider_for(params: KdfParams) -> KdfProvider:
    try:
        return _PROVIDERS[params.algorithm]
    except KeyError:
        raise ValidationError(f"Unsupported key derivation algorithm: {params.algorithm!r}") from None


def generate_salt(rng: Optional[RandomSource] = None) -> bytes:
    """Return a fresh 32-byte salt from a cryptographically secure source."""
    return random_bytes(SALT_SIZE, rng)


def check_kdf_params(params: KdfParams) -> KdfParams:
    """
    Reject work factors outside the supported range.

    Params are read back from blobs and containers; anything outside these
    bounds is a ValidationError, never a library error or a runaway derive.
    """
    provider_for(params)
    if params.key_length != KEY_SIZE:
        raise ValidationError(f"Derived key length must be {KEY_SIZE} bytes")
    if params.algorithm == PBKDF2_SHA256:
        if not 1 <= params.iterations <= MAX_ITERATIONS:
            raise ValidationError(
                f"PBKDF2 iteration count must be between 1 and {MAX_ITERATIONS}, got {params.iterations}"
            )
    elif params.algorithm == ARGON2ID:
        if not 1 <= params.time_cost <= MAX_TIME_COST:
            raise ValidationError(f"Argon2id time cost must be between 1 and {MAX_TIME_COST}")
        if not 1 <= params.parallelism <= MAX_PARALLELISM:
            raise ValidationError(f"Argon2id parallelism must be between 1 and {MAX_PARALLELISM}")
        if not 8 * params.parallelism <= params.memory_cost <= MAX_MEMORY_COST:
            raise ValidationError(
                f"Argon2id memory cost must be between {8 * params.parallelism} and {MAX_MEMORY_COST} KiB"
            )
    return params


def derive_key(
    password: bytes | str,
    salt: bytes,
    params: Optional[KdfParams] = None,
) -> bytes:
    """
    Derive a 256-bit key from a password and a 32-byte salt.

    The same password, salt and params always yield the same key. A wrong
    password is not detected here; it simply produces a key that fails
    authentication later. Errors are limited to a malformed password type,
    salt or params.
    """
    if isinstance(password, str):
        password = password.encode("utf-8")
    if not isinstance(password, (bytes, bytearray)):
        raise ValidationError("Password must be text or bytes")
    if not isinstance(salt, (bytes, bytearray)) or len(salt) != SALT_SIZE:
        raise ValidationError(f"Salt must be exactly {SALT_SIZE} bytes")

    params = check_kdf_params(params or KdfParams())
    return provider_for(params).derive(bytes(password), bytes(salt), params)


def kdf_params_to_dict(params: KdfParams) -> Dict:
    if params.algorithm == ARGON2ID:
        return {
            "algo": ARGON2ID,
            "time": params.time_cost,
            "memory": params.memory_cost,
            "parallelism": params.parallelism,
            "key_length": params.key_length,
        }
    return {
        "algo": params.algorithm,
        "iterations": params.iterations,
        "key_length": params.key_length,
    }


def kdf_params_from_dict(data: Dict) -> KdfParams:
    if not isinstance(data, dict):
        raise ValidationError("Malformed key derivation parameters: expected an object")
    try:
        algo = data["algo"]
        key_length = int(data.get("key_length", KEY_SIZE))
        if algo == ARGON2ID:
            params = KdfParams(
                algorithm=ARGON2ID,
                iterations=0,
                time_cost=int(data["time"]),
                memory_cost=int(data["memory"]),
                parallelism=int(data["parallelism"]),
                key_length=key_length,
            )
        else:
            params = KdfParams(algorithm=algo, iterations=int(data["iterations"]), key_length=key_length)
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Malformed key derivation parameters: {e}") from e
    return check_kdf_params(params)
