"""Tests for encrypt_file / decrypt_file orchestration."""

import dataclasses
import os
from concurrent.futures import ThreadPoolExecutor

import pytest

from sealvault.core import engine as engine_mod
from sealvault.core.engine import SealEngine
from sealvault.core.exceptions import (
    AuthenticationError,
    IntegrityCheckFailedError,
    ResourceError,
    ValidationError,
)
from sealvault.core.hashing import checksum
from sealvault.core.models import DecryptedFile, SealedBlob
from sealvault.security.cipher import AesGcmProvider
from sealvault.security.entropy import RandomSource
from sealvault.security.kdf import KdfParams


FAST = KdfParams(iterations=1000)


@pytest.fixture
def engine():
    """Engine with a cheap work factor; the default is covered separately."""
    return SealEngine(kdf_params=FAST)


def _flip(data: bytes, bit: int = 0) -> bytes:
    buf = bytearray(data)
    buf[bit // 8] ^= 1 << (bit % 8)
    return bytes(buf)


@pytest.mark.parametrize(
    "plaintext",
    [b"", b"a", b"hello world", os.urandom(4096), bytes(range(256)) * 3],
)
def test_roundtrip(engine, plaintext):
    """Decrypting with the same password restores bytes and filename."""
    blob = engine.encrypt_file(plaintext, "file.bin", "pw")
    out = engine.decrypt_file(blob, "pw")
    assert out == DecryptedFile(data=plaintext, filename="file.bin")


def test_blob_fields(engine):
    """The blob carries sizes, checksum and metadata as specified."""
    data = b"some plaintext"
    blob = engine.encrypt_file(data, "doc.txt", "pw")
    assert len(blob.ciphertext) == len(data)
    assert len(blob.auth_tag) == 16
    assert len(blob.nonce) == 12
    assert len(blob.salt) == 32
    assert blob.original_size == len(data)
    assert blob.checksum == checksum(data)
    assert blob.filename == "doc.txt"
    assert blob.created_at.tzinfo is not None
    assert blob.kdf == FAST
    assert blob.ciphertext != data


def test_wrong_password_fails_closed(engine):
    """A different password always raises AuthenticationError."""
    blob = engine.encrypt_file(b"secret", "s.txt", "password-1")
    for wrong in ("password-2", "", "Password-1", "password-1 "):
        with pytest.raises(AuthenticationError, match="wrong password or corrupted data"):
            engine.decrypt_file(blob, wrong)


@pytest.mark.parametrize("field", ["ciphertext", "auth_tag", "nonce"])
def test_tamper_detection(engine, field):
    """Flipping a bit in ciphertext, tag or nonce is an authentication failure."""
    blob = engine.encrypt_file(b"tamper me please", "t.txt", "pw")
    for bit in (0, 7, 42, 95):
        tampered = dataclasses.replace(blob, **{field: _flip(getattr(blob, field), bit)})
        with pytest.raises(AuthenticationError):
            engine.decrypt_file(tampered, "pw")


def test_salt_tamper_fails_authentication(engine):
    """A different salt derives a different key."""
    blob = engine.encrypt_file(b"data", "t.txt", "pw")
    with pytest.raises(AuthenticationError):
        engine.decrypt_file(dataclasses.replace(blob, salt=_flip(blob.salt)), "pw")


def test_fresh_salt_nonce_ciphertext(engine):
    """Encrypting the same input twice gives unrelated blobs."""
    a = engine.encrypt_file(b"same input", "x.txt", "pw")
    b = engine.encrypt_file(b"same input", "x.txt", "pw")
    assert a.nonce != b.nonce
    assert a.salt != b.salt
    assert a.ciphertext != b.ciphertext
    assert a.checksum == b.checksum


def test_checksum_mismatch_is_integrity_failure(engine):
    """A tag that verifies but a checksum that does not is IntegrityCheckFailedError."""
    blob = engine.encrypt_file(b"payload", "p.txt", "pw")
    forged = dataclasses.replace(blob, checksum=checksum(b"something else"))
    with pytest.raises(IntegrityCheckFailedError):
        engine.decrypt_file(forged, "pw")


def test_size_mismatch_is_integrity_failure(engine):
    blob = engine.encrypt_file(b"payload", "p.txt", "pw")
    with pytest.raises(IntegrityCheckFailedError, match="size"):
        engine.decrypt_file(dataclasses.replace(blob, original_size=99), "pw")


def test_integrity_and_authentication_are_distinct():
    """The two failure types do not share a hierarchy branch."""
    assert not issubclass(IntegrityCheckFailedError, AuthenticationError)
    assert not issubclass(AuthenticationError, IntegrityCheckFailedError)


def test_unsupported_format_version(engine):
    blob = engine.encrypt_file(b"x", "x", "pw")
    with pytest.raises(ValidationError, match="format version"):
        engine.decrypt_file(dataclasses.replace(blob, format_version=2), "pw")


def test_rejects_non_bytes(engine):
    with pytest.raises(ValidationError):
        engine.encrypt_file("text, not bytes", "a.txt", "pw")


def test_failed_seal_returns_nothing():
    """A failure mid-way raises; no blob is produced."""

    class BrokenAead(AesGcmProvider):
        def seal(self, *args, **kwargs):
            raise RuntimeError("boom")

    eng = SealEngine(kdf_params=FAST, aead=BrokenAead())
    with pytest.raises(RuntimeError):
        eng.encrypt_file(b"data", "a", "pw")


def test_injected_random_source_is_used():
    """Salt and nonce come from the injected source."""

    class CountingSource(RandomSource):
        def __init__(self):
            self.requests = []

        def token_bytes(self, n):
            self.requests.append(n)
            return os.urandom(n)

    rng = CountingSource()
    SealEngine(kdf_params=FAST, rng=rng).encrypt_file(b"data", "a", "pw")
    assert rng.requests == [32, 12]


def test_argon2id_blob_roundtrip():
    """Blobs sealed with Argon2id record it and decrypt with it."""
    params = KdfParams.argon2id(time_cost=1, memory_cost=8, parallelism=1)
    blob = SealEngine(kdf_params=params).encrypt_file(b"argon", "a.txt", "pw")
    assert blob.kdf == params
    # a default engine still opens it: params travel with the blob
    assert SealEngine(kdf_params=FAST).decrypt_file(blob, "pw").data == b"argon"


def test_reencrypt_rotates_everything(engine):
    """Password rotation yields a new blob with fresh salt and nonce."""
    blob = engine.encrypt_file(b"rotate", "r.txt", "old", mime_type="text/plain")
    new = engine.reencrypt(blob, "old", "new")
    assert new.salt != blob.salt
    assert new.nonce != blob.nonce
    assert new.filename == "r.txt"
    assert new.mime_type == "text/plain"
    assert new.checksum == blob.checksum
    assert engine.decrypt_file(new, "new").data == b"rotate"
    with pytest.raises(AuthenticationError):
        engine.decrypt_file(new, "old")


def test_reencrypt_wrong_old_password(engine):
    blob = engine.encrypt_file(b"rotate", "r.txt", "old")
    with pytest.raises(AuthenticationError):
        engine.reencrypt(blob, "nope", "new")


def test_encrypt_path_and_decrypt_to_path(engine, tmp_path):
    """Files on disk round-trip; a directory destination keeps the original name."""
    src = tmp_path / "photo.jpg"
    src.write_bytes(b"\xff\xd8\xff" + os.urandom(100))
    blob = engine.encrypt_path(src, "pw")
    assert blob.filename == "photo.jpg"

    out_dir = tmp_path / "out"
    out_dir.mkdir()
    written = engine.decrypt_to_path(blob, "pw", out_dir)
    assert written == out_dir / "photo.jpg"
    assert written.read_bytes() == src.read_bytes()


def test_decrypt_to_path_keeps_existing_file(engine, tmp_path):
    """An existing destination is left alone unless overwrite is requested."""
    blob = engine.encrypt_file(b"new contents", "notes.txt", "pw")
    existing = tmp_path / "notes.txt"
    existing.write_bytes(b"old contents")

    with pytest.raises(ResourceError, match="Refusing to overwrite"):
        engine.decrypt_to_path(blob, "pw", tmp_path)
    assert existing.read_bytes() == b"old contents"

    engine.decrypt_to_path(blob, "pw", tmp_path, overwrite=True)
    assert existing.read_bytes() == b"new contents"


def test_decrypt_to_path_writes_nothing_on_failure(engine, tmp_path):
    blob = engine.encrypt_file(b"data", "d.txt", "pw")
    target = tmp_path / "d.txt"
    with pytest.raises(AuthenticationError):
        engine.decrypt_to_path(blob, "bad", target)
    assert not target.exists()
    assert list(tmp_path.iterdir()) == []


def test_encrypt_path_missing_file(engine, tmp_path):
    """Read errors surface as ResourceError."""
    with pytest.raises(ResourceError):
        engine.encrypt_path(tmp_path / "missing.bin", "pw")


def test_concurrent_calls_share_nothing(engine):
    """Parallel encrypt/decrypt calls on one engine do not interfere."""
    payloads = [os.urandom(512) for _ in range(8)]

    def work(i):
        blob = engine.encrypt_file(payloads[i], f"f{i}", f"pw{i}")
        return engine.decrypt_file(blob, f"pw{i}")

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(work, range(8)))
    assert [r.data for r in results] == payloads
    assert [r.filename for r in results] == [f"f{i}" for i in range(8)]


def test_empty_file_with_default_params():
    """A 0-byte file sealed with the default work factor decrypts to 0 bytes."""
    eng = SealEngine()
    blob = eng.encrypt_file(b"", "empty.txt", "correcthorse1")
    assert blob.kdf.iterations == 100_000
    out = eng.decrypt_file(blob, "correcthorse1")
    assert out.data == b""
    assert out.filename == "empty.txt"


def test_five_megabyte_file_with_altered_password():
    """A 5 MB file with a one-character-altered password fails authentication."""
    eng = SealEngine()
    data = os.urandom(5 * 1024 * 1024)
    blob = eng.encrypt_file(data, "big.bin", "correcthorse1")
    assert blob.original_size == len(data)
    with pytest.raises(AuthenticationError):
        eng.decrypt_file(blob, "correcthorse2")


def test_module_level_helpers():
    """encrypt_file/decrypt_file delegate to the default engine."""
    blob = engine_mod.encrypt_file(b"module", "m.txt", "pw")
    assert isinstance(blob, SealedBlob)
    assert engine_mod.decrypt_file(blob, "pw").data == b"module"
    assert engine_mod.get_engine() is engine_mod.get_engine()


def test_decrypt_rejects_out_of_range_kdf_params(engine):
    """A blob asking for impossible Argon2 costs fails validation, not in argon2."""
    blob = engine.encrypt_file(b"payload", "a.bin", "pw")
    bad = dataclasses.replace(blob, kdf=KdfParams.argon2id(time_cost=0, memory_cost=8, parallelism=1))
    with pytest.raises(ValidationError):
        engine.decrypt_file(bad, "pw")
