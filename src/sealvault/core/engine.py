"""
Encrypt/decrypt orchestration for whole files.

Encrypt: salt -> key -> checksum plaintext -> nonce -> seal -> SealedBlob.
Decrypt: key from stored salt -> open -> checksum and size check -> DecryptedFile.

Each call is independent. An engine holds only its providers, so one engine
can serve concurrent calls from several threads. Key derivation is slow on
purpose; run it off any UI thread.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .codec import write_bytes_atomic
from .exceptions import AuthenticationError, IntegrityCheckFailedError, ResourceError, ValidationError
from .hashing import checksum, verify_checksum
from .models import DEFAULT_MIME_TYPE, FORMAT_VERSION, DecryptedFile, SealedBlob, utcnow
from ..security.cipher import AeadProvider, default_aead, generate_nonce
from ..security.entropy import RandomSource, default_random_source
from ..security.kdf import KdfParams, derive_key, generate_salt


logger = logging.getLogger(__name__)


class SealEngine:
    """Seals files into :class:`SealedBlob` instances and opens them again."""

    def __init__(
        self,
        kdf_params: Optional[KdfParams] = None,
        aead: Optional[AeadProvider] = None,
        rng: Optional[RandomSource] = None,
    ):
        self.kdf_params = kdf_params or KdfParams()
        self.aead = aead or default_aead()
        self.rng = rng or default_random_source()

    def encrypt_file(
        self,
        data: bytes,
        filename: str,
        password: str,
        mime_type: str = DEFAULT_MIME_TYPE,
    ) -> SealedBlob:
        """
        Encrypt ``data`` under a key derived from ``password``.

        A fresh salt and a fresh nonce are drawn on every call, so sealing the
        same file twice with the same password gives two unrelated blobs.
        Nothing is returned unless every step succeeds.
        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise ValidationError("File contents must be bytes")
        data = bytes(data)
        logger.info("Encrypting %s (%d bytes)", filename, len(data))

        salt = generate_salt(self.rng)
        key = derive_key(password, salt, self.kdf_params)
        digest = checksum(data)
        nonce = generate_nonce(self.rng)
        payload = self.aead.seal(data, key, nonce)

        blob = SealedBlob(
            ciphertext=payload.ciphertext,
            auth_tag=payload.tag,
            nonce=nonce,
            salt=salt,
            filename=filename,
            original_size=len(data),
            checksum=digest,
            created_at=utcnow(),
            kdf=self.kdf_params,
            mime_type=mime_type or DEFAULT_MIME_TYPE,
        )
        logger.debug("Sealed %s: ciphertext=%d bytes", filename, len(blob.ciphertext))
        return blob

    def decrypt_file(self, blob: SealedBlob, password: str) -> DecryptedFile:
        """
        Decrypt ``blob`` with ``password``.

        Raises AuthenticationError for a wrong password or any tampering of the
        ciphertext, tag or nonce, without saying which. Raises
        IntegrityCheckFailedError if the tag verifies but the recovered bytes
        do not match the stored checksum or size.
        """
        if blob.format_version != FORMAT_VERSION:
            raise ValidationError(f"Unsupported format version {blob.format_version}")
        logger.info("Decrypting %s", blob.filename)

        key = derive_key(password, blob.salt, blob.kdf)
        try:
            data = self.aead.open(blob.payload, key, blob.nonce)
        except AuthenticationError:
            logger.warning("Decryption of %s failed authentication", blob.filename)
            raise

        if not verify_checksum(data, blob.checksum):
            raise IntegrityCheckFailedError(
                f"File integrity verification failed for {blob.filename}"
            )
        if len(data) != blob.original_size:
            raise IntegrityCheckFailedError(
                f"Recovered size {len(data)} does not match recorded size {blob.original_size}"
            )

        logger.info("Decrypted %s and verified integrity", blob.filename)
        return DecryptedFile(data=data, filename=blob.filename)

    def reencrypt(self, blob: SealedBlob, old_password: str, new_password: str) -> SealedBlob:
        """Password rotation: a new blob with fresh salt and nonce; ``blob`` is untouched."""
        recovered = self.decrypt_file(blob, old_password)
        return self.encrypt_file(
            recovered.data, recovered.filename, new_password, mime_type=blob.mime_type
        )

    def encrypt_path(self, path: str | Path, password: str) -> SealedBlob:
        src = Path(path).expanduser()
        try:
            with open(src, "rb") as f:
                data = f.read()
        except OSError as e:
            raise ResourceError(f"Failed to read {src}: {e}") from e
        return self.encrypt_file(data, src.name, password)

    def decrypt_to_path(
        self,
        blob: SealedBlob,
        password: str,
        destination: str | Path,
        overwrite: bool = False,
    ) -> Path:
        """
        Decrypt and write the plaintext to ``destination``.

        If ``destination`` is an existing directory the original filename is
        used inside it. The file is only created after verification succeeds,
        and an existing file is only replaced when ``overwrite`` is set.
        """
        recovered = self.decrypt_file(blob, password)
        target = Path(destination).expanduser()
        if target.is_dir():
            target = target / Path(recovered.filename).name
        if target.exists() and not overwrite:
            raise ResourceError(f"Refusing to overwrite existing file {target}")
        return write_bytes_atomic(recovered.data, target)


# module-level default engine
_default_engine = SealEngine()


def get_engine() -> SealEngine:
    return _default_engine


def encrypt_file(data: bytes, filename: str, password: str) -> SealedBlob:
    return get_engine().encrypt_file(data, filename, password)


def decrypt_file(blob: SealedBlob, password: str) -> DecryptedFile:
    return get_engine().decrypt_file(blob, password)
