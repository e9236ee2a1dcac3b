"""
Data models for sealed blobs and decrypted files
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .exceptions import ValidationError
from .hashing import HEX_DIGEST_LENGTH
from ..security.cipher import NONCE_SIZE, TAG_SIZE, SealedPayload
from ..security.kdf import SALT_SIZE, KdfParams, kdf_params_from_dict, kdf_params_to_dict


FORMAT_VERSION = 1
DEFAULT_MIME_TYPE = "application/octet-stream"


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(value: str, name: str) -> bytes:
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, ValueError, AttributeError) as e:
        raise ValidationError(f"Field '{name}' is not valid base64") from e


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        ts = value
    else:
        try:
            ts = datetime.fromisoformat(str(value))
        except ValueError as e:
            raise ValidationError(f"Invalid created_at timestamp: {value!r}") from e
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SealedBlob:
    """
    One encrypted file at rest.

    The filename, size and checksum are stored in the clear. The checksum is a
    hash of the plaintext, so whoever holds the blob also holds a fingerprint
    of the file content.
    """

    ciphertext: bytes
    auth_tag: bytes
    nonce: bytes
    salt: bytes
    filename: str
    original_size: int
    checksum: str
    created_at: datetime = field(default_factory=utcnow)
    kdf: KdfParams = field(default_factory=KdfParams)
    mime_type: str = DEFAULT_MIME_TYPE
    format_version: int = FORMAT_VERSION

    def __post_init__(self):
        for name in ("ciphertext", "auth_tag", "nonce", "salt"):
            if not isinstance(getattr(self, name), (bytes, bytearray)):
                raise ValidationError(f"Field '{name}' must be bytes")
        if len(self.auth_tag) != TAG_SIZE:
            raise ValidationError(f"Authentication tag must be exactly {TAG_SIZE} bytes")
        if len(self.nonce) != NONCE_SIZE:
            raise ValidationError(f"Nonce must be exactly {NONCE_SIZE} bytes")
        if len(self.salt) != SALT_SIZE:
            raise ValidationError(f"Salt must be exactly {SALT_SIZE} bytes")
        if not isinstance(self.original_size, int) or self.original_size < 0:
            raise ValidationError("original_size must be a non-negative integer")
        if not isinstance(self.checksum, str) or len(self.checksum) != HEX_DIGEST_LENGTH:
            raise ValidationError(f"Checksum must be a {HEX_DIGEST_LENGTH}-character hex digest")
        try:
            bytes.fromhex(self.checksum)
        except ValueError as e:
            raise ValidationError("Checksum must be a hex digest") from e
        if not isinstance(self.filename, str):
            raise ValidationError("Filename must be text")

    @property
    def payload(self) -> SealedPayload:
        return SealedPayload(ciphertext=self.ciphertext, tag=self.auth_tag)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dict; binary fields are base64 encoded."""
        return {
            "format_version": self.format_version,
            "filename": self.filename,
            "original_size": self.original_size,
            "mime_type": self.mime_type,
            "created_at": self.created_at.isoformat(),
            "checksum": self.checksum,
            "kdf": kdf_params_to_dict(self.kdf),
            "salt": _b64(self.salt),
            "nonce": _b64(self.nonce),
            "auth_tag": _b64(self.auth_tag),
            "ciphertext": _b64(self.ciphertext),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SealedBlob":
        """Rebuild a blob from :meth:`to_dict` output."""
        try:
            return cls(
                ciphertext=_unb64(data["ciphertext"], "ciphertext"),
                auth_tag=_unb64(data["auth_tag"], "auth_tag"),
                nonce=_unb64(data["nonce"], "nonce"),
                salt=_unb64(data["salt"], "salt"),
                filename=data["filename"],
                original_size=int(data["original_size"]),
                checksum=str(data["checksum"]).lower(),
                created_at=parse_timestamp(data["created_at"]),
                kdf=kdf_params_from_dict(data["kdf"]),
                mime_type=data.get("mime_type") or DEFAULT_MIME_TYPE,
                format_version=int(data.get("format_version", FORMAT_VERSION)),
            )
        except KeyError as e:
            raise ValidationError(f"Sealed blob is missing field {e}") from e
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Malformed sealed blob: {e}") from e

    def __repr__(self):
        return (
            f"SealedBlob(filename={self.filename!r}, original_size={self.original_size}, "
            f"checksum={self.checksum[:12]!r}...)"
        )


@dataclass(frozen=True)
class DecryptedFile:
    """Recovered plaintext with its original filename restored."""

    data: bytes
    filename: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class BlobRecord:
    """Listing view of a stored blob; carries no key material or ciphertext."""

    blob_id: str
    filename: str
    size: int
    checksum: str
    created_at: Optional[datetime] = None
    mime_type: str = DEFAULT_MIME_TYPE
    encrypted: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.blob_id,
            "filename": self.filename,
            "size": self.size,
            "checksum": self.checksum,
            "upload_date": self.created_at.isoformat() if self.created_at else None,
            "mime_type": self.mime_type,
            "encrypted": self.encrypted,
        }
