"""Single-file container for exporting a sealed blob.

Layout (binary, all big-endian):
- 4 bytes: magic b'SVLT'
- 1 byte: format version (1)
- 1 byte: alg_id (1 = AES-256-GCM)
- 4 bytes: len_header (unsigned int)
- N bytes: UTF-8 JSON header (filename, size, created_at, checksum, mime type, kdf params)
- 32 bytes: salt
- 12 bytes: nonce
- 16 bytes: auth tag
- remaining bytes: ciphertext, exactly original_size long

Salt, nonce and tag sit at fixed offsets after the header; the ciphertext is
whatever follows them, and its length is checked against the header.
"""

from __future__ import annotations

import json
import logging
import os
import struct
import tempfile
from pathlib import Path

from .exceptions import ResourceError, ValidationError
from .models import DEFAULT_MIME_TYPE, FORMAT_VERSION, SealedBlob, parse_timestamp
from ..security.cipher import ALG_ID_AESGCM, NONCE_SIZE, TAG_SIZE
from ..security.kdf import SALT_SIZE, kdf_params_from_dict, kdf_params_to_dict


logger = logging.getLogger(__name__)

MAGIC = b"SVLT"
FILE_SUFFIX = ".svlt"
_PREFIX = struct.Struct(">4sBBI")
MAX_HEADER_SIZE = 64 * 1024


def encode_blob(blob: SealedBlob) -> bytes:
    header = {
        "filename": blob.filename,
        "original_size": blob.original_size,
        "created_at": blob.created_at.isoformat(),
        "checksum": blob.checksum,
        "mime_type": blob.mime_type,
        "kdf": kdf_params_to_dict(blob.kdf),
    }
    raw_header = json.dumps(header, ensure_ascii=False, sort_keys=True).encode("utf-8")

    out = bytearray()
    out += _PREFIX.pack(MAGIC, blob.format_version, ALG_ID_AESGCM, len(raw_header))
    out += raw_header
    out += blob.salt
    out += blob.nonce
    out += blob.auth_tag
    out += blob.ciphertext
    return bytes(out)


def decode_blob(data: bytes) -> SealedBlob:
    if len(data) < _PREFIX.size:
        raise ValidationError("Invalid container (truncated prefix)")
    magic, version, alg, header_len = _PREFIX.unpack_from(data, 0)
    if magic != MAGIC:
        raise ValidationError("Invalid file format (magic mismatch)")
    if version != FORMAT_VERSION:
        raise ValidationError(f"Unsupported format version {version}")
    if alg != ALG_ID_AESGCM:
        raise ValidationError(f"Unsupported algorithm id {alg}")
    if header_len > MAX_HEADER_SIZE:
        raise ValidationError("Invalid container (header too large)")

    offset = _PREFIX.size
    fixed_end = offset + header_len + SALT_SIZE + NONCE_SIZE + TAG_SIZE
    if len(data) < fixed_end:
        raise ValidationError("Invalid container (truncated header)")

    try:
        header = json.loads(data[offset:offset + header_len].decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError("Invalid container (unreadable header)") from e
    if not isinstance(header, dict):
        raise ValidationError("Invalid container (header is not an object)")
    offset += header_len

    salt = data[offset:offset + SALT_SIZE]
    offset += SALT_SIZE
    nonce = data[offset:offset + NONCE_SIZE]
    offset += NONCE_SIZE
    tag = data[offset:offset + TAG_SIZE]
    offset += TAG_SIZE
    ciphertext = data[offset:]

    try:
        original_size = int(header["original_size"])
        if len(ciphertext) != original_size:
            raise ValidationError(
                f"Ciphertext length {len(ciphertext)} does not match recorded size {original_size}"
            )
        return SealedBlob(
            ciphertext=bytes(ciphertext),
            auth_tag=bytes(tag),
            nonce=bytes(nonce),
            salt=bytes(salt),
            filename=header["filename"],
            original_size=original_size,
            checksum=str(header["checksum"]).lower(),
            created_at=parse_timestamp(header["created_at"]),
            kdf=kdf_params_from_dict(header["kdf"]),
            mime_type=header.get("mime_type") or DEFAULT_MIME_TYPE,
            format_version=version,
        )
    except KeyError as e:
        raise ValidationError(f"Container header is missing field {e}") from e
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Malformed container header: {e}") from e


def write_bytes_atomic(data: bytes, path: str | Path) -> Path:
    """Write ``data`` to ``path`` through a temp file and rename."""
    destination = Path(path).expanduser()
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=destination.parent, prefix=".sealvault-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, destination)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise ResourceError(f"Failed to write {destination}: {e}") from e
    return destination


def write_blob(blob: SealedBlob, path: str | Path) -> Path:
    data = encode_blob(blob)
    destination = write_bytes_atomic(data, path)
    logger.debug("Wrote container %s (%d bytes)", destination, len(data))
    return destination


def read_blob(path: str | Path) -> SealedBlob:
    source = Path(path).expanduser()
    try:
        with open(source, "rb") as f:
            data = f.read()
    except OSError as e:
        raise ResourceError(f"Failed to read container {source}: {e}") from e
    return decode_blob(data)
