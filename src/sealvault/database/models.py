"""ORM-style helpers for the encrypted_files table."""

import json
import sqlite3
import uuid
from typing import List, Optional

from ..core.exceptions import StorageError
from ..core.models import DEFAULT_MIME_TYPE, BlobRecord, SealedBlob, parse_timestamp
from ..security.kdf import kdf_params_from_dict, kdf_params_to_dict


_INSERT = """
    INSERT INTO encrypted_files (
        id, filename, file_size, mime_type, checksum,
        encrypted_data, auth_tag, iv, salt, kdf_params,
        format_version, created_at
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


def blob_to_params(blob_id, blob):
    """Flatten a SealedBlob into the INSERT parameter tuple."""
    return (
        blob_id,
        blob.filename,
        blob.original_size,
        blob.mime_type,
        blob.checksum,
        blob.ciphertext,
        blob.auth_tag,
        blob.nonce,
        blob.salt,
        json.dumps(kdf_params_to_dict(blob.kdf)),
        blob.format_version,
        blob.created_at.isoformat(timespec="microseconds"),
    )


def row_to_blob(row) -> SealedBlob:
    """Rebuild a SealedBlob from a full encrypted_files row."""
    try:
        kdf_record = json.loads(row["kdf_params"])
    except (TypeError, ValueError) as e:
        raise StorageError(f"Corrupt kdf_params for encrypted file {row['id']}: {e}") from e
    return SealedBlob(
        ciphertext=bytes(row["encrypted_data"]),
        auth_tag=bytes(row["auth_tag"]),
        nonce=bytes(row["iv"]),
        salt=bytes(row["salt"]),
        filename=row["filename"],
        original_size=row["file_size"],
        checksum=row["checksum"],
        created_at=parse_timestamp(row["created_at"]),
        kdf=kdf_params_from_dict(kdf_record),
        mime_type=row["mime_type"] or DEFAULT_MIME_TYPE,
        format_version=row["format_version"],
    )


def row_to_record(row) -> BlobRecord:
    """Rebuild the listing view from a metadata-only row."""
    return BlobRecord(
        blob_id=row["id"],
        filename=row["filename"],
        size=row["file_size"],
        checksum=row["checksum"],
        created_at=parse_timestamp(row["created_at"]),
        mime_type=row["mime_type"] or DEFAULT_MIME_TYPE,
    )


class EncryptedFileModel:
    """DB model for sealed blobs."""

    __slots__ = ("db",)

    def __init__(self, db):
        """Initialize with a DatabaseConnection."""
        self.db = db

    def create(self, blob: SealedBlob, blob_id: Optional[str] = None) -> str:
        """Insert a blob and return its id."""
        blob_id = blob_id or str(uuid.uuid4())
        self.db.execute(_INSERT, blob_to_params(blob_id, blob))
        return blob_id

    def create_in(self, cursor, blob: SealedBlob) -> str:
        """Insert a blob inside an open transaction cursor."""
        blob_id = str(uuid.uuid4())
        try:
            cursor.execute(_INSERT, blob_to_params(blob_id, blob))
        except sqlite3.Error as e:
            raise StorageError(f"Database error: {e}") from e
        return blob_id

    def get(self, blob_id) -> Optional[SealedBlob]:
        """Get a full blob by ID, or None."""
        row = self.db.fetch_one("SELECT * FROM encrypted_files WHERE id = ?", (blob_id,))
        return row_to_blob(row) if row else None

    def get_record(self, blob_id) -> Optional[BlobRecord]:
        """Get the metadata of a blob by ID, or None."""
        row = self.db.fetch_one(
            "SELECT id, filename, file_size, mime_type, checksum, created_at "
            "FROM encrypted_files WHERE id = ?",
            (blob_id,),
        )
        return row_to_record(row) if row else None

    def list_all(self) -> List[BlobRecord]:
        """List metadata for all blobs, newest first."""
        rows = self.db.fetch_all(
            "SELECT id, filename, file_size, mime_type, checksum, created_at "
            "FROM encrypted_files ORDER BY created_at DESC"
        )
        return [row_to_record(row) for row in rows]

    def delete(self, blob_id) -> bool:
        """Delete a blob by ID; True if a row was removed."""
        return self.db.execute("DELETE FROM encrypted_files WHERE id = ?", (blob_id,)) > 0

    def delete_in(self, cursor, blob_id) -> bool:
        try:
            cursor.execute("DELETE FROM encrypted_files WHERE id = ?", (blob_id,))
        except sqlite3.Error as e:
            raise StorageError(f"Database error: {e}") from e
        return cursor.rowcount > 0

    def clear(self) -> int:
        """Delete every blob; return how many were removed."""
        return self.db.execute("DELETE FROM encrypted_files")

    def count(self) -> int:
        row = self.db.fetch_one("SELECT COUNT(*) AS n FROM encrypted_files")
        return row["n"] if row else 0
