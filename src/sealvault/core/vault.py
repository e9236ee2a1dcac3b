"""
Vault service: sealed blobs persisted in the local SQLite store.

The engine never touches storage; this module is the seam between the two.
Passwords, keys and plaintext are never logged.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from .codec import read_blob, write_blob
from .engine import SealEngine, get_engine
from .exceptions import BlobNotFoundError
from .models import BlobRecord, DecryptedFile, SealedBlob
from ..database.connection import DatabaseConnection
from ..database.models import EncryptedFileModel


logger = logging.getLogger(__name__)


class Vault:
    """High-level store/retrieve operations over the engine and database."""

    def __init__(self, db: DatabaseConnection, engine: Optional[SealEngine] = None):
        self.db = db
        self.db.initialize()
        self.engine = engine or get_engine()
        self.files = EncryptedFileModel(self.db)

    def _require(self, blob_id: str) -> SealedBlob:
        blob = self.files.get(blob_id)
        if blob is None:
            raise BlobNotFoundError(f"No encrypted file with id '{blob_id}'")
        return blob

    def store(self, data: bytes, filename: str, password: str) -> str:
        """Encrypt ``data`` and persist the blob; return the new id."""
        blob = self.engine.encrypt_file(data, filename, password)
        blob_id = self.files.create(blob)
        logger.info("Stored %s as %s", filename, blob_id)
        return blob_id

    def store_path(self, path: str | Path, password: str) -> str:
        blob = self.engine.encrypt_path(path, password)
        blob_id = self.files.create(blob)
        logger.info("Stored %s as %s", blob.filename, blob_id)
        return blob_id

    def get_blob(self, blob_id: str) -> SealedBlob:
        return self._require(blob_id)

    def retrieve(self, blob_id: str, password: str) -> DecryptedFile:
        return self.engine.decrypt_file(self._require(blob_id), password)

    def retrieve_to_path(
        self, blob_id: str, password: str, destination: str | Path, overwrite: bool = False
    ) -> Path:
        return self.engine.decrypt_to_path(self._require(blob_id), password, destination, overwrite)

    def info(self, blob_id: str) -> BlobRecord:
        record = self.files.get_record(blob_id)
        if record is None:
            raise BlobNotFoundError(f"No encrypted file with id '{blob_id}'")
        return record

    def list_files(self) -> List[BlobRecord]:
        return self.files.list_all()

    def delete(self, blob_id: str) -> None:
        if not self.files.delete(blob_id):
            raise BlobNotFoundError(f"No encrypted file with id '{blob_id}'")
        logger.info("Deleted %s", blob_id)

    def clear(self) -> int:
        removed = self.files.clear()
        logger.info("Cleared %d encrypted files", removed)
        return removed

    def rotate_password(self, blob_id: str, old_password: str, new_password: str) -> str:
        """
        Re-encrypt a stored blob under a new password.

        The replacement gets a new id, a fresh salt and a fresh nonce. Insert
        and delete happen in one transaction, so a failure leaves the old blob.
        """
        old = self._require(blob_id)
        new = self.engine.reencrypt(old, old_password, new_password)
        with self.db.get_transaction_context() as cursor:
            new_id = self.files.create_in(cursor, new)
            if not self.files.delete_in(cursor, blob_id):
                raise BlobNotFoundError(f"No encrypted file with id '{blob_id}'")
        logger.info("Rotated password for %s -> %s", blob_id, new_id)
        return new_id

    def export(self, blob_id: str, path: str | Path) -> Path:
        """Write a stored blob to a standalone container file."""
        return write_blob(self._require(blob_id), path)

    def import_(self, path: str | Path) -> str:
        """Persist a blob read from a container file; no password needed."""
        blob = read_blob(path)
        blob_id = self.files.create(blob)
        logger.info("Imported %s as %s", blob.filename, blob_id)
        return blob_id
