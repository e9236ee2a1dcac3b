"""Unit tests covering ``DatabaseConnection`` and ``EncryptedFileModel``."""

import sqlite3
import time
from unittest.mock import MagicMock

import pytest

from sealvault.core.engine import SealEngine
from sealvault.core.exceptions import StorageError
from sealvault.database.connection import DatabaseConnection, TransactionContext
from sealvault.database.models import EncryptedFileModel
from sealvault.database.schema import SCHEMA_VERSION, get_drop_schema
from sealvault.security.kdf import KdfParams


@pytest.fixture()
def temp_db(tmp_path):
    """Provide a temporary, initialized ``DatabaseConnection`` instance."""
    db = DatabaseConnection(tmp_path / "nested" / "sealvault.db")
    db.initialize()
    yield db
    db.close()


@pytest.fixture(scope="module")
def engine():
    return SealEngine(kdf_params=KdfParams(iterations=1000))


def test_initialize_creates_schema(temp_db):
    """The file, table and schema version exist after init."""
    assert temp_db.db_path.exists()
    assert temp_db.get_version() == SCHEMA_VERSION
    tables = {
        r["name"]
        for r in temp_db.fetch_all("SELECT name FROM sqlite_master WHERE type = 'table'")
    }
    assert {"encrypted_files", "schema_version"} <= tables


def test_initialize_is_idempotent(temp_db):
    temp_db.initialize()
    assert temp_db.get_version() == SCHEMA_VERSION


def test_get_version_without_schema(tmp_path):
    """A database without the version table reports version 0."""
    db = DatabaseConnection(tmp_path / "empty.db")
    assert db.get_version() == 0
    db.close()


def test_sql_errors_become_storage_errors(temp_db):
    with pytest.raises(StorageError):
        temp_db.fetch_all("SELECT * FROM no_such_table")
    with pytest.raises(StorageError):
        temp_db.execute("INSERT INTO no_such_table VALUES (1)")


def test_create_and_get_roundtrip(temp_db, engine):
    """Stored blobs come back byte-exact."""
    model = EncryptedFileModel(temp_db)
    blob = engine.encrypt_file(b"\x00\x01binary\xff", "bin.dat", "pw")
    blob_id = model.create(blob)
    assert model.get(blob_id) == blob
    assert engine.decrypt_file(model.get(blob_id), "pw").data == b"\x00\x01binary\xff"


def test_get_missing_returns_none(temp_db):
    model = EncryptedFileModel(temp_db)
    assert model.get("missing") is None
    assert model.get_record("missing") is None


def test_list_all_newest_first(temp_db, engine):
    """Listing returns metadata only, most recent first."""
    model = EncryptedFileModel(temp_db)
    first = model.create(engine.encrypt_file(b"one", "one.txt", "pw"))
    time.sleep(0.01)
    second = model.create(engine.encrypt_file(b"two!", "two.txt", "pw"))
    records = model.list_all()
    assert [r.blob_id for r in records] == [second, first]
    assert records[0].filename == "two.txt"
    assert records[0].size == 4


def test_delete_and_clear(temp_db, engine):
    model = EncryptedFileModel(temp_db)
    ids = [model.create(engine.encrypt_file(b"x", f"{i}.txt", "pw")) for i in range(3)]
    assert model.count() == 3
    assert model.delete(ids[0]) is True
    assert model.delete(ids[0]) is False
    assert model.count() == 2
    assert model.clear() == 2
    assert model.count() == 0


def test_duplicate_id_is_storage_error(temp_db, engine):
    model = EncryptedFileModel(temp_db)
    blob = engine.encrypt_file(b"x", "x.txt", "pw")
    model.create(blob, blob_id="fixed")
    with pytest.raises(StorageError):
        model.create(blob, blob_id="fixed")


def test_transaction_rolls_back(temp_db, engine):
    """Work done inside a failed transaction is undone."""
    model = EncryptedFileModel(temp_db)
    blob = engine.encrypt_file(b"x", "x.txt", "pw")
    with pytest.raises(RuntimeError):
        with temp_db.get_transaction_context() as cursor:
            model.create_in(cursor, blob)
            raise RuntimeError("abort")
    assert model.count() == 0


def test_drop_schema(temp_db):
    for statement in get_drop_schema():
        temp_db.execute(statement)
    assert temp_db.get_version() == 0


def test_commit_failure_becomes_storage_error():
    """A failing COMMIT surfaces as StorageError and the cursor is closed."""
    conn = MagicMock()
    conn.commit.side_effect = sqlite3.OperationalError("database is locked")
    with pytest.raises(StorageError, match="commit"):
        with TransactionContext(conn):
            pass
    conn.cursor.return_value.close.assert_called_once()


def test_corrupt_kdf_params_is_storage_error(temp_db, engine):
    """A row whose kdf_params column is not JSON is reported as storage corruption."""
    model = EncryptedFileModel(temp_db)
    blob_id = model.create(engine.encrypt_file(b"x", "x.bin", "pw"))
    temp_db.execute("UPDATE encrypted_files SET kdf_params = ? WHERE id = ?", ("{not json", blob_id))
    with pytest.raises(StorageError, match="kdf_params"):
        model.get(blob_id)
