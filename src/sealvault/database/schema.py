"""SQLite schema definitions for the SealVault blob store."""

# SQL schema definitions
SCHEMA_VERSION = 1

CREATE_TABLES = [
    # Encrypted files: one row per sealed blob. Filename, size and checksum are
    # plaintext metadata; everything else needs the password to be useful.
    """
    CREATE TABLE IF NOT EXISTS encrypted_files (
        id TEXT PRIMARY KEY,
        filename TEXT NOT NULL,
        file_size INTEGER NOT NULL,
        mime_type TEXT,
        checksum TEXT NOT NULL,
        encrypted_data BLOB NOT NULL,
        auth_tag BLOB NOT NULL,
        iv BLOB NOT NULL,
        salt BLOB NOT NULL,
        kdf_params TEXT NOT NULL,
        format_version INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # Schema version table
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]

# Index definitions for listing
CREATE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_encrypted_files_filename ON encrypted_files(filename)",
    "CREATE INDEX IF NOT EXISTS idx_encrypted_files_created_at ON encrypted_files(created_at)",
]


def get_init_schema():
    """
    Get complete schema initialization SQL

    Returns:
        List of SQL statements to execute
    """
    statements = []
    statements.extend(CREATE_TABLES)
    statements.extend(CREATE_INDEXES)
    statements.append(
        f"INSERT OR IGNORE INTO schema_version (version) VALUES ({SCHEMA_VERSION})"
    )
    return statements


def get_drop_schema():
    """
    Get SQL statements to drop all tables for testing

    Returns:
        List of DROP TABLE statements
    """
    return [
        "DROP TABLE IF EXISTS encrypted_files",
        "DROP TABLE IF EXISTS schema_version",
    ]
