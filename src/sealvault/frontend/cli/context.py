"""Small helper to build a SealVault app context for the CLI."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import os

from sealvault.core.engine import SealEngine
from sealvault.core.exceptions import ValidationError
from sealvault.core.vault import Vault
from sealvault.database.connection import DatabaseConnection
from sealvault.security.kdf import ARGON2ID, PBKDF2_SHA256, KdfParams


ENV_HOME = "SEALVAULT_HOME"
ENV_DB = "SEALVAULT_DB"
ENV_KDF = "SEALVAULT_KDF"
ENV_PASSWORD = "SEALVAULT_PASSWORD"
ENV_NEW_PASSWORD = "SEALVAULT_NEW_PASSWORD"


@dataclass
class AppContext:
    """Container for runtime objects the CLI needs."""

    engine: SealEngine
    db_path: Path
    _vault: Optional[Vault] = None

    @property
    def vault(self) -> Vault:
        # standalone encrypt/decrypt never opens the database
        if self._vault is None:
            self._vault = Vault(DatabaseConnection(str(self.db_path)), engine=self.engine)
        return self._vault


def kdf_params_from_env(value: Optional[str]) -> KdfParams:
    if not value or value == PBKDF2_SHA256:
        return KdfParams()
    if value == ARGON2ID:
        return KdfParams.argon2id()
    raise ValidationError(f"{ENV_KDF} must be '{PBKDF2_SHA256}' or '{ARGON2ID}', got {value!r}")


def build_context(
    db_path: Optional[str | Path] = None,
    home: Optional[str | Path] = None,
) -> AppContext:
    """
    Resolve configuration and build the engine.

    Explicit arguments win over environment variables:

    - ``SEALVAULT_HOME``: vault directory, default ``~/.sealvault``
    - ``SEALVAULT_DB``: database path, default ``$SEALVAULT_HOME/sealvault.db``
    - ``SEALVAULT_KDF``: ``pbkdf2-sha256`` (default) or ``argon2id``; only
      affects new blobs, existing blobs carry their own parameters
    """
    root = Path(home or os.getenv(ENV_HOME) or Path.home() / ".sealvault").expanduser()
    db = Path(db_path or os.getenv(ENV_DB) or root / "sealvault.db").expanduser()
    engine = SealEngine(kdf_params=kdf_params_from_env(os.getenv(ENV_KDF)))
    return AppContext(engine=engine, db_path=db)
