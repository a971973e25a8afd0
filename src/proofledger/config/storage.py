"""Where the wallet keeps its files."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env_var

APP_DIR_NAME: Final[str] = "proofledger"
DEFAULT_DB_FILENAME: Final[str] = "proofledger.db"
DEFAULT_WALLET_FILENAME: Final[str] = "wallet.json"
DATA_DIR_ENV: Final[str] = "PROOFLEDGER_DATA_DIR"
DATABASE_URI_ENV: Final[str] = "PROOFLEDGER_DATABASE_URI"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Data directory for the JSON wallet and the default SQLite database.

    ``database_uri_override`` replaces the SQLite file entirely, e.g. to point at a shared
    database.
    """

    data_dir: Path
    database_uri_override: str | None = None
    database_filename: str = DEFAULT_DB_FILENAME
    wallet_filename: str = DEFAULT_WALLET_FILENAME

    @property
    def resolved_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def wallet_path(self, *, ensure: bool = True) -> Path:
        return self._file(self.wallet_filename, ensure=ensure)

    def database_path(self, *, ensure: bool = True) -> Path:
        return self._file(self.database_filename, ensure=ensure)

    def database_uri(self) -> str:
        if self.database_uri_override:
            return self.database_uri_override
        return f"sqlite+pysqlite:///{self.database_path()}"

    def _file(self, name: str, *, ensure: bool) -> Path:
        directory = self.resolved_dir
        if ensure:
            directory.mkdir(parents=True, exist_ok=True)
        return directory / name


def default_data_dir() -> Path:
    """Per-user data directory: ``%LOCALAPPDATA%`` on Windows, ``$XDG_DATA_HOME`` elsewhere."""

    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        root = Path(base) if base else Path.home() / "AppData" / "Local"
    else:
        base = os.getenv("XDG_DATA_HOME")
        root = Path(base) if base else Path.home() / ".local" / "share"
    return root / APP_DIR_NAME


def get_storage_config() -> StorageConfig:
    env_dir = optional_env_var(DATA_DIR_ENV)
    return StorageConfig(
        data_dir=Path(env_dir) if env_dir else default_data_dir(),
        database_uri_override=optional_env_var(DATABASE_URI_ENV),
    )
