from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002

from proofledger.adapters.storage import create_schema

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture
def sqlite_engine(tmp_path: Path) -> Iterator[Engine]:
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'wallet.db'}", future=True)
    create_schema(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def wallet_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Point configuration at a throwaway data directory and issuer."""

    data_dir = tmp_path / "data"
    monkeypatch.setenv("PROOFLEDGER_ISSUER_URL", "https://issuer.example/")
    monkeypatch.setenv("PROOFLEDGER_DATA_DIR", str(data_dir))
    for name in (
        "PROOFLEDGER_UNIT",
        "PROOFLEDGER_SELECTOR",
        "PROOFLEDGER_STORAGE",
        "PROOFLEDGER_HISTORY_KEY",
        "PROOFLEDGER_DATABASE_URI",
    ):
        monkeypatch.delenv(name, raising=False)
    return data_dir
