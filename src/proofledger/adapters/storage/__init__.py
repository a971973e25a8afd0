"""Proof store backends."""

from __future__ import annotations

from .json_file import JsonFileProofStore, WalletDocument
from .memory import MemoryProofStore
from .sqlalchemy import SqlAlchemyProofStore, create_schema, history_entry_table, proof_table

__all__ = [
    "JsonFileProofStore",
    "MemoryProofStore",
    "SqlAlchemyProofStore",
    "WalletDocument",
    "create_schema",
    "history_entry_table",
    "proof_table",
]
