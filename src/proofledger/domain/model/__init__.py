"""Domain model package."""

from __future__ import annotations

from .enums import (
    Direction,
    ProofSource,
    ProofState,
    SelectionStrategy,
    SyncState,
    WalletEvent,
)
from .history import SpendingRecord
from .issuer import IssuerInfo
from .proof import (
    CheckStateResult,
    Proof,
    SelectionResult,
    SwapResult,
    Token,
    denomination_histogram,
    total_amount,
    without,
)
from .remote import Publication, RecordKind, RemoteRecord

__all__ = [
    "CheckStateResult",
    "Direction",
    "IssuerInfo",
    "Proof",
    "ProofSource",
    "ProofState",
    "Publication",
    "RecordKind",
    "RemoteRecord",
    "SelectionResult",
    "SelectionStrategy",
    "SpendingRecord",
    "SwapResult",
    "SyncState",
    "Token",
    "WalletEvent",
    "denomination_histogram",
    "total_amount",
    "without",
]
