"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class SelectionStrategy(StrEnum):
    SMALLEST_FIRST = "smallest_first"
    LARGEST_FIRST = "largest_first"
    EXACT_MATCH = "exact_match"
    RANDOM = "random"


class ProofState(StrEnum):
    """State reported by the issuer's checkstate endpoint."""

    UNSPENT = "UNSPENT"
    SPENT = "SPENT"
    PENDING = "PENDING"


class Direction(StrEnum):
    IN = "in"
    OUT = "out"


class ProofSource(StrEnum):
    """How a proof entered the held set."""

    MINT = "mint"
    RECEIVE = "receive"
    SWAP = "swap"
    MERGE = "merge"


class WalletEvent(StrEnum):
    BALANCE_CHANGE = "balance-change"
    PROOFS_CHANGE = "proofs-change"
    TRANSACTION = "transaction"
    ERROR = "error"
    SYNC = "sync"
    CONFLICT = "conflict"


class SyncState(StrEnum):
    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBING = "subscribing"
    SUBSCRIBED = "subscribed"
