"""Spending history: record codec and encrypted ledger."""

from __future__ import annotations

from .codec import MalformedRecordError, decode_record, encode_record
from .ledger import (
    HistoryLedger,
    HistoryPage,
    HistoryQuery,
    HistoryReadResult,
    HistorySummary,
    SkippedEntry,
)

__all__ = [
    "HistoryLedger",
    "HistoryPage",
    "HistoryQuery",
    "HistoryReadResult",
    "HistorySummary",
    "MalformedRecordError",
    "SkippedEntry",
    "decode_record",
    "encode_record",
]
