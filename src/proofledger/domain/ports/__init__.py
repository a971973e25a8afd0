"""Domain port definitions for adapters."""

from __future__ import annotations

from .crypto import DecryptionFailedError, RecordCipher
from .diagnostics import DiagnosticSink, logging_sink
from .issuer import IssuerInfoSource, StateChecker, SwapService
from .persistence import HistoryStore, ProofStore, PublishesRecords
from .remote import (
    DeliverEvent,
    RawRecord,
    RecordRelay,
    RemoteEvent,
    RemoteProofSource,
    RemoteRecordFeed,
    Subscription,
)

__all__ = [
    "DecryptionFailedError",
    "DeliverEvent",
    "DiagnosticSink",
    "HistoryStore",
    "IssuerInfoSource",
    "ProofStore",
    "PublishesRecords",
    "RawRecord",
    "RecordCipher",
    "RecordRelay",
    "RemoteEvent",
    "RemoteProofSource",
    "RemoteRecordFeed",
    "StateChecker",
    "Subscription",
    "SwapService",
    "logging_sink",
]
