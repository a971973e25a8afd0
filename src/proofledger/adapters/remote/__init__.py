"""Remote record log adapters."""

from __future__ import annotations

from .memory_relay import InMemoryRelay, MemorySubscription
from .schema import ProofRecordContent
from .store import RemoteProofStore

__all__ = [
    "InMemoryRelay",
    "MemorySubscription",
    "ProofRecordContent",
    "RemoteProofStore",
]
