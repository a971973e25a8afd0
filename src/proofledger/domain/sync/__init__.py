"""Multi-device synchronisation of the held proof set."""

from __future__ import annotations

from .engine import SyncEngine, SyncOutcome
from .merge import MergePolicy, has_conflict, remote_wins, resolve, union
from .mirror import MirroredProofStore

__all__ = [
    "MergePolicy",
    "MirroredProofStore",
    "SyncEngine",
    "SyncOutcome",
    "has_conflict",
    "remote_wins",
    "resolve",
    "union",
]
