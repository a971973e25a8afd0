"""Decrypted counterparts of relay-held proof records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .proof import Proof


class RecordKind(StrEnum):
    PROOFS = "proofs"
    HISTORY = "history"


@dataclass(frozen=True, slots=True)
class RemoteRecord:
    """A proof subset scoped to one issuer and unit.

    ``supersedes`` lists records destroyed when this one was written, e.g. by a swap.
    """

    record_id: str
    issuer_url: str
    unit: str
    proofs: tuple[Proof, ...]
    supersedes: tuple[str, ...] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


@dataclass(frozen=True, slots=True)
class Publication:
    """Record ids touched by the most recent publish of the held set."""

    created_record_id: str | None
    destroyed_record_ids: tuple[str, ...] = ()
