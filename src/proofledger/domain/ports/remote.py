"""Ports for the owner's remote record log."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from proofledger.domain.model import Proof, RecordKind


@dataclass(frozen=True, slots=True)
class RawRecord:
    """A record as held by the relay: the content is encrypted."""

    record_id: str
    kind: RecordKind
    content: str
    created_at: datetime


@dataclass(frozen=True, slots=True)
class RemoteEvent:
    """Notification that a record was published to the owner's feed."""

    record_id: str
    kind: RecordKind
    created_at: datetime


DeliverEvent = Callable[[RemoteEvent], None]


@runtime_checkable
class RecordRelay(Protocol):
    async def fetch_records(self, account: str, kind: RecordKind) -> list[RawRecord]: ...

    async def publish(self, account: str, kind: RecordKind, content: str) -> str: ...

    async def delete(self, account: str, record_ids: Sequence[str]) -> None: ...


@runtime_checkable
class Subscription(Protocol):
    def stop(self) -> None: ...


@runtime_checkable
class RemoteRecordFeed(Protocol):
    """Live feed of proof records newer than ``since`` for one account."""

    async def subscribe(
        self,
        account: str,
        *,
        since: datetime,
        deliver: DeliverEvent,
    ) -> Subscription: ...


@runtime_checkable
class RemoteProofSource(Protocol):
    """Authoritative remote proof set for the account, as seen by this instance.

    ``save`` publishes the held set; it is a no-op when the remote set is already equal.
    """

    async def load(self) -> list[Proof]: ...

    async def save(self, proofs: Sequence[Proof]) -> None: ...

    def is_own_record(self, record_id: str) -> bool: ...

    def has_records(self) -> bool:
        """Whether the last :meth:`load` found any live record, including an empty one."""
        ...
