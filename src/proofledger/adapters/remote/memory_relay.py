"""In-process record relay with a live feed, for tests and single-host setups."""

from __future__ import annotations

import itertools
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from proofledger.domain.model import RecordKind
from proofledger.domain.ports.remote import RawRecord, RemoteEvent

if TYPE_CHECKING:
    from collections.abc import Sequence

    from proofledger.domain.ports.remote import DeliverEvent

log = getLogger(__name__)


@dataclass(slots=True)
class _Listener:
    since: datetime
    deliver: DeliverEvent
    active: bool = True


class MemorySubscription:
    def __init__(self, relay: InMemoryRelay, account: str, listener: _Listener) -> None:
        self._relay = relay
        self._account = account
        self._listener = listener

    @property
    def active(self) -> bool:
        return self._listener.active

    def stop(self) -> None:
        self._listener.active = False
        self._relay.detach(self._account, self._listener)


class InMemoryRelay:
    """Stores raw records per account and pushes new proof records to subscribers.

    Delivery is synchronous inside :meth:`publish`, mirroring a relay that echoes events back
    to every open subscription, including the publisher's own.
    """

    def __init__(self) -> None:
        self._records: defaultdict[str, list[RawRecord]] = defaultdict(list)
        self._listeners: defaultdict[str, list[_Listener]] = defaultdict(list)
        self._ids = itertools.count(1)

    async def fetch_records(self, account: str, kind: RecordKind) -> list[RawRecord]:
        return [record for record in self._records[account] if record.kind is kind]

    async def publish(self, account: str, kind: RecordKind, content: str) -> str:
        record = RawRecord(
            record_id=f"rec-{next(self._ids):06d}",
            kind=kind,
            content=content,
            created_at=datetime.now(tz=UTC),
        )
        self._records[account].append(record)
        log.debug("Relay stored %s record %s for %s", kind, record.record_id, account)
        if kind is RecordKind.PROOFS:
            self._notify(account, record)
        return record.record_id

    async def delete(self, account: str, record_ids: Sequence[str]) -> None:
        doomed = set(record_ids)
        self._records[account] = [
            record for record in self._records[account] if record.record_id not in doomed
        ]

    async def subscribe(
        self,
        account: str,
        *,
        since: datetime,
        deliver: DeliverEvent,
    ) -> MemorySubscription:
        listener = _Listener(since=since, deliver=deliver)
        self._listeners[account].append(listener)
        return MemorySubscription(self, account, listener)

    def detach(self, account: str, listener: _Listener) -> None:
        listeners = self._listeners.get(account)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def listener_count(self, account: str) -> int:
        return len(self._listeners.get(account, ()))

    def _notify(self, account: str, record: RawRecord) -> None:
        event = RemoteEvent(
            record_id=record.record_id, kind=record.kind, created_at=record.created_at
        )
        for listener in tuple(self._listeners[account]):
            if listener.active and record.created_at >= listener.since:
                listener.deliver(event)
