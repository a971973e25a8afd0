"""Fakes for the remote record log ports."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from proofledger.domain.model import RecordKind
from proofledger.domain.ports.remote import RemoteEvent

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from proofledger.domain.model import Proof
    from proofledger.domain.ports.remote import DeliverEvent


def remote_event(record_id: str) -> RemoteEvent:
    return RemoteEvent(record_id=record_id, kind=RecordKind.PROOFS, created_at=datetime.now(UTC))


class FakeRemoteSource:
    def __init__(
        self,
        proofs: Sequence[Proof] = (),
        *,
        own_ids: Sequence[str] = (),
        error: Exception | None = None,
        published: bool = False,
    ) -> None:
        self.proofs = list(proofs)
        self.published = published
        self.own_ids = set(own_ids)
        self.error = error
        self.load_calls = 0
        self.saved: list[list[Proof]] = []

    async def load(self) -> list[Proof]:
        self.load_calls += 1
        if self.error is not None:
            raise self.error
        return list(self.proofs)

    async def save(self, proofs: Sequence[Proof]) -> None:
        self.saved.append(list(proofs))
        self.proofs = list(proofs)
        self.published = True

    def is_own_record(self, record_id: str) -> bool:
        return record_id in self.own_ids

    def has_records(self) -> bool:
        return self.published or bool(self.proofs)


class FakeSubscription:
    def __init__(self) -> None:
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


class FakeFeed:
    """Feed that hands the delivery callback back to the test."""

    def __init__(self, *, on_subscribe: Callable[[], None] | None = None) -> None:
        self.on_subscribe = on_subscribe
        self.subscriptions: list[tuple[str, datetime, FakeSubscription]] = []
        self.deliver: DeliverEvent | None = None

    async def subscribe(
        self,
        account: str,
        *,
        since: datetime,
        deliver: DeliverEvent,
    ) -> FakeSubscription:
        self.deliver = deliver
        subscription = FakeSubscription()
        self.subscriptions.append((account, since, subscription))
        if self.on_subscribe is not None:
            self.on_subscribe()
        return subscription

    def push(self, record_id: str) -> None:
        assert self.deliver is not None
        self.deliver(remote_event(record_id))
