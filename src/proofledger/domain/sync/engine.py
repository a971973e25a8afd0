"""Keep a wallet in step with the owner's remote record log."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from proofledger.domain.errors import ConflictDetected
from proofledger.domain.model import ProofSource, SyncState, WalletEvent

from .merge import resolve
from .mirror import MirroredProofStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from proofledger.domain.events import EventHandler, Unsubscribe
    from proofledger.domain.model import Proof
    from proofledger.domain.ports.remote import (
        RemoteEvent,
        RemoteProofSource,
        RemoteRecordFeed,
        Subscription,
    )
    from proofledger.domain.wallet import WalletCore

    from .merge import MergePolicy

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SyncOutcome:
    conflict: bool
    changed: bool
    proof_count: int


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _identities(proofs: tuple[Proof, ...]) -> set[tuple[str, str]]:
    return {proof.identity for proof in proofs}


class SyncEngine:
    """Merge remote updates into a wallet.

    The engine wraps the wallet's store in a :class:`MirroredProofStore` so every local save is
    published, subscribes to the account's record feed and applies each update through the
    wallet's own persistence path. Events are queued and handled one at a time by a single
    worker task.
    """

    def __init__(
        self,
        wallet: WalletCore,
        *,
        remote: RemoteProofSource,
        feed: RemoteRecordFeed,
        account: str,
        merge_policy: MergePolicy | None = None,
        auto_subscribe: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._wallet = wallet
        self._remote = remote
        self._feed = feed
        self._account = account
        self._merge_policy = merge_policy
        self._auto_subscribe = auto_subscribe
        self._clock = clock
        self._state = SyncState.UNSUBSCRIBED
        self._subscription: Subscription | None = None
        self._queue: asyncio.Queue[RemoteEvent | None] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._synced: frozenset[str] | None = None
        self._mirror = MirroredProofStore(wallet.store, remote)
        wallet.use_store(self._mirror)

    @property
    def wallet(self) -> WalletCore:
        return self._wallet

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_subscribed(self) -> bool:
        return self._state is SyncState.SUBSCRIBED

    def on(self, event: WalletEvent, handler: EventHandler) -> Unsubscribe:
        return self._wallet.on(event, handler)

    async def load(self) -> SyncOutcome:
        """Load the wallet, reconcile it once against the remote log, then subscribe."""

        await self._wallet.load()
        outcome = await self.reconcile_remote(seed_empty_remote=True)
        if self._auto_subscribe:
            await self.subscribe()
        return outcome

    async def reconcile_remote(self, *, seed_empty_remote: bool = False) -> SyncOutcome:
        """Fetch the remote proof set and merge it into the wallet under the wallet lock.

        With ``seed_empty_remote``, a remote log holding no record at all is treated as not
        yet written and is populated from the local set. A log whose live record is empty
        (another device emptied the wallet) is merged like any other remote set.
        """

        outcome = SyncOutcome(conflict=False, changed=False, proof_count=0)

        async def resolve_with_remote(local: tuple[Proof, ...]) -> tuple[Proof, ...] | None:
            nonlocal outcome
            remote = tuple(await self._remote.load())

            if seed_empty_remote and local and not self._remote.has_records():
                log.info(
                    "Remote log for %s has no records; publishing %d local proofs",
                    self._account,
                    len(local),
                )
                outcome = SyncOutcome(conflict=False, changed=False, proof_count=len(local))
                return local

            remote = self._drop_spent_since_sync(local, remote)
            resolved, conflict = resolve(local, remote, self._merge_policy)
            if conflict:
                detected = ConflictDetected(local, remote)
                log.warning(
                    "Sync conflict for %s: %d local proofs missing remotely",
                    self._account,
                    len(detected.local_only),
                )
                self._wallet.events.emit(WalletEvent.CONFLICT, detected)

            changed = _identities(resolved) != _identities(local)
            outcome = SyncOutcome(conflict=conflict, changed=changed, proof_count=len(resolved))
            return resolved if changed else None

        held = await self._wallet.merge(resolve_with_remote, reason=ProofSource.MERGE)
        self._synced = frozenset(proof.public_id for proof in held)
        self._wallet.events.emit(WalletEvent.SYNC, outcome)
        return outcome

    def _drop_spent_since_sync(
        self, local: tuple[Proof, ...], remote: tuple[Proof, ...]
    ) -> tuple[Proof, ...]:
        """Remove proofs this device gave up after the last sync from a stale remote set.

        A peer may publish a record built before our latest save reached the relay; proofs
        we held at the last sync and have since spent must not come back from it.
        """

        if self._synced is None:
            return remote
        local_ids = {proof.public_id for proof in local}
        released = self._synced - local_ids
        if not released:
            return remote
        kept = tuple(proof for proof in remote if proof.public_id not in released)
        if len(kept) != len(remote):
            log.info(
                "Ignoring %d remote proofs already spent on this device", len(remote) - len(kept)
            )
        return kept

    async def handle_remote_update(self, event: RemoteEvent) -> SyncOutcome | None:
        """Apply one feed event; returns None when the event was our own publish."""

        if self._remote.is_own_record(event.record_id):
            log.debug("Ignoring own record %s", event.record_id)
            return None
        log.debug("Remote update %s for %s", event.record_id, self._account)
        return await self.reconcile_remote()

    async def subscribe(self) -> None:
        if self._state is not SyncState.UNSUBSCRIBED:
            return
        self._state = SyncState.SUBSCRIBING
        queue: asyncio.Queue[RemoteEvent | None] = asyncio.Queue()
        self._queue = queue

        def deliver(event: RemoteEvent) -> None:
            if self._queue is queue:
                queue.put_nowait(event)

        try:
            subscription = await self._feed.subscribe(
                self._account, since=self._clock(), deliver=deliver
            )
        except Exception:
            if self._queue is queue:
                self._queue = None
                self._state = SyncState.UNSUBSCRIBED
            raise

        if self._queue is not queue:
            # unsubscribed while the feed was being opened
            subscription.stop()
            return
        self._subscription = subscription
        self._worker = asyncio.create_task(self._drain(queue), name=f"sync-{self._account}")
        self._state = SyncState.SUBSCRIBED
        log.info("Subscribed to remote updates for %s", self._account)

    def unsubscribe(self) -> None:
        """Stop delivery. An event already being handled runs to completion."""

        if self._state is SyncState.UNSUBSCRIBED:
            return
        if self._subscription is not None:
            self._subscription.stop()
            self._subscription = None
        queue, self._queue = self._queue, None
        if queue is not None:
            queue.put_nowait(None)
        self._state = SyncState.UNSUBSCRIBED
        log.info("Unsubscribed from remote updates for %s", self._account)

    async def idle(self) -> None:
        """Wait until every queued event has been handled."""
        if self._queue is not None:
            await self._queue.join()

    async def aclose(self) -> None:
        worker, self._worker = self._worker, None
        self.unsubscribe()
        if worker is not None:
            await worker

    async def _drain(self, queue: asyncio.Queue[RemoteEvent | None]) -> None:
        while True:
            event = await queue.get()
            try:
                if event is None or self._queue is not queue:
                    return
                await self.handle_remote_update(event)
            except Exception as exc:
                log.exception("Failed to apply remote update for %s", self._account)
                self._wallet.events.emit(WalletEvent.ERROR, exc)
            finally:
                queue.task_done()
