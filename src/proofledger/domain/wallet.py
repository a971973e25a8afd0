"""WalletCore: the held proof set and every operation that changes it.

All mutations replace the whole held set and persist it through the configured
:class:`~proofledger.domain.ports.persistence.ProofStore` before notifying listeners. Every
mutation, including merges applied by the sync engine, runs under one :class:`asyncio.Lock`
so no operation commits a held set another has already replaced.
"""

from __future__ import annotations

import asyncio
import functools
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, ParamSpec, TypeVar

from proofledger.domain.errors import (
    CreationDiagnostics,
    ErrorCode,
    InsufficientBalanceError,
    InvalidTokenError,
    SelectionFailedError,
    SwapFailedError,
    ValidationError,
)
from proofledger.domain.events import EventBus
from proofledger.domain.inspect import get_defrag_stats, needs_defragmentation
from proofledger.domain.model import (
    Direction,
    ProofSource,
    SpendingRecord,
    Token,
    WalletEvent,
    denomination_histogram,
    total_amount,
    without,
)
from proofledger.domain.ports.persistence import PublishesRecords
from proofledger.domain.selection import smallest_first
from proofledger.domain.token import decode_token, normalize_issuer_url, same_issuer

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Sequence
    from typing import Concatenate

    from proofledger.domain.events import EventHandler, Unsubscribe
    from proofledger.domain.history import HistoryLedger
    from proofledger.domain.inspect import DefragStats
    from proofledger.domain.model import CheckStateResult, Proof
    from proofledger.domain.ports.issuer import SwapService
    from proofledger.domain.ports.persistence import ProofStore
    from proofledger.domain.reconciliation import ReconciliationService
    from proofledger.domain.selection import ProofSelector

log = getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class CreateTokenResult:
    token: Token
    change: tuple[Proof, ...] = ()

    @property
    def swapped(self) -> bool:
        return bool(self.change)


@dataclass(frozen=True, slots=True)
class TokenPreview:
    """Dry run of :meth:`WalletCore.create_token`; nothing is selected for real."""

    can_create: bool
    amount: int
    available_balance: int
    denomination_counts: dict[int, int] = field(default_factory=dict)
    selected: tuple[Proof, ...] = ()
    needs_swap: bool = False
    issue: str | None = None
    suggestion: str | None = None

    @property
    def available_denominations(self) -> list[int]:
        return sorted(self.denomination_counts)

    @property
    def selected_total(self) -> int:
        return total_amount(self.selected)

    @property
    def change(self) -> int:
        return max(0, self.selected_total - self.amount)


@dataclass(frozen=True, slots=True)
class DefragmentResult:
    previous_proof_count: int
    new_proof_count: int
    previous_balance: int
    new_balance: int

    @property
    def saved(self) -> int:
        return self.previous_proof_count - self.new_proof_count


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _unique_by_secret(proofs: Iterable[Proof], *, held: Iterable[Proof] = ()) -> list[Proof]:
    seen = {proof.secret for proof in held}
    unique: list[Proof] = []
    for proof in proofs:
        if proof.secret in seen:
            continue
        seen.add(proof.secret)
        unique.append(proof)
    return unique


def _exclusive(
    method: Callable[Concatenate[WalletCore, P], Awaitable[T]],
) -> Callable[Concatenate[WalletCore, P], Awaitable[T]]:
    @functools.wraps(method)
    async def locked(self: WalletCore, *args: P.args, **kwargs: P.kwargs) -> T:
        async with self._lock:
            return await method(self, *args, **kwargs)

    return locked


class WalletCore:
    """Holds the proofs for one issuer and unit."""

    def __init__(
        self,
        *,
        issuer_url: str,
        store: ProofStore,
        unit: str = "sat",
        selector: ProofSelector = smallest_first,
        swapper: SwapService | None = None,
        reconciliation: ReconciliationService | None = None,
        history: HistoryLedger | None = None,
        events: EventBus | None = None,
    ) -> None:
        self._issuer_url = normalize_issuer_url(issuer_url)
        self._unit = unit
        self._store = store
        self._selector = selector
        self._swapper = swapper
        self._reconciliation = reconciliation
        self._history = history
        self._events = events or EventBus()
        self._proofs: tuple[Proof, ...] = ()
        self._loaded = False
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------ state

    @property
    def issuer_url(self) -> str:
        return self._issuer_url

    @property
    def unit(self) -> str:
        return self._unit

    @property
    def balance(self) -> int:
        return total_amount(self._proofs)

    @property
    def proofs(self) -> tuple[Proof, ...]:
        return self._proofs

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def store(self) -> ProofStore:
        return self._store

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def history(self) -> HistoryLedger | None:
        return self._history

    def use_store(self, store: ProofStore) -> ProofStore:
        """Swap the persistence backend, returning the previous one."""
        previous, self._store = self._store, store
        return previous

    def on(self, event: WalletEvent, handler: EventHandler) -> Unsubscribe:
        return self._events.subscribe(event, handler)

    # ---------------------------------------------------------------- lifecycle

    @_exclusive
    async def load(self) -> None:
        try:
            loaded = await self._store.load()
        except Exception as exc:
            log.error("Failed to load proofs for %s: %s", self._issuer_url, exc)
            self._events.emit(WalletEvent.ERROR, exc)
            raise
        unique = _unique_by_secret(loaded)
        if len(unique) != len(loaded):
            log.warning("Dropped %d duplicate proofs while loading", len(loaded) - len(unique))
        self._proofs = tuple(unique)
        self._loaded = True
        log.info("Wallet loaded: %d proofs, balance %d %s", len(unique), self.balance, self._unit)
        self._notify_changed()

    @_exclusive
    async def clear(self) -> None:
        try:
            await self._store.clear()
        except Exception as exc:
            self._events.emit(WalletEvent.ERROR, exc)
            raise
        self._proofs = ()
        self._notify_changed()

    # ---------------------------------------------------------------- spending

    def preview_token(self, amount: int) -> TokenPreview:
        counts = denomination_histogram(self._proofs)
        balance = self.balance
        requested = amount if isinstance(amount, int) else 0

        def refused(code: ErrorCode, issue: str) -> TokenPreview:
            diagnostics = CreationDiagnostics.build(
                code, requested_amount=requested, proofs=self._proofs
            )
            return TokenPreview(
                can_create=False,
                amount=requested,
                available_balance=balance,
                denomination_counts=counts,
                issue=issue,
                suggestion=diagnostics.suggestion,
            )

        if not _is_positive_int(amount):
            return refused(ErrorCode.INVALID_AMOUNT, "Amount must be a positive whole number")
        if balance < amount:
            return refused(
                ErrorCode.INSUFFICIENT_BALANCE,
                f"Insufficient balance: need {amount}, have {balance}",
            )
        selection = self._selector(self._proofs, amount)
        if selection is None:
            return refused(ErrorCode.SELECTION_FAILED, f"Could not select proofs for {amount}")
        return TokenPreview(
            can_create=True,
            amount=amount,
            available_balance=balance,
            denomination_counts=counts,
            selected=selection.selected,
            needs_swap=selection.selected_total != amount,
        )

    @_exclusive
    async def create_token(self, amount: int) -> CreateTokenResult:
        """Remove proofs worth exactly ``amount`` from the held set and wrap them in a token.

        When the selected proofs overshoot, they are swapped at the issuer for an exact send
        set plus change; the change stays held.

        Raises:
            ValidationError: ``amount`` is not a positive integer, or the wallet is not loaded.
            InsufficientBalanceError: the balance is below ``amount``.
            SelectionFailedError: no usable combination and no swap service.
            SwapFailedError: the issuer swap failed or returned the wrong send total.
        """

        if not _is_positive_int(amount):
            raise ValidationError(
                f"Amount must be a positive integer, got {amount!r}",
                diagnostics=self._diagnostics(
                    ErrorCode.INVALID_AMOUNT, amount if isinstance(amount, int) else 0
                ),
            )
        self._require_loaded(amount)

        held = self._proofs
        log.info("Creating token for %d %s (balance %d)", amount, self._unit, self.balance)
        if self.balance < amount:
            raise InsufficientBalanceError(
                f"Insufficient balance: need {amount}, have {self.balance}",
                diagnostics=self._diagnostics(ErrorCode.INSUFFICIENT_BALANCE, amount),
            )

        selection = self._selector(held, amount)
        if selection is None:
            raise SelectionFailedError(
                f"Could not select proofs for amount {amount}",
                diagnostics=self._diagnostics(ErrorCode.SELECTION_FAILED, amount),
            )

        if selection.selected_total == amount:
            remaining = without(held, selection.selected)
            await self._commit(remaining)
            await self._record(Direction.OUT, amount)
            log.info("Token created without swap: %d proofs", len(selection.selected))
            return CreateTokenResult(token=self._token(selection.selected))

        if self._swapper is None:
            raise SelectionFailedError(
                f"Selected {selection.selected_total} for {amount} and no swap service is "
                "configured",
                diagnostics=self._diagnostics(
                    ErrorCode.SELECTION_FAILED,
                    amount,
                    partial=selection.selected,
                    suggestion=(
                        "No exact combination is held. Configure a swap service to break "
                        "proofs into smaller denominations."
                    ),
                ),
            )

        log.debug(
            "Swapping %d proofs worth %d for %d",
            len(selection.selected),
            selection.selected_total,
            amount,
        )
        try:
            swap = await self._swapper.swap(selection.selected, amount)
        except Exception as exc:
            log.error("Swap for %d failed: %s", amount, exc)
            raise SwapFailedError(
                f"Swap failed: {exc}",
                diagnostics=self._diagnostics(
                    ErrorCode.SWAP_FAILED, amount, partial=selection.selected
                ),
            ) from exc

        remaining = without(self._proofs, selection.selected)
        send_total = total_amount(swap.send)
        if send_total != amount:
            log.error("Swap returned %d instead of %d, keeping all proofs", send_total, amount)
            returned = remaining + tuple(swap.send) + tuple(swap.keep)
            await self._commit(returned, on_failure=returned)
            raise SwapFailedError(
                f"Swap returned {send_total} instead of {amount}",
                diagnostics=self._diagnostics(ErrorCode.SWAP_FAILED, amount),
            )

        after = remaining + tuple(swap.keep)
        await self._commit(after, on_failure=after + tuple(swap.send))
        await self._record(Direction.OUT, amount)
        log.info(
            "Token created via swap: %d send proofs, %d change proofs",
            len(swap.send),
            len(swap.keep),
        )
        return CreateTokenResult(token=self._token(swap.send), change=tuple(swap.keep))

    # ---------------------------------------------------------------- receiving

    @_exclusive
    async def receive_token(self, token: Token | str) -> int:
        """Add a token's proofs to the held set and return the amount received."""

        self._require_loaded()
        if isinstance(token, str):
            token = decode_token(token)

        if not same_issuer(token.issuer_url, self._issuer_url):
            raise InvalidTokenError(
                f"Token is for a different issuer: {token.issuer_url}",
                diagnostics=self._diagnostics(ErrorCode.INVALID_TOKEN, token.amount),
            )
        if token.unit != self._unit:
            raise InvalidTokenError(
                f"Token unit {token.unit!r} does not match wallet unit {self._unit!r}",
                diagnostics=self._diagnostics(ErrorCode.INVALID_TOKEN, token.amount),
            )
        if not token.proofs:
            raise InvalidTokenError(
                "Token contains no proofs",
                diagnostics=self._diagnostics(ErrorCode.INVALID_TOKEN, 0),
            )

        fresh = _unique_by_secret(token.proofs, held=self._proofs)
        if not fresh:
            raise InvalidTokenError(
                "Every proof in the token is already held",
                diagnostics=self._diagnostics(ErrorCode.INVALID_TOKEN, token.amount),
            )

        amount = total_amount(fresh)
        await self._commit(self._proofs + tuple(fresh))
        await self._record(Direction.IN, amount)
        log.info("Received %d %s in %d proofs", amount, self._unit, len(fresh))
        return amount

    @_exclusive
    async def add_proofs(
        self,
        proofs: Sequence[Proof],
        *,
        source: ProofSource = ProofSource.MINT,
        linked_external_event_id: str | None = None,
    ) -> int:
        """Add proofs not already held; returns the amount added.

        Minted and received proofs are recorded as inbound history; swap change and merged
        proofs are not, since they do not change the owner's net position.
        """

        self._require_loaded()
        fresh = _unique_by_secret(proofs, held=self._proofs)
        if not fresh:
            return 0
        amount = total_amount(fresh)
        await self._commit(self._proofs + tuple(fresh))
        if source in (ProofSource.MINT, ProofSource.RECEIVE):
            await self._record(
                Direction.IN, amount, linked_external_event_id=linked_external_event_id
            )
        log.debug("Added %d proofs from %s", len(fresh), source)
        return amount

    @_exclusive
    async def remove_proofs(self, proofs: Iterable[Proof]) -> int:
        """Remove proofs by public identifier; returns how many were removed."""

        self._require_loaded()
        removed_ids = {proof.public_id for proof in proofs}
        remaining = tuple(proof for proof in self._proofs if proof.public_id not in removed_ids)
        removed = len(self._proofs) - len(remaining)
        if removed:
            await self._commit(remaining)
        return removed

    @_exclusive
    async def replace_proofs(self, proofs: Sequence[Proof], *, reason: ProofSource) -> None:
        """Replace the held set wholesale, e.g. with the outcome of a remote merge."""

        self._require_loaded()
        await self._replace(proofs, reason=reason)

    async def merge(
        self,
        resolver: Callable[[tuple[Proof, ...]], Awaitable[Sequence[Proof] | None]],
        *,
        reason: ProofSource = ProofSource.MERGE,
    ) -> tuple[Proof, ...]:
        """Resolve a new held set from the current one while holding the wallet lock.

        ``resolver`` receives the held set and may await remote I/O; no other mutation can
        interleave. A returned set is committed (even if unchanged, so it is saved again), and
        ``None`` leaves the wallet untouched. Returns the held set afterwards.
        """

        async with self._lock:
            self._require_loaded()
            resolved = await resolver(self._proofs)
            if resolved is not None:
                await self._replace(resolved, reason=reason)
            return self._proofs

    # ---------------------------------------------------------------- reconciliation

    async def check_proofs(self) -> CheckStateResult:
        self._require_loaded()
        if self._reconciliation is None:
            raise ValidationError(
                "No state checker configured for this wallet",
                diagnostics=self._diagnostics(ErrorCode.NO_STATE_CHECKER, 0),
            )
        return await self._reconciliation.check_state(self._proofs)

    @_exclusive
    async def prune_spent(self) -> int:
        """Drop proofs the issuer no longer reports as unspent; returns how many."""

        self._require_loaded()
        result = await self.check_proofs()
        if not result.spent:
            return 0
        await self._commit(without(self._proofs, result.spent))
        log.info("Pruned %d spent proofs worth %d", len(result.spent), total_amount(result.spent))
        return len(result.spent)

    def defrag_stats(self) -> DefragStats:
        return get_defrag_stats(self._proofs)

    def needs_defragmentation(self) -> bool:
        return needs_defragmentation(self._proofs)

    @_exclusive
    async def defragment(self) -> DefragmentResult:
        """Swap the whole held set at the issuer for the same total in fewer proofs."""

        self._require_loaded()
        held = self._proofs
        previous_balance = total_amount(held)
        if not held:
            return DefragmentResult(0, 0, 0, 0)
        if self._swapper is None:
            raise SelectionFailedError(
                "Defragmentation needs a swap service",
                diagnostics=self._diagnostics(ErrorCode.SELECTION_FAILED, previous_balance),
            )

        try:
            swap = await self._swapper.swap(held, previous_balance)
        except Exception as exc:
            log.error("Defragmentation swap failed: %s", exc)
            raise SwapFailedError(
                f"Defragmentation swap failed: {exc}",
                diagnostics=self._diagnostics(ErrorCode.SWAP_FAILED, previous_balance),
            ) from exc

        fresh = tuple(swap.send) + tuple(swap.keep)
        await self._commit(fresh, on_failure=fresh)
        result = DefragmentResult(
            previous_proof_count=len(held),
            new_proof_count=len(fresh),
            previous_balance=previous_balance,
            new_balance=total_amount(fresh),
        )
        log.info(
            "Defragmented %d proofs into %d (balance %d -> %d)",
            result.previous_proof_count,
            result.new_proof_count,
            result.previous_balance,
            result.new_balance,
        )
        return result

    # ---------------------------------------------------------------- internals

    async def _replace(self, proofs: Sequence[Proof], *, reason: ProofSource) -> None:
        unique = tuple(_unique_by_secret(proofs))
        log.info(
            "Replacing held set (%s): %d -> %d proofs", reason, len(self._proofs), len(unique)
        )
        await self._commit(unique)

    def _token(self, proofs: Sequence[Proof]) -> Token:
        return Token(issuer_url=self._issuer_url, unit=self._unit, proofs=tuple(proofs))

    def _diagnostics(
        self,
        code: ErrorCode,
        amount: int,
        *,
        partial: Sequence[Proof] = (),
        suggestion: str | None = None,
    ) -> CreationDiagnostics:
        return CreationDiagnostics.build(
            code,
            requested_amount=amount,
            proofs=self._proofs,
            partial_selection=partial,
            suggestion=suggestion,
        )

    def _require_loaded(self, amount: int = 0) -> None:
        if not self._loaded:
            raise ValidationError(
                "Wallet must be loaded first",
                diagnostics=self._diagnostics(ErrorCode.WALLET_NOT_LOADED, amount),
            )

    async def _commit(
        self,
        proofs: tuple[Proof, ...],
        *,
        on_failure: tuple[Proof, ...] | None = None,
    ) -> None:
        """Persist ``proofs`` as the new held set.

        If the store fails, the in-memory set becomes ``on_failure`` (the previous set by
        default) and the storage error propagates.
        """

        previous = self._proofs
        self._proofs = proofs
        try:
            await self._store.save(proofs)
        except Exception as exc:
            self._proofs = previous if on_failure is None else on_failure
            log.error("Failed to persist %d proofs: %s", len(proofs), exc)
            self._events.emit(WalletEvent.ERROR, exc)
            raise
        self._notify_changed()

    async def _record(
        self,
        direction: Direction,
        amount: int,
        *,
        linked_external_event_id: str | None = None,
    ) -> None:
        publication = (
            self._store.last_publication if isinstance(self._store, PublishesRecords) else None
        )
        record = SpendingRecord(
            direction=direction,
            amount=amount,
            unit=self._unit,
            created_record_id=publication.created_record_id if publication else None,
            destroyed_record_ids=publication.destroyed_record_ids if publication else (),
            linked_external_event_id=linked_external_event_id,
        )
        if self._history is not None:
            try:
                await self._history.append(record)
            except Exception as exc:
                log.exception("Failed to append %s history record", direction)
                self._events.emit(WalletEvent.ERROR, exc)
        self._events.emit(WalletEvent.TRANSACTION, record)

    def _notify_changed(self) -> None:
        self._events.emit(WalletEvent.PROOFS_CHANGE, self._proofs)
        self._events.emit(WalletEvent.BALANCE_CHANGE, self.balance)
