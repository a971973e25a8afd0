from __future__ import annotations

import asyncio
import dataclasses
from typing import TYPE_CHECKING

import pytest

from proofledger.adapters.crypto import AesGcmCipher
from proofledger.adapters.storage import MemoryProofStore
from proofledger.domain.errors import (
    ErrorCode,
    InsufficientBalanceError,
    InvalidTokenError,
    SelectionFailedError,
    SwapFailedError,
    TransportError,
    ValidationError,
)
from proofledger.domain.history import HistoryLedger
from proofledger.domain.model import (
    Direction,
    ProofSource,
    ProofState,
    SpendingRecord,
    Token,
    WalletEvent,
)
from proofledger.domain.reconciliation import ReconciliationService
from proofledger.domain.selection import largest_first
from proofledger.domain.token import encode_token
from proofledger.domain.wallet import WalletCore
from tests.support.proofs import (
    ISSUER_URL,
    EventRecorder,
    FailingProofStore,
    FakeStateChecker,
    FakeSwapService,
    GatedSwapService,
    make_proof,
    make_proofs,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from proofledger.domain.model import Proof
    from proofledger.domain.ports.persistence import ProofStore


def _wallet(
    store: ProofStore,
    *,
    swapper: FakeSwapService | None = None,
    checker: FakeStateChecker | None = None,
    history: HistoryLedger | None = None,
) -> WalletCore:
    return WalletCore(
        issuer_url=ISSUER_URL,
        store=store,
        swapper=swapper,
        reconciliation=ReconciliationService(checker) if checker else None,
        history=history,
    )


def _loaded(
    proofs: Sequence[Proof],
    **kwargs: object,
) -> tuple[WalletCore, MemoryProofStore]:
    store = MemoryProofStore(proofs)
    wallet = _wallet(store, **kwargs)  # type: ignore[arg-type]
    asyncio.run(wallet.load())
    return wallet, store


def _amounts(proofs: Sequence[Proof]) -> list[int]:
    return sorted(proof.amount for proof in proofs)


# ---------------------------------------------------------------- create_token


def test_create_token_with_exact_selection() -> None:
    wallet, store = _loaded(make_proofs(1, 2, 4, 8))

    result = asyncio.run(wallet.create_token(3))

    assert result.token.amount == 3
    assert result.token.issuer_url == ISSUER_URL
    assert not result.swapped
    assert wallet.balance == 12
    assert _amounts(asyncio.run(store.load())) == [4, 8]


def test_create_token_swaps_when_selection_overshoots() -> None:
    held = make_proof(8)
    swapper = FakeSwapService()
    wallet, store = _loaded([held], swapper=swapper)

    result = asyncio.run(wallet.create_token(5))

    assert result.token.amount == 5
    assert result.swapped
    assert _amounts(result.change) == [1, 2]
    assert wallet.balance == 3
    assert held not in wallet.proofs
    assert swapper.calls == [((held,), 5)]
    assert _amounts(asyncio.run(store.load())) == [1, 2]


def test_overshoot_without_swap_service_fails_selection() -> None:
    wallet, store = _loaded(make_proofs(8))

    with pytest.raises(SelectionFailedError) as exc_info:
        asyncio.run(wallet.create_token(5))

    assert wallet.balance == 8
    assert store.save_count == 0
    assert exc_info.value.suggestion is not None
    assert "swap service" in exc_info.value.suggestion


def test_insufficient_balance_leaves_wallet_untouched() -> None:
    proofs = make_proofs(1, 2)
    wallet, store = _loaded(proofs)

    with pytest.raises(InsufficientBalanceError) as exc_info:
        asyncio.run(wallet.create_token(10))

    diagnostics = exc_info.value.diagnostics
    assert diagnostics is not None
    assert diagnostics.shortfall == 7
    assert diagnostics.available_balance == 3
    assert exc_info.value.user_message == "Need 7 more credits (have 3, need 10)"
    assert wallet.proofs == tuple(proofs)
    assert store.save_count == 0


@pytest.mark.parametrize("amount", [0, -1, True, 2.5])
def test_invalid_amount_is_rejected(amount: object) -> None:
    wallet, store = _loaded(make_proofs(4))

    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(wallet.create_token(amount))  # type: ignore[arg-type]

    assert exc_info.value.error_code is ErrorCode.INVALID_AMOUNT
    assert wallet.balance == 4
    assert store.save_count == 0


def test_create_token_requires_load() -> None:
    wallet = _wallet(MemoryProofStore(make_proofs(4)))

    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(wallet.create_token(1))

    assert exc_info.value.error_code is ErrorCode.WALLET_NOT_LOADED


def test_swap_failure_keeps_selected_proofs() -> None:
    held = make_proofs(8)
    cause = TransportError("issuer unreachable")
    wallet, store = _loaded(held, swapper=FakeSwapService(error=cause))

    with pytest.raises(SwapFailedError) as exc_info:
        asyncio.run(wallet.create_token(5))

    assert exc_info.value.__cause__ is cause
    assert wallet.proofs == tuple(held)
    assert store.save_count == 0


def test_swap_with_wrong_send_total_keeps_everything_returned() -> None:
    held = make_proof(8)
    wallet, _ = _loaded([held], swapper=FakeSwapService(send_override=[4]))

    with pytest.raises(SwapFailedError):
        asyncio.run(wallet.create_token(5))

    assert wallet.balance == 7
    assert held not in wallet.proofs
    assert _amounts(wallet.proofs) == [1, 2, 4]


def test_persist_failure_restores_held_set() -> None:
    proofs = make_proofs(1, 2, 4)
    store = FailingProofStore(proofs, fail_saves=1)
    wallet = _wallet(store)
    asyncio.run(wallet.load())
    recorder = EventRecorder(wallet.events)

    with pytest.raises(OSError, match="disk full"):
        asyncio.run(wallet.create_token(3))

    assert wallet.proofs == tuple(proofs)
    assert recorder.names() == [WalletEvent.ERROR]


def test_persist_failure_after_swap_keeps_swap_outputs() -> None:
    held = make_proof(8)
    store = FailingProofStore([held], fail_saves=1)
    wallet = _wallet(store, swapper=FakeSwapService())
    asyncio.run(wallet.load())

    with pytest.raises(OSError, match="disk full"):
        asyncio.run(wallet.create_token(5))

    assert wallet.balance == 8
    assert held not in wallet.proofs


def test_held_proofs_are_immutable_snapshots() -> None:
    wallet, _ = _loaded(make_proofs(1, 2))

    snapshot = wallet.proofs
    copied = list(snapshot)
    copied.append(make_proof(4))

    assert wallet.balance == 3
    assert isinstance(snapshot, tuple)
    with pytest.raises(dataclasses.FrozenInstanceError):
        snapshot[0].amount = 100  # type: ignore[misc]


def test_load_drops_duplicate_secrets() -> None:
    proof = make_proof(4)
    duplicate = dataclasses.replace(proof, signature="02duplicate")
    wallet, _ = _loaded([proof, duplicate, *make_proofs(1)])

    assert wallet.balance == 5
    assert len(wallet.proofs) == 2


def test_selector_is_configurable() -> None:
    store = MemoryProofStore(make_proofs(1, 2, 4, 8))
    wallet = WalletCore(issuer_url=ISSUER_URL, store=store, selector=largest_first)
    asyncio.run(wallet.load())

    result = asyncio.run(wallet.create_token(8))

    assert _amounts(result.token.proofs) == [8]


# ---------------------------------------------------------------- events


def test_create_token_emits_change_then_transaction() -> None:
    wallet, _ = _loaded(make_proofs(1, 2, 4))
    recorder = EventRecorder(wallet.events)

    asyncio.run(wallet.create_token(3))

    assert recorder.names() == [
        WalletEvent.PROOFS_CHANGE,
        WalletEvent.BALANCE_CHANGE,
        WalletEvent.TRANSACTION,
    ]
    assert recorder.payloads(WalletEvent.BALANCE_CHANGE) == [4]
    (record,) = recorder.payloads(WalletEvent.TRANSACTION)
    assert isinstance(record, SpendingRecord)
    assert record.direction is Direction.OUT
    assert record.amount == 3


def test_failed_create_emits_nothing() -> None:
    wallet, _ = _loaded(make_proofs(1))
    recorder = EventRecorder(wallet.events)

    with pytest.raises(InsufficientBalanceError):
        asyncio.run(wallet.create_token(5))

    assert recorder.events == []


# ---------------------------------------------------------------- receive_token


def test_receive_token_adds_new_proofs() -> None:
    wallet, store = _loaded(make_proofs(1))
    token = Token(issuer_url=ISSUER_URL, unit="sat", proofs=tuple(make_proofs(2, 4)))

    received = asyncio.run(wallet.receive_token(token))

    assert received == 6
    assert wallet.balance == 7
    assert _amounts(asyncio.run(store.load())) == [1, 2, 4]


def test_receive_encoded_token_with_trailing_slash_issuer() -> None:
    wallet, _ = _loaded([])
    token = Token(issuer_url=ISSUER_URL + "/", unit="sat", proofs=tuple(make_proofs(8)))

    assert asyncio.run(wallet.receive_token(encode_token(token))) == 8


def test_receive_token_twice_is_rejected() -> None:
    wallet, _ = _loaded([])
    token = Token(issuer_url=ISSUER_URL, unit="sat", proofs=tuple(make_proofs(2)))
    asyncio.run(wallet.receive_token(token))

    with pytest.raises(InvalidTokenError):
        asyncio.run(wallet.receive_token(token))

    assert wallet.balance == 2


def test_receive_partially_held_token_counts_only_new_proofs() -> None:
    held = make_proof(4)
    wallet, _ = _loaded([held])
    token = Token(issuer_url=ISSUER_URL, unit="sat", proofs=(held, make_proof(1)))

    assert asyncio.run(wallet.receive_token(token)) == 1
    assert wallet.balance == 5


@pytest.mark.parametrize(
    ("issuer_url", "unit"),
    [
        pytest.param("https://other.example", "sat", id="other-issuer"),
        pytest.param(ISSUER_URL, "usd", id="other-unit"),
    ],
)
def test_receive_token_for_another_wallet_is_rejected(issuer_url: str, unit: str) -> None:
    wallet, store = _loaded([])
    token = Token(issuer_url=issuer_url, unit=unit, proofs=tuple(make_proofs(2)))

    with pytest.raises(InvalidTokenError) as exc_info:
        asyncio.run(wallet.receive_token(token))

    assert exc_info.value.error_code is ErrorCode.INVALID_TOKEN
    assert store.save_count == 0


def test_receive_malformed_string_is_rejected() -> None:
    wallet, _ = _loaded([])

    with pytest.raises(InvalidTokenError):
        asyncio.run(wallet.receive_token("cashuAnot-a-token"))


# ---------------------------------------------------------------- add / remove


def test_add_proofs_records_minted_value_only() -> None:
    wallet, _ = _loaded([])
    recorder = EventRecorder(wallet.events)

    minted = asyncio.run(wallet.add_proofs(make_proofs(4), linked_external_event_id="quote-1"))
    change = asyncio.run(wallet.add_proofs(make_proofs(2), source=ProofSource.SWAP))

    assert (minted, change) == (4, 2)
    (record,) = recorder.payloads(WalletEvent.TRANSACTION)
    assert isinstance(record, SpendingRecord)
    assert record.linked_external_event_id == "quote-1"


def test_add_already_held_proofs_is_a_no_op() -> None:
    held = make_proofs(4)
    wallet, store = _loaded(held)

    assert asyncio.run(wallet.add_proofs(held)) == 0
    assert store.save_count == 0


def test_remove_proofs_by_public_id() -> None:
    keep, drop = make_proofs(1, 2)
    wallet, _ = _loaded([keep, drop])

    removed = asyncio.run(wallet.remove_proofs([drop, make_proof(8)]))

    assert removed == 1
    assert wallet.proofs == (keep,)


def test_clear_empties_wallet_and_store() -> None:
    wallet, store = _loaded(make_proofs(1, 2))

    asyncio.run(wallet.clear())

    assert wallet.balance == 0
    assert asyncio.run(store.load()) == []


# ---------------------------------------------------------------- reconciliation


def test_prune_spent_drops_spent_and_pending() -> None:
    good, spent, pending = make_proofs(1, 2, 4)
    checker = FakeStateChecker()
    checker.mark([spent], ProofState.SPENT)
    checker.mark([pending], ProofState.PENDING)
    wallet, _ = _loaded([good, spent, pending], checker=checker)

    assert asyncio.run(wallet.prune_spent()) == 2
    assert wallet.proofs == (good,)


def test_prune_spent_fails_open_when_issuer_is_down() -> None:
    proofs = make_proofs(1, 2)
    checker = FakeStateChecker(error=TransportError("timeout"))
    wallet, store = _loaded(proofs, checker=checker)

    assert asyncio.run(wallet.prune_spent()) == 0
    assert wallet.proofs == tuple(proofs)
    assert store.save_count == 0


def test_check_proofs_requires_state_checker() -> None:
    wallet, _ = _loaded(make_proofs(1))

    with pytest.raises(ValidationError) as exc:
        asyncio.run(wallet.check_proofs())

    assert exc.value.error_code is ErrorCode.NO_STATE_CHECKER
    assert exc.value.suggestion is not None


def test_check_proofs_requires_loaded_wallet() -> None:
    wallet = _wallet(MemoryProofStore(make_proofs(1)), checker=FakeStateChecker())

    with pytest.raises(ValidationError) as exc:
        asyncio.run(wallet.check_proofs())

    assert exc.value.error_code is ErrorCode.WALLET_NOT_LOADED


def test_defragment_consolidates_small_proofs() -> None:
    wallet, _ = _loaded(make_proofs(*([1] * 6)), swapper=FakeSwapService())

    result = asyncio.run(wallet.defragment())

    assert result.previous_proof_count == 6
    assert result.new_proof_count == 2
    assert result.saved == 4
    assert result.new_balance == result.previous_balance == 6
    assert _amounts(wallet.proofs) == [2, 4]


def test_defrag_stats_reflect_held_set() -> None:
    wallet, _ = _loaded(make_proofs(*([1] * 20)))

    assert wallet.defrag_stats().recommendation == "urgent"
    assert wallet.needs_defragmentation()


# ---------------------------------------------------------------- preview


def test_preview_reports_swap_without_mutating() -> None:
    wallet, store = _loaded(make_proofs(8))

    preview = wallet.preview_token(5)

    assert preview.can_create
    assert preview.needs_swap
    assert preview.change == 3
    assert wallet.balance == 8
    assert store.save_count == 0


def test_preview_explains_shortfall() -> None:
    wallet, _ = _loaded(make_proofs(1, 2))

    preview = wallet.preview_token(10)

    assert not preview.can_create
    assert preview.available_denominations == [1, 2]
    assert preview.suggestion == "Add 7 more credits to your wallet."


def test_preview_rejects_invalid_amount() -> None:
    wallet, _ = _loaded(make_proofs(1))

    preview = wallet.preview_token(0)

    assert not preview.can_create
    assert preview.issue == "Amount must be a positive whole number"


# ---------------------------------------------------------------- history


def test_transactions_are_written_to_history() -> None:
    store = MemoryProofStore(make_proofs(1, 2, 4))
    history = HistoryLedger(store, AesGcmCipher.generate())
    wallet = _wallet(store, history=history)
    asyncio.run(wallet.load())

    asyncio.run(wallet.create_token(3))
    asyncio.run(
        wallet.receive_token(Token(issuer_url=ISSUER_URL, unit="sat", proofs=(make_proof(8),)))
    )

    result = asyncio.run(history.read())
    assert [(record.direction, record.amount) for record in result.records] == [
        (Direction.OUT, 3),
        (Direction.IN, 8),
    ]


class _BrokenHistoryStore(MemoryProofStore):
    async def save_history(self, entries: Sequence[str]) -> None:
        raise OSError("history volume full")


def test_history_failure_does_not_fail_transaction() -> None:
    store = _BrokenHistoryStore(make_proofs(1, 2))
    wallet = _wallet(store, history=HistoryLedger(store, AesGcmCipher.generate()))
    asyncio.run(wallet.load())
    recorder = EventRecorder(wallet.events)

    result = asyncio.run(wallet.create_token(3))

    assert result.token.amount == 3
    assert wallet.balance == 0
    assert WalletEvent.ERROR in recorder.names()
    assert recorder.names()[-1] is WalletEvent.TRANSACTION


# ---------------------------------------------------------------- serialisation


def test_merge_waits_for_in_flight_swap() -> None:
    store = MemoryProofStore(make_proofs(4))
    extra = make_proof(8)
    seen: list[tuple[Proof, ...]] = []

    async def add_extra(held: tuple[Proof, ...]) -> tuple[Proof, ...]:
        seen.append(held)
        return (*held, extra)

    async def scenario() -> WalletCore:
        swapper = GatedSwapService()
        wallet = _wallet(store, swapper=swapper)
        await wallet.load()
        spend = asyncio.create_task(wallet.create_token(3))
        await swapper.started.wait()
        merge = asyncio.create_task(wallet.merge(add_extra, reason=ProofSource.MERGE))
        await asyncio.sleep(0)
        assert seen == []
        swapper.release.set()
        await spend
        await merge
        return wallet

    wallet = asyncio.run(scenario())

    (held,) = seen
    assert _amounts(held) == [1]
    assert _amounts(wallet.proofs) == [1, 8]
    assert _amounts(asyncio.run(store.load())) == [1, 8]


def test_merge_returning_none_leaves_wallet_untouched() -> None:
    wallet, store = _loaded(make_proofs(1, 2))

    async def keep(held: tuple[Proof, ...]) -> None:
        return None

    held = asyncio.run(wallet.merge(keep))

    assert _amounts(held) == [1, 2]
    assert store.save_count == 0
