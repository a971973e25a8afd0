"""Application wiring and orchestration entry points."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from proofledger.adapters.crypto import AesGcmCipher
from proofledger.adapters.issuer import HttpIssuerClient
from proofledger.adapters.storage import JsonFileProofStore, SqlAlchemyProofStore
from proofledger.config import get_storage_config, get_wallet_config
from proofledger.domain.health import HealthMonitor
from proofledger.domain.history import HistoryLedger, HistoryPage, HistoryQuery
from proofledger.domain.inspect import summarize_proofs
from proofledger.domain.ports.persistence import HistoryStore
from proofledger.domain.reconciliation import ReconciliationService
from proofledger.domain.selection import get_selector
from proofledger.domain.token import encode_token
from proofledger.domain.wallet import WalletCore

if TYPE_CHECKING:
    from proofledger.config import StorageConfig, WalletConfig
    from proofledger.domain.health import WalletHealth
    from proofledger.domain.inspect import ProofSummary
    from proofledger.domain.model import CheckStateResult
    from proofledger.domain.ports.issuer import StateChecker, SwapService
    from proofledger.domain.ports.persistence import ProofStore

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CheckReport:
    result: CheckStateResult
    pruned: int
    balance: int

    @property
    def spent_amount(self) -> int:
        return sum(proof.amount for proof in self.result.spent)


def build_proof_store(
    config: WalletConfig,
    *,
    storage: StorageConfig | None = None,
) -> ProofStore:
    storage_config = storage or get_storage_config()
    if config.storage_backend == "sqlite":
        return SqlAlchemyProofStore.from_uri(
            storage_config.database_uri(), issuer_url=config.issuer_url, unit=config.unit
        )
    return JsonFileProofStore(
        storage_config.wallet_path(), issuer_url=config.issuer_url, unit=config.unit
    )


def build_history_ledger(config: WalletConfig, store: ProofStore) -> HistoryLedger | None:
    if config.history_key is None:
        log.debug("No history key configured; spending history is disabled")
        return None
    if not isinstance(store, HistoryStore):
        log.warning("Store %s cannot hold history entries", type(store).__name__)
        return None
    cipher = AesGcmCipher(config.history_key, associated_data=config.issuer_url.encode())
    return HistoryLedger(store, cipher)


def build_wallet(
    config: WalletConfig | None = None,
    *,
    store: ProofStore | None = None,
    checker: StateChecker | None = None,
    swapper: SwapService | None = None,
) -> WalletCore:
    """Assemble a wallet from configuration; explicit collaborators take precedence."""

    effective_config = config or get_wallet_config()
    effective_store = store or build_proof_store(effective_config)
    effective_checker = checker or HttpIssuerClient(
        effective_config.issuer_url, resilience=effective_config.resilience
    )
    return WalletCore(
        issuer_url=effective_config.issuer_url,
        unit=effective_config.unit,
        store=effective_store,
        selector=get_selector(effective_config.selector),
        swapper=swapper,
        reconciliation=ReconciliationService(effective_checker),
        history=build_history_ledger(effective_config, effective_store),
    )


async def check_wallet(wallet: WalletCore, *, prune: bool = False) -> CheckReport:
    """Check every held proof with the issuer, optionally dropping the spent ones."""

    if not wallet.is_loaded:
        await wallet.load()
    result = await wallet.check_proofs()
    pruned = 0
    if prune and result.spent:
        pruned = await wallet.prune_spent()
    log.info(
        "Checked %d proofs: valid=%d, spent=%d, pruned=%d",
        len(result.valid) + len(result.spent),
        len(result.valid),
        len(result.spent),
        pruned,
    )
    return CheckReport(result=result, pruned=pruned, balance=wallet.balance)


def build_health_monitor(config: WalletConfig | None = None) -> HealthMonitor:
    effective_config = config or get_wallet_config()
    client = HttpIssuerClient(effective_config.issuer_url, resilience=effective_config.resilience)
    return HealthMonitor(effective_config.issuer_url, info_source=client, checker=client)


def wallet_health(
    *,
    include_details: bool = False,
    skip_proof_check: bool = False,
    wallet: WalletCore | None = None,
    monitor: HealthMonitor | None = None,
) -> WalletHealth:
    """Score the held proofs; nothing is pruned or otherwise changed."""

    effective_wallet = wallet or build_wallet()
    effective_monitor = monitor or build_health_monitor()

    async def run() -> WalletHealth:
        await effective_wallet.load()
        return await effective_monitor.check(
            effective_wallet.proofs,
            include_details=include_details,
            skip_proof_check=skip_proof_check,
        )

    return asyncio.run(run())


def wallet_summary(*, wallet: WalletCore | None = None) -> ProofSummary:
    effective_wallet = wallet or build_wallet()

    async def run() -> ProofSummary:
        await effective_wallet.load()
        return summarize_proofs(effective_wallet.proofs)

    return asyncio.run(run())


def check_wallet_proofs(*, prune: bool = False, wallet: WalletCore | None = None) -> CheckReport:
    effective_wallet = wallet or build_wallet()
    return asyncio.run(check_wallet(effective_wallet, prune=prune))


def send_token(amount: int, *, wallet: WalletCore | None = None) -> str:
    """Create a token for ``amount`` and return it encoded."""

    effective_wallet = wallet or build_wallet()

    async def run() -> str:
        await effective_wallet.load()
        result = await effective_wallet.create_token(amount)
        return encode_token(result.token)

    return asyncio.run(run())


def receive_token(encoded: str, *, wallet: WalletCore | None = None) -> int:
    effective_wallet = wallet or build_wallet()

    async def run() -> int:
        await effective_wallet.load()
        return await effective_wallet.receive_token(encoded)

    return asyncio.run(run())


def spending_history(
    query: HistoryQuery | None = None,
    *,
    wallet: WalletCore | None = None,
) -> HistoryPage:
    effective_wallet = wallet or build_wallet()
    ledger = effective_wallet.history
    if ledger is None:
        raise RuntimeError("Spending history is disabled; set PROOFLEDGER_HISTORY_KEY")
    return asyncio.run(ledger.query(query))
