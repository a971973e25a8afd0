"""Wallet health: issuer reachability plus the state of every held proof.

A report starts at a score of 100 and loses points per problem found:

- issuer unreachable: 40
- issuer latency above two seconds: 10
- state check failed: 20
- more than half of the proofs not spendable: 30, more than a tenth: 15, any: 5
- proofs from keysets the issuer does not list: 15

The score never drops below zero. A wallet scoring at least 70 counts as healthy.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Final

from proofledger.domain.errors import TransportError
from proofledger.domain.inspect import summarize_proofs
from proofledger.domain.model import ProofState, total_amount

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from proofledger.domain.model import Proof
    from proofledger.domain.ports.issuer import IssuerInfoSource, StateChecker

log = getLogger(__name__)

HEALTHY_SCORE: Final[int] = 70
HIGH_LATENCY_MS: Final[float] = 2000.0
DEFAULT_TIMEOUT_SECONDS: Final[float] = 5.0
QUICK_TIMEOUT_SECONDS: Final[float] = 3.0

UNREACHABLE_PENALTY: Final[int] = 40
LATENCY_PENALTY: Final[int] = 10
CHECK_FAILED_PENALTY: Final[int] = 20
UNKNOWN_KEYSET_PENALTY: Final[int] = 15


class ProofHealthStatus(StrEnum):
    VALID = "valid"
    SPENT = "spent"
    PENDING = "pending"
    UNKNOWN = "unknown"


_STATUS_BY_STATE: Final[dict[str, ProofHealthStatus]] = {
    ProofState.UNSPENT: ProofHealthStatus.VALID,
    ProofState.SPENT: ProofHealthStatus.SPENT,
    ProofState.PENDING: ProofHealthStatus.PENDING,
}


@dataclass(frozen=True, slots=True)
class ProofHealth:
    proof: Proof
    status: ProofHealthStatus


@dataclass(frozen=True, slots=True)
class IssuerStatus:
    url: str
    reachable: bool
    latency_ms: float | None = None
    error: str | None = None
    keysets: tuple[str, ...] | None = None


@dataclass(frozen=True, slots=True)
class ProofStats:
    """Counts per status.

    ``at_risk_balance`` is the value the issuer reported spent or pending. Unchecked proofs
    count as unknown and add to neither balance.
    """

    total: int
    valid: int = 0
    spent: int = 0
    pending: int = 0
    unknown: int = 0
    valid_balance: int = 0
    at_risk_balance: int = 0


@dataclass(frozen=True, slots=True)
class WalletHealth:
    checked_at: datetime
    issuer: IssuerStatus
    score: int
    issues: tuple[str, ...]
    proofs: ProofStats
    details: tuple[ProofHealth, ...] | None = None

    @property
    def healthy(self) -> bool:
        return self.score >= HEALTHY_SCORE


@dataclass(frozen=True, slots=True)
class QuickHealth:
    score: int
    healthy: bool
    issue: str | None = None


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _spendability_penalty(at_risk: int, total: int) -> tuple[int, str] | None:
    if not at_risk:
        return None
    ratio = at_risk / total
    if ratio > 0.5:
        return 30, f"{round(ratio * 100)}% of proofs are not spendable"
    if ratio > 0.1:
        return 15, f"{at_risk} proofs are not spendable"
    return 5, f"{at_risk} unspendable proof(s) found"


def _stats(statuses: Sequence[ProofHealth]) -> ProofStats:
    by_status: dict[ProofHealthStatus, list[Proof]] = {status: [] for status in ProofHealthStatus}
    for item in statuses:
        by_status[item.status].append(item.proof)
    valid = by_status[ProofHealthStatus.VALID]
    return ProofStats(
        total=len(statuses),
        valid=len(valid),
        spent=len(by_status[ProofHealthStatus.SPENT]),
        pending=len(by_status[ProofHealthStatus.PENDING]),
        unknown=len(by_status[ProofHealthStatus.UNKNOWN]),
        valid_balance=total_amount(valid),
        at_risk_balance=total_amount(
            (*by_status[ProofHealthStatus.SPENT], *by_status[ProofHealthStatus.PENDING])
        ),
    )


def _classify(proofs: Sequence[Proof], states: Mapping[str, str]) -> tuple[ProofHealth, ...]:
    """Proofs the issuer does not mention at all are reported spent."""

    return tuple(
        ProofHealth(
            proof,
            _STATUS_BY_STATE.get(states.get(proof.public_id, ""), ProofHealthStatus.SPENT),
        )
        for proof in proofs
    )


@dataclass(slots=True)
class HealthMonitor:
    """Scores a wallet's held proofs against one issuer."""

    issuer_url: str
    info_source: IssuerInfoSource
    checker: StateChecker
    clock: Callable[[], float] = field(default=time.perf_counter)
    now: Callable[[], datetime] = field(default=_utcnow)

    async def issuer_status(
        self, *, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    ) -> IssuerStatus:
        started = self.clock()
        try:
            async with asyncio.timeout(timeout_seconds):
                info = await self.info_source.get_info()
        except TimeoutError:
            return IssuerStatus(
                url=self.issuer_url,
                reachable=False,
                error=f"no answer within {timeout_seconds:g}s",
            )
        except TransportError as exc:
            return IssuerStatus(url=self.issuer_url, reachable=False, error=str(exc))
        latency_ms = (self.clock() - started) * 1000
        return IssuerStatus(
            url=self.issuer_url,
            reachable=True,
            latency_ms=latency_ms,
            keysets=info.keysets,
        )

    async def check(
        self,
        proofs: Sequence[Proof],
        *,
        include_details: bool = False,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        skip_proof_check: bool = False,
    ) -> WalletHealth:
        """Report issuer reachability, per-proof state and an overall score.

        Proofs are only checked when the issuer answered and ``skip_proof_check`` is unset;
        otherwise every proof is counted as unknown.
        """

        checked_at = self.now()
        issues: list[str] = []
        score = 100

        issuer = await self.issuer_status(timeout_seconds=timeout_seconds)
        if not issuer.reachable:
            issues.append(f"Issuer unreachable: {issuer.error or 'connection failed'}")
            score -= UNREACHABLE_PENALTY
        elif issuer.latency_ms is not None and issuer.latency_ms > HIGH_LATENCY_MS:
            issues.append(f"Issuer latency high: {issuer.latency_ms:.0f}ms")
            score -= LATENCY_PENALTY

        statuses = tuple(ProofHealth(proof, ProofHealthStatus.UNKNOWN) for proof in proofs)
        if not proofs:
            issues.append("Wallet is empty")
        elif issuer.reachable and not skip_proof_check:
            try:
                states = await self.checker.check_state([proof.public_id for proof in proofs])
            except TransportError as exc:
                log.warning("Health check could not read proof states: %s", exc)
                issues.append(f"Proof check failed: {exc}")
                score -= CHECK_FAILED_PENALTY
            else:
                statuses = _classify(proofs, states)

        stats = _stats(statuses)
        penalty = _spendability_penalty(stats.spent + stats.pending, stats.total)
        if penalty is not None:
            points, issue = penalty
            issues.append(issue)
            score -= points

        if issuer.keysets is not None and proofs:
            unknown_keysets = set(summarize_proofs(proofs).by_keyset) - set(issuer.keysets)
            if unknown_keysets:
                issues.append(f"{len(unknown_keysets)} keyset(s) not recognized by issuer")
                score -= UNKNOWN_KEYSET_PENALTY

        report = WalletHealth(
            checked_at=checked_at,
            issuer=issuer,
            score=max(0, score),
            issues=tuple(issues),
            proofs=stats,
            details=statuses if include_details else None,
        )
        log.info("Wallet health %d/100 with %d issue(s)", report.score, len(report.issues))
        return report

    async def quick_check(self, proofs: Sequence[Proof]) -> QuickHealth:
        """Score and the first issue only, with a shorter issuer timeout."""

        report = await self.check(proofs, timeout_seconds=QUICK_TIMEOUT_SECONDS)
        return QuickHealth(
            score=report.score,
            healthy=report.healthy,
            issue=report.issues[0] if report.issues else None,
        )
