"""Helpers for examining and summarising a held proof set."""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final, Literal

from proofledger.domain.model import denomination_histogram, total_amount

if TYPE_CHECKING:
    from collections.abc import Sequence

    from proofledger.domain.model import Proof

DefragRecommendation = Literal["none", "low", "recommended", "urgent"]

DEFAULT_SMALL_THRESHOLD: Final[int] = 4
DEFAULT_TARGET_DENOMINATIONS: Final[tuple[int, ...]] = (1, 2, 4, 8, 16, 32, 64)


@dataclass(frozen=True, slots=True)
class KeysetSummary:
    proof_count: int
    balance: int
    amounts: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class ProofSummary:
    total_proofs: int
    total_balance: int
    by_keyset: dict[str, KeysetSummary] = field(default_factory=dict)
    by_amount: dict[int, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class DefragStats:
    proof_count: int
    balance: int
    average_proof_size: float
    fragmentation: float
    small_proof_count: int
    recommendation: DefragRecommendation
    estimated_new_proof_count: int


def summarize_proofs(proofs: Sequence[Proof]) -> ProofSummary:
    grouped = group_by_keyset(proofs)
    by_keyset = {
        keyset_id: KeysetSummary(
            proof_count=len(members),
            balance=total_amount(members),
            amounts=tuple(sorted(proof.amount for proof in members)),
        )
        for keyset_id, members in grouped.items()
    }
    return ProofSummary(
        total_proofs=len(proofs),
        total_balance=total_amount(proofs),
        by_keyset=by_keyset,
        by_amount=denomination_histogram(proofs),
    )


def can_cover_amount(proofs: Sequence[Proof], amount: int) -> bool:
    return total_amount(proofs) >= amount


def find_optimal_proofs(proofs: Sequence[Proof], amount: int) -> list[Proof] | None:
    """Return the shortest ascending prefix of ``proofs`` covering ``amount``.

    ``None`` means the proofs cannot cover the amount at all.
    """

    if amount <= 0:
        return []
    if not can_cover_amount(proofs, amount):
        return None

    selected: list[Proof] = []
    remaining = amount
    for proof in sorted(proofs, key=lambda item: item.amount):
        if remaining <= 0:
            break
        selected.append(proof)
        remaining -= proof.amount
    return selected


def calculate_change(proofs: Sequence[Proof], amount: int) -> int:
    return max(0, total_amount(proofs) - amount)


def group_by_keyset(proofs: Sequence[Proof]) -> dict[str, list[Proof]]:
    groups: defaultdict[str, list[Proof]] = defaultdict(list)
    for proof in proofs:
        groups[proof.keyset_id].append(proof)
    return dict(groups)


def get_denominations(proofs: Sequence[Proof]) -> list[int]:
    return sorted({proof.amount for proof in proofs})


def format_balance(amount: int, *, unit: str | None = None) -> str:
    formatted = f"{amount:,}"
    return f"{formatted} {unit}" if unit else formatted


def get_defrag_stats(
    proofs: Sequence[Proof],
    *,
    small_threshold: int = DEFAULT_SMALL_THRESHOLD,
    target_denominations: Sequence[int] = DEFAULT_TARGET_DENOMINATIONS,
) -> DefragStats:
    """Score how fragmented the held set is compared to a power-of-two decomposition."""

    if not proofs:
        return DefragStats(
            proof_count=0,
            balance=0,
            average_proof_size=0.0,
            fragmentation=0.0,
            small_proof_count=0,
            recommendation="none",
            estimated_new_proof_count=0,
        )

    balance = total_amount(proofs)
    proof_count = len(proofs)
    small_proof_count = sum(1 for proof in proofs if proof.amount < small_threshold)
    optimal = _optimal_proof_count(balance, target_denominations)
    fragmentation = min(1.0, max(0.0, (proof_count - optimal) / proof_count))

    recommendation: DefragRecommendation = "none"
    if proof_count <= 3:
        recommendation = "none"
    elif fragmentation > 0.7 or small_proof_count > 10:
        recommendation = "urgent"
    elif fragmentation > 0.5 or small_proof_count > 5:
        recommendation = "recommended"
    elif fragmentation > 0.3 or small_proof_count > 2:
        recommendation = "low"

    return DefragStats(
        proof_count=proof_count,
        balance=balance,
        average_proof_size=balance / proof_count,
        fragmentation=fragmentation,
        small_proof_count=small_proof_count,
        recommendation=recommendation,
        estimated_new_proof_count=optimal,
    )


def needs_defragmentation(proofs: Sequence[Proof]) -> bool:
    return get_defrag_stats(proofs).recommendation in {"recommended", "urgent"}


def _optimal_proof_count(balance: int, denominations: Sequence[int]) -> int:
    if balance <= 0:
        return 0
    remaining = balance
    count = 0
    for denomination in sorted(denominations, reverse=True):
        uses, remaining = divmod(remaining, denomination)
        count += uses
    if remaining > 0:
        count += math.ceil(math.log2(remaining + 1))
    return max(1, count)
