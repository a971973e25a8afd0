"""Greedy proof selection strategies.

All strategies share one contract: given the held proofs and a target amount, return a
:class:`SelectionResult` whose selected total covers the amount, or ``None`` when the proofs
cannot cover it. Inputs are never mutated.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Protocol

from proofledger.domain.model import SelectionResult, total_amount, without

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from proofledger.domain.model import Proof


class ProofSelector(Protocol):
    def __call__(self, proofs: Sequence[Proof], amount: int) -> SelectionResult | None: ...


def empty_selection(proofs: Sequence[Proof]) -> SelectionResult:
    return SelectionResult(selected=(), keep=tuple(proofs))


def accumulate(
    ordered: Iterable[Proof],
    proofs: Sequence[Proof],
    amount: int,
) -> SelectionResult | None:
    """Take proofs from ``ordered`` until their total reaches ``amount``."""

    selected: list[Proof] = []
    running = 0
    for proof in ordered:
        if running >= amount:
            break
        selected.append(proof)
        running += proof.amount

    if running < amount:
        return None
    return SelectionResult(selected=tuple(selected), keep=without(proofs, selected))


def smallest_first(proofs: Sequence[Proof], amount: int) -> SelectionResult | None:
    """Spend small denominations first, consolidating the held set over time."""

    if amount <= 0:
        return empty_selection(proofs)
    ordered = sorted(proofs, key=lambda proof: proof.amount)
    return accumulate(ordered, proofs, amount)


def largest_first(proofs: Sequence[Proof], amount: int) -> SelectionResult | None:
    """Spend large denominations first, minimising the number of proofs sent."""

    if amount <= 0:
        return empty_selection(proofs)
    ordered = sorted(proofs, key=lambda proof: proof.amount, reverse=True)
    return accumulate(ordered, proofs, amount)


class RandomSelection:
    """Shuffle then accumulate, so spending patterns are harder to link across payments."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.SystemRandom()

    def __call__(self, proofs: Sequence[Proof], amount: int) -> SelectionResult | None:
        if amount <= 0:
            return empty_selection(proofs)
        if total_amount(proofs) < amount:
            return None

        shuffled = list(proofs)
        # Fisher-Yates
        for index in range(len(shuffled) - 1, 0, -1):
            swap_with = self._rng.randrange(index + 1)
            shuffled[index], shuffled[swap_with] = shuffled[swap_with], shuffled[index]

        return accumulate(shuffled, proofs, amount)


random_selection = RandomSelection()
