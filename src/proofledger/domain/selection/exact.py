"""Zero-change selection via bounded subset-sum.

The search fills a table indexed by partial sum (``0 .. amount - 1``), where each slot holds
the proof indices that first reached that sum. Each proof is scanned once and sums are
updated from high to low so a proof is never counted twice. The cost is pseudo-polynomial,
``O(len(proofs) * amount)``, so the search only runs while both stay under the configured
caps. Above them the strategy falls back to :func:`smallest_first`; that is an approximation
of optimal change, not a correctness defect, since any covering selection is valid.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from proofledger.domain.model import SelectionResult, total_amount, without

from .greedy import empty_selection, smallest_first

if TYPE_CHECKING:
    from collections.abc import Sequence

    from proofledger.domain.model import Proof

EXACT_MATCH_MAX_PROOFS: Final[int] = 50
EXACT_MATCH_MAX_TARGET: Final[int] = 10_000


def find_exact_subset(proofs: Sequence[Proof], target: int) -> tuple[Proof, ...] | None:
    """Return proofs summing exactly to ``target`` or ``None`` if no subset does."""

    if target <= 0:
        return ()

    reachable: list[tuple[int, ...] | None] = [None] * target
    reachable[0] = ()

    for index, proof in enumerate(proofs):
        if proof.amount > target:
            continue
        for partial in range(target - 1, -1, -1):
            path = reachable[partial]
            if path is None:
                continue
            new_sum = partial + proof.amount
            if new_sum == target:
                return tuple(proofs[i] for i in (*path, index))
            if new_sum < target and reachable[new_sum] is None:
                reachable[new_sum] = (*path, index)

    return None


@dataclass(frozen=True, slots=True)
class ExactMatch:
    """Prefer a zero-change subset, otherwise behave like smallest-first."""

    max_proofs: int = EXACT_MATCH_MAX_PROOFS
    max_target: int = EXACT_MATCH_MAX_TARGET

    def __call__(self, proofs: Sequence[Proof], amount: int) -> SelectionResult | None:
        if amount <= 0:
            return empty_selection(proofs)
        if total_amount(proofs) < amount:
            return None

        if len(proofs) <= self.max_proofs and amount <= self.max_target:
            exact = find_exact_subset(proofs, amount)
            if exact is not None:
                return SelectionResult(selected=exact, keep=without(proofs, exact))

        return smallest_first(proofs, amount)


exact_match = ExactMatch()
