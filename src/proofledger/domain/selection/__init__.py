"""Proof selection strategies."""

from __future__ import annotations

from proofledger.domain.model import SelectionStrategy

from .exact import (
    EXACT_MATCH_MAX_PROOFS,
    EXACT_MATCH_MAX_TARGET,
    ExactMatch,
    exact_match,
    find_exact_subset,
)
from .greedy import (
    ProofSelector,
    RandomSelection,
    largest_first,
    random_selection,
    smallest_first,
)

SELECTORS: dict[SelectionStrategy, ProofSelector] = {
    SelectionStrategy.SMALLEST_FIRST: smallest_first,
    SelectionStrategy.LARGEST_FIRST: largest_first,
    SelectionStrategy.EXACT_MATCH: exact_match,
    SelectionStrategy.RANDOM: random_selection,
}


def get_selector(strategy: SelectionStrategy | str) -> ProofSelector:
    return SELECTORS[SelectionStrategy(strategy)]


__all__ = [
    "EXACT_MATCH_MAX_PROOFS",
    "EXACT_MATCH_MAX_TARGET",
    "SELECTORS",
    "ExactMatch",
    "ProofSelector",
    "RandomSelection",
    "exact_match",
    "find_exact_subset",
    "get_selector",
    "largest_first",
    "random_selection",
    "smallest_first",
]
