"""Proofs, tokens and the value types derived from them."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


@dataclass(frozen=True, slots=True)
class Proof:
    """A single fixed-denomination bearer token.

    Identity is the ``(secret, signature)`` pair. Possession implies spendability, so a
    proof carries no owner and is never mutated once created.
    """

    keyset_id: str
    amount: int
    secret: str
    signature: str

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise TypeError(f"Proof amount must be an int, got {type(self.amount).__name__}")
        if self.amount <= 0:
            raise ValueError(f"Proof amount must be positive, got {self.amount}")
        if not self.secret:
            raise ValueError("Proof secret must not be empty")
        if not self.signature:
            raise ValueError("Proof signature must not be empty")

    @property
    def identity(self) -> tuple[str, str]:
        return (self.secret, self.signature)

    @property
    def public_id(self) -> str:
        """Identifier sent to the issuer and compared across devices."""
        return self.signature


@dataclass(frozen=True, slots=True)
class Token:
    """Transmissible envelope of proofs bound to an issuer and unit."""

    issuer_url: str
    unit: str
    proofs: tuple[Proof, ...]
    memo: str | None = None

    @property
    def amount(self) -> int:
        return total_amount(self.proofs)


@dataclass(frozen=True, slots=True)
class SelectionResult:
    """Proofs chosen to cover an amount plus the residual held set."""

    selected: tuple[Proof, ...]
    keep: tuple[Proof, ...]

    @property
    def selected_total(self) -> int:
        return total_amount(self.selected)

    def change_for(self, amount: int) -> int:
        return max(0, self.selected_total - amount)


@dataclass(frozen=True, slots=True)
class SwapResult:
    """Issuer swap outputs: ``send`` sums to the requested amount, ``keep`` is change."""

    send: tuple[Proof, ...]
    keep: tuple[Proof, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class CheckStateResult:
    valid: tuple[Proof, ...]
    spent: tuple[Proof, ...]


def total_amount(proofs: Iterable[Proof]) -> int:
    return sum(proof.amount for proof in proofs)


def denomination_histogram(proofs: Iterable[Proof]) -> dict[int, int]:
    counts = Counter(proof.amount for proof in proofs)
    return dict(sorted(counts.items()))


def without(proofs: Iterable[Proof], removed: Iterable[Proof]) -> tuple[Proof, ...]:
    """Return ``proofs`` minus every proof whose identity appears in ``removed``."""

    removed_ids = {proof.identity for proof in removed}
    return tuple(proof for proof in proofs if proof.identity not in removed_ids)
