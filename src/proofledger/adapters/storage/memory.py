"""In-process proof and history store."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from proofledger.domain.model import Proof


class MemoryProofStore:
    def __init__(self, proofs: Sequence[Proof] = (), history: Sequence[str] = ()) -> None:
        self._proofs: tuple[Proof, ...] = tuple(proofs)
        self._history: tuple[str, ...] = tuple(history)
        self.save_count = 0

    async def load(self) -> list[Proof]:
        return list(self._proofs)

    async def save(self, proofs: Sequence[Proof]) -> None:
        self._proofs = tuple(proofs)
        self.save_count += 1

    async def clear(self) -> None:
        self._proofs = ()

    async def load_history(self) -> list[str]:
        return list(self._history)

    async def save_history(self, entries: Sequence[str]) -> None:
        self._history = tuple(entries)

    async def clear_history(self) -> None:
        self._history = ()
