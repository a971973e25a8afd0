"""Ports for persisting the held proof set and the history ledger."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from proofledger.domain.model import Proof, Publication


@runtime_checkable
class ProofStore(Protocol):
    """Whole-set persistence for a wallet's proofs.

    ``load`` returns an independent copy (empty when nothing is stored, or when the stored
    data is malformed, in which case a warning is reported). ``save`` overwrites the stored
    set in a single step so a reader never observes a partial write.
    """

    async def load(self) -> list[Proof]: ...

    async def save(self, proofs: Sequence[Proof]) -> None: ...

    async def clear(self) -> None: ...


@runtime_checkable
class HistoryStore(Protocol):
    """Optional persistence of encrypted history entries."""

    async def load_history(self) -> list[str]: ...

    async def save_history(self, entries: Sequence[str]) -> None: ...

    async def clear_history(self) -> None: ...


@runtime_checkable
class PublishesRecords(Protocol):
    """Stores that mirror the held set to remote records expose what they last wrote."""

    @property
    def last_publication(self) -> Publication | None: ...
