"""Ports for talking to the issuing authority."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from proofledger.domain.model import IssuerInfo, Proof, SwapResult


@runtime_checkable
class StateChecker(Protocol):
    """Batched state lookup keyed by proof public identifier (``Y``).

    Identifiers missing from the returned mapping are unknown to the issuer.
    """

    async def check_state(self, ys: Sequence[str]) -> Mapping[str, str]: ...


@runtime_checkable
class SwapService(Protocol):
    """Exchange ``proofs`` for an exact ``amount`` plus change.

    The blind-signature protocol behind this call lives outside this package.
    """

    async def swap(self, proofs: Sequence[Proof], amount: int) -> SwapResult: ...


@runtime_checkable
class IssuerInfoSource(Protocol):
    """Issuer self-description; raises :class:`TransportError` when it cannot be fetched."""

    async def get_info(self) -> IssuerInfo: ...
