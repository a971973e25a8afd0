"""Proof store that mirrors every save to the remote record log."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from proofledger.domain.ports.persistence import PublishesRecords

if TYPE_CHECKING:
    from collections.abc import Sequence

    from proofledger.domain.model import Proof, Publication
    from proofledger.domain.ports.persistence import ProofStore
    from proofledger.domain.ports.remote import RemoteProofSource

log = getLogger(__name__)


class MirroredProofStore:
    """Save locally first, then publish remotely.

    The local write decides success; a failed publish is logged and retried implicitly by the
    next save.
    """

    def __init__(self, local: ProofStore, remote: RemoteProofSource) -> None:
        self.local = local
        self.remote = remote
        self._published = False

    async def load(self) -> list[Proof]:
        return await self.local.load()

    async def save(self, proofs: Sequence[Proof]) -> None:
        await self.local.save(proofs)
        await self._publish(proofs)

    async def clear(self) -> None:
        await self.local.clear()
        await self._publish(())

    @property
    def last_publication(self) -> Publication | None:
        if not self._published or not isinstance(self.remote, PublishesRecords):
            return None
        return self.remote.last_publication

    async def _publish(self, proofs: Sequence[Proof]) -> None:
        try:
            await self.remote.save(proofs)
        except Exception as exc:  # noqa: BLE001
            self._published = False
            log.warning("Publishing %d proofs to the remote log failed: %s", len(proofs), exc)
            return
        self._published = True
