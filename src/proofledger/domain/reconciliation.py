"""Validate held proofs against the issuer's state endpoint.

The service fails open: when the issuer cannot be reached, every proof is reported valid
and none spent. A false "valid" only risks a later payment rejection, which corrects itself,
while a false "spent" would prune good value from the wallet for good. Callers must not
treat a result obtained during a partition as strictly correct.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from proofledger.domain.model import CheckStateResult, ProofState

if TYPE_CHECKING:
    from collections.abc import Sequence

    from proofledger.domain.model import Proof
    from proofledger.domain.ports.issuer import StateChecker

log = getLogger(__name__)


@dataclass(slots=True)
class ReconciliationService:
    checker: StateChecker

    async def check_state(self, proofs: Sequence[Proof]) -> CheckStateResult:
        """Partition ``proofs`` into those the issuer reports unspent and everything else."""

        if not proofs:
            return CheckStateResult(valid=(), spent=())

        ys = [proof.public_id for proof in proofs]
        try:
            states = await self.checker.check_state(ys)
        except Exception as exc:  # noqa: BLE001
            log.warning(
                "State check failed for %d proofs, assuming all valid: %s",
                len(proofs),
                exc,
            )
            return CheckStateResult(valid=tuple(proofs), spent=())

        valid: list[Proof] = []
        spent: list[Proof] = []
        for proof in proofs:
            if states.get(proof.public_id) == ProofState.UNSPENT:
                valid.append(proof)
            else:
                spent.append(proof)

        if spent:
            log.info("State check found %d of %d proofs spent", len(spent), len(proofs))
        return CheckStateResult(valid=tuple(valid), spent=tuple(spent))

    async def is_valid(self, proof: Proof) -> bool:
        result = await self.check_state([proof])
        return len(result.valid) == 1
