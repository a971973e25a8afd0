"""Conflict detection and merge policies for local versus remote proof sets."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from proofledger.domain.model import Proof

MergePolicy = Callable[[tuple["Proof", ...], tuple["Proof", ...]], Sequence["Proof"]]


def has_conflict(local: Sequence[Proof], remote: Sequence[Proof]) -> bool:
    """True when some local proof is unknown to the remote copy.

    Proofs present only remotely are ordinary sync from another device, not a conflict.
    """

    remote_ids = {proof.public_id for proof in remote}
    return any(proof.public_id not in remote_ids for proof in local)


def remote_wins(local: tuple[Proof, ...], remote: tuple[Proof, ...]) -> tuple[Proof, ...]:
    """Adopt the remote set; the remote log is authoritative."""
    return remote


def union(local: tuple[Proof, ...], remote: tuple[Proof, ...]) -> tuple[Proof, ...]:
    """Keep every proof either side holds.

    Spent proofs kept this way are removed later by a state check.
    """

    merged = list(remote)
    seen = {proof.public_id for proof in remote}
    for proof in local:
        if proof.public_id not in seen:
            seen.add(proof.public_id)
            merged.append(proof)
    return tuple(merged)


def resolve(
    local: tuple[Proof, ...],
    remote: tuple[Proof, ...],
    policy: MergePolicy | None = None,
) -> tuple[tuple[Proof, ...], bool]:
    """Return the resolved set and whether a conflict was detected.

    ``policy`` is consulted only on conflict; otherwise the remote set is adopted.
    """

    if not has_conflict(local, remote):
        return remote, False
    chosen = (policy or remote_wins)(local, remote)
    return tuple(chosen), True
