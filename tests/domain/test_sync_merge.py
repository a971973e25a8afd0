from __future__ import annotations

from proofledger.domain.sync import has_conflict, remote_wins, resolve, union
from tests.support.proofs import make_proofs


def test_local_only_proof_is_a_conflict() -> None:
    a, b = make_proofs(1, 2)

    assert has_conflict((a, b), (a,))
    assert not has_conflict((a,), (a, b))
    assert not has_conflict((), (a,))


def test_resolve_adopts_remote_without_conflict() -> None:
    a, b = make_proofs(1, 2)

    def never(local: object, remote: object) -> tuple[()]:
        raise AssertionError("policy must not run without a conflict")

    resolved, conflict = resolve((a,), (a, b), never)  # type: ignore[arg-type]

    assert resolved == (a, b)
    assert not conflict


def test_resolve_defaults_to_remote_wins_on_conflict() -> None:
    a, b = make_proofs(1, 2)

    resolved, conflict = resolve((a, b), (a,))

    assert resolved == (a,)
    assert conflict
    assert remote_wins((a, b), (a,)) == (a,)


def test_union_keeps_both_sides_once() -> None:
    a, b, c = make_proofs(1, 2, 4)

    resolved, conflict = resolve((a, b), (a, c), union)

    assert conflict
    assert resolved == (a, c, b)
