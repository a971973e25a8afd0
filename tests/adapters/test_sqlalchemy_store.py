from __future__ import annotations

import asyncio

from sqlalchemy import insert, select
from sqlalchemy.engine import Engine  # noqa: TC002

from proofledger.adapters.storage import SqlAlchemyProofStore, history_entry_table, proof_table
from tests.support.proofs import ISSUER_URL, make_proofs
from tests.support.sinks import RecordingSink


def _store(
    engine: Engine,
    *,
    unit: str = "sat",
    sink: RecordingSink | None = None,
) -> SqlAlchemyProofStore:
    return SqlAlchemyProofStore(engine, issuer_url=ISSUER_URL, unit=unit, diagnostics=sink)


def test_save_replaces_whole_set(sqlite_engine: Engine) -> None:
    store = _store(sqlite_engine)
    first = make_proofs(1, 2)
    second = make_proofs(8, 4)

    asyncio.run(store.save(first))
    asyncio.run(store.save(second))

    assert asyncio.run(store.load()) == second
    with sqlite_engine.connect() as connection:
        assert len(connection.execute(select(proof_table.c.id)).all()) == 2


def test_wallets_are_scoped_by_unit(sqlite_engine: Engine) -> None:
    sats = _store(sqlite_engine)
    dollars = _store(sqlite_engine, unit="usd")

    asyncio.run(sats.save(make_proofs(1)))
    asyncio.run(dollars.save(make_proofs(2, 4)))
    asyncio.run(sats.clear())

    assert asyncio.run(sats.load()) == []
    assert sum(proof.amount for proof in asyncio.run(dollars.load())) == 6


def test_corrupt_row_loads_empty_and_reports(sqlite_engine: Engine) -> None:
    with sqlite_engine.begin() as connection:
        connection.execute(
            insert(proof_table).values(
                issuer_url=ISSUER_URL,
                unit="sat",
                position=0,
                keyset_id="k",
                amount=0,
                secret="s",
                signature="c",
            )
        )
    sink = RecordingSink()

    assert asyncio.run(_store(sqlite_engine, sink=sink).load()) == []
    assert sink.messages == ["Stored proofs are corrupt; treating the wallet as empty"]


def test_history_keeps_order_and_original_timestamps(sqlite_engine: Engine) -> None:
    store = _store(sqlite_engine)

    asyncio.run(store.save_history(["a", "b"]))
    with sqlite_engine.connect() as connection:
        first_stamp = connection.execute(
            select(history_entry_table.c.stored_at).where(history_entry_table.c.position == 0)
        ).scalar_one()
    asyncio.run(store.save_history(["a", "b", "c"]))

    assert asyncio.run(store.load_history()) == ["a", "b", "c"]
    with sqlite_engine.connect() as connection:
        stamp = connection.execute(
            select(history_entry_table.c.stored_at).where(history_entry_table.c.position == 0)
        ).scalar_one()
    assert stamp == first_stamp
    assert stamp.tzinfo is not None

    asyncio.run(store.clear_history())
    assert asyncio.run(store.load_history()) == []
