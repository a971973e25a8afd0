from __future__ import annotations

import asyncio
import json
from pathlib import Path  # noqa: TC003

from proofledger.adapters.storage import JsonFileProofStore
from tests.support.proofs import ISSUER_URL, make_proofs
from tests.support.sinks import RecordingSink


def _store(path: Path, sink: RecordingSink | None = None) -> JsonFileProofStore:
    return JsonFileProofStore(path, issuer_url=ISSUER_URL, unit="sat", diagnostics=sink)


def test_missing_file_loads_empty(tmp_path: Path) -> None:
    sink = RecordingSink()

    assert asyncio.run(_store(tmp_path / "wallet.json", sink).load()) == []
    assert sink.reports == []


def test_save_then_load_preserves_order_and_fields(tmp_path: Path) -> None:
    store = _store(tmp_path / "nested" / "wallet.json")
    proofs = make_proofs(8, 1, 4)

    asyncio.run(store.save(proofs))

    assert asyncio.run(store.load()) == proofs


def test_saving_loaded_set_leaves_document_unchanged(tmp_path: Path) -> None:
    path = tmp_path / "wallet.json"
    store = _store(path)
    asyncio.run(store.save(make_proofs(1, 2)))
    before = path.read_text(encoding="utf-8")

    asyncio.run(store.save(asyncio.run(store.load())))

    assert path.read_text(encoding="utf-8") == before


def test_document_uses_wire_field_names(tmp_path: Path) -> None:
    path = tmp_path / "wallet.json"
    (proof,) = make_proofs(2)

    asyncio.run(_store(path).save([proof]))

    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["issuer_url"] == ISSUER_URL
    assert document["unit"] == "sat"
    assert document["proofs"] == [
        {"id": proof.keyset_id, "amount": 2, "secret": proof.secret, "C": proof.signature}
    ]


def test_proofs_and_history_are_saved_independently(tmp_path: Path) -> None:
    store = _store(tmp_path / "wallet.json")
    proofs = make_proofs(4)

    asyncio.run(store.save(proofs))
    asyncio.run(store.save_history(["entry-1", "entry-2"]))
    asyncio.run(store.clear())

    assert asyncio.run(store.load()) == []
    assert asyncio.run(store.load_history()) == ["entry-1", "entry-2"]

    asyncio.run(store.clear_history())
    assert asyncio.run(store.load_history()) == []


def test_corrupt_file_loads_empty_and_is_moved_aside(tmp_path: Path) -> None:
    path = tmp_path / "wallet.json"
    path.write_text('{"proofs": [{"amount": "lots"}]', encoding="utf-8")
    sink = RecordingSink()
    store = _store(path, sink)

    assert asyncio.run(store.load()) == []
    assert sink.messages == ["Wallet file is corrupt; treating it as empty"]

    proofs = make_proofs(1)
    asyncio.run(store.save(proofs))

    backup = tmp_path / "wallet.json.corrupt"
    assert backup.read_text(encoding="utf-8") == '{"proofs": [{"amount": "lots"}]'
    assert asyncio.run(store.load()) == proofs


def test_invalid_proof_in_document_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "wallet.json"
    path.write_text(
        json.dumps({"proofs": [{"id": "k", "amount": 0, "secret": "s", "C": "c"}]}),
        encoding="utf-8",
    )
    sink = RecordingSink()

    assert asyncio.run(_store(path, sink).load()) == []
    assert len(sink.reports) == 1


def test_write_leaves_no_temporary_files(tmp_path: Path) -> None:
    store = _store(tmp_path / "wallet.json")

    asyncio.run(store.save(make_proofs(1, 2)))
    asyncio.run(store.save(make_proofs(4)))

    assert sorted(path.name for path in tmp_path.iterdir()) == ["wallet.json"]
