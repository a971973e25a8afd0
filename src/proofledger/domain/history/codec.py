"""Tuple encoding for spending records.

A record is a JSON list of string tuples. Two-element tuples carry scalar fields; tagged
reference tuples take the form ``["e", <record id>, "", <marker>]``. Unknown tuples are
ignored on read so new tags can be added without migrating stored history.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Final, cast

from proofledger.domain.model import Direction, SpendingRecord

REFERENCE_TAG: Final[str] = "e"
MARKER_CREATED: Final[str] = "created"
MARKER_DESTROYED: Final[str] = "destroyed"
MARKER_REDEEMED: Final[str] = "redeemed"


class MalformedRecordError(ValueError):
    """Raised when a decrypted history entry cannot be parsed."""


def encode_record(record: SpendingRecord) -> str:
    tuples: list[list[str]] = [
        ["direction", record.direction.value],
        ["amount", str(record.amount)],
        ["unit", record.unit],
    ]
    if record.created_record_id:
        tuples.append([REFERENCE_TAG, record.created_record_id, "", MARKER_CREATED])
    tuples.extend(
        [REFERENCE_TAG, record_id, "", MARKER_DESTROYED]
        for record_id in record.destroyed_record_ids
    )
    if record.linked_external_event_id:
        tuples.append([REFERENCE_TAG, record.linked_external_event_id, "", MARKER_REDEEMED])
    tuples.append(["timestamp", record.timestamp.astimezone(UTC).isoformat()])
    return json.dumps(tuples, separators=(",", ":"))


def _parse_tuples(plaintext: str) -> list[list[str]]:
    try:
        loaded = json.loads(plaintext)
    except json.JSONDecodeError as exc:
        raise MalformedRecordError(f"History entry is not JSON: {exc.msg}") from exc
    if not isinstance(loaded, list):
        raise MalformedRecordError("History entry must be a list of tuples")
    tuples: list[list[str]] = []
    for item in cast(list[object], loaded):
        if not isinstance(item, list) or len(cast(list[object], item)) < 2:
            raise MalformedRecordError(f"Invalid history tuple: {item!r}")
        values = cast(list[object], item)
        if not all(isinstance(value, str) for value in values):
            raise MalformedRecordError(f"History tuple values must be strings: {item!r}")
        tuples.append(cast(list[str], values))
    return tuples


def decode_record(plaintext: str) -> SpendingRecord:
    direction: Direction | None = None
    amount: int | None = None
    unit = "sat"
    created: str | None = None
    destroyed: list[str] = []
    redeemed: str | None = None
    timestamp: datetime | None = None

    for entry in _parse_tuples(plaintext):
        key, value = entry[0], entry[1]
        marker = entry[3] if len(entry) > 3 else None
        match key:
            case "direction":
                try:
                    direction = Direction(value)
                except ValueError as exc:
                    raise MalformedRecordError(f"Unknown direction {value!r}") from exc
            case "amount":
                try:
                    amount = int(value)
                except ValueError as exc:
                    raise MalformedRecordError(f"Invalid amount {value!r}") from exc
            case "unit":
                unit = value
            case "timestamp":
                try:
                    timestamp = datetime.fromisoformat(value)
                except ValueError as exc:
                    raise MalformedRecordError(f"Invalid timestamp {value!r}") from exc
            case "e" if marker == MARKER_CREATED:
                created = value
            case "e" if marker == MARKER_DESTROYED:
                destroyed.append(value)
            case "e" if marker == MARKER_REDEEMED:
                redeemed = value
            case _:
                continue

    if direction is None:
        raise MalformedRecordError("History entry has no direction")
    if amount is None or amount < 0:
        raise MalformedRecordError("History entry has no valid amount")
    if timestamp is None:
        timestamp = datetime.now(tz=UTC)
    elif timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)

    return SpendingRecord(
        direction=direction,
        amount=amount,
        unit=unit,
        created_record_id=created,
        destroyed_record_ids=tuple(destroyed),
        linked_external_event_id=redeemed,
        timestamp=timestamp,
    )
