"""Spending history records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from .enums import Direction


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True, kw_only=True)
class SpendingRecord:
    """Append-only audit entry for an inbound or outbound value movement."""

    direction: Direction
    amount: int
    unit: str
    created_record_id: str | None = None
    destroyed_record_ids: tuple[str, ...] = ()
    linked_external_event_id: str | None = None
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def signed_amount(self) -> int:
        return self.amount if self.direction is Direction.IN else -self.amount
