"""Append-only, encrypted spending history."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from proofledger.domain.model import Direction
from proofledger.domain.ports.crypto import DecryptionFailedError
from proofledger.domain.ports.diagnostics import logging_sink

from .codec import MalformedRecordError, decode_record, encode_record

if TYPE_CHECKING:
    from datetime import datetime

    from proofledger.domain.model import SpendingRecord
    from proofledger.domain.ports.crypto import RecordCipher
    from proofledger.domain.ports.diagnostics import DiagnosticSink
    from proofledger.domain.ports.persistence import HistoryStore

log = getLogger(__name__)

SortOrder = Literal["asc", "desc"]


@dataclass(frozen=True, slots=True)
class SkippedEntry:
    index: int
    reason: str


@dataclass(frozen=True, slots=True)
class HistoryReadResult:
    records: tuple[SpendingRecord, ...]
    skipped: tuple[SkippedEntry, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class HistoryQuery:
    direction: Direction | None = None
    since: datetime | None = None
    until: datetime | None = None
    limit: int | None = 50
    offset: int = 0
    order: SortOrder = "desc"


@dataclass(frozen=True, slots=True)
class HistoryPage:
    records: tuple[SpendingRecord, ...]
    total: int
    has_more: bool


@dataclass(frozen=True, slots=True)
class HistorySummary:
    total_sent: int
    total_received: int
    transaction_count: int

    @property
    def net_change(self) -> int:
        return self.total_received - self.total_sent


class HistoryLedger:
    """Encrypts records on append and decrypts them on read.

    An entry that fails to decrypt or parse is skipped and reported; it never hides the rest
    of the ledger.
    """

    def __init__(
        self,
        store: HistoryStore,
        cipher: RecordCipher,
        *,
        diagnostics: DiagnosticSink | None = None,
    ) -> None:
        self._store = store
        self._cipher = cipher
        self._diagnostics = diagnostics or logging_sink(log)

    async def append(self, record: SpendingRecord) -> None:
        entries = await self._store.load_history()
        entries.append(self._cipher.encrypt(encode_record(record)))
        await self._store.save_history(entries)
        log.debug(
            "Appended %s history record of %d %s", record.direction, record.amount, record.unit
        )

    async def read(self) -> HistoryReadResult:
        """Return every readable record in append order, plus the entries that were skipped."""

        entries = await self._store.load_history()
        records: list[SpendingRecord] = []
        skipped: list[SkippedEntry] = []
        for index, entry in enumerate(entries):
            try:
                records.append(decode_record(self._cipher.decrypt(entry)))
            except (DecryptionFailedError, MalformedRecordError) as exc:
                skipped.append(SkippedEntry(index=index, reason=str(exc)))
                self._diagnostics("Skipping unreadable history entry", index=index, reason=str(exc))
        return HistoryReadResult(records=tuple(records), skipped=tuple(skipped))

    async def query(self, query: HistoryQuery | None = None) -> HistoryPage:
        query = query or HistoryQuery()
        result = await self.read()
        matching = [record for record in result.records if _matches(record, query)]
        matching.sort(key=lambda record: record.timestamp, reverse=query.order == "desc")

        start = max(0, query.offset)
        end = None if query.limit is None else start + max(0, query.limit)
        page = matching[start:end]
        return HistoryPage(
            records=tuple(page),
            total=len(matching),
            has_more=end is not None and end < len(matching),
        )

    async def summary(
        self,
        *,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> HistorySummary:
        result = await self.read()
        window = HistoryQuery(since=since, until=until)
        sent = received = count = 0
        for record in result.records:
            if not _matches(record, window):
                continue
            count += 1
            if record.direction is Direction.IN:
                received += record.amount
            else:
                sent += record.amount
        return HistorySummary(total_sent=sent, total_received=received, transaction_count=count)

    async def clear(self) -> None:
        await self._store.clear_history()


def _matches(record: SpendingRecord, query: HistoryQuery) -> bool:
    if query.direction is not None and record.direction is not query.direction:
        return False
    if query.since is not None and record.timestamp < query.since:
        return False
    return not (query.until is not None and record.timestamp > query.until)
