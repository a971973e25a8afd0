"""Proof and history persistence on the owner's remote record log."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from proofledger.domain.model import Publication, RecordKind, RemoteRecord
from proofledger.domain.ports.crypto import DecryptionFailedError
from proofledger.domain.ports.diagnostics import logging_sink
from proofledger.domain.token import same_issuer
from proofledger.schema import ProofPayload

from .schema import ProofRecordContent

if TYPE_CHECKING:
    from collections.abc import Sequence

    from proofledger.domain.model import Proof
    from proofledger.domain.ports.crypto import RecordCipher
    from proofledger.domain.ports.diagnostics import DiagnosticSink
    from proofledger.domain.ports.remote import RawRecord, RecordRelay

log = getLogger(__name__)


class RemoteProofStore:
    """Keep the held set as one encrypted record per ``(issuer, unit)`` on the relay.

    A save publishes a new record listing the ids it replaces under ``del`` and then deletes
    them. Publishing before deleting means a failed save leaves the previous record intact.
    Emptying the wallet publishes a record with no proofs so other devices are notified.
    Saving the set that was last loaded or saved publishes nothing.
    """

    def __init__(
        self,
        relay: RecordRelay,
        cipher: RecordCipher,
        *,
        account: str,
        issuer_url: str,
        unit: str,
        diagnostics: DiagnosticSink | None = None,
    ) -> None:
        self.relay = relay
        self.cipher = cipher
        self.account = account
        self.issuer_url = issuer_url
        self.unit = unit
        self._diagnostics = diagnostics or logging_sink(log)
        self._current_ids: tuple[str, ...] = ()
        self._own_ids: set[str] = set()
        self._known: frozenset[tuple[str, str]] | None = None
        self._last_publication: Publication | None = None
        self._history_ids: dict[str, str] = {}

    @property
    def last_publication(self) -> Publication | None:
        return self._last_publication

    @property
    def current_record_ids(self) -> tuple[str, ...]:
        return self._current_ids

    def is_own_record(self, record_id: str) -> bool:
        return record_id in self._own_ids

    def has_records(self) -> bool:
        return bool(self._current_ids)

    # ---------------------------------------------------------------- proofs

    async def load_records(self) -> list[RemoteRecord]:
        """Decrypt this wallet's live proof records, dropping any a newer record superseded."""

        raw_records = await self.relay.fetch_records(self.account, RecordKind.PROOFS)
        records = [
            record
            for raw in sorted(raw_records, key=lambda item: item.created_at)
            if (record := self._decode(raw)) is not None
        ]
        superseded = {record_id for record in records for record_id in record.supersedes}
        return [record for record in records if record.record_id not in superseded]

    async def load(self) -> list[Proof]:
        records = await self.load_records()
        proofs: list[Proof] = []
        seen: set[str] = set()
        for record in records:
            for proof in record.proofs:
                if proof.secret not in seen:
                    seen.add(proof.secret)
                    proofs.append(proof)
        self._current_ids = tuple(record.record_id for record in records)
        self._known = frozenset(proof.identity for proof in proofs)
        log.debug("Loaded %d proofs from %d remote records", len(proofs), len(records))
        return proofs

    async def save(self, proofs: Sequence[Proof]) -> None:
        identities = frozenset(proof.identity for proof in proofs)
        if identities == self._known:
            self._last_publication = None
            return

        previous = self._current_ids
        created: str | None = None
        if proofs or previous:
            content = ProofRecordContent(
                mint=self.issuer_url,
                unit=self.unit,
                proofs=[ProofPayload.from_domain(proof) for proof in proofs],
                deleted=list(previous),
            )
            plaintext = content.model_dump_json(by_alias=True)
            created = await self.relay.publish(
                self.account, RecordKind.PROOFS, self.cipher.encrypt(plaintext)
            )
            self._own_ids.add(created)

        if previous:
            try:
                await self.relay.delete(self.account, previous)
            except Exception as exc:  # noqa: BLE001
                # the new record lists them under "del"; readers skip them
                log.warning("Deleting superseded records %s failed: %s", previous, exc)
            else:
                self._own_ids.difference_update(previous)

        self._current_ids = (created,) if created else ()
        self._known = identities
        self._last_publication = Publication(
            created_record_id=created, destroyed_record_ids=previous
        )
        log.info("Published %d proofs as record %s", len(proofs), created)

    async def clear(self) -> None:
        await self.save(())

    def _decode(self, raw: RawRecord) -> RemoteRecord | None:
        try:
            content = ProofRecordContent.model_validate_json(self.cipher.decrypt(raw.content))
            proofs = tuple(payload.to_domain() for payload in content.proofs)
        except (DecryptionFailedError, ValidationError, ValueError) as exc:
            self._diagnostics(
                "Skipping unreadable remote record", record_id=raw.record_id, error=str(exc)
            )
            return None
        if not same_issuer(content.mint, self.issuer_url):
            return None
        if content.unit and content.unit != self.unit:
            return None
        return RemoteRecord(
            record_id=raw.record_id,
            issuer_url=content.mint,
            unit=content.unit or self.unit,
            proofs=proofs,
            supersedes=tuple(content.deleted),
            created_at=raw.created_at,
        )

    # ---------------------------------------------------------------- history

    async def load_history(self) -> list[str]:
        """Return history entries (already encrypted by the ledger) oldest first."""

        raw_records = await self.relay.fetch_records(self.account, RecordKind.HISTORY)
        ordered = sorted(raw_records, key=lambda item: item.created_at)
        self._history_ids = {raw.content: raw.record_id for raw in ordered}
        return [raw.content for raw in ordered]

    async def save_history(self, entries: Sequence[str]) -> None:
        """Publish entries not yet on the relay and delete those no longer listed."""

        wanted = set(entries)
        stale = [
            record_id for content, record_id in self._history_ids.items() if content not in wanted
        ]
        if stale:
            await self.relay.delete(self.account, stale)
        kept = {
            content: record_id
            for content, record_id in self._history_ids.items()
            if content in wanted
        }
        for entry in entries:
            if entry in kept:
                continue
            kept[entry] = await self.relay.publish(self.account, RecordKind.HISTORY, entry)
        self._history_ids = kept

    async def clear_history(self) -> None:
        await self.load_history()
        await self.save_history(())
