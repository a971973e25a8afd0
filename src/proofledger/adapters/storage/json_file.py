"""Single-file JSON store for the held proof set and history entries."""

from __future__ import annotations

import asyncio
import os
import tempfile
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Final

from pydantic import Field, ValidationError

from proofledger.domain.ports.diagnostics import logging_sink
from proofledger.schema import PayloadModel, ProofPayload

if TYPE_CHECKING:
    from collections.abc import Sequence

    from proofledger.domain.model import Proof
    from proofledger.domain.ports.diagnostics import DiagnosticSink

log = getLogger(__name__)

DOCUMENT_VERSION: Final[int] = 1
CORRUPT_SUFFIX: Final[str] = ".corrupt"


class WalletDocument(PayloadModel):
    version: int = DOCUMENT_VERSION
    issuer_url: str | None = None
    unit: str | None = None
    proofs: list[ProofPayload] = Field(default_factory=list)
    history: list[str] = Field(default_factory=list)


class JsonFileProofStore:
    """Store the wallet as one JSON document.

    Every write goes to a temporary file in the same directory that then replaces the target,
    so readers see either the old document or the new one. A document that cannot be parsed
    loads as empty and is moved aside (``<name>.corrupt``) before the next write replaces it.
    """

    def __init__(
        self,
        path: Path | str,
        *,
        issuer_url: str | None = None,
        unit: str | None = None,
        diagnostics: DiagnosticSink | None = None,
    ) -> None:
        self.path = Path(path)
        self.issuer_url = issuer_url
        self.unit = unit
        self._diagnostics = diagnostics or logging_sink(log)

    async def load(self) -> list[Proof]:
        document = await asyncio.to_thread(self._read)
        return [payload.to_domain() for payload in document.proofs]

    async def save(self, proofs: Sequence[Proof]) -> None:
        await asyncio.to_thread(self._update, proofs=proofs)

    async def clear(self) -> None:
        await asyncio.to_thread(self._update, proofs=())

    async def load_history(self) -> list[str]:
        document = await asyncio.to_thread(self._read)
        return list(document.history)

    async def save_history(self, entries: Sequence[str]) -> None:
        await asyncio.to_thread(self._update, history=entries)

    async def clear_history(self) -> None:
        await asyncio.to_thread(self._update, history=())

    def _read(self) -> WalletDocument:
        document, _ = self._read_checked()
        return document

    def _read_checked(self) -> tuple[WalletDocument, bool]:
        """Return the stored document and whether the file on disk was unreadable."""

        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return self._empty(), False
        except OSError as exc:
            self._diagnostics("Wallet file could not be read", path=str(self.path), error=str(exc))
            return self._empty(), True
        try:
            return WalletDocument.model_validate_json(raw), False
        except ValidationError as exc:
            self._diagnostics(
                "Wallet file is corrupt; treating it as empty",
                path=str(self.path),
                errors=exc.error_count(),
            )
            return self._empty(), True

    def _empty(self) -> WalletDocument:
        return WalletDocument(issuer_url=self.issuer_url, unit=self.unit)

    def _update(
        self,
        *,
        proofs: Sequence[Proof] | None = None,
        history: Sequence[str] | None = None,
    ) -> None:
        document, corrupt = self._read_checked()
        if corrupt and self.path.exists():
            backup = self.path.with_name(self.path.name + CORRUPT_SUFFIX)
            os.replace(self.path, backup)
            log.warning("Moved unreadable wallet file to %s", backup)
        update: dict[str, object] = {}
        if proofs is not None:
            update["proofs"] = [ProofPayload.from_domain(proof) for proof in proofs]
        if history is not None:
            update["history"] = list(history)
        self._write(document.model_copy(update=update))

    def _write(self, document: WalletDocument) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = document.model_dump_json(by_alias=True, indent=2)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
