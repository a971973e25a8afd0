"""SQLAlchemy Core persistence for the held proof set and history entries."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    and_,
    create_engine,
    delete,
    insert,
    orm,
    select,
)
from sqlalchemy.exc import SQLAlchemyError

from proofledger.domain.model import Proof
from proofledger.domain.ports.diagnostics import logging_sink

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import ColumnElement
    from sqlalchemy.engine import Connection, Engine

    from proofledger.domain.ports.diagnostics import DiagnosticSink

log = getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "pk": "pk_%(table_name)s",
}

proof_table = Table(
    "proof",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("issuer_url", String, nullable=False, index=True),
    Column("unit", String, nullable=False),
    Column("position", Integer, nullable=False),
    Column("keyset_id", String, nullable=False),
    Column("amount", Integer, nullable=False),
    Column("secret", String, nullable=False),
    Column("signature", String, nullable=False),
    UniqueConstraint("issuer_url", "unit", "secret"),
)

history_entry_table = Table(
    "history_entry",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("issuer_url", String, nullable=False, index=True),
    Column("unit", String, nullable=False),
    Column("position", Integer, nullable=False),
    Column("content", Text, nullable=False),
    Column("stored_at", UTCDateTime, nullable=False),
)


def create_schema(engine: Engine) -> None:
    mapper_registry.metadata.create_all(engine)


class SqlAlchemyProofStore:
    """Whole-set persistence for one ``(issuer_url, unit)`` wallet.

    A save deletes the wallet's rows and inserts the new set inside one transaction. Blocking
    database calls run in a worker thread.
    """

    def __init__(
        self,
        engine: Engine,
        *,
        issuer_url: str,
        unit: str,
        diagnostics: DiagnosticSink | None = None,
    ) -> None:
        self.engine = engine
        self.issuer_url = issuer_url
        self.unit = unit
        self._diagnostics = diagnostics or logging_sink(log)
        create_schema(engine)

    @classmethod
    def from_uri(cls, uri: str, *, issuer_url: str, unit: str) -> SqlAlchemyProofStore:
        return cls(create_engine(uri, future=True), issuer_url=issuer_url, unit=unit)

    async def load(self) -> list[Proof]:
        return await asyncio.to_thread(self._load)

    async def save(self, proofs: Sequence[Proof]) -> None:
        await asyncio.to_thread(self._save, tuple(proofs))

    async def clear(self) -> None:
        await asyncio.to_thread(self._save, ())

    async def load_history(self) -> list[str]:
        return await asyncio.to_thread(self._load_history)

    async def save_history(self, entries: Sequence[str]) -> None:
        await asyncio.to_thread(self._save_history, tuple(entries))

    async def clear_history(self) -> None:
        await asyncio.to_thread(self._save_history, ())

    def _scope(self, table: Table) -> ColumnElement[bool]:
        return and_(table.c.issuer_url == self.issuer_url, table.c.unit == self.unit)

    def _load(self) -> list[Proof]:
        statement = (
            select(
                proof_table.c.keyset_id,
                proof_table.c.amount,
                proof_table.c.secret,
                proof_table.c.signature,
            )
            .where(self._scope(proof_table))
            .order_by(proof_table.c.position)
        )
        with self.engine.connect() as connection:
            rows = connection.execute(statement).all()

        proofs: list[Proof] = []
        for row in rows:
            try:
                proofs.append(
                    Proof(
                        keyset_id=row.keyset_id,
                        amount=row.amount,
                        secret=row.secret,
                        signature=row.signature,
                    )
                )
            except (TypeError, ValueError) as exc:
                self._diagnostics(
                    "Stored proofs are corrupt; treating the wallet as empty",
                    issuer_url=self.issuer_url,
                    error=str(exc),
                )
                return []
        return proofs

    def _save(self, proofs: tuple[Proof, ...]) -> None:
        rows = [
            {
                "issuer_url": self.issuer_url,
                "unit": self.unit,
                "position": position,
                "keyset_id": proof.keyset_id,
                "amount": proof.amount,
                "secret": proof.secret,
                "signature": proof.signature,
            }
            for position, proof in enumerate(proofs)
        ]
        try:
            with self.engine.begin() as connection:
                connection.execute(delete(proof_table).where(self._scope(proof_table)))
                if rows:
                    connection.execute(insert(proof_table), rows)
        except SQLAlchemyError:
            log.exception("Failed to replace %d proofs for %s", len(proofs), self.issuer_url)
            raise

    def _load_history(self) -> list[str]:
        statement = (
            select(history_entry_table.c.content)
            .where(self._scope(history_entry_table))
            .order_by(history_entry_table.c.position)
        )
        with self.engine.connect() as connection:
            return list(connection.execute(statement).scalars())

    def _save_history(self, entries: tuple[str, ...]) -> None:
        with self.engine.begin() as connection:
            existing = self._stored_at_by_position(connection)
            now = datetime.now(tz=UTC)
            connection.execute(delete(history_entry_table).where(self._scope(history_entry_table)))
            if entries:
                connection.execute(
                    insert(history_entry_table),
                    [
                        {
                            "issuer_url": self.issuer_url,
                            "unit": self.unit,
                            "position": position,
                            "content": content,
                            "stored_at": existing.get(position, now),
                        }
                        for position, content in enumerate(entries)
                    ],
                )

    def _stored_at_by_position(self, connection: Connection) -> dict[int, datetime]:
        statement = select(
            history_entry_table.c.position, history_entry_table.c.stored_at
        ).where(self._scope(history_entry_table))
        return {row.position: row.stored_at for row in connection.execute(statement)}
