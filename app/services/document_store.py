"""Key-value document storage on top of SQLAlchemy."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import DocumentRecord
from ..errors import PersistenceError

logger = logging.getLogger(__name__)

DocumentKey = tuple[str, str]
DocumentWrite = tuple[str, str, Mapping[str, Any]]


def _find_absent_field(record: Mapping[str, Any], prefix: str = "") -> str | None:
    for key, value in record.items():
        path = f"{prefix}{key}"
        if value is None:
            return path
        if isinstance(value, Mapping):
            nested = _find_absent_field(value, prefix=f"{path}.")
            if nested is not None:
                return nested
    return None


class DocumentStore:
    """Stores JSON documents keyed by collection name and string id.

    Documents must not carry ``None`` values; callers strip absent fields
    before writing, mirroring document databases that reject undefined
    fields.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_all(self, collection: str) -> list[dict[str, Any]]:
        """Return every document in the collection, oldest first."""

        try:
            async with self._session_factory() as session:
                stmt = (
                    select(DocumentRecord)
                    .where(DocumentRecord.collection == collection)
                    .order_by(DocumentRecord.id)
                )
                result = await session.execute(stmt)
                return [dict(record.payload) for record in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Reading {collection} failed: {exc}") from exc

    async def document_ids(self, collection: str) -> list[str]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    select(DocumentRecord.document_id)
                    .where(DocumentRecord.collection == collection)
                    .order_by(DocumentRecord.id)
                )
                result = await session.execute(stmt)
                return [row[0] for row in result.all()]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Listing {collection} failed: {exc}") from exc

    async def get_one(self, collection: str, document_id: object) -> dict[str, Any] | None:
        try:
            async with self._session_factory() as session:
                record = await self._find(session, collection, str(document_id))
                return dict(record.payload) if record is not None else None
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Reading {collection}/{document_id} failed: {exc}"
            ) from exc

    async def set_one(
        self, collection: str, document_id: object, record: Mapping[str, Any]
    ) -> None:
        await self.atomic_batch(writes=[(collection, str(document_id), record)])

    async def delete_one(self, collection: str, document_id: object) -> None:
        await self.atomic_batch(deletes=[(collection, str(document_id))])

    async def atomic_batch(
        self,
        deletes: Iterable[DocumentKey] = (),
        writes: Iterable[DocumentWrite] = (),
    ) -> None:
        """Apply deletes then writes in a single transaction.

        Either every operation is committed or none is.
        """

        delete_keys = [(collection, str(doc_id)) for collection, doc_id in deletes]
        write_ops = [
            (collection, str(doc_id), dict(record))
            for collection, doc_id, record in writes
        ]
        for collection, doc_id, record in write_ops:
            absent = _find_absent_field(record)
            if absent is not None:
                raise ValueError(
                    f"Document {collection}/{doc_id} has an undefined field {absent!r}"
                )

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await self._apply_deletes(session, delete_keys)
                    await self._apply_writes(session, write_ops)
        except SQLAlchemyError as exc:
            logger.error(
                "Atomic batch (%s deletes, %s writes) rolled back: %s",
                len(delete_keys),
                len(write_ops),
                exc,
            )
            raise PersistenceError(f"Atomic batch failed: {exc}") from exc

    async def _apply_deletes(
        self, session: AsyncSession, keys: Sequence[DocumentKey]
    ) -> None:
        grouped: dict[str, list[str]] = defaultdict(list)
        for collection, doc_id in keys:
            grouped[collection].append(doc_id)
        for collection, doc_ids in grouped.items():
            await session.execute(
                delete(DocumentRecord).where(
                    DocumentRecord.collection == collection,
                    DocumentRecord.document_id.in_(doc_ids),
                )
            )

    async def _apply_writes(
        self,
        session: AsyncSession,
        writes: Sequence[tuple[str, str, dict[str, Any]]],
    ) -> None:
        grouped: dict[str, list[tuple[str, dict[str, Any]]]] = defaultdict(list)
        for collection, doc_id, record in writes:
            grouped[collection].append((doc_id, record))

        now = datetime.utcnow()
        for collection, entries in grouped.items():
            doc_ids = {doc_id for doc_id, _ in entries}
            result = await session.execute(
                select(DocumentRecord).where(
                    DocumentRecord.collection == collection,
                    DocumentRecord.document_id.in_(doc_ids),
                )
            )
            existing = {record.document_id: record for record in result.scalars().all()}
            for doc_id, payload in entries:
                record = existing.get(doc_id)
                if record is None:
                    record = DocumentRecord(
                        collection=collection,
                        document_id=doc_id,
                        payload=payload,
                        created_at=now,
                        updated_at=now,
                    )
                    session.add(record)
                    existing[doc_id] = record
                else:
                    record.payload = payload
                    record.updated_at = now

    @staticmethod
    async def _find(
        session: AsyncSession, collection: str, document_id: str
    ) -> DocumentRecord | None:
        stmt = select(DocumentRecord).where(
            DocumentRecord.collection == collection,
            DocumentRecord.document_id == document_id,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
