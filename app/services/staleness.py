"""Per-category refresh timestamps for the release radar."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable

from ..categories import get_category
from ..config import Settings
from .document_store import DocumentStore, DocumentWrite

logger = logging.getLogger(__name__)

METADATA_COLLECTION = "metadata"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class StalenessRecord:
    """When a category was last refreshed and the interval it was held to."""

    category: str
    last_refreshed_at: datetime
    interval_days: float

    def to_document(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "lastRefreshedAt": self.last_refreshed_at.isoformat(),
            "intervalDays": self.interval_days,
        }

    @classmethod
    def from_document(cls, category: str, payload: dict[str, Any]) -> "StalenessRecord | None":
        raw = payload.get("lastRefreshedAt")
        if not isinstance(raw, str):
            return None
        try:
            refreshed_at = datetime.fromisoformat(raw)
        except ValueError:
            return None
        if refreshed_at.tzinfo is None:
            refreshed_at = refreshed_at.replace(tzinfo=timezone.utc)
        interval = payload.get("intervalDays")
        return cls(
            category=category,
            last_refreshed_at=refreshed_at,
            interval_days=float(interval) if isinstance(interval, (int, float)) else 0.0,
        )


class StalenessClock:
    """Decides independently for each category whether a refresh is due.

    Each category keeps its own record. The threshold comes from the
    category's family, so the frequent lists never drag the curated list
    along and vice versa.
    """

    def __init__(
        self,
        store: DocumentStore,
        settings: Settings,
        *,
        now: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._settings = settings
        self._now = now

    @staticmethod
    def document_id(category: str) -> str:
        return f"radar:{category}"

    def interval_for(self, category: str) -> timedelta:
        family = get_category(category).family
        return timedelta(days=self._settings.refresh_interval_days(family))

    async def get_record(self, category: str) -> StalenessRecord | None:
        payload = await self._store.get_one(
            METADATA_COLLECTION, self.document_id(category)
        )
        if payload is None:
            return None
        record = StalenessRecord.from_document(category, payload)
        if record is None:
            logger.warning("Ignoring unreadable staleness record for %s", category)
        return record

    async def is_due(self, category: str) -> bool:
        record = await self.get_record(category)
        if record is None:
            return True
        elapsed = self._now() - record.last_refreshed_at
        return elapsed >= self.interval_for(category)

    async def due_categories(self, categories: Iterable[str]) -> list[str]:
        due: list[str] = []
        for category in categories:
            if await self.is_due(category):
                due.append(category)
        return due

    async def mark_refreshed(self, category: str, at: datetime | None = None) -> None:
        """Store a standalone clock record for ``category``."""

        await self._store.atomic_batch(writes=self.record_writes([category], at))

    def record_writes(
        self, categories: Iterable[str], at: datetime | None = None
    ) -> list[DocumentWrite]:
        """Return batch writes marking ``categories`` refreshed at one instant.

        Used to commit clock records together with the snapshot they describe.
        """

        refreshed_at = at or self._now()
        return [
            (
                METADATA_COLLECTION,
                self.document_id(category),
                self.build_record(category, refreshed_at).to_document(),
            )
            for category in categories
        ]

    def build_record(self, category: str, at: datetime | None = None) -> StalenessRecord:
        """Return the record stored when ``category`` is refreshed at ``at``."""

        refreshed_at = at or self._now()
        if refreshed_at.tzinfo is None:
            refreshed_at = refreshed_at.replace(tzinfo=timezone.utc)
        return StalenessRecord(
            category=category,
            last_refreshed_at=refreshed_at,
            interval_days=self.interval_for(category).total_seconds() / 86_400,
        )

    async def last_refreshed_at(self) -> datetime | None:
        """Return the most recent refresh across every category."""

        latest: datetime | None = None
        for payload in await self._store.get_all(METADATA_COLLECTION):
            category = payload.get("category")
            if not isinstance(category, str):
                continue
            record = StalenessRecord.from_document(category, payload)
            if record is None:
                continue
            if latest is None or record.last_refreshed_at > latest:
                latest = record.last_refreshed_at
        return latest
