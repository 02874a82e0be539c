"""The user's personal release calendar."""

from __future__ import annotations

import logging
import time
from typing import Callable

from pydantic import ValidationError

from ..models import CalendarItem, RadarItem
from ..utils import strip_absent
from .document_store import DocumentStore

logger = logging.getLogger(__name__)

CALENDAR_COLLECTION = "radarCalendar"


def _epoch_millis() -> int:
    return int(time.time() * 1000)


class CalendarService:
    """Radar items the user saved, keyed by external id."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        collection: str = CALENDAR_COLLECTION,
        clock: Callable[[], int] = _epoch_millis,
    ):
        self._store = store
        self._collection = collection
        self._clock = clock

    async def list_items(self) -> list[CalendarItem]:
        """Return saved items, soonest release first."""

        items: list[CalendarItem] = []
        for payload in await self._store.get_all(self._collection):
            try:
                items.append(CalendarItem.model_validate(payload))
            except ValidationError as exc:
                logger.warning(
                    "Stored calendar item %s could not be validated: %s",
                    payload.get("externalId"),
                    exc,
                )
        items.sort(key=lambda item: (item.release_date or "9999-12-31", item.title))
        return items

    async def add(self, item: RadarItem) -> CalendarItem:
        if not item.release_date:
            raise ValueError("Only dated releases can be added to the calendar")
        data = item.model_dump()
        data.pop("added_at", None)
        saved = CalendarItem(**data, added_at=self._clock())
        await self._store.set_one(
            self._collection, saved.storage_id, strip_absent(saved.to_document())
        )
        logger.info("Added %s to the calendar", saved.title)
        return saved

    async def remove(self, external_id: int) -> bool:
        """Delete a saved item; returns ``False`` when it was not saved."""

        if await self._store.get_one(self._collection, external_id) is None:
            return False
        await self._store.delete_one(self._collection, external_id)
        logger.info("Removed %s from the calendar", external_id)
        return True
