"""Persistence of the radar snapshot."""

from __future__ import annotations

import logging
from typing import Iterable

from pydantic import ValidationError

from ..categories import CATEGORY_KEYS
from ..models import RadarItem
from ..utils import strip_absent
from .document_store import DocumentStore, DocumentWrite

logger = logging.getLogger(__name__)

RADAR_COLLECTION = "radarItems"


class RadarStore:
    """Reads and atomically replaces the persisted radar snapshot."""

    def __init__(self, store: DocumentStore, collection: str = RADAR_COLLECTION):
        self._store = store
        self._collection = collection

    async def load_snapshot(self) -> list[RadarItem]:
        items: list[RadarItem] = []
        for payload in await self._store.get_all(self._collection):
            try:
                items.append(RadarItem.model_validate(payload))
            except ValidationError as exc:
                logger.warning(
                    "Stored radar item %s could not be validated: %s",
                    payload.get("externalId"),
                    exc,
                )
        return items

    async def replace_all(
        self,
        items: Iterable[RadarItem],
        *,
        extra_writes: Iterable[DocumentWrite] = (),
    ) -> int:
        """Swap the stored snapshot for ``items`` in one transaction.

        ``extra_writes`` are committed in the same batch, so they land only
        if the snapshot does. Items without a release date are dropped.
        Returns the number of items written. Raises ``PersistenceError`` when
        the batch fails, in which case nothing is changed.
        """

        by_id: dict[str, RadarItem] = {}
        undated = 0
        for item in items:
            if not item.release_date:
                undated += 1
                continue
            by_id[item.storage_id] = item
        if undated:
            logger.warning("Dropped %s undated radar items before writing", undated)

        existing_ids = await self._store.document_ids(self._collection)
        await self._store.atomic_batch(
            deletes=[(self._collection, doc_id) for doc_id in existing_ids],
            writes=[
                *(
                    (self._collection, doc_id, strip_absent(item.to_document()))
                    for doc_id, item in by_id.items()
                ),
                *extra_writes,
            ],
        )
        logger.info(
            "Replaced radar snapshot: %s removed, %s written",
            len(existing_ids),
            len(by_id),
        )
        return len(by_id)


def group_for_display(items: Iterable[RadarItem]) -> dict[str, list[RadarItem]]:
    """Group items by category, each list ordered by release date ascending."""

    grouped: dict[str, list[RadarItem]] = {key: [] for key in CATEGORY_KEYS}
    for item in items:
        grouped.setdefault(item.category, []).append(item)
    for bucket in grouped.values():
        bucket.sort(key=lambda item: (item.release_date or "9999-12-31", item.title))
    return grouped
