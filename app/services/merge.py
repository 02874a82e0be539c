"""Combine fresh category results with the previous radar snapshot."""

from __future__ import annotations

import logging
from typing import Collection, Iterable, Mapping, Sequence

from pydantic import ValidationError

from ..categories import CategoryKey
from ..errors import MalformedResponseError
from ..models import CatalogEntry, RadarItem

logger = logging.getLogger(__name__)


def tag_entries(
    entries: Iterable[CatalogEntry],
    category: CategoryKey,
    *,
    provider_id: int | None = None,
) -> list[RadarItem]:
    """Turn catalog entries into radar items tagged with ``category``.

    Entries that cannot be represented as a radar item are dropped; a single
    bad record never fails the category.
    """

    items: list[RadarItem] = []
    for entry in entries:
        try:
            items.append(
                RadarItem.from_entry(entry, category=category, provider_id=provider_id)
            )
        except (ValidationError, MalformedResponseError) as exc:
            logger.debug(
                "Dropping malformed %s entry %s: %s", category, entry.external_id, exc
            )
    return items


def merge(
    previous_snapshot: Sequence[RadarItem],
    fresh_by_category: Mapping[str, Sequence[RadarItem]],
    refreshed_categories: Collection[str],
) -> list[RadarItem]:
    """Return the next snapshot.

    Items of refreshed categories are replaced by their fresh results; every
    other item passes through untouched. Fresh lists are inserted in the
    mapping's order and the last insertion wins an ``external_id``, so callers
    put the lists that should win display slots last. Items without a release
    date are dropped. The result has no guaranteed order.
    """

    refreshed = set(refreshed_categories)
    merged: dict[int, RadarItem] = {}

    for item in previous_snapshot:
        if item.category in refreshed:
            continue
        merged[item.external_id] = item

    for category, items in fresh_by_category.items():
        if category not in refreshed:
            logger.debug("Ignoring fresh %s results; category was not refreshed", category)
            continue
        for item in items:
            if not item.release_date:
                continue
            if item.category != category:
                provider_id = item.provider_id if category == "top_rated" else None
                item = item.model_copy(
                    update={"category": category, "provider_id": provider_id}
                )
            # Re-inserting moves the key to the end, matching insertion order.
            merged.pop(item.external_id, None)
            merged[item.external_id] = item

    return list(merged.values())


def dated_only(items: Iterable[RadarItem]) -> list[RadarItem]:
    return [item for item in items if item.release_date]
