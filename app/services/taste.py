"""Build the taste profile handed to the recommendation oracle."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from ..models import MediaKind, parse_media_kind
from .document_store import DocumentStore

logger = logging.getLogger(__name__)

WATCHED_COLLECTION = "watchedItems"

# Stored rating keys, in the order the profile lists them.
RATING_SECTIONS: tuple[tuple[str, str], ...] = (
    ("amei", "Loved (perfect picks, the main source of inspiration)"),
    ("gostei", "Liked (very good, close to loved)"),
    ("meh", "Indifferent (average, traps to avoid)"),
    ("naoGostei", "Disliked (elements to exclude completely)"),
)
_RATING_ALIASES = {
    "amei": "amei",
    "loved": "amei",
    "gostei": "gostei",
    "liked": "gostei",
    "meh": "meh",
    "naogostei": "naoGostei",
    "disliked": "naoGostei",
}


@dataclass(slots=True)
class TasteProfile:
    """Opaque description of the viewer's taste plus titles they already know."""

    summary: str
    known_titles: frozenset[tuple[MediaKind, int]] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not self.known_titles

    def knows(self, media_kind: MediaKind, external_id: int) -> bool:
        return (media_kind, external_id) in self.known_titles

    def to_prompt_text(self) -> str:
        return self.summary


def _normalise_rating(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    return _RATING_ALIASES.get(value.strip().replace("_", "").replace(" ", "").lower())


def build_taste_profile(watched: Iterable[Mapping[str, Any]]) -> TasteProfile:
    """Summarise rated titles into the text the oracle reads."""

    sections: dict[str, list[str]] = {key: [] for key, _ in RATING_SECTIONS}
    known: set[tuple[MediaKind, int]] = set()
    titles: list[str] = []

    for entry in watched:
        title = entry.get("title")
        if not isinstance(title, str) or not title.strip():
            continue
        title = title.strip()
        if title not in titles:
            titles.append(title)

        media_kind = parse_media_kind(entry.get("tmdbMediaType") or entry.get("mediaKind"))
        raw_id = entry.get("id")
        if media_kind is not None and isinstance(raw_id, int):
            known.add((media_kind, raw_id))

        rating = _normalise_rating(entry.get("rating"))
        if rating is None:
            continue
        details = [
            f"Type: {entry['type']}" if entry.get("type") else None,
            f"Genre: {entry['genre']}" if entry.get("genre") else None,
        ]
        detail_text = ", ".join(part for part in details if part)
        line = f"- {title} ({detail_text})" if detail_text else f"- {title}"
        sections[rating].append(line)

    lines = [
        "Titles already in the viewer's collection (never pick these):",
        ", ".join(titles) if titles else "None",
    ]
    for key, heading in RATING_SECTIONS:
        lines.append("")
        lines.append(f"{heading}:")
        lines.append("\n".join(sections[key]) or "None")

    return TasteProfile(summary="\n".join(lines), known_titles=frozenset(known))


async def load_taste_profile(store: DocumentStore) -> TasteProfile:
    watched = await store.get_all(WATCHED_COLLECTION)
    logger.debug("Building taste profile from %s rated titles", len(watched))
    return build_taste_profile(watched)
