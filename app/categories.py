"""Radar category definitions and their refresh families."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


CategoryKey = Literal["trending", "now_playing", "top_rated", "relevant"]
CategoryFamily = Literal["frequent", "curated"]

CATEGORY_FAMILIES: tuple[str, ...] = ("frequent", "curated")


@dataclass(frozen=True)
class RadarCategoryDefinition:
    """Describes a radar lane and the staleness family it belongs to."""

    key: CategoryKey
    title: str
    description: str
    family: CategoryFamily


# Ordered by merge precedence: broad lists first, prioritised lists last so the
# later lanes win an item when the same title shows up in several of them.
RADAR_CATEGORIES: tuple[RadarCategoryDefinition, ...] = (
    RadarCategoryDefinition(
        key="trending",
        title="Trending This Week",
        description="Movies and series everyone is talking about this week.",
        family="frequent",
    ),
    RadarCategoryDefinition(
        key="now_playing",
        title="Now In Theaters",
        description="Movies currently showing in theaters in your region.",
        family="frequent",
    ),
    RadarCategoryDefinition(
        key="top_rated",
        title="Top On Your Services",
        description="The most popular titles on each configured streaming provider.",
        family="frequent",
    ),
    RadarCategoryDefinition(
        key="relevant",
        title="Relevant Releases",
        description="Upcoming movies and airing series picked for your taste profile.",
        family="curated",
    ),
)

CATEGORY_KEYS: tuple[str, ...] = tuple(definition.key for definition in RADAR_CATEGORIES)
CATEGORY_MAP: dict[str, RadarCategoryDefinition] = {
    definition.key: definition for definition in RADAR_CATEGORIES
}


def get_category(key: str) -> RadarCategoryDefinition:
    try:
        return CATEGORY_MAP[key]
    except KeyError as exc:
        raise KeyError(f"Unknown radar category {key!r}") from exc
