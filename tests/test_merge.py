"""Tests for combining fresh category results with the previous snapshot."""

from __future__ import annotations

from app.models import CatalogEntry, RadarItem
from app.services.merge import merge, tag_entries


def item(external_id: int, category: str, release_date: str | None = "2025-01-01") -> RadarItem:
    return RadarItem(
        external_id=external_id,
        media_kind="movie",
        title=f"Film {external_id}",
        release_date=release_date,
        category=category,
    )


def summary(items: list[RadarItem]) -> list[tuple[int, str]]:
    return sorted((entry.external_id, entry.category) for entry in items)


def test_due_category_is_replaced_by_its_fresh_results() -> None:
    merged = merge(
        [item(1, "now_playing")],
        {"now_playing": [item(1, "now_playing"), item(2, "now_playing")]},
        ["now_playing"],
    )

    assert summary(merged) == [(1, "now_playing"), (2, "now_playing")]


def test_categories_that_were_not_refreshed_pass_through() -> None:
    merged = merge(
        [item(5, "relevant")],
        {"top_rated": [item(7, "top_rated")]},
        ["top_rated"],
    )

    assert summary(merged) == [(5, "relevant"), (7, "top_rated")]


def test_undated_fresh_items_are_excluded() -> None:
    merged = merge(
        [],
        {"trending": [item(1, "trending", release_date=None), item(2, "trending")]},
        ["trending"],
    )

    assert summary(merged) == [(2, "trending")]


def test_last_inserted_category_wins_a_shared_id() -> None:
    fresh = {
        "trending": [item(3, "trending")],
        "top_rated": [item(3, "top_rated")],
    }

    assert summary(merge([], fresh, ["trending", "top_rated"])) == [(3, "top_rated")]

    reversed_fresh = dict(reversed(list(fresh.items())))
    assert summary(merge([], reversed_fresh, ["trending", "top_rated"])) == [
        (3, "trending")
    ]


def test_fresh_item_displaces_an_untouched_category_with_the_same_id() -> None:
    merged = merge(
        [item(4, "relevant"), item(6, "trending")],
        {"trending": [item(4, "trending")]},
        ["trending"],
    )

    assert summary(merged) == [(4, "trending")]


def test_fresh_lists_for_categories_not_refreshed_are_ignored() -> None:
    merged = merge(
        [item(1, "now_playing")],
        {"now_playing": [item(2, "now_playing")]},
        [],
    )

    assert summary(merged) == [(1, "now_playing")]


def test_items_filed_under_another_list_are_retagged() -> None:
    stray = RadarItem(
        external_id=8,
        media_kind="series",
        title="Show",
        release_date="2025-02-02",
        category="top_rated",
        provider_id=337,
    )

    merged = merge([], {"relevant": [stray]}, ["relevant"])

    assert merged[0].category == "relevant"
    assert merged[0].provider_id is None


def test_tag_entries_builds_radar_items() -> None:
    entries = [
        CatalogEntry(external_id=1, media_kind="movie", title="Film", release_date="2024-10-10"),
        CatalogEntry(external_id=2, media_kind="series", title="Show"),
    ]

    tagged = tag_entries(entries, "top_rated", provider_id=8)

    assert [entry.title for entry in tagged] == ["Film (2024)", "Show"]
    assert {entry.provider_id for entry in tagged} == {8}
    assert {entry.category for entry in tagged} == {"top_rated"}
