import pytest

from app.errors import MalformedResponseError
from app.models import CalendarItem, CatalogEntry, OracleSelection, RadarItem


def test_catalog_entry_from_series_payload():
    entry = CatalogEntry.from_tmdb(
        {
            "id": "1399",
            "name": "Game of Thrones",
            "original_name": "Game of Thrones",
            "first_air_date": "2011-04-17",
            "genre_ids": [18, "x"],
        },
        media_kind="series",
    )

    assert entry.external_id == 1399
    assert entry.media_kind == "series"
    assert entry.release_date == "2011-04-17"
    assert entry.genre_ids == [18]
    assert entry.display_title() == "Game of Thrones (2011)"


def test_catalog_entry_drops_unusable_release_dates():
    entry = CatalogEntry.from_tmdb({"id": 5, "title": "Someday", "release_date": ""})

    assert entry.release_date is None
    assert entry.display_title() == "Someday"


@pytest.mark.parametrize(
    "payload",
    [
        ["not", "an", "object"],
        {"id": 1},
        {"title": "No id"},
        {"id": True, "title": "Boolean id"},
        {"id": 3, "media_type": "person", "name": "Someone"},
    ],
)
def test_catalog_entry_rejects_malformed_payloads(payload):
    with pytest.raises(MalformedResponseError):
        CatalogEntry.from_tmdb(payload)


def test_radar_item_document_uses_camel_case_and_omits_absent_fields():
    entry = CatalogEntry.from_tmdb(
        {"id": 7, "title": "Film", "release_date": "2025-06-01T00:00:00Z"}
    )
    item = RadarItem.from_entry(entry, category="now_playing", provider_id=8)

    assert item.to_document() == {
        "externalId": 7,
        "mediaKind": "movie",
        "title": "Film (2025)",
        "releaseDate": "2025-06-01",
        "category": "now_playing",
    }


def test_radar_item_keeps_provider_only_for_top_rated():
    entry = CatalogEntry.from_tmdb(
        {"id": 7, "name": "Show", "poster_path": "/p.jpg"}, media_kind="series"
    )
    item = RadarItem.from_entry(entry, category="top_rated", provider_id=337)

    payload = item.to_payload()
    assert payload["providerId"] == 337
    assert payload["posterUrl"] == "https://image.tmdb.org/t/p/w500/p.jpg"
    assert item.storage_id == "7"


def test_calendar_item_round_trips_stored_documents():
    stored = {
        "externalId": 11,
        "mediaKind": "tv",
        "title": "Show (2026)",
        "releaseDate": "2026-01-02",
        "category": "relevant",
        "addedAt": 1_700_000_000_000,
    }

    item = CalendarItem.model_validate(stored)

    assert item.media_kind == "series"
    assert item.added_at == 1_700_000_000_000


def test_oracle_selection_accepts_alias_keys():
    selection = OracleSelection.model_validate(
        {"items": [{"tmdbId": 3, "type": "tv", "title": "Show"}, {"id": 4}]}
    )

    assert [(choice.id, choice.media_kind) for choice in selection.releases] == [
        (3, "series"),
        (4, None),
    ]
