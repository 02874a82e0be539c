"""Tests for the TMDB catalog client."""

from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest

from app.config import Settings
from app.errors import (
    CatalogNotFoundError,
    MalformedResponseError,
    RateLimitError,
    TransientFetchError,
)
from app.services.fetch_queue import FetchQueue
from app.services.tmdb import TMDBClient

Handler = Callable[[httpx.Request], httpx.Response]


def build_settings(**overrides: Any) -> Settings:
    """Return a settings object with defaults suitable for tests."""

    base: dict[str, Any] = {"TMDB_API_KEY": "tmdb-key", "FETCH_DELAY_MS": 0}
    base.update(overrides)
    return Settings(_env_file=None, **base)  # type: ignore[arg-type]


def build_client(handler: Handler, **overrides: Any) -> tuple[TMDBClient, httpx.AsyncClient]:
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="https://api.themoviedb.org/3",
    )
    return TMDBClient(build_settings(**overrides), http_client, FetchQueue(0)), http_client


@pytest.mark.anyio("asyncio")
async def test_now_playing_tags_movies_and_sends_locale() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "page": 1,
                "total_pages": 1,
                "results": [
                    {
                        "id": 693134,
                        "title": "Dune: Part Two",
                        "release_date": "2024-02-27",
                        "poster_path": "/dune.jpg",
                    }
                ],
            },
        )

    client, http_client = build_client(handler)
    async with http_client:
        entries = await client.list_by_category("now_playing")

    assert [entry.external_id for entry in entries] == [693134]
    assert entries[0].media_kind == "movie"
    assert entries[0].display_title() == "Dune: Part Two (2024)"
    request = seen[0]
    assert request.url.path == "/3/movie/now_playing"
    assert request.url.params["language"] == "pt-BR"
    assert request.url.params["region"] == "BR"
    assert request.url.params["api_key"] == "tmdb-key"


@pytest.mark.anyio("asyncio")
async def test_trending_infers_media_kind_and_skips_people() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/3/trending/all/week"
        return httpx.Response(
            200,
            json={
                "results": [
                    {"id": 1, "media_type": "movie", "title": "Film", "release_date": "2025-01-10"},
                    {"id": 2, "media_type": "tv", "name": "Show", "first_air_date": "2025-03-01"},
                    {"id": 3, "media_type": "person", "name": "Somebody"},
                    {"id": 4, "name": "Untyped Show"},
                    {"media_type": "movie", "title": "No Id"},
                ]
            },
        )

    client, http_client = build_client(handler)
    async with http_client:
        entries = await client.list_by_category("trending")

    assert [(entry.external_id, entry.media_kind) for entry in entries] == [
        (1, "movie"),
        (2, "series"),
        (4, "series"),
    ]
    assert entries[1].release_date == "2025-03-01"


@pytest.mark.anyio("asyncio")
async def test_provider_list_requires_provider_and_filters_by_region() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"results": [{"id": 9, "name": "Series"}]})

    client, http_client = build_client(handler)
    async with http_client:
        with pytest.raises(ValueError):
            await client.list_by_category("top_rated_for_provider")
        entries = await client.list_by_category(
            "top_rated_for_provider", provider_id=8, media_kind="series"
        )

    assert entries[0].media_kind == "series"
    params = seen[0].url.params
    assert seen[0].url.path == "/3/discover/tv"
    assert params["with_watch_providers"] == "8"
    assert params["watch_region"] == "BR"
    assert params["sort_by"] == "popularity.desc"


@pytest.mark.anyio("asyncio")
async def test_pagination_stops_at_total_pages() -> None:
    pages: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        page = request.url.params["page"]
        pages.append(page)
        return httpx.Response(
            200,
            json={
                "total_pages": 2,
                "results": [{"id": int(page), "title": f"Film {page}"}],
            },
        )

    client, http_client = build_client(handler, TMDB_LIST_PAGES=5)
    async with http_client:
        entries = await client.list_by_category("upcoming")

    assert pages == ["1", "2"]
    assert [entry.external_id for entry in entries] == [1, 2]


@pytest.mark.anyio("asyncio")
async def test_details_fall_back_to_secondary_locale() -> None:
    languages: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        language = request.url.params["language"]
        languages.append(language)
        if language == "pt-BR":
            return httpx.Response(404, json={"status_message": "not found"})
        return httpx.Response(
            200,
            json={
                "id": 42,
                "name": "Show",
                "first_air_date": "2024-05-01",
                "genres": [{"id": 18, "name": "Drama"}],
                "episode_run_time": [45],
                "credits": {"cast": [{"name": "Actor"}]},
                "watch/providers": {
                    "results": {
                        "BR": {
                            "link": "https://example.test/watch",
                            "flatrate": [{"provider_id": 8, "provider_name": "Netflix"}],
                        }
                    }
                },
            },
        )

    client, http_client = build_client(handler)
    async with http_client:
        details = await client.get_details(42, "series")

    assert languages == ["pt-BR", "en-US"]
    assert details.genres == ["Drama"]
    assert details.runtime_minutes == 45
    assert details.cast == ["Actor"]
    assert details.watch_providers is not None
    assert details.watch_providers.flatrate[0].provider_name == "Netflix"


@pytest.mark.anyio("asyncio")
async def test_details_without_distinct_fallback_raise_not_found() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    client, http_client = build_client(handler, TMDB_FALLBACK_LANGUAGE="pt-BR")
    async with http_client:
        with pytest.raises(CatalogNotFoundError):
            await client.get_details(1, "movie")


@pytest.mark.anyio("asyncio")
async def test_rate_limit_carries_retry_after() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, headers={"retry-after": "3"})

    client, http_client = build_client(handler)
    async with http_client:
        with pytest.raises(RateLimitError) as excinfo:
            await client.list_by_category("trending")

    assert excinfo.value.retry_after == 3.0
    assert excinfo.value.status_code == 429


@pytest.mark.anyio("asyncio")
async def test_server_errors_and_network_failures_are_transient() -> None:
    def failing(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client, http_client = build_client(failing)
    async with http_client:
        with pytest.raises(TransientFetchError) as excinfo:
            await client.list_by_category("trending")
    assert excinfo.value.status_code == 502

    client, http_client = build_client(unreachable)
    async with http_client:
        with pytest.raises(TransientFetchError):
            await client.search("dune")


@pytest.mark.anyio("asyncio")
async def test_unparseable_body_is_malformed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": "nope"})

    client, http_client = build_client(handler)
    async with http_client:
        with pytest.raises(MalformedResponseError):
            await client.list_by_category("on_the_air")


@pytest.mark.anyio("asyncio")
async def test_missing_api_key_fails_without_network() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        raise AssertionError("Network access should not be triggered")

    client, http_client = build_client(handler, TMDB_API_KEY=None)
    async with http_client:
        with pytest.raises(TransientFetchError):
            await client.list_by_category("trending")
