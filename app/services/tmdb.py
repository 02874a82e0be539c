"""Client for The Movie Database (TMDB) catalog endpoints."""

from __future__ import annotations

import logging
from typing import Any, Literal

import httpx

from ..config import Settings
from ..errors import (
    CatalogNotFoundError,
    MalformedResponseError,
    RateLimitError,
    TransientFetchError,
)
from ..models import CatalogDetails, CatalogEntry, MediaKind
from .fetch_queue import FetchQueue

logger = logging.getLogger(__name__)

ListKind = Literal[
    "now_playing",
    "trending",
    "top_rated_for_provider",
    "upcoming",
    "on_the_air",
]

_TMDB_SEGMENT: dict[MediaKind, str] = {"movie": "movie", "series": "tv"}


class TMDBClient:
    """Typed wrapper over the TMDB search, detail and list endpoints.

    Every HTTP call goes through the shared :class:`FetchQueue` so concurrent
    callers never burst past the provider's request rate.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        queue: FetchQueue,
    ):
        self._settings = settings
        self._client = http_client
        self._queue = queue

    async def search(self, query: str, lang: str | None = None) -> list[CatalogEntry]:
        """Search movies and series by free text."""

        data = await self._get(
            "/search/multi",
            {"query": query, "include_adult": "false", "page": 1},
            language=lang,
        )
        return self._parse_results(data.get("results"), context=f"search {query!r}")

    async def get_details(
        self, external_id: int, media_kind: MediaKind
    ) -> CatalogDetails:
        """Fetch a title with watch providers and credits.

        Falls back to the secondary locale once when the primary locale has no
        entry for the title.
        """

        path = f"/{_TMDB_SEGMENT[media_kind]}/{external_id}"
        params = {"append_to_response": "watch/providers,credits"}
        try:
            data = await self._get(path, params)
        except CatalogNotFoundError:
            fallback = self._settings.tmdb_fallback_language
            if fallback == self._settings.tmdb_language:
                raise
            logger.info(
                "TMDB has no %s entry for %s %s; retrying in %s",
                self._settings.tmdb_language,
                media_kind,
                external_id,
                fallback,
            )
            data = await self._get(path, params, language=fallback)
        return CatalogDetails.from_tmdb_details(
            data, media_kind=media_kind, region=self._settings.tmdb_region
        )

    async def list_by_category(
        self,
        kind: ListKind,
        *,
        provider_id: int | None = None,
        media_kind: MediaKind = "movie",
        pages: int | None = None,
    ) -> list[CatalogEntry]:
        """Return the entries of one TMDB list, following pagination."""

        forced_kind: MediaKind | None = None
        params: dict[str, Any] = {}
        region = self._settings.tmdb_region
        if kind == "now_playing":
            path = "/movie/now_playing"
            params["region"] = region
            forced_kind = "movie"
        elif kind == "upcoming":
            path = "/movie/upcoming"
            params["region"] = region
            forced_kind = "movie"
        elif kind == "on_the_air":
            path = "/tv/on_the_air"
            forced_kind = "series"
        elif kind == "trending":
            path = "/trending/all/week"
        elif kind == "top_rated_for_provider":
            if provider_id is None:
                raise ValueError("provider_id is required for provider lists")
            path = f"/discover/{_TMDB_SEGMENT[media_kind]}"
            params.update(
                {
                    "with_watch_providers": provider_id,
                    "watch_region": region,
                    "sort_by": "popularity.desc",
                    "include_adult": "false",
                }
            )
            forced_kind = media_kind
        else:
            raise ValueError(f"Unsupported list kind {kind!r}")

        page_limit = pages if pages is not None else self._settings.tmdb_list_pages
        entries: list[CatalogEntry] = []
        page = 1
        while page <= page_limit:
            data = await self._get(path, {**params, "page": page})
            entries.extend(
                self._parse_results(
                    data.get("results"),
                    media_kind=forced_kind,
                    context=f"{kind} page {page}",
                )
            )
            total_pages = data.get("total_pages")
            if not isinstance(total_pages, int) or page >= total_pages:
                break
            page += 1
        return entries

    async def _get(
        self,
        path: str,
        params: dict[str, Any],
        *,
        language: str | None = None,
    ) -> dict[str, Any]:
        api_key = self._settings.tmdb_api_key
        if not api_key:
            raise TransientFetchError("TMDB API key is not configured")

        query = {
            **params,
            "language": language or self._settings.tmdb_language,
            "api_key": api_key,
        }

        async def _request() -> httpx.Response:
            return await self._client.get(
                path, params=query, headers={"accept": "application/json"}
            )

        try:
            response = await self._queue.enqueue(_request)
        except httpx.HTTPError as exc:
            raise TransientFetchError(
                f"TMDB request to {path} failed: {exc.__class__.__name__}"
            ) from exc

        if response.status_code == 429:
            raise RateLimitError(retry_after=self._retry_after(response))
        if response.status_code == 404:
            raise CatalogNotFoundError(f"TMDB has no resource at {path}")
        if response.status_code >= 400:
            logger.warning(
                "TMDB request to %s failed (%s): %s",
                path,
                response.status_code,
                response.text[:200],
            )
            raise TransientFetchError(
                f"TMDB request to {path} failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"TMDB returned non-JSON for {path}") from exc
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Unexpected TMDB response structure for {path}")
        return data

    def _parse_results(
        self,
        results: object,
        *,
        media_kind: MediaKind | None = None,
        context: str,
    ) -> list[CatalogEntry]:
        if results is None:
            return []
        if not isinstance(results, list):
            raise MalformedResponseError(f"TMDB {context} results are not a list")

        entries: list[CatalogEntry] = []
        for raw in results:
            if isinstance(raw, dict) and raw.get("media_type") == "person":
                continue
            try:
                entries.append(CatalogEntry.from_tmdb(raw, media_kind=media_kind))
            except MalformedResponseError as exc:
                logger.debug("Skipping malformed TMDB result in %s: %s", context, exc)
        return entries

    @staticmethod
    def _retry_after(response: httpx.Response) -> float | None:
        value = response.headers.get("retry-after")
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            return None
