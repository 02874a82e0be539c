"""Pydantic models describing catalog entries and radar payloads."""

from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .categories import CategoryKey
from .errors import MalformedResponseError
from .utils import build_image_url, title_with_year

MediaKind = Literal["movie", "series"]

_MEDIA_KIND_ALIASES: dict[str, MediaKind] = {
    "movie": "movie",
    "film": "movie",
    "series": "series",
    "tv": "series",
    "show": "series",
}


def parse_media_kind(value: object) -> MediaKind | None:
    """Map provider media type labels onto our two media kinds."""

    if not isinstance(value, str):
        return None
    return _MEDIA_KIND_ALIASES.get(value.strip().lower())


def infer_media_kind(payload: dict[str, Any]) -> MediaKind | None:
    """Infer the media kind of a TMDB result that omits ``media_type``."""

    declared = payload.get("media_type")
    if declared is not None:
        return parse_media_kind(declared)
    if "title" in payload:
        return "movie"
    if "name" in payload:
        return "series"
    return None


def normalise_release_date(value: object) -> str | None:
    """Return an ISO date string, or ``None`` when the value is not a usable date."""

    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    try:
        return date.fromisoformat(cleaned[:10]).isoformat()
    except ValueError:
        return None


class CatalogEntry(BaseModel):
    """A search or list result normalised across movies and series."""

    external_id: int
    media_kind: MediaKind
    title: str
    original_title: str | None = None
    overview: str | None = None
    poster_path: str | None = None
    release_date: str | None = None
    popularity: float | None = None
    vote_average: float | None = None
    genre_ids: list[int] = Field(default_factory=list)

    @field_validator("release_date", mode="before")
    @classmethod
    def _clean_release_date(cls, value: object) -> str | None:
        return normalise_release_date(value)

    @classmethod
    def from_tmdb(
        cls, payload: object, *, media_kind: MediaKind | None = None
    ) -> "CatalogEntry":
        """Convert a raw TMDB movie or tv result into a catalog entry."""

        if not isinstance(payload, dict):
            raise MalformedResponseError("Catalog result is not an object")
        resolved_kind = media_kind or infer_media_kind(payload)
        if resolved_kind is None:
            raise MalformedResponseError(
                f"Cannot determine media kind for result {payload.get('id')!r}"
            )
        raw_id = payload.get("id")
        if isinstance(raw_id, bool) or not isinstance(raw_id, (int, str)):
            raise MalformedResponseError("Catalog result has no id")
        try:
            external_id = int(raw_id)
        except ValueError as exc:
            raise MalformedResponseError(f"Invalid catalog id {raw_id!r}") from exc

        if resolved_kind == "movie":
            title = payload.get("title") or payload.get("name")
            original = payload.get("original_title")
            released = payload.get("release_date")
        else:
            title = payload.get("name") or payload.get("title")
            original = payload.get("original_name")
            released = payload.get("first_air_date")
        if not isinstance(title, str) or not title.strip():
            raise MalformedResponseError(f"Catalog result {external_id} has no title")

        genre_ids = payload.get("genre_ids")
        if not isinstance(genre_ids, list):
            genre_ids = [
                genre.get("id")
                for genre in payload.get("genres") or []
                if isinstance(genre, dict)
            ]

        try:
            return cls(
                external_id=external_id,
                media_kind=resolved_kind,
                title=title.strip(),
                original_title=original if isinstance(original, str) else None,
                overview=payload.get("overview") or None,
                poster_path=payload.get("poster_path") or None,
                release_date=released,
                popularity=payload.get("popularity"),
                vote_average=payload.get("vote_average"),
                genre_ids=[gid for gid in genre_ids if isinstance(gid, int)],
            )
        except ValidationError as exc:
            raise MalformedResponseError(
                f"Catalog result {external_id} failed validation: {exc}"
            ) from exc

    def display_title(self) -> str:
        return title_with_year(self.title, self.release_date)


class WatchProvider(BaseModel):
    provider_id: int
    provider_name: str
    logo_path: str | None = None


class WatchProviders(BaseModel):
    """Where a title can be streamed in the configured region."""

    link: str | None = None
    flatrate: list[WatchProvider] = Field(default_factory=list)


class CatalogDetails(CatalogEntry):
    """Detailed view of a single title including providers and credits."""

    genres: list[str] = Field(default_factory=list)
    runtime_minutes: int | None = None
    status: str | None = None
    original_language: str | None = None
    cast: list[str] = Field(default_factory=list)
    watch_providers: WatchProviders | None = None

    @classmethod
    def from_tmdb_details(
        cls,
        payload: dict[str, Any],
        *,
        media_kind: MediaKind,
        region: str,
        cast_limit: int = 8,
    ) -> "CatalogDetails":
        if not isinstance(payload, dict):
            raise MalformedResponseError("Detail payload is not an object")
        entry = CatalogEntry.from_tmdb(payload, media_kind=media_kind)

        genres = [
            genre["name"]
            for genre in payload.get("genres") or []
            if isinstance(genre, dict) and isinstance(genre.get("name"), str)
        ]
        runtime = payload.get("runtime")
        if runtime is None:
            episode_runtimes = payload.get("episode_run_time") or []
            runtime = episode_runtimes[0] if episode_runtimes else None

        credits = payload.get("credits") or {}
        cast = [
            member["name"]
            for member in (credits.get("cast") or [])[:cast_limit]
            if isinstance(member, dict) and isinstance(member.get("name"), str)
        ]

        regional = ((payload.get("watch/providers") or {}).get("results") or {}).get(
            region
        )
        try:
            providers: WatchProviders | None = None
            if isinstance(regional, dict):
                providers = WatchProviders.model_validate(
                    {
                        "link": regional.get("link"),
                        "flatrate": regional.get("flatrate") or [],
                    }
                )
            return cls(
                **entry.model_dump(),
                genres=genres,
                runtime_minutes=runtime if isinstance(runtime, int) else None,
                status=payload.get("status"),
                original_language=payload.get("original_language"),
                cast=cast,
                watch_providers=providers,
            )
        except ValidationError as exc:
            raise MalformedResponseError(
                f"Details for {entry.external_id} failed validation: {exc}"
            ) from exc


class RadarItem(BaseModel):
    """A catalog entry surfaced on the release radar."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    external_id: int
    media_kind: MediaKind
    title: str
    poster_ref: str | None = None
    release_date: str | None = None
    category: CategoryKey
    provider_id: int | None = None
    overview: str | None = None

    @field_validator("release_date", mode="before")
    @classmethod
    def _clean_release_date(cls, value: object) -> str | None:
        return normalise_release_date(value)

    @field_validator("media_kind", mode="before")
    @classmethod
    def _clean_media_kind(cls, value: object) -> object:
        return parse_media_kind(value) or value

    @classmethod
    def from_entry(
        cls,
        entry: CatalogEntry,
        *,
        category: CategoryKey,
        provider_id: int | None = None,
    ) -> "RadarItem":
        return cls(
            external_id=entry.external_id,
            media_kind=entry.media_kind,
            title=entry.display_title(),
            poster_ref=entry.poster_path,
            release_date=entry.release_date,
            category=category,
            provider_id=provider_id if category == "top_rated" else None,
            overview=entry.overview,
        )

    @property
    def storage_id(self) -> str:
        return str(self.external_id)

    @property
    def poster_url(self) -> str | None:
        if not self.poster_ref:
            return None
        return build_image_url(self.poster_ref)

    def to_document(self) -> dict[str, Any]:
        """Return the stored representation, omitting absent fields."""

        return self.model_dump(by_alias=True, exclude_none=True)

    def to_payload(self) -> dict[str, Any]:
        payload = self.to_document()
        if self.poster_url:
            payload["posterUrl"] = self.poster_url
        return payload


class CalendarItem(RadarItem):
    """A radar item the user saved to their personal calendar."""

    added_at: int


class OracleChoice(BaseModel):
    """One title picked by the recommendation oracle."""

    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(validation_alias=AliasChoices("id", "externalId", "tmdbId"))
    media_kind: MediaKind | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "mediaKind", "media_kind", "tmdbMediaType", "media_type", "type"
        ),
    )
    title: str | None = None

    @field_validator("media_kind", mode="before")
    @classmethod
    def _clean_media_kind(cls, value: object) -> MediaKind | None:
        return parse_media_kind(value)


class OracleSelection(BaseModel):
    """Structured reply of the recommendation oracle."""

    releases: list[OracleChoice] = Field(
        default_factory=list,
        validation_alias=AliasChoices("releases", "items", "selection"),
    )
