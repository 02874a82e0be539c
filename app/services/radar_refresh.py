"""High level orchestration of release radar refreshes."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable

from ..categories import CATEGORY_KEYS, RADAR_CATEGORIES
from ..config import Settings
from ..errors import RadarError
from ..models import RadarItem
from .curation import CuratedSelector
from .merge import dated_only, merge, tag_entries
from .radar_store import RadarStore, group_for_display
from .staleness import StalenessClock
from .taste import TasteProfile
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)

TasteLoader = Callable[[], Awaitable[TasteProfile]]


class RefreshPhase(str, Enum):
    IDLE = "idle"
    CHECKING_STALENESS = "checking_staleness"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    MERGING = "merging"
    PERSISTING = "persisting"
    UPDATING_CLOCKS = "updating_clocks"


@dataclass
class RefreshReport:
    """Outcome of one refresh cycle."""

    started_at: datetime
    finished_at: datetime | None = None
    due: list[str] = field(default_factory=list)
    refreshed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    item_count: int | None = None

    @property
    def persisted(self) -> bool:
        return self.item_count is not None

    def to_payload(self) -> dict[str, Any]:
        return {
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "due": list(self.due),
            "refreshed": list(self.refreshed),
            "failed": dict(self.failed),
            "itemCount": self.item_count,
            "persisted": self.persisted,
        }


@dataclass
class RadarView:
    """What readers see: the last complete snapshot and how it was obtained."""

    status: str
    categories: dict[str, list[RadarItem]]
    last_refreshed_at: datetime | None = None
    stale: bool = False
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "stale": self.stale,
            "error": self.error,
            "lastRefreshedAt": (
                self.last_refreshed_at.isoformat() if self.last_refreshed_at else None
            ),
            "sections": [
                {
                    "key": definition.key,
                    "title": definition.title,
                    "description": definition.description,
                }
                for definition in RADAR_CATEGORIES
            ],
            "categories": {
                key: [item.to_payload() for item in items]
                for key, items in self.categories.items()
            },
        }


class RadarRefreshService:
    """Coordinates catalog fetching, curation, merging and persistence.

    Refreshes are serialised with an in-process lock. That is best-effort
    exclusion: two processes sharing one database can still interleave.
    """

    def __init__(
        self,
        settings: Settings,
        tmdb_client: TMDBClient,
        selector: CuratedSelector,
        radar_store: RadarStore,
        clock: StalenessClock,
        taste_loader: TasteLoader,
    ):
        self._settings = settings
        self._tmdb = tmdb_client
        self._selector = selector
        self._store = radar_store
        self._clock = clock
        self._taste_loader = taste_loader
        self._lock = asyncio.Lock()
        self._phase = RefreshPhase.IDLE
        self._refresh_task: asyncio.Task[None] | None = None
        self._refresh_poll_seconds = settings.refresh_poll_seconds

    @property
    def phase(self) -> RefreshPhase:
        return self._phase

    async def start(self) -> None:
        """Launch the background refresh loop."""

        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._refresh_loop())

    async def stop(self) -> None:
        """Stop the background refresh loop."""

        if self._refresh_task is None:
            return
        self._refresh_task.cancel()
        with suppress(asyncio.CancelledError):
            await self._refresh_task
        self._refresh_task = None

    async def _refresh_loop(self) -> None:
        while True:
            try:
                await self.refresh()
            except Exception as exc:  # pragma: no cover - background safety net
                logger.exception("Scheduled radar refresh failed: %s", exc)
            await asyncio.sleep(self._refresh_poll_seconds)

    async def refresh(self, *, force: bool = False) -> RefreshReport:
        """Refresh every due category (or all of them when ``force`` is set).

        Raises ``PersistenceError`` when the merged snapshot cannot be written;
        the previous snapshot then stays in place and no clock advances.
        """

        async with self._lock:
            try:
                return await self._run_cycle(force=force)
            finally:
                self._phase = RefreshPhase.IDLE

    async def ensure_radar(self) -> RadarView:
        """Refresh what is due, then return the current snapshot for readers."""

        error: str | None = None
        report: RefreshReport | None = None
        try:
            report = await self.refresh()
        except RadarError as exc:
            logger.exception("Radar refresh failed; serving the previous snapshot")
            error = str(exc)
        return await self.load_view(report=report, error=error)

    async def load_view(
        self, *, report: RefreshReport | None = None, error: str | None = None
    ) -> RadarView:
        if error is None and report is not None and report.failed and not report.persisted:
            error = "; ".join(
                f"{category}: {reason}" for category, reason in report.failed.items()
            )
        items = await self._store.load_snapshot()
        last_refreshed_at = await self._clock.last_refreshed_at()
        if not items and last_refreshed_at is None and error is not None:
            return RadarView(
                status="unavailable",
                categories=group_for_display([]),
                error=error,
            )
        stale = error is not None or bool(report and report.failed)
        return RadarView(
            status="ready",
            categories=group_for_display(items),
            last_refreshed_at=last_refreshed_at,
            stale=stale,
            error=error,
        )

    async def _run_cycle(self, *, force: bool) -> RefreshReport:
        report = RefreshReport(started_at=datetime.now(timezone.utc))

        self._set_phase(RefreshPhase.CHECKING_STALENESS)
        if force:
            due = list(CATEGORY_KEYS)
        else:
            due = await self._clock.due_categories(CATEGORY_KEYS)
        report.due = due
        if not due:
            logger.info("Release radar is up to date; nothing to refresh")
            report.finished_at = datetime.now(timezone.utc)
            return report

        self._set_phase(RefreshPhase.FETCHING)
        logger.info("Refreshing radar categories: %s", ", ".join(due))
        results = await asyncio.gather(
            *(self._fetch_category(category) for category in due),
            return_exceptions=True,
        )
        fetched: dict[str, list[RadarItem]] = {}
        for category, result in zip(due, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                if isinstance(result, RadarError):
                    logger.warning(
                        "Radar category %s degraded this cycle: %s", category, result
                    )
                else:
                    logger.error(
                        "Radar category %s failed unexpectedly",
                        category,
                        exc_info=result,
                    )
                report.failed[category] = str(result) or result.__class__.__name__
                continue
            fetched[category] = result

        if not fetched:
            logger.warning("Every due radar category failed; keeping the previous snapshot")
            report.finished_at = datetime.now(timezone.utc)
            return report

        self._set_phase(RefreshPhase.NORMALIZING)
        # Canonical category order doubles as merge precedence.
        fresh = {
            category: dated_only(fetched[category])
            for category in CATEGORY_KEYS
            if category in fetched
        }

        self._set_phase(RefreshPhase.MERGING)
        previous = await self._store.load_snapshot()
        merged = merge(previous, fresh, refreshed_categories=fresh.keys())

        self._set_phase(RefreshPhase.PERSISTING)
        # Clock records commit in the snapshot's batch or not at all.
        report.item_count = await self._store.replace_all(
            merged, extra_writes=self._clock.record_writes(fresh)
        )

        self._set_phase(RefreshPhase.UPDATING_CLOCKS)
        report.refreshed = list(fresh)
        report.finished_at = datetime.now(timezone.utc)
        logger.info(
            "Radar refresh stored %s items (refreshed: %s; failed: %s)",
            report.item_count,
            ", ".join(report.refreshed),
            ", ".join(report.failed) or "none",
        )
        return report

    async def _fetch_category(self, category: str) -> list[RadarItem]:
        if category == "trending":
            entries = await self._tmdb.list_by_category("trending")
            return tag_entries(entries, "trending")
        if category == "now_playing":
            entries = await self._tmdb.list_by_category("now_playing")
            return tag_entries(entries, "now_playing")
        if category == "top_rated":
            return await self._fetch_provider_tops()
        if category == "relevant":
            return await self._fetch_relevant()
        raise ValueError(f"Unknown radar category {category!r}")

    async def _fetch_provider_tops(self) -> list[RadarItem]:
        items: list[RadarItem] = []
        for provider_id in self._settings.top_provider_ids:
            for media_kind in ("movie", "series"):
                entries = await self._tmdb.list_by_category(
                    "top_rated_for_provider",
                    provider_id=provider_id,
                    media_kind=media_kind,
                )
                items.extend(tag_entries(entries, "top_rated", provider_id=provider_id))
        return items

    async def _fetch_relevant(self) -> list[RadarItem]:
        upcoming = await self._tmdb.list_by_category("upcoming")
        on_the_air = await self._tmdb.list_by_category("on_the_air")
        taste_profile = await self._taste_loader()
        candidates = self.build_candidates(
            [*tag_entries(upcoming, "relevant"), *tag_entries(on_the_air, "relevant")],
            taste_profile,
        )
        return await self._selector.select_relevant(candidates, taste_profile)

    @staticmethod
    def build_candidates(
        items: list[RadarItem], taste_profile: TasteProfile
    ) -> list[RadarItem]:
        """Keep dated, unseen titles, one per external id."""

        candidates: list[RadarItem] = []
        seen: set[int] = set()
        for item in dated_only(items):
            if item.external_id in seen:
                continue
            if taste_profile.knows(item.media_kind, item.external_id):
                continue
            seen.add(item.external_id)
            candidates.append(item)
        return candidates

    def _set_phase(self, phase: RefreshPhase) -> None:
        self._phase = phase
        logger.debug("Radar refresh phase: %s", phase.value)
