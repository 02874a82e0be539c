"""Curated selection of relevant releases through the recommendation oracle."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from ..errors import OracleError
from ..models import RadarItem
from .openrouter import RecommendationOracle
from .taste import TasteProfile

logger = logging.getLogger(__name__)

CURATION_REQUEST_TEMPLATE = """
Review the list of upcoming movies and airing series below and pick up to {limit} that
are the most relevant for this viewer, based on their taste profile.

VIEWER PROFILE:
{taste_profile}

RELEASES:
{releases}

Respond strictly with JSON following this structure:
{{
  "releases": [
    {{"id": 123, "mediaKind": "movie", "title": "Title (2025)"}}
  ]
}}
Only use ids from the list above.
"""


class CuratedSelector:
    """Asks the oracle which candidates matter to the viewer.

    The oracle is not trusted to invent ids: its answer is intersected with
    the candidates it was shown.
    """

    def __init__(
        self,
        oracle: RecommendationOracle,
        *,
        timeout_seconds: float = 20.0,
        limit: int = 20,
    ):
        self._oracle = oracle
        self._timeout = timeout_seconds
        self._limit = limit

    async def select_relevant(
        self, candidates: Sequence[RadarItem], taste_profile: TasteProfile
    ) -> list[RadarItem]:
        if not candidates:
            logger.info("No curated candidates; skipping oracle call")
            return []

        prompt = self.build_prompt(candidates, taste_profile)
        try:
            selection = await asyncio.wait_for(
                self._oracle.select(prompt), timeout=self._timeout
            )
        except asyncio.TimeoutError as exc:
            raise OracleError(
                f"Oracle did not answer within {self._timeout:.0f}s"
            ) from exc

        by_id: dict[int, list[RadarItem]] = {}
        for candidate in candidates:
            by_id.setdefault(candidate.external_id, []).append(candidate)

        chosen: list[RadarItem] = []
        seen: set[int] = set()
        discarded = 0
        for choice in selection.releases:
            matches = by_id.get(choice.id)
            if not matches:
                discarded += 1
                continue
            if choice.id in seen:
                continue
            match = next(
                (item for item in matches if item.media_kind == choice.media_kind),
                matches[0],
            )
            seen.add(choice.id)
            chosen.append(match)
            if len(chosen) >= self._limit:
                break

        if discarded:
            logger.warning("Oracle returned %s ids outside the candidate list", discarded)
        logger.info(
            "Oracle picked %s of %s curated candidates", len(chosen), len(candidates)
        )
        return chosen

    def build_prompt(
        self, candidates: Sequence[RadarItem], taste_profile: TasteProfile
    ) -> str:
        releases = "\n".join(
            f"- {item.title} (ID: {item.external_id}, Kind: {item.media_kind})"
            for item in candidates
        )
        return CURATION_REQUEST_TEMPLATE.format(
            limit=self._limit,
            taste_profile=taste_profile.to_prompt_text(),
            releases=releases,
        ).strip()
