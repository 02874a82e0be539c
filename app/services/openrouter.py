"""Recommendation oracle backed by the OpenRouter chat completions API."""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..errors import OracleError
from ..models import OracleChoice, OracleSelection
from ..utils import extract_json_object

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are the release radar of a personal movie and series assistant. You pick "
    "upcoming titles a viewer is likely to love and always respond with a single JSON "
    "object that matches the documented schema, never adding commentary outside JSON."
)

RESPONSE_SCHEMA = {
    "name": "radar_selection",
    "strict": True,
    "schema": {
        "type": "object",
        "properties": {
            "releases": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "integer"},
                        "mediaKind": {"type": "string", "enum": ["movie", "series"]},
                        "title": {"type": "string"},
                    },
                    "required": ["id", "mediaKind", "title"],
                    "additionalProperties": False,
                },
            }
        },
        "required": ["releases"],
        "additionalProperties": False,
    },
}


class RecommendationOracle(Protocol):
    """Black box that picks a subset of candidates from a text prompt."""

    async def select(self, prompt: str) -> OracleSelection: ...


class OpenRouterOracle:
    """Oracle that asks an OpenRouter-hosted model for a structured selection."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not settings.openrouter_api_key:
            raise ValueError("OpenRouter API key is required when initialising OpenRouterOracle")
        self._settings = settings
        self._client = http_client

    async def select(self, prompt: str) -> OracleSelection:
        payload = {
            "model": self._settings.openrouter_model,
            "temperature": 0.4,
            "response_format": {"type": "json_schema", "json_schema": RESPONSE_SCHEMA},
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        }
        headers = {
            "Authorization": f"Bearer {self._settings.openrouter_api_key}",
            "Content-Type": "application/json",
            "X-Title": self._settings.app_name,
        }

        try:
            response = await self._client.post(
                "/chat/completions", json=payload, headers=headers
            )
        except httpx.HTTPError as exc:
            raise OracleError(f"Oracle request failed: {exc.__class__.__name__}") from exc
        if response.status_code >= 400:
            raise OracleError(
                f"Oracle request failed ({response.status_code}): {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise OracleError("Oracle returned a non-JSON body") from exc
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise OracleError("Model returned no choices")
        first = choices[0] if isinstance(choices, list) else None
        message = first.get("message") if isinstance(first, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise OracleError("Model response missing content")

        try:
            return OracleSelection.model_validate(extract_json_object(content))
        except (ValueError, ValidationError) as exc:
            raise OracleError(f"Model returned an unusable selection: {exc}") from exc


class FixedSelectionOracle:
    """Oracle that always answers with the same selection.

    Used when no model API key is configured, and as a test double.
    """

    def __init__(self, choices: Sequence[OracleChoice] | None = None):
        self._selection = OracleSelection(releases=list(choices or []))
        self.last_prompt: str | None = None

    async def select(self, prompt: str) -> OracleSelection:
        self.last_prompt = prompt
        return self._selection.model_copy(deep=True)


def build_oracle(settings: Settings, http_client: httpx.AsyncClient) -> RecommendationOracle:
    """Pick the oracle strategy for the configured credentials."""

    if settings.openrouter_api_key:
        return OpenRouterOracle(settings, http_client)
    logger.warning(
        "OPENROUTER_API_KEY is not set; curated releases use a fixed empty selection"
    )
    return FixedSelectionOracle()
