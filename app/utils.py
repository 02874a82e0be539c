"""Utility helpers for the release radar service."""

from __future__ import annotations

import json
import re
from typing import Any


JSON_BLOCK_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
BARE_JSON_RE = re.compile(r"\{.*\}", re.DOTALL)
TRAILING_YEAR_RE = re.compile(r"\s*\(\d{4}\)\s*$")

POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"


def extract_json_object(content: str) -> dict[str, Any]:
    """Extract and parse the first JSON object from a model response."""

    match = JSON_BLOCK_RE.search(content)
    if match:
        payload = match.group(1)
    else:
        match = BARE_JSON_RE.search(content)
        if not match:
            raise ValueError("No JSON object found in response")
        payload = match.group(0)

    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ValueError("Invalid JSON payload produced by the model") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Model response is not a JSON object")
    return parsed


def title_with_year(title: str, release_date: str | None) -> str:
    """Return ``"Title (YYYY)"`` when the release year is known."""

    base = title.strip()
    if not release_date or len(release_date) < 4 or not release_date[:4].isdigit():
        return base
    if TRAILING_YEAR_RE.search(base):
        return base
    return f"{base} ({release_date[:4]})"


def build_image_url(path: str, base_url: str = POSTER_BASE_URL) -> str:
    if path.startswith("http"):
        return path
    return f"{base_url}{path}"


def strip_absent(record: dict[str, Any]) -> dict[str, Any]:
    """Drop ``None`` values, recursing into nested mappings."""

    cleaned: dict[str, Any] = {}
    for key, value in record.items():
        if value is None:
            continue
        if isinstance(value, dict):
            value = strip_absent(value)
        cleaned[key] = value
    return cleaned
