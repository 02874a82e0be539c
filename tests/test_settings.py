"""Configuration settings behaviour tests."""

from __future__ import annotations

import pytest

from app.config import DEFAULT_PROVIDER_IDS, Settings


def test_defaults_describe_the_brazilian_radar() -> None:
    settings = Settings(_env_file=None)

    assert settings.tmdb_language == "pt-BR"
    assert settings.tmdb_fallback_language == "en-US"
    assert settings.tmdb_region == "BR"
    assert settings.top_provider_ids == DEFAULT_PROVIDER_IDS
    assert settings.fetch_delay_seconds == pytest.approx(0.25)


def test_provider_ids_parse_comma_separated_values() -> None:
    """Provider ids should be parsed from a comma separated string."""

    settings = Settings(_env_file=None, TOP_PROVIDER_IDS="8, 337,8,,119")

    assert settings.top_provider_ids == (8, 337, 119)


def test_provider_ids_accept_iterables() -> None:
    settings = Settings(_env_file=None, TOP_PROVIDER_IDS=["350", 1899])

    assert settings.top_provider_ids == (350, 1899)


def test_provider_ids_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Environment values are split on commas rather than decoded as JSON."""

    monkeypatch.setenv("TOP_PROVIDER_IDS", "8,119")

    settings = Settings(_env_file=None)

    assert settings.top_provider_ids == (8, 119)


def test_provider_ids_invalid_raises() -> None:
    with pytest.raises(ValueError, match="Provider ids must be integers"):
        Settings(_env_file=None, TOP_PROVIDER_IDS="netflix")
    with pytest.raises(ValueError, match="Provider ids must be positive"):
        Settings(_env_file=None, TOP_PROVIDER_IDS="0")


def test_refresh_intervals_follow_category_family() -> None:
    settings = Settings(
        _env_file=None, FREQUENT_REFRESH_DAYS=2, CURATED_REFRESH_DAYS=10
    )

    assert settings.refresh_interval_days("frequent") == 2
    assert settings.refresh_interval_days("curated") == 10
    with pytest.raises(KeyError):
        settings.refresh_interval_days("weekly")


def test_list_pages_are_bounded() -> None:
    with pytest.raises(ValueError):
        Settings(_env_file=None, TMDB_LIST_PAGES=6)
