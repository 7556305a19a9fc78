from __future__ import annotations

from athlete_hub.config import AppConfig, as_dict, get_config
from athlete_hub.constants import DEFAULT_SPORTS


def test_defaults_without_config_file(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    config = get_config()
    assert config == AppConfig()
    assert config.allowed_sports == DEFAULT_SPORTS
    assert config.guide_search.radius_km == 10.0
    assert config.evaluation.rejection_cooldown_days == 7
    assert as_dict()["source"] == "defaults"


def test_toml_overrides(monkeypatch, tmp_path):
    config_file = tmp_path / "athlete_hub.toml"
    config_file.write_text(
        "\n".join(
            [
                'allowed_sports = ["running", "cycling"]',
                "",
                "[guide_search]",
                "radius_km = 25",
                "max_radius_km = 100",
                "limit = 5",
                "",
                "[evaluation]",
                "rejection_cooldown_days = 3",
                "",
                "[search]",
                "min_query_length = 3",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("ATHLETE_HUB_CONFIG", str(config_file))
    get_config.cache_clear()

    config = get_config()
    assert config.allowed_sports == ("running", "cycling")
    assert config.guide_search.radius_km == 25.0
    assert config.guide_search.limit == 5
    assert config.evaluation.rejection_cooldown_days == 3
    assert config.evaluation.message_max_length == 150
    assert config.search.min_query_length == 3
    assert as_dict()["source"] == str(config_file)


def test_invalid_sections_fall_back_to_defaults(monkeypatch, tmp_path):
    config_file = tmp_path / "athlete_hub.toml"
    config_file.write_text(
        "\n".join(["[guide_search]", "radius_km = 50", "max_radius_km = 10", "", "[search]", 'limit = "many"']),
        encoding="utf-8",
    )
    monkeypatch.setenv("ATHLETE_HUB_CONFIG", str(config_file))
    get_config.cache_clear()

    config = get_config()
    assert config.guide_search.radius_km == 10.0
    assert config.search.limit == 10


def test_missing_override_file_uses_defaults(monkeypatch, tmp_path):
    monkeypatch.setenv("ATHLETE_HUB_CONFIG", str(tmp_path / "missing.toml"))
    get_config.cache_clear()
    assert get_config() == AppConfig()
