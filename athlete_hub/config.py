from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

from .constants import DEFAULT_SPORTS
from .env import get_env

try:  # pragma: no cover - Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - Python <3.11
    try:
        import tomli as tomllib  # type: ignore
    except ModuleNotFoundError:
        tomllib = None  # type: ignore


@dataclass(frozen=True)
class GuideSearchSettings:
    radius_km: float = 10.0
    max_radius_km: float = 500.0
    limit: int = 50


@dataclass(frozen=True)
class EvaluationSettings:
    rejection_cooldown_days: int = 7
    message_min_length: int = 10
    message_max_length: int = 150


@dataclass(frozen=True)
class SearchSettings:
    min_query_length: int = 2
    limit: int = 10
    max_limit: int = 50


@dataclass(frozen=True)
class AppConfig:
    allowed_sports: tuple[str, ...] = DEFAULT_SPORTS
    guide_search: GuideSearchSettings = GuideSearchSettings()
    evaluation: EvaluationSettings = EvaluationSettings()
    search: SearchSettings = SearchSettings()


def _config_path() -> Path | None:
    """Resolve the TOML configuration file, if present."""
    env_override = get_env("CONFIG")
    if env_override:
        path = Path(env_override).expanduser()
        return path if path.exists() else None

    default_path = Path("config/athlete_hub.toml")
    if default_path.exists():
        return default_path
    return None


def _load_toml(path: Path) -> Mapping[str, Any]:
    if tomllib is None:
        raise RuntimeError("TOML configuration requires Python 3.11+ or the 'tomli' package.")
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _coerce_sports(raw: Any) -> tuple[str, ...]:
    if not raw:
        return DEFAULT_SPORTS
    if isinstance(raw, str):
        entries = [entry.strip() for entry in raw.split(",")]
    elif isinstance(raw, (list, tuple, set)):
        entries = [str(entry).strip() for entry in raw]
    else:
        return DEFAULT_SPORTS
    cleaned = tuple(sport for sport in entries if sport)
    return cleaned or DEFAULT_SPORTS


def _coerce_guide_search(raw: Mapping[str, Any] | None) -> GuideSearchSettings:
    base = GuideSearchSettings()
    if not raw:
        return base
    try:
        radius = float(raw.get("radius_km", base.radius_km))
        max_radius = float(raw.get("max_radius_km", base.max_radius_km))
        limit = int(raw.get("limit", base.limit))
    except (TypeError, ValueError):
        return base
    if radius <= 0 or max_radius < radius or limit <= 0:
        return base
    return GuideSearchSettings(radius_km=radius, max_radius_km=max_radius, limit=limit)


def _coerce_evaluation(raw: Mapping[str, Any] | None) -> EvaluationSettings:
    base = EvaluationSettings()
    if not raw:
        return base
    try:
        cooldown = int(raw.get("rejection_cooldown_days", base.rejection_cooldown_days))
        min_len = int(raw.get("message_min_length", base.message_min_length))
        max_len = int(raw.get("message_max_length", base.message_max_length))
    except (TypeError, ValueError):
        return base
    if cooldown < 0 or min_len < 0 or max_len < min_len:
        return base
    return EvaluationSettings(
        rejection_cooldown_days=cooldown,
        message_min_length=min_len,
        message_max_length=max_len,
    )


def _coerce_search(raw: Mapping[str, Any] | None) -> SearchSettings:
    base = SearchSettings()
    if not raw:
        return base
    try:
        min_len = int(raw.get("min_query_length", base.min_query_length))
        limit = int(raw.get("limit", base.limit))
        max_limit = int(raw.get("max_limit", base.max_limit))
    except (TypeError, ValueError):
        return base
    if min_len < 1 or limit < 1 or max_limit < limit:
        return base
    return SearchSettings(min_query_length=min_len, limit=limit, max_limit=max_limit)


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any] | None:
    value = raw.get(name)
    return value if isinstance(value, Mapping) else None


def _build_config(raw: Mapping[str, Any]) -> AppConfig:
    return AppConfig(
        allowed_sports=_coerce_sports(raw.get("allowed_sports")),
        guide_search=_coerce_guide_search(_section(raw, "guide_search")),
        evaluation=_coerce_evaluation(_section(raw, "evaluation")),
        search=_coerce_search(_section(raw, "search")),
    )


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load configuration once, falling back to built-in defaults."""
    path = _config_path()
    if not path:
        return AppConfig()
    data = _load_toml(path)
    return _build_config(data)


def as_dict() -> dict[str, Any]:
    """Return the effective configuration for debug/CLI display."""
    config = get_config()
    return {
        "allowed_sports": list(config.allowed_sports),
        "guide_search": {
            "radius_km": config.guide_search.radius_km,
            "max_radius_km": config.guide_search.max_radius_km,
            "limit": config.guide_search.limit,
        },
        "evaluation": {
            "rejection_cooldown_days": config.evaluation.rejection_cooldown_days,
            "message_min_length": config.evaluation.message_min_length,
            "message_max_length": config.evaluation.message_max_length,
        },
        "search": {
            "min_query_length": config.search.min_query_length,
            "limit": config.search.limit,
            "max_limit": config.search.max_limit,
        },
        "source": str(_config_path() or "defaults"),
    }
