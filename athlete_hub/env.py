from __future__ import annotations

import os

PRIMARY_PREFIX = "ATHLETE_HUB_"


def get_env(name: str, default: str | None = None) -> str | None:
    """Resolve an `ATHLETE_HUB_*` configuration environment variable."""
    value = os.getenv(f"{PRIMARY_PREFIX}{name}")
    if value is not None:
        return value
    return default
