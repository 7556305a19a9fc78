from __future__ import annotations

from typing import Any, Mapping, Sequence

import pandas as pd

from ..constants import SCORE_AXES
from .common import as_float

SNAPSHOT_COLUMNS = ["id", "created_at", "height", "weight", "age", "body_fat", *SCORE_AXES]


def snapshots_to_dataframe(snapshots: Sequence[Mapping[str, Any]]) -> pd.DataFrame:
    """Flatten stored stats snapshots into one row per snapshot, oldest first."""
    records: list[dict[str, Any]] = []
    for snapshot in snapshots:
        if not isinstance(snapshot, Mapping):
            raise TypeError(f"Unsupported snapshot type: {type(snapshot)!r}")
        scores = snapshot.get("scores") or {}
        record: dict[str, Any] = {
            "id": snapshot.get("id"),
            "created_at": pd.to_datetime(snapshot.get("createdAt") or snapshot.get("created_at")),
            "height": as_float(snapshot.get("height")),
            "weight": as_float(snapshot.get("weight")),
            "age": as_float(snapshot.get("age")),
            "body_fat": as_float(snapshot.get("bodyFat", snapshot.get("body_fat"))),
        }
        for axis in SCORE_AXES:
            record[axis] = as_float(scores.get(axis)) if isinstance(scores, Mapping) else None
        records.append(record)

    if not records:
        return pd.DataFrame(columns=SNAPSHOT_COLUMNS)

    df = pd.DataFrame.from_records(records, columns=SNAPSHOT_COLUMNS)
    return df.sort_values(["created_at", "id"], kind="stable").reset_index(drop=True)


def score_trends(df_snapshots: pd.DataFrame) -> dict[str, dict[str, float | None]]:
    """Per-axis change between the two most recent snapshots.

    Returns an empty mapping when fewer than two snapshots exist. `percent_change`
    is None when the previous value is zero or missing.
    """
    if df_snapshots.empty or len(df_snapshots) < 2:
        return {}

    ordered = df_snapshots.sort_values(["created_at", "id"], kind="stable")
    latest = ordered.iloc[-1]
    previous = ordered.iloc[-2]

    trends: dict[str, dict[str, float | None]] = {}
    for axis in SCORE_AXES:
        current = latest[axis]
        before = previous[axis]
        if pd.isna(current) or pd.isna(before):
            continue
        change = float(current) - float(before)
        percent = change / float(before) * 100 if float(before) else None
        trends[axis] = {
            "current": float(current),
            "previous": float(before),
            "change": round(change, 2),
            "percent_change": round(percent, 2) if percent is not None else None,
        }
    return trends
