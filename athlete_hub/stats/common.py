"""Small numeric helpers shared by the per-test calculators."""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping, Sequence


def as_float(value: Any) -> float | None:
    """Return `value` as a finite float, or None for missing/non-numeric input."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def safe_number(value: Any) -> float:
    """Like `as_float` but missing values count as zero."""
    number = as_float(value)
    return 0.0 if number is None else number


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with halves going up (2.5 -> 3, -2.5 -> -2), unlike the built-in `round`."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def attempts_of(test: Mapping[str, Any] | None, key: str = "attempts") -> list[Mapping[str, Any]]:
    if not isinstance(test, Mapping):
        return []
    items = test.get(key)
    if not isinstance(items, (list, tuple)):
        return []
    return [item for item in items if isinstance(item, Mapping)]


def field_values(items: Iterable[Mapping[str, Any]], field: str, *, positive: bool = True) -> list[float]:
    """Collect numeric `field` values, skipping missing ones (and non-positive ones by default)."""
    values: list[float] = []
    for item in items:
        number = as_float(item.get(field))
        if number is None:
            continue
        if positive and number <= 0:
            continue
        values.append(number)
    return values


def nested_get(payload: Any, *path: Any) -> Any:
    """Walk dict keys / list indices, returning None as soon as a step is missing."""
    current = payload
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, (list, tuple)) or step >= len(current):
                return None
            current = current[step]
        else:
            if not isinstance(current, Mapping):
                return None
            current = current.get(step)
    return current


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))
