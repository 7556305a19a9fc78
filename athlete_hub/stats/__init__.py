"""Athletic test calculators and composite scoring.

The calculators are pure functions over plain dicts so they can run in the web
app, the CLI, or a notebook. Report rendering (matplotlib/reportlab) lives in
`athlete_hub.stats.report` and is imported lazily.
"""

from __future__ import annotations

from .aggregate import (
    RECORD_HOLDER_STATS,
    CompositeScores,
    aggregate_user_stats,
    analyze_injuries,
    calculate_bmi,
    calculate_overall_performance,
    generate_recommendations,
    get_bmi_classification,
    get_performance_level,
)
from .speed_agility import recalculate_speed_scores
from .stamina_recovery import calculate_improvements, recalculate_stamina_scores
from .strength_power import recalculate_strength_scores
from .validators import StatsValidationError

__all__ = [
    "RECORD_HOLDER_STATS",
    "CompositeScores",
    "StatsValidationError",
    "aggregate_user_stats",
    "analyze_injuries",
    "calculate_bmi",
    "calculate_improvements",
    "calculate_overall_performance",
    "generate_recommendations",
    "get_bmi_classification",
    "get_performance_level",
    "recalculate_speed_scores",
    "recalculate_stamina_scores",
    "recalculate_strength_scores",
]
