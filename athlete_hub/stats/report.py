from __future__ import annotations

import tempfile
from dataclasses import dataclass, field
from datetime import date
from importlib import metadata
from pathlib import Path
from typing import Any, Mapping, Sequence

import numpy as np
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..constants import SCORE_AXES
from . import derived
from .aggregate import RECORD_HOLDER_STATS, CompositeScores, aggregate_user_stats
from .common import as_float, attempts_of, field_values, mean, nested_get


@dataclass(frozen=True)
class DerivedMetric:
    key: str
    name: str
    value: float | None
    unit: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "value": self.value,
            "unit": self.unit,
            "description": self.description,
        }


@dataclass(frozen=True)
class FullReport:
    scores: CompositeScores
    reference: CompositeScores
    metrics: list[DerivedMetric] = field(default_factory=list)
    body_weight: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "scores": self.scores.to_dict(),
            "reference": self.reference.to_dict(),
            "bodyWeight": self.body_weight,
            "metrics": [metric.to_dict() for metric in self.metrics],
        }


def _metric(key: str, name: str, value: float | None, unit: str) -> DerivedMetric:
    return DerivedMetric(key, name, value, unit, derived.METRIC_DESCRIPTIONS[key])


def _data_values(test: Any, field_name: str) -> list[float]:
    values = []
    for attempt in attempts_of(test):
        number = as_float(nested_get(attempt, "data", field_name))
        if number is not None:
            values.append(number)
    return values


def _resolve_body_weight(raw: Mapping[str, Any], body_weight: float | None) -> float | None:
    if body_weight:
        return body_weight
    strength = raw.get("currentStrength")
    if isinstance(strength, Mapping):
        recorded = as_float(strength.get("athleteBodyWeight"))
        if recorded:
            return recorded
    return as_float(raw.get("weight")) or None


def _bench_power(bench: Any) -> float | None:
    loads = _data_values(bench, "load")
    velocities = _data_values(bench, "velocity")
    if velocities:
        return derived.estimate_power(loads, velocities)
    reps = _data_values(bench, "reps")
    if loads and reps:
        # Without bar-speed readings, fall back to a load x reps proxy.
        return mean(loads) * mean(reps) * 5
    return None


def _pull_up_max(weighted: Any) -> float | None:
    if not isinstance(weighted, Mapping):
        return None
    recorded = as_float(weighted.get("maxLoad"))
    if recorded is not None:
        return recorded
    return derived.calculate_max_strength(field_values(attempts_of(weighted, "sets"), "load", positive=False))


def _sprint_time(sprint: Any) -> float | None:
    if not isinstance(sprint, Mapping):
        return None
    best = as_float(sprint.get("bestTime"))
    if best is not None:
        return best
    return as_float(nested_get(sprint, "attempts", 0, "sprintTime"))


def _cooper_distance(cooper: Any) -> float | None:
    if not isinstance(cooper, Mapping):
        return None
    average = as_float(cooper.get("averageDistance"))
    if average is not None:
        return average
    return as_float(nested_get(cooper, "attempts", 0, "distanceCovered"))


def _heart_rate_recovery(test: Any) -> float | None:
    if not isinstance(test, Mapping):
        return None
    average = as_float(test.get("averageRecoveryRate"))
    if average is not None:
        return average
    peak = as_float(nested_get(test, "attempts", 0, "peakHR"))
    recovered = as_float(nested_get(test, "attempts", 0, "recovery1MinHR"))
    if peak is None or recovered is None:
        return None
    return derived.calculate_heart_rate_recovery(peak, recovered)


def build_full_report(raw: Mapping[str, Any], body_weight: float | None = None) -> FullReport:
    """Composite scores plus the derived-metrics table for one athlete's current stats."""
    strength = raw.get("currentStrength") or {}
    speed = raw.get("currentSpeed") or {}
    stamina = raw.get("currentStamina") or {}
    weight = _resolve_body_weight(raw, body_weight)

    bench_reps = _data_values(strength.get("Ballistic_Bench_Press"), "reps")
    fatigue = derived.calculate_fatigue_index(bench_reps) if len(bench_reps) > 1 else None

    max_strength = _pull_up_max(strength.get("Weighted_Pull_up"))
    relative = None
    if max_strength and weight:
        relative = derived.calculate_relative_strength_ratio(max_strength, weight)

    jump_heights = _data_values(strength.get("Countermovement_Jump"), "jumpHeight")
    jump_power = None
    if jump_heights and weight:
        jump_power = derived.estimate_jump_power(mean(jump_heights), weight)

    sprint_time = _sprint_time(speed.get("Ten_Meter_Sprint"))
    sprint_speed = derived.calculate_average_sprint_speed(10, sprint_time) if sprint_time is not None else None

    distance = _cooper_distance(stamina.get("Cooper_Test"))
    vo2_max = derived.estimate_vo2_max(distance) if distance is not None else None

    metrics = [
        _metric("fatigue_index", "Fatigue Index", fatigue, "%"),
        _metric("estimated_power", "Estimated Power (Bench Press)", _bench_power(strength.get("Ballistic_Bench_Press")), "W"),
        _metric("max_strength", "Max Strength (Weighted Pull-ups)", max_strength, "kg"),
        _metric("relative_strength_ratio", "Relative Strength Ratio", relative, ""),
        _metric("jump_power", "Jump Power Estimate", jump_power, "W"),
        _metric("average_sprint_speed", "Average 10m Sprint Speed", sprint_speed, "m/s"),
        _metric("vo2_max", "Estimated VO2 Max", vo2_max, "ml/kg/min"),
        _metric(
            "heart_rate_recovery",
            "Heart Rate Recovery",
            _heart_rate_recovery(stamina.get("Post_Exercise_Heart_Rate_Recovery")),
            "bpm",
        ),
    ]

    return FullReport(
        scores=aggregate_user_stats(raw),
        reference=RECORD_HOLDER_STATS,
        metrics=metrics,
        body_weight=weight,
    )


def render_radar_chart(
    scores: CompositeScores,
    path: Path,
    *,
    reference: CompositeScores = RECORD_HOLDER_STATS,
    title: str | None = None,
) -> Path:
    """Plot the six composite scores against the reference vector and save a PNG."""
    import matplotlib

    matplotlib.use("Agg", force=False)
    import matplotlib.pyplot as plt

    labels = [axis.title() for axis in SCORE_AXES]
    angles = np.linspace(0, 2 * np.pi, len(labels), endpoint=False).tolist()
    closed_angles = angles + angles[:1]

    athlete_values = scores.values()
    reference_values = reference.values()

    fig, ax = plt.subplots(figsize=(6, 6), subplot_kw={"polar": True})
    ax.plot(closed_angles, reference_values + reference_values[:1], color="#ADB5BD", linewidth=1.5, label="Record holder")
    ax.fill(closed_angles, reference_values + reference_values[:1], color="#ADB5BD", alpha=0.15)
    ax.plot(closed_angles, athlete_values + athlete_values[:1], color="#1F3C88", linewidth=2, label="Athlete")
    ax.fill(closed_angles, athlete_values + athlete_values[:1], color="#1F3C88", alpha=0.3)
    ax.set_xticks(angles)
    ax.set_xticklabels(labels)
    ax.set_ylim(0, 100)
    ax.set_yticks([20, 40, 60, 80, 100])
    ax.grid(True, linestyle="--", alpha=0.4)
    if title:
        ax.set_title(title, pad=20)
    ax.legend(loc="upper right", bbox_to_anchor=(1.25, 1.1))
    fig.tight_layout()

    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=150)
    plt.close(fig)
    return path


def _format_value(metric: DerivedMetric) -> str:
    if metric.value is None:
        return "n/a"
    return f"{metric.value:.2f} {metric.unit}".strip()


def build_report_pdf(
    report: FullReport,
    destination: Path,
    *,
    athlete_name: str,
    recommendations: Sequence[str] = (),
    report_date: date | None = None,
) -> Path:
    """Write the full athlete report (radar chart, scores and derived metrics) to a PDF."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    report_date = report_date or date.today()
    styles = getSampleStyleSheet()
    story = []

    with tempfile.TemporaryDirectory() as tmp:
        chart_path = render_radar_chart(
            report.scores,
            Path(tmp) / "radar.png",
            reference=report.reference,
            title=athlete_name,
        )

        story.append(Paragraph(f"Performance Report: {athlete_name}", styles["Title"]))
        story.append(Paragraph(f"Generated {report_date.isoformat()} | App v{_app_version()}", styles["BodyText"]))
        if report.body_weight:
            story.append(Paragraph(f"Body weight: {report.body_weight:.1f} kg", styles["BodyText"]))
        story.append(Spacer(1, 0.2 * inch))
        story.append(Image(str(chart_path), width=4.5 * inch, height=4.5 * inch))
        story.append(Spacer(1, 0.2 * inch))

        score_rows = [["Axis", "Athlete", "Record holder"]]
        for axis in SCORE_AXES:
            score_rows.append(
                [axis.title(), f"{getattr(report.scores, axis):.1f}", f"{getattr(report.reference, axis):.0f}"]
            )
        score_table = Table(score_rows, hAlign="LEFT", colWidths=[2.0 * inch, 1.5 * inch, 1.5 * inch])
        score_table.setStyle(_table_style("#1F3C88"))
        story.append(Paragraph("Composite Scores", styles["Heading2"]))
        story.append(score_table)
        story.append(Spacer(1, 0.3 * inch))

        metric_rows = [["Metric", "Value"]]
        for metric in report.metrics:
            metric_rows.append([metric.name, _format_value(metric)])
        metric_table = Table(metric_rows, hAlign="LEFT", colWidths=[3.0 * inch, 3.0 * inch])
        metric_table.setStyle(_table_style("#0B7285"))
        story.append(Paragraph("Derived Metrics", styles["Heading2"]))
        story.append(metric_table)
        story.append(Spacer(1, 0.2 * inch))
        for metric in report.metrics:
            story.append(Paragraph(f"<b>{metric.name}:</b> {metric.description}", styles["BodyText"]))

        if recommendations:
            story.append(Spacer(1, 0.3 * inch))
            story.append(Paragraph("Recommendations", styles["Heading2"]))
            for line in recommendations:
                story.append(Paragraph(f"- {line}", styles["BodyText"]))

        doc = SimpleDocTemplate(str(destination), pagesize=letter, title=f"Performance Report {athlete_name}")
        doc.build(story)

    return destination


def _table_style(header_color: str) -> TableStyle:
    return TableStyle(
        [
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor(header_color)),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("ALIGN", (0, 0), (-1, -1), "LEFT"),
            ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
            ("BACKGROUND", (0, 1), (-1, -1), colors.whitesmoke),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.lightgrey),
        ]
    )


def _app_version() -> str:
    try:
        return metadata.version("athlete-hub")
    except metadata.PackageNotFoundError:  # pragma: no cover - local dev fallback
        return "0.0.0"
