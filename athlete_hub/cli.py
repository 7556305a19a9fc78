from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping, Optional

import typer

from . import __version__
from .config import as_dict as config_as_dict
from .constants import ROLE_ATHLETE, SCORE_AXES
from .errors import ApiError
from .models import ValidationError
from .services import accounts, guides, profiles, social
from .services import stats as stats_service
from .storage import init_database

app = typer.Typer(help="Manage athlete profiles, the follow graph and performance test scores.")
profile_app = typer.Typer(help="Inspect athlete profiles.")
stats_app = typer.Typer(help="Compute, chart and report athletic test scores.")
guide_app = typer.Typer(help="Guide administration.")


def _fail(message: str, *, code: int = 1) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=code)


def _describe_error(exc: Exception) -> str:
    if isinstance(exc, ValidationError) and exc.fields:
        lines = [str(exc)]
        for field, messages in sorted(exc.fields.items()):
            lines.append(f"  {field}: {'; '.join(messages)}")
        return "\n".join(lines)
    if isinstance(exc, ApiError) and exc.details:
        return f"{exc.message} ({exc.details})"
    return str(exc)


def _load_payload(path: Path) -> Mapping[str, Any]:
    source = path.expanduser()
    if not source.exists():
        _fail(f"Input file not found: {source}")
    try:
        payload = json.loads(source.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        _fail(f"{source} is not valid JSON: {exc}")
    if not isinstance(payload, Mapping):
        _fail(f"{source} must contain a JSON object.")
    return payload


def _echo_scores(scores: Mapping[str, Any]) -> None:
    for axis in SCORE_AXES:
        value = scores.get(axis)
        typer.echo(f"  {axis:<9} {value:6.1f}" if isinstance(value, (int, float)) else f"  {axis:<9}    n/a")


def _resolve_report(input_path: Optional[Path], user_id: Optional[int]):
    from .stats.report import build_full_report

    if (input_path is None) == (user_id is None):
        _fail("Provide exactly one of --input or --user-id.")
    try:
        if input_path is not None:
            computed = stats_service.compute_stats(_load_payload(input_path))
            raw = stats_service.snapshot_raw(computed)
            return build_full_report(raw, body_weight=computed.get("weight")), computed.get("recommendations", [])
        report = stats_service.latest_report(user_id)
        latest = stats_service.get_stats(user_id)["latest"] or {}
        return report, latest.get("recommendations", [])
    except (ApiError, ValidationError) as exc:
        _fail(_describe_error(exc))


@app.command("init-db")
def init_db() -> None:
    """
    Create the SQLite schema (idempotent) and print the database path.
    """
    path = init_database()
    typer.echo(f"Database ready at {path}")


@app.command()
def register(
    email: str = typer.Option(..., "--email", "-e", help="Login email address."),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, help="Password (at least 8 characters)."
    ),
    role: str = typer.Option(ROLE_ATHLETE, "--role", help="athlete, guide or admin."),
) -> None:
    """
    Create a local account.
    """
    try:
        user = accounts.register_user(email, password, role=role)
    except ApiError as exc:
        _fail(_describe_error(exc))
    typer.echo(f"Registered user #{user.id} ({user.email}) as {user.role}.")


@profile_app.command("show")
def profile_show(
    user_id: Optional[int] = typer.Option(None, "--user-id", "-i", help="Show the profile of this user id."),
    username: Optional[str] = typer.Option(None, "--username", "-u", help="Show the public profile for a username."),
    as_json: bool = typer.Option(False, "--json", help="Print the raw JSON payload."),
) -> None:
    """
    Display a profile with follower/following counters.
    """
    if (user_id is None) == (username is None):
        _fail("Provide exactly one of --user-id or --username.")
    try:
        payload = profiles.get_current_profile(user_id) if user_id is not None else social.get_user_profile(username or "")
    except ApiError as exc:
        _fail(_describe_error(exc))

    if as_json:
        typer.echo(json.dumps(payload, indent=2, default=str))
        return
    user = payload["user"]
    counters = payload["counters"]
    name = " ".join(part for part in (user.get("firstName"), user.get("lastName")) if part) or "n/a"
    typer.echo(f"@{user.get('username') or '?'} ({name})")
    typer.echo(f"Sport: {user.get('primarySport') or 'n/a'} | Rank: {user.get('rank')} | Class: {user.get('class')}")
    place = ", ".join(part for part in (user.get("city"), user.get("state"), user.get("country")) if part)
    if place:
        typer.echo(f"Location: {place}")
    profile = payload.get("profile") or {}
    if profile.get("bio"):
        typer.echo(f"Bio: {profile['bio']}")
    typer.echo(
        f"Followers: {counters['followers']} | Following: {counters['following']} | Posts: {counters['posts']}"
    )


@app.command()
def follow(
    user_id: int = typer.Option(..., "--user-id", "-i", help="Acting user."),
    target_id: int = typer.Option(..., "--target-id", "-t", help="User to follow."),
) -> None:
    """
    Follow another user.
    """
    try:
        result = social.follow_user(user_id, target_id)
    except ApiError as exc:
        _fail(_describe_error(exc))
    typer.echo(f"User #{user_id} now follows #{target_id} ({result['counters']['followers']} followers).")


@app.command()
def unfollow(
    user_id: int = typer.Option(..., "--user-id", "-i", help="Acting user."),
    target_id: int = typer.Option(..., "--target-id", "-t", help="User to unfollow."),
) -> None:
    """
    Stop following a user.
    """
    try:
        result = social.unfollow_user(user_id, target_id)
    except ApiError as exc:
        _fail(_describe_error(exc))
    typer.echo(f"User #{user_id} unfollowed #{target_id} ({result['counters']['followers']} followers).")


@app.command()
def search(
    query: str = typer.Argument(..., help="Username or name fragment (at least 2 characters)."),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum number of results."),
) -> None:
    """
    Search users by username, first or last name.
    """
    try:
        results = social.search_users(query, limit=limit)
    except ApiError as exc:
        _fail(_describe_error(exc))
    if not results:
        typer.echo("No users found.")
        return
    for user in results:
        name = " ".join(part for part in (user.get("firstName"), user.get("lastName")) if part)
        typer.echo(f"#{user['id']:<5} @{user['username']:<20} {name}")


@stats_app.command("compute")
def stats_compute(
    input_path: Path = typer.Argument(..., help="JSON file with height/weight/age/bodyFat and strength/speed/stamina tests."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the recalculated payload to this JSON file."),
    save_for: Optional[int] = typer.Option(None, "--save-for", help="Store the result as a snapshot for this user id."),
    updated_by: Optional[int] = typer.Option(None, "--updated-by", help="Admin or guide user recording the snapshot."),
    otp: Optional[int] = typer.Option(None, "--otp", help="Evaluation OTP when a guide records the snapshot."),
) -> None:
    """
    Validate raw test attempts, recalculate every category and print the composite scores.
    """
    payload = _load_payload(input_path)
    try:
        if save_for is not None:
            if updated_by is None:
                _fail("--updated-by is required together with --save-for.")
            result = stats_service.save_stats(save_for, payload, updated_by, otp=otp)
        else:
            result = stats_service.compute_stats(payload)
    except (ApiError, ValidationError) as exc:
        _fail(_describe_error(exc))

    typer.echo("Composite scores:")
    _echo_scores(result["scores"])
    performance = result.get("performance") or {}
    if performance:
        typer.echo(f"Overall performance: {performance.get('overall')}")
    if result.get("bmi") is not None:
        typer.echo(f"BMI: {result['bmi']} ({result.get('bmiClassification')})")
    if save_for is not None:
        typer.echo(f"Saved snapshot #{result['id']} for user #{save_for}.")
    if output:
        destination = output.expanduser()
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(json.dumps(result, indent=2, default=str), encoding="utf-8")
        typer.echo(f"Wrote {destination}")


@stats_app.command("chart")
def stats_chart(
    output: Path = typer.Option(Path("reports/radar.png"), "--output", "-o", help="Destination PNG path."),
    input_path: Optional[Path] = typer.Option(None, "--input", help="Compute scores from a JSON payload."),
    user_id: Optional[int] = typer.Option(None, "--user-id", "-i", help="Use the user's latest stored snapshot."),
) -> None:
    """
    Render the radar chart of composite scores against the record-holder reference.
    """
    from .stats.report import render_radar_chart

    report, _ = _resolve_report(input_path, user_id)
    path = render_radar_chart(report.scores, output.expanduser(), reference=report.reference)
    typer.echo(f"Radar chart saved to {path}")


@stats_app.command("report")
def stats_report(
    output: Path = typer.Option(Path("reports/athlete_report.pdf"), "--output", "-o", help="Destination PDF path."),
    input_path: Optional[Path] = typer.Option(None, "--input", help="Compute scores from a JSON payload."),
    user_id: Optional[int] = typer.Option(None, "--user-id", "-i", help="Use the user's latest stored snapshot."),
    name: Optional[str] = typer.Option(None, "--name", help="Athlete name printed on the report."),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON instead of writing a PDF."),
) -> None:
    """
    Build the full report: composite scores plus derived metrics.
    """
    from .stats.report import build_report_pdf

    report, recommendations = _resolve_report(input_path, user_id)
    if as_json:
        typer.echo(json.dumps(report.to_dict(), indent=2))
        return
    athlete_name = name
    if athlete_name is None and user_id is not None:
        athlete_name = accounts.get_user(user_id).display_name
    path = build_report_pdf(
        report,
        output.expanduser(),
        athlete_name=athlete_name or "Athlete",
        recommendations=recommendations,
    )
    typer.echo(f"Report saved to {path}")


@guide_app.command("approve")
def guide_approve(
    guide_id: int = typer.Argument(..., help="Guide application id."),
    reject: bool = typer.Option(False, "--reject", help="Reject the application instead."),
) -> None:
    """
    Approve (or reject) a guide application.
    """
    try:
        guide = guides.approve_guide(guide_id, approved=not reject)
    except ApiError as exc:
        _fail(_describe_error(exc))
    typer.echo(f"Guide #{guide.id} is now {guide.status}.")


@app.command("config")
def config_show() -> None:
    """
    Show the effective configuration (sports, guide search, evaluation and search limits).
    """
    config = config_as_dict()
    typer.echo(f"Config source: {config.get('source')}")
    typer.echo("Allowed sports: " + ", ".join(config.get("allowed_sports", [])))
    radius = config.get("guide_search", {})
    typer.echo(
        "Guide search: "
        f"radius={radius.get('radius_km')} km (max {radius.get('max_radius_km')} km), limit={radius.get('limit')}"
    )
    evaluation = config.get("evaluation", {})
    typer.echo(
        "Evaluation requests: "
        f"cooldown={evaluation.get('rejection_cooldown_days')} days, "
        f"message={evaluation.get('message_min_length')}-{evaluation.get('message_max_length')} chars"
    )
    search_settings = config.get("search", {})
    typer.echo(
        "User search: "
        f"min query={search_settings.get('min_query_length')}, "
        f"limit={search_settings.get('limit')} (max {search_settings.get('max_limit')})"
    )


@app.command()
def version() -> None:
    """
    Print the installed package version.
    """
    typer.echo(__version__)


app.add_typer(profile_app, name="profile", help="Profile tools.")
app.add_typer(stats_app, name="stats", help="Athletic test scoring tools.")
app.add_typer(guide_app, name="guide", help="Guide administration.")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
