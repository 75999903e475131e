"""CLI interface for Squadron League organizers."""

import json
from datetime import UTC, datetime

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ....composition.container import (
    get_event_lifecycle,
    get_fair_racing_ledger,
    get_notifier,
    get_points_ledger,
    get_repository,
    get_sanction_registry,
)
from ....config.logging import setup_logging
from ....config.settings import settings
from ....core.domain import (
    Caller,
    Capability,
    EventCategory,
    EventStatus,
    Pilot,
    SanctionType,
    Squadron,
)
from ....core.domain.exceptions import LeagueError
from ...common.exception_handler import format_exception_json

app = typer.Typer(
    name="league",
    help="Squadron League - event lifecycle and scoring for squadron karting",
    add_completion=False,
)

console = Console(force_terminal=True, legacy_windows=False)

# Full JSON error details instead of a one-line summary
DEBUG_MODE = settings.debug

OPERATOR_OPTION = typer.Option("cli", "--operator", help="User id recorded as the actor")


def handle_cli_error(exc: Exception) -> None:
    """Handle and display errors in CLI with structured format.

    In debug mode, shows full JSON error details.
    In normal mode, shows a user-friendly message with error code.

    Args:
        exc: The exception to handle.
    """
    error_data = format_exception_json(exc, include_trace=DEBUG_MODE)

    if DEBUG_MODE:
        console.print(
            Panel(
                json.dumps(error_data, indent=2, default=str),
                title="[bold red]Error Details[/]",
                border_style="red",
            )
        )
    else:
        error_type = error_data["error"]["type"]
        error_msg = error_data["error"]["message"]
        error_code = error_data["error"].get("code", "UNKNOWN")
        location = error_data.get("location") or {}

        console.print(f"\n[red]Error \\[{error_code}]:[/] {error_msg}")
        console.print(f"[dim]Type: {error_type}[/]")

        if location:
            loc_str = (
                f"{location.get('file', '?')}:{location.get('line', '?')} "
                f"in {location.get('method', '?')}"
            )
            console.print(f"[dim]Location: {loc_str}[/]")

        console.print("[dim]Set DEBUG=true for full details[/]")


def _operator(user_id: str) -> Caller:
    """The CLI acts with organizer and moderator rights."""
    return Caller(user_id=user_id, capabilities=Capability.ORGANIZER | Capability.MODERATOR)


def _parse_datetime(value: str) -> datetime:
    """Parse an ISO 8601 timestamp; values without an offset are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Not an ISO 8601 timestamp: {value}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@app.callback()
def main() -> None:
    setup_logging(
        level=settings.log_level, log_file=settings.log_file, json_format=settings.log_json
    )


@app.command()
def status() -> None:
    """Show database location and event counts by status."""
    console.print("[bold]Squadron League Status[/]\n")
    console.print(f"Database: {settings.database_path}")
    if settings.race_results_url:
        console.print("✅ Timing system configured")
    else:
        console.print("❌ Timing system not set (set RACE_RESULTS_URL in .env)")

    try:
        lifecycle = get_event_lifecycle()
        events = lifecycle.list_events()
        squadrons = get_repository().list_squadrons()
    except Exception as exc:
        handle_cli_error(exc)
        raise typer.Exit(1)

    console.print(f"\n[bold]Squadrons:[/] {len(squadrons)}")
    console.print("[bold]Events:[/]")
    for event_status in EventStatus:
        count = sum(1 for e in events if e.status is event_status)
        if count:
            console.print(f"  {event_status.value}: {count}")
    if not events:
        console.print("  [dim]none yet[/]")


@app.command("init-db")
def init_db() -> None:
    """Create the league database and notification outbox."""
    try:
        settings.ensure_directories()
        get_repository()
        get_notifier()
    except Exception as exc:
        handle_cli_error(exc)
        raise typer.Exit(1)
    console.print(f"[green]OK[/] Database ready at {settings.database_path}")


@app.command("add-squadron")
def add_squadron(
    squadron_id: str = typer.Argument(..., help="Squadron identifier"),
    name: str = typer.Argument(..., help="Display name"),
    points: int = typer.Option(0, help="Points carried over from earlier seasons"),
) -> None:
    """Add a squadron to the league directory."""
    try:
        repository = get_repository()
        with repository.atomic():
            repository.add_squadron(
                Squadron(
                    id=squadron_id,
                    name=name,
                    total_points=points,
                    initial_points=points,
                    created_at=datetime.now(UTC),
                )
            )
    except LeagueError as exc:
        handle_cli_error(exc)
        raise typer.Exit(1)
    console.print(f"[green]OK[/] Squadron {name} ({squadron_id}) added")


@app.command("add-pilot")
def add_pilot(
    pilot_id: str = typer.Argument(..., help="Pilot account id"),
    display_name: str = typer.Argument(..., help="Display name"),
    squadron: str | None = typer.Option(None, help="Squadron the pilot belongs to"),
    driver_name: str | None = typer.Option(None, help="Name used at the timing desk"),
    alias: list[str] = typer.Option([], help="Additional names (repeatable)"),
) -> None:
    """Add a pilot to the directory used to resolve timing-system names."""
    try:
        repository = get_repository()
        with repository.atomic():
            repository.add_pilot(
                Pilot(
                    pilot_id=pilot_id,
                    display_name=display_name,
                    karting_driver_name=driver_name,
                    aliases=list(alias),
                    squadron_id=squadron,
                )
            )
    except LeagueError as exc:
        handle_cli_error(exc)
        raise typer.Exit(1)
    console.print(f"[green]OK[/] Pilot {display_name} ({pilot_id}) added")


@app.command("create-event")
def create_event(
    name: str = typer.Argument(..., help="Event name"),
    category: EventCategory = typer.Option(..., help="Event category"),
    date: str = typer.Option(..., help="Race start, ISO 8601 (UTC unless an offset is given)"),
    deadline: str = typer.Option(..., help="Registration deadline, ISO 8601"),
    location: str = typer.Option("SpeedPark", help="Track"),
    max_squadrons: int = typer.Option(20, help="Maximum participating squadrons"),
    operator: str = OPERATOR_OPTION,
) -> None:
    """Create an event in draft."""
    try:
        event = get_event_lifecycle().create(
            name=name,
            category=category,
            event_date=_parse_datetime(date),
            registration_deadline=_parse_datetime(deadline),
            caller=_operator(operator),
            location=location,
            max_squadrons=max_squadrons,
        )
    except LeagueError as exc:
        handle_cli_error(exc)
        raise typer.Exit(1)
    console.print(f"[green]OK[/] Created {event.id} ({event.base_points} base points)")


@app.command()
def events(
    status: EventStatus | None = typer.Option(None, help="Only events in this status"),
) -> None:
    """List events."""
    try:
        listed = get_event_lifecycle().list_events(status)
    except LeagueError as exc:
        handle_cli_error(exc)
        raise typer.Exit(1)

    table = Table(title="Events")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Date")
    table.add_column("Status")
    table.add_column("Results")
    table.add_column("Squadrons", justify="right")
    for event in listed:
        table.add_row(
            event.id,
            event.name,
            event.category.value,
            event.event_date.strftime("%Y-%m-%d %H:%M"),
            event.status.value,
            event.race_state.value,
            str(len(event.active_participations())),
        )
    console.print(table)


@app.command()
def advance(
    event_id: str = typer.Argument(..., help="Event id"),
    operation: str = typer.Argument(
        ..., help="publish, open_registration, close_registration, start, complete or cancel"
    ),
    operator: str = OPERATOR_OPTION,
) -> None:
    """Move an event along its publication lifecycle."""
    try:
        event = get_event_lifecycle().transition(event_id, operation, _operator(operator))
    except LeagueError as exc:
        handle_cli_error(exc)
        raise typer.Exit(1)
    console.print(f"[green]OK[/] {event.name} is now {event.status.value}")


@app.command()
def review(
    event_id: str = typer.Argument(..., help="Event id"),
    race_session_id: str = typer.Argument(..., help="Timing system race session"),
    operator: str = OPERATOR_OPTION,
) -> None:
    """Link the race session and open result review."""
    try:
        get_event_lifecycle().mark_in_review(event_id, race_session_id, _operator(operator))
    except LeagueError as exc:
        handle_cli_error(exc)
        raise typer.Exit(1)
    console.print(f"[green]OK[/] Event {event_id} in review")


@app.command()
def sanction(
    event_id: str = typer.Argument(..., help="Event id"),
    driver_name: str = typer.Argument(..., help="Driver name as in the race result"),
    sanction_type: SanctionType = typer.Argument(..., help="Kind of sanction"),
    description: str = typer.Argument(..., help="Reason"),
    positions: int | None = typer.Option(None, help="Places dropped (position penalties)"),
    points: int | None = typer.Option(None, help="Fair racing points deducted at finalize"),
    operator: str = OPERATOR_OPTION,
) -> None:
    """Record a sanction against a driver."""
    try:
        recorded = get_sanction_registry().apply(
            event_id,
            driver_name,
            sanction_type,
            description,
            _operator(operator),
            position_penalty=positions,
            points_penalty=points,
        )
    except LeagueError as exc:
        handle_cli_error(exc)
        raise typer.Exit(1)
    console.print(f"[green]OK[/] Sanction {recorded.id} recorded for {recorded.pilot_id}")


def _results_table(title: str, squadrons) -> Table:
    names = {s.id: s.name for s in get_repository().list_squadrons()}
    table = Table(title=title)
    table.add_column("Pos", justify="right")
    table.add_column("Squadron")
    table.add_column("Race pts", justify="right")
    table.add_column("%", justify="right")
    table.add_column("Awarded", justify="right", style="green")
    for result in squadrons:
        table.add_row(
            str(result.position),
            names.get(result.squadron_id, result.squadron_id),
            str(result.total_points),
            str(result.percentage_awarded),
            str(result.points_awarded),
        )
    return table


@app.command()
def results(
    event_id: str = typer.Argument(..., help="Event id"),
    race_session_id: str | None = typer.Option(None, help="Override the linked race session"),
) -> None:
    """Preview squadron results without saving them."""
    try:
        with console.status("[bold green]Fetching race result...[/]"):
            calculated = get_event_lifecycle().calculate_results(event_id, race_session_id)
        title = f"Preview ({calculated.base_points} base points)"
        table = _results_table(title, calculated.squadrons)
    except LeagueError as exc:
        handle_cli_error(exc)
        raise typer.Exit(1)

    console.print(table)
    for adjusted in calculated.adjusted_results:
        if adjusted.original_position != adjusted.adjusted_position:
            console.print(
                f"[yellow]{adjusted.driver_name}: P{adjusted.original_position} -> "
                f"P{adjusted.adjusted_position}[/]"
            )
    if calculated.unresolved_drivers:
        console.print(f"[dim]Unresolved drivers: {', '.join(calculated.unresolved_drivers)}[/]")


@app.command()
def finalize(
    event_id: str = typer.Argument(..., help="Event id"),
    operator: str = OPERATOR_OPTION,
    yes: bool = typer.Option(False, "--yes", help="Skip confirmation"),
) -> None:
    """Recompute the results from the linked race and finalize them."""
    lifecycle = get_event_lifecycle()
    try:
        with console.status("[bold green]Fetching race result...[/]"):
            calculated = lifecycle.calculate_results(event_id)
        console.print(_results_table("Results to finalize", calculated.squadrons))
        if not yes and not typer.confirm("Award these points? This cannot be undone"):
            raise typer.Abort()
        event = lifecycle.finalize(event_id, calculated, _operator(operator))
    except LeagueError as exc:
        handle_cli_error(exc)
        raise typer.Exit(1)
    console.print(f"[green]OK[/] {event.name} finalized")


@app.command()
def standings() -> None:
    """Show squadron standings."""
    try:
        squadrons = get_points_ledger().standings()
    except LeagueError as exc:
        handle_cli_error(exc)
        raise typer.Exit(1)

    table = Table(title="Standings")
    table.add_column("Rank", justify="right")
    table.add_column("Squadron")
    table.add_column("Points", justify="right", style="green")
    for rank, squadron in enumerate(squadrons, start=1):
        table.add_row(str(rank), squadron.name, str(squadron.total_points))
    console.print(table)


@app.command()
def history(squadron_id: str = typer.Argument(..., help="Squadron id")) -> None:
    """Show a squadron's points audit trail."""
    ledger = get_points_ledger()
    try:
        entries = ledger.history(squadron_id)
        consistent = ledger.verify(squadron_id)
    except LeagueError as exc:
        handle_cli_error(exc)
        raise typer.Exit(1)

    table = Table(title=f"Points history: {squadron_id}")
    table.add_column("When", style="dim")
    table.add_column("Change", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Reason")
    for entry in entries:
        table.add_row(
            entry.timestamp.strftime("%Y-%m-%d %H:%M"),
            f"{entry.points_change:+d}",
            str(entry.new_total),
            entry.reason,
        )
    console.print(table)
    if not consistent:
        console.print("[red]Audit trail does not add up to the squadron total[/]")


@app.command()
def score(pilot_id: str = typer.Argument(..., help="Pilot id")) -> None:
    """Show a pilot's fair racing score."""
    try:
        record = get_fair_racing_ledger().get(pilot_id)
    except LeagueError as exc:
        handle_cli_error(exc)
        raise typer.Exit(1)

    console.print(
        Panel.fit(
            f"Score: [bold]{record.current_score}[/] / 100\n"
            f"Clean races: {record.total_races_clean}\n"
            f"Incidents: {len(record.incidents)}  Recognitions: {len(record.recognitions)}",
            title=f"Fair racing: {pilot_id}",
            border_style="cyan",
        )
    )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "squadron_league.adapters.inbound.api.main:app",
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    app()
