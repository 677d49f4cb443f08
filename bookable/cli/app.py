"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Dict, List, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.events import parse_instant
from ..adapters.graph_authenticator import GraphAuthenticator
from ..adapters.graph_client import GraphCalendarClient
from ..adapters.mock_calendar_client import MockCalendarClient
from ..adapters.schedule_store import ScheduleStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import AuthenticationError, BookableError, ExternalSourceUnavailable
from ..domain.models import Schedule, WeeklyWindow
from ..domain.wall_clock import validate_timezone
from ..formatters import (
    format_date,
    format_datetime,
    format_event_description,
    format_time,
    format_timezone_offset,
)
from ..services.availability import AvailabilityService, CalendarClientProtocol

app = typer.Typer(
    name="bookable",
    help="Find bookable meeting times from weekly availability and calendar conflicts",
    add_completion=False,
)
schedule_app = typer.Typer(help="Inspect or replace an owner's weekly schedule.")
app.add_typer(schedule_app, name="schedule")

console = Console()
err_console = Console(stderr=True)

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    return AppConfig.load_from_yaml(config_file or get_default_config_path())


def _fail(message: str) -> typer.Exit:
    console.print(f"[bold red]Error:[/bold red] {message}")
    return typer.Exit(1)


def _build_calendar_client(config: AppConfig, mock: bool) -> CalendarClientProtocol:
    if mock:
        console.print("[yellow]⚠  Mock mode: using offline calendar data[/yellow]\n")
        return MockCalendarClient(events_file=config.mock_events_file)

    if not config.has_graph_credentials:
        raise AuthenticationError(
            "client_id and tenant_id are not configured; use --mock for offline data"
        )

    authenticator = GraphAuthenticator(
        client_id=config.client_id,
        tenant_id=config.tenant_id,
        authority_url=config.get_authority_url(),
        prompt=lambda message: console.print(Panel.fit(message, title="Microsoft sign-in")),
    )
    if authenticator.insecure_storage_warning:
        console.print(f"[yellow]{authenticator.insecure_storage_warning}[/yellow]")
    access_token = authenticator.get_access_token(force_refresh=False)
    return GraphCalendarClient(
        access_token=access_token,
        timeout=config.defaults.fetch_timeout_seconds,
    )


def _build_service(config: AppConfig, mock: bool) -> AvailabilityService:
    return AvailabilityService(
        schedule_repository=ScheduleStore(config.schedule_file),
        calendar_client=_build_calendar_client(config, mock),
        fetch_timeout_seconds=config.defaults.fetch_timeout_seconds,
    )


def _determine_time_range(
    *,
    tz: str,
    lookahead_days: int,
    start_option: Optional[str],
    end_option: Optional[str],
):
    """Resolve the search range from explicit dates or the configured lookahead."""
    now = pendulum.now(tz)

    try:
        if start_option:
            start_date = pendulum.from_format(start_option, "YYYY-MM-DD", tz=tz).start_of("day")
        else:
            start_date = now

        if end_option:
            end_date = pendulum.from_format(end_option, "YYYY-MM-DD", tz=tz).end_of("day")
        else:
            end_date = start_date.add(days=lookahead_days).end_of("day")
    except ValueError as e:
        raise _fail(f"Could not parse date (expected YYYY-MM-DD): {e}")

    if end_date < start_date:
        raise _fail("The end date lies before the start date.")

    return start_date, end_date


def _print_times(times: List[pendulum.DateTime], tz: str) -> None:
    by_day: Dict[str, List[str]] = {}
    for instant in times:
        by_day.setdefault(format_date(instant, tz), []).append(format_time(instant, tz))

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Date", style="bold yellow")
    table.add_column("Start times")
    for day, starts in by_day.items():
        table.add_row(day, ", ".join(starts))
    console.print(table)


@app.command()
def slots(
    owner: Annotated[str, typer.Argument(help="Owner id, name or email.")],
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD)")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Meeting duration in minutes")] = None,
    step: Annotated[Optional[int], typer.Option("--step", help="Minutes between candidate starts")] = None,
    timezone: Annotated[Optional[str], typer.Option("--timezone", "-t", help="Zone to display times in")] = None,
    mock: Annotated[bool, typer.Option("--mock", help="Use offline calendar data and skip authentication.")] = False,
):
    """
    List every bookable start time of an owner.

    Examples:

        bookable slots alice
        bookable slots alice --duration 60 --start 2025-02-03 --end 2025-02-07
        bookable slots alice --mock --timezone Europe/Berlin
    """
    try:
        config = _load_config(config_file)
        tz = timezone or config.timezone
        validate_timezone(tz)
        person = config.resolve_owner(owner)
        min_duration = duration if duration is not None else config.defaults.duration_minutes
        step_minutes = step if step is not None else config.defaults.step_minutes

        start_date, end_date = _determine_time_range(
            tz=tz,
            lookahead_days=config.defaults.lookahead_days,
            start_option=start,
            end_option=end,
        )

        console.print(f"[bold cyan]Availability of {person.display_name()}[/bold cyan]")
        console.print(
            f"   Range: {format_datetime(start_date, tz)} - {format_datetime(end_date, tz)}"
        )
        console.print(f"   Meeting length: {format_event_description(min_duration)}")
        console.print(f"   Times shown in {tz} ({format_timezone_offset(tz, start_date)})\n")

        service = _build_service(config, mock)
        times = asyncio.run(
            service.find_available_times_between(
                owner_id=person.id,
                start=start_date,
                end=end_date,
                duration_minutes=min_duration,
                step_minutes=step_minutes,
                mailbox=person.email or None,
            )
        )
    except ExternalSourceUnavailable as e:
        raise _fail(f"Temporarily unable to compute availability. {e}")
    except (BookableError, FileNotFoundError, ValueError) as e:
        raise _fail(str(e))

    if not times:
        console.print(
            "[yellow]⚠ No bookable times found.[/yellow]\n"
            "Try a longer range or a shorter meeting."
        )
        return

    console.print(f"[bold green]✓ {len(times)} bookable start time(s):[/bold green]\n")
    _print_times(times, tz)


@app.command()
def check(
    owner: Annotated[str, typer.Argument(help="Owner id, name or email.")],
    start: Annotated[str, typer.Argument(help="Requested start, ISO 8601 (e.g. 2025-02-03T09:00)")],
    config_file: ConfigOption = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Meeting duration in minutes")] = None,
    timezone: Annotated[Optional[str], typer.Option("--timezone", "-t", help="Zone of START when it has no offset")] = None,
    mock: Annotated[bool, typer.Option("--mock", help="Use offline calendar data and skip authentication.")] = False,
):
    """
    Check whether one requested start time can still be booked.
    """
    try:
        config = _load_config(config_file)
        tz = timezone or config.timezone
        person = config.resolve_owner(owner)
        min_duration = duration if duration is not None else config.defaults.duration_minutes
        requested = parse_instant(start, tz)

        service = _build_service(config, mock)
        available = asyncio.run(
            service.is_time_available(
                owner_id=person.id,
                start=requested,
                duration_minutes=min_duration,
                mailbox=person.email or None,
            )
        )
    except ExternalSourceUnavailable as e:
        raise _fail(f"Temporarily unable to compute availability. {e}")
    except (BookableError, FileNotFoundError, ValueError) as e:
        raise _fail(str(e))

    when = format_datetime(requested, tz)
    if available:
        console.print(f"[bold green]✓ {when} is available ({format_event_description(min_duration)}).[/bold green]")
        return

    console.print(f"[yellow]✗ {when} is not available.[/yellow]")
    raise typer.Exit(1)


@schedule_app.command("show")
def schedule_show(
    owner: Annotated[str, typer.Argument(help="Owner id, name or email.")],
    config_file: ConfigOption = None,
):
    """
    Show the weekly windows an owner has published.
    """
    try:
        config = _load_config(config_file)
        person = config.resolve_owner(owner)
        schedule = ScheduleStore(config.schedule_file).get_schedule(person.id)
    except (BookableError, FileNotFoundError, ValueError) as e:
        raise _fail(str(e))

    if schedule is None:
        console.print(f"[yellow]{person.display_name()} has not published a schedule.[/yellow]")
        return

    table = Table(
        title=f"{person.display_name()} ({schedule.timezone}, {format_timezone_offset(schedule.timezone)})",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Weekday", style="bold yellow")
    table.add_column("From")
    table.add_column("To")
    for window in schedule.windows:
        table.add_row(window.weekday.label, str(window.start), str(window.end))

    console.print()
    console.print(table)
    console.print()


@schedule_app.command("set")
def schedule_set(
    owner: Annotated[str, typer.Argument(help="Owner id, name or email.")],
    timezone: Annotated[str, typer.Option("--timezone", "-t", help="Home timezone of the schedule")],
    window: Annotated[
        Optional[List[str]],
        typer.Option("--window", "-w", help="Window like 'monday 09:00-17:00' (repeatable)"),
    ] = None,
    config_file: ConfigOption = None,
):
    """
    Replace an owner's schedule with the given windows.

    Example:

        bookable schedule set alice -t America/New_York -w "monday 09:00-12:00" -w "monday 13:00-17:00"
    """
    try:
        config = _load_config(config_file)
        person = config.resolve_owner(owner)
        schedule = Schedule.create(
            owner_id=person.id,
            timezone=timezone,
            windows=[WeeklyWindow.from_text(text) for text in window or []],
        )
        ScheduleStore(config.schedule_file).save_schedule(schedule)
    except (BookableError, FileNotFoundError, ValueError) as e:
        raise _fail(str(e))

    console.print(
        f"[green]✓ Saved {len(schedule.windows)} window(s) for {person.display_name()}.[/green]"
    )


@schedule_app.command("clear")
def schedule_clear(
    owner: Annotated[str, typer.Argument(help="Owner id, name or email.")],
    config_file: ConfigOption = None,
):
    """
    Remove an owner's published schedule.
    """
    try:
        config = _load_config(config_file)
        person = config.resolve_owner(owner)
        removed = ScheduleStore(config.schedule_file).delete_schedule(person.id)
    except (BookableError, FileNotFoundError, ValueError) as e:
        raise _fail(str(e))

    if removed:
        console.print(f"[green]✓ Schedule of {person.display_name()} removed.[/green]")
    else:
        console.print(f"[yellow]{person.display_name()} had no schedule.[/yellow]")


@app.command()
def owners(config_file: ConfigOption = None):
    """
    List all configured owners.
    """
    try:
        config = _load_config(config_file)
        published = set(ScheduleStore(config.schedule_file).owner_ids())
    except (BookableError, FileNotFoundError, ValueError) as e:
        raise _fail(str(e))

    if not config.owners:
        console.print("[yellow]No owners defined in the config file.[/yellow]")
        return

    table = Table(title="Configured owners", show_header=True, header_style="bold cyan")
    table.add_column("Id", style="bold yellow")
    table.add_column("Name")
    table.add_column("E-Mail", style="dim")
    table.add_column("Schedule")

    for person in config.owners:
        table.add_row(
            person.id,
            person.name,
            person.email,
            "published" if person.id in published else "-",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def test_auth(
    config_file: ConfigOption = None,
    force: Annotated[bool, typer.Option("--force", help="Force re-authentication")] = False,
):
    """
    Test Microsoft Graph authentication.
    """
    try:
        config = _load_config(config_file)
        authenticator = GraphAuthenticator(
            client_id=config.client_id,
            tenant_id=config.tenant_id,
            authority_url=config.get_authority_url(),
            prompt=lambda message: console.print(Panel.fit(message, title="Microsoft sign-in")),
        )
        access_token = authenticator.get_access_token(force_refresh=force)
        user_info = GraphCalendarClient(access_token=access_token).test_connection()
    except (BookableError, FileNotFoundError, ValueError) as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}\n")
        raise typer.Exit(1)

    console.print(Panel.fit(
        f"[bold green]✓ Authentication successful![/bold green]\n\n"
        f"[bold]User:[/bold] {user_info.get('displayName', 'N/A')}\n"
        f"[bold]E-Mail:[/bold] {user_info.get('mail') or user_info.get('userPrincipalName', 'N/A')}\n"
        f"[bold]Token cache:[/bold] {authenticator.cache_backend}",
        title="✓ Connection test",
    ))


@app.command()
def clear_cache(config_file: ConfigOption = None):
    """
    Clear the authentication token cache.
    """
    try:
        config = _load_config(config_file)
        GraphAuthenticator(client_id=config.client_id, tenant_id=config.tenant_id).clear_cache()
    except (BookableError, FileNotFoundError, ValueError) as e:
        raise _fail(str(e))

    console.print("\n[green]✓ Token cache cleared.[/green]")
    console.print("You will need to sign in again on the next call.\n")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]bookable[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
