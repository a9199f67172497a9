"""
Main CLI application using Typer.
"""

import asyncio
import logging
from datetime import date
from pathlib import Path
from typing import Annotated, NoReturn, Optional, Tuple

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.memory_store import JsonAppointmentStore, StaticBusinessDirectory
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SchedulingError
from ..domain.models import Period
from ..domain.nl_parser import parse_natural_time
from ..domain.timezones import (
    TIMEZONE_OPTIONS,
    CivilTime,
    detect_timezone,
    ensure_timezone,
    format_in_zone,
    local_to_utc,
    timezone_abbreviation,
    timezone_offset,
)
from ..domain.utilization import utilization_band
from ..services.cache import TTLCache
from ..services.scheduling import SchedulingService

app = typer.Typer(
    name="bookingcore",
    help="Timezone-aware appointment booking and capacity utilization",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
TimezoneOption = Annotated[
    Optional[str],
    typer.Option("--tz", help="IANA timezone, e.g. Asia/Kolkata"),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    Book appointments and inspect capacity from the command line.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _fail(message: object) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(1)


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    try:
        return AppConfig.load_from_yaml(config_path)
    except (FileNotFoundError, ValueError) as e:
        _fail(e)


def _build_service(config: AppConfig) -> Tuple[SchedulingService, JsonAppointmentStore]:
    try:
        store = JsonAppointmentStore(config.appointments_file)
    except (OSError, ValueError) as e:
        _fail(f"Could not read appointments from {config.appointments_file}: {e}")
    directory = StaticBusinessDirectory(config.capacities(), config.timezones())
    cache: TTLCache = TTLCache(default_ttl=config.cache.default_ttl_seconds)
    service = SchedulingService(
        store=store,
        profiles=directory,
        cache=cache,
        settings=config.scheduling_settings(),
    )
    return service, store


def _parse_day(value: str, tz: str) -> date:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        _fail(f"Could not parse date {value!r}: {e}")


def _zone_or_detected(tz: Optional[str]) -> str:
    try:
        return ensure_timezone(tz) if tz else detect_timezone()
    except SchedulingError as e:
        _fail(e)


@app.command()
def parse(
    text: Annotated[str, typer.Argument(help="Expression such as 'tomorrow 10 AM' or '12/25 at 2:30 PM'")],
    tz: TimezoneOption = None,
):
    """
    Parse a natural-language time and show it in UTC and local time.
    """
    zone = _zone_or_detected(tz)
    try:
        instant = parse_natural_time(text, zone)
    except SchedulingError as e:
        _fail(e)

    console.print(f"\n[bold]Input:[/bold]  {text}")
    console.print(f"[bold]Local:[/bold]  {format_in_zone(instant, zone, 'long')} ({timezone_abbreviation(zone, instant)})")
    console.print(f"[bold]UTC:[/bold]    {instant.to_iso8601_string()}\n")


@app.command()
def convert(
    day: Annotated[str, typer.Argument(help="Local date (YYYY-MM-DD)")],
    time_of_day: Annotated[str, typer.Argument(help="Local time (HH:MM, 24-hour)")],
    tz: TimezoneOption = None,
):
    """
    Convert a local wall-clock time to UTC.
    """
    zone = _zone_or_detected(tz)
    local_day = _parse_day(day, zone)

    try:
        hour_str, minute_str = time_of_day.split(":")
        civil = CivilTime.from_date(local_day, int(hour_str), int(minute_str))
        instant = local_to_utc(civil, zone)
    except ValueError as e:
        _fail(f"Could not convert {day} {time_of_day}: {e}")

    console.print(f"\n[bold]{civil}[/bold] {zone} ({timezone_offset(zone, instant)})")
    console.print(f"  → [bold cyan]{instant.to_iso8601_string()}[/bold cyan]\n")


@app.command()
def utilization(
    business: Annotated[str, typer.Argument(help="Business id")],
    config_file: ConfigOption = None,
    day: Annotated[Optional[str], typer.Option("--date", help="Day to inspect (YYYY-MM-DD). Defaults to today.")] = None,
    week: Annotated[bool, typer.Option("--week", help="Show seven days starting at --date.")] = False,
    tz: TimezoneOption = None,
):
    """
    Show booked versus total capacity for a business.
    """
    config = _load_config(config_file)
    profile = config.find_business(business)
    if profile is None:
        _fail(f"Unknown business: {business}")

    try:
        zone = ensure_timezone(tz or profile.timezone or config.default_timezone or detect_timezone())
    except SchedulingError as e:
        _fail(e)

    first_day = _parse_day(day, zone) if day else pendulum.now(zone).date()
    period = Period.week_of(first_day) if week else Period.single_day(first_day)

    service, _ = _build_service(config)
    try:
        snapshot = asyncio.run(service.get_utilization(business, period, zone))
        summary = asyncio.run(service.get_utilization_summary(business, period, zone)) if week else None
    except SchedulingError as e:
        _fail(e)

    band = utilization_band(
        snapshot.utilization_percentage,
        config.utilization.medium_threshold,
        config.utilization.high_threshold,
    )
    percentage = (
        f"{snapshot.utilization_percentage:.1f}%"
        if snapshot.utilization_percentage is not None
        else "n/a"
    )

    table = Table(
        title=f"Utilization: {profile.display_name()} ({zone})",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Period", style="bold")
    table.add_column("Booked", justify="right")
    table.add_column("Capacity", justify="right")
    table.add_column("Utilization", justify="right")
    table.add_column("Band")
    table.add_row(
        str(period),
        str(snapshot.booked_units),
        str(snapshot.total_capacity_units),
        percentage,
        band.value if band else "unknown",
    )

    console.print()
    console.print(table)

    if summary is not None:
        console.print("\n[bold]Daily units:[/bold]")
        for day_str, units in summary.daily_units.items():
            console.print(f"  {day_str}: {units}")
        if summary.peak_hours:
            console.print(f"[bold]Peak hours:[/bold] {', '.join(summary.peak_hours)}")
            console.print(f"[bold]Slow hours:[/bold] {', '.join(summary.slow_hours)}")
    console.print()


@app.command()
def book(
    business: Annotated[str, typer.Argument(help="Business id")],
    user: Annotated[str, typer.Argument(help="User id")],
    text: Annotated[str, typer.Argument(help="When, e.g. 'tomorrow 10 AM'")],
    config_file: ConfigOption = None,
    party_size: Annotated[Optional[int], typer.Option("--party-size", "-p", help="Number of guests")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Duration in minutes")] = None,
    tz: TimezoneOption = None,
):
    """
    Book an appointment from a natural-language time.
    """
    config = _load_config(config_file)
    if config.find_business(business) is None:
        _fail(f"Unknown business: {business}")

    service, _ = _build_service(config)
    result = asyncio.run(
        service.book_from_voice(
            business,
            user,
            text,
            tz,
            party_size if party_size is not None else config.defaults.party_size,
            duration_minutes=duration,
        )
    )

    if not result.success:
        _fail(result.message)

    console.print(f"\n[bold green]✓ {result.message}[/bold green]")
    console.print(f"  Appointment id: {result.appointment.id}\n")


@app.command()
def status(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    new_status: Annotated[str, typer.Argument(help="confirmed, completed or cancelled")],
    config_file: ConfigOption = None,
):
    """
    Move an appointment to a new status.
    """
    config = _load_config(config_file)
    service, _ = _build_service(config)

    try:
        updated = asyncio.run(service.update_status(appointment_id, new_status))
    except SchedulingError as e:
        _fail(e)

    console.print(f"\n[green]✓ Appointment {updated.id} is now {updated.status.value}[/green]\n")


@app.command()
def zones():
    """
    List the common business timezones.
    """
    table = Table(
        title="Timezones",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Zone", style="bold yellow")
    table.add_column("Label")
    table.add_column("Offset", justify="right")
    table.add_column("Abbr.", style="dim")

    for option in TIMEZONE_OPTIONS:
        table.add_row(
            option.value,
            option.label,
            timezone_offset(option.value),
            timezone_abbreviation(option.value),
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]bookingcore[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
