"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Annotated, Sequence

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..config import AppConfig, load_config
from ..domain.calendar import CalendarReconciler, build_time_grid
from ..domain.exceptions import (
    BatchSubmissionError,
    BookingValidationError,
    SalonBookError,
)
from ..domain.models import Service, Staff
from ..domain.slot_layout import SequentialLayout
from ..adapters.email_notifier import MockNotifier, ResendNotifier
from ..adapters.mock_backend import MockBackend
from ..adapters.supabase_authenticator import SupabaseAuthenticator
from ..adapters.supabase_client import SupabaseClient
from ..services.booking import BackendProtocol, BookingService, BookingSession, NotifierProtocol
from ..services.schedule import ScheduleService

app = typer.Typer(
    name="salonbook",
    help="Book salon appointments and inspect the daily calendar",
    add_completion=False
)

console = Console()

logger = logging.getLogger(__name__)

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
MockOption = Annotated[bool, typer.Option("--mock", help="Use built-in demo data instead of Supabase.")]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    Salon appointment booking on top of Supabase.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _build_backend(config: AppConfig, mock: bool) -> BackendProtocol:
    if mock:
        return MockBackend(timezone=config.timezone)

    config.require_backend()
    authenticator = SupabaseAuthenticator(url=config.supabase_url, api_key=config.supabase_key)
    access_token = authenticator.get_access_token()
    return SupabaseClient(
        url=config.supabase_url,
        api_key=config.supabase_key,
        salon_id=config.salon_id,
        access_token=access_token,
        timezone=config.timezone,
    )


def _build_notifier(config: AppConfig, mock: bool) -> Optional[NotifierProtocol]:
    if mock:
        return MockNotifier()
    if not config.email.enabled:
        return None
    return ResendNotifier(
        api_key=config.email.resend_api_key,
        sender=config.email.sender,
        salon_name=config.email.salon_name,
        timezone=config.timezone,
    )


def _parse_day(value: Optional[str], tz: str) -> DateTime:
    if not value:
        return pendulum.today(tz)
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).start_of("day")
    except ValueError as e:
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD: {e}") from e


def _parse_anchor(value: str, tz: str) -> DateTime:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD HH:mm", tz=tz)
    except ValueError as e:
        raise ValueError(f"Invalid start {value!r}, expected 'YYYY-MM-DD HH:mm': {e}") from e


def resolve_service(identifier: str, services: Sequence[Service]) -> Service:
    """Find a service by id or (case-insensitive) name."""
    needle = identifier.strip().lower()
    for service in services:
        if service.id.lower() == needle or service.name.lower() == needle:
            return service
    raise ValueError(f"Unknown service: '{identifier}'. Run 'salonbook list-services'.")


def resolve_staff(identifier: str, staff: Sequence[Staff]) -> Staff:
    """Find a staff member by id, full name or first name."""
    needle = identifier.strip().lower()
    for member in staff:
        if member.id.lower() == needle or member.name.lower() == needle:
            return member
    matches = [m for m in staff if m.name.lower().split()[:1] == [needle]]
    if len(matches) == 1:
        return matches[0]
    raise ValueError(f"Unknown staff member: '{identifier}'. Run 'salonbook list-staff'.")


def parse_cart_entry(entry: str, services: Sequence[Service], staff: Sequence[Staff]):
    """
    Parse a ``SERVICE[@STAFF]`` cart entry.

    Returns a (service, staff or None) pair.
    """
    name, _, artist = entry.rpartition("@")
    if not name:
        name, artist = artist, ""
    service = resolve_service(name, services)
    member = resolve_staff(artist, staff) if artist.strip() else None
    return service, member


def _print_blocks_table(
    title: str,
    session: BookingSession,
    staff: Sequence[Staff],
    default_duration: int,
) -> None:
    names = {member.id: member.name for member in staff}

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Staff", style="bold yellow")
    table.add_column("Service")
    table.add_column("Time", style="dim")
    table.add_column("Price", justify="right")

    for block in session.preview():
        table.add_row(
            names.get(block.staff_id, "Unassigned") if block.staff_id else "Unassigned",
            block.service.name,
            str(block.time_range),
            f"{block.service.price:.2f}",
        )

    console.print(table)
    console.print(
        f"   Total: [bold]{session.cart.total_price():.2f}[/bold] "
        f"({session.cart.total_duration_minutes(default_duration)} min of services)"
    )


async def _book(
    config: AppConfig,
    mock: bool,
    client_email: str,
    entries: List[str],
    start: str,
    notes: Optional[str],
    yes: bool,
) -> None:
    backend = _build_backend(config, mock)
    layout = SequentialLayout(default_duration_minutes=config.defaults.duration_minutes)
    booking_service = BookingService(
        backend=backend,
        layout=layout,
        notifier=_build_notifier(config, mock),
        salon_id=config.salon_id or None,
    )

    client = await backend.find_client_by_email(client_email)
    if client is None:
        raise BookingValidationError(f"No client found with email {client_email}.")

    services = await backend.list_services()
    staff = await backend.list_staff()

    session = BookingSession(booking_service, client=client)
    for entry in entries:
        service, member = parse_cart_entry(entry, services, staff)
        session.add_service(service, member)

    anchor = _parse_anchor(start, config.timezone)
    session.pick_slot(anchor)

    console.print(f"\n[bold cyan]Booking for {client.name}[/bold cyan] ({client.email})\n")
    _print_blocks_table("Pending appointments", session, staff, layout.default_duration_minutes)

    conflicts = await ScheduleService(backend).find_conflicts(anchor, session.preview())
    for conflict in conflicts:
        console.print(
            f"[yellow]⚠ {conflict.pending.title} overlaps "
            f"{conflict.existing.title} ({conflict.existing.time_range})[/yellow]"
        )

    if not yes and not typer.confirm("\nConfirm booking?", default=True):
        session.cancel()
        console.print("[yellow]Booking cancelled.[/yellow]")
        return

    appointments = await session.submit(notes=notes)

    console.print(f"\n[bold green]✓ {len(appointments)} appointment(s) booked:[/bold green]\n")
    for appointment in appointments:
        console.print(f"  {appointment.id}: {appointment.format_display()}")
    console.print()


@app.command()
def book(
    client_email: Annotated[str, typer.Argument(help="Email address of the client.")],
    service: Annotated[List[str], typer.Option("--service", "-s", help="Service name or id, optionally SERVICE@STAFF. Repeat for more.")],
    start: Annotated[str, typer.Option("--at", help="Start of the booking, 'YYYY-MM-DD HH:mm'.")],
    notes: Annotated[Optional[str], typer.Option("--notes", help="Notes stored on each appointment.")] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip the confirmation prompt.")] = False,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Book one or more services for a client, starting at one time.

    Services assigned to the same staff member are booked back to back;
    different staff members all start at the given time.

    Examples:

        salonbook book sophia@example.com -s "Luxury Manicure@Emily" -s "Spa Pedicure@Emily" --at "2024-11-25 09:00"

        salonbook book liam@example.com -s svc_01 --at "2024-11-25 14:30" --mock
    """
    try:
        config = load_config(config_file, mock)
        asyncio.run(_book(config, mock, client_email, service, start, notes, yes))

    except BookingValidationError as e:
        console.print(f"[bold red]Missing input:[/bold red] {e}")
        raise typer.Exit(1)

    except BatchSubmissionError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        if e.created:
            console.print("[yellow]These appointments were created before the failure and remain booked:[/yellow]")
            for appointment in e.created:
                console.print(f"  {appointment.id}: {appointment.format_display()}")
        raise typer.Exit(1)

    except (SalonBookError, ValueError, FileNotFoundError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


async def _schedule(config: AppConfig, mock: bool, day: DateTime, staff_name: Optional[str]) -> None:
    backend = _build_backend(config, mock)
    staff = await backend.list_staff()
    staff_id = resolve_staff(staff_name, staff).id if staff_name else None

    events = await ScheduleService(backend).load_day(day, staff_id=staff_id)
    names = {member.id: member.name for member in staff}

    if not events:
        console.print(f"\n[yellow]No appointments on {day.format('DD.MM.YYYY')}.[/yellow]\n")
        return

    table = Table(
        title=f"Appointments on {day.format('dddd, DD.MM.YYYY')}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Time", style="dim")
    table.add_column("Staff", style="bold yellow")
    table.add_column("Appointment")
    table.add_column("Id", style="dim")

    for event in events:
        table.add_row(
            f"{event.time_range.start.format('HH:mm')} - {event.time_range.end.format('HH:mm')}",
            names.get(event.staff_id, "Unassigned") if event.staff_id else "Unassigned",
            event.title,
            event.source_id or "",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def schedule(
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Day to show (YYYY-MM-DD). Defaults to today.")] = None,
    staff: Annotated[Optional[str], typer.Option("--staff", help="Only show one staff member.")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show the appointments of one day.
    """
    try:
        config = load_config(config_file, mock)
        day = _parse_day(date, config.timezone)
        asyncio.run(_schedule(config, mock, day, staff))

    except (SalonBookError, ValueError, FileNotFoundError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


async def _slots(config: AppConfig, mock: bool, day: DateTime, staff_name: str) -> None:
    backend = _build_backend(config, mock)
    member = resolve_staff(staff_name, await backend.list_staff())
    appointments = await ScheduleService(backend).fetch_day(day, staff_id=member.id)
    existing = CalendarReconciler().to_events(appointments)

    grid = build_time_grid(day, config.opening_hours(), config.defaults.slot_step_minutes)
    if not grid:
        console.print(f"\n[yellow]The salon is closed on {day.format('dddd, DD.MM.YYYY')}.[/yellow]\n")
        return

    console.print(f"\n[bold cyan]Start times for {member.name} on {day.format('DD.MM.YYYY')}:[/bold cyan]\n")
    for instant in grid:
        busy = any(event.time_range.start <= instant < event.time_range.end for event in existing)
        marker = "[red]busy[/red]" if busy else "[green]free[/green]"
        console.print(f"  {instant.format('HH:mm')}  {marker}")
    console.print()


@app.command()
def slots(
    staff: Annotated[str, typer.Argument(help="Staff member name or id.")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Day to show (YYYY-MM-DD). Defaults to today.")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show the calendar grid of start times for a staff member.
    """
    try:
        config = load_config(config_file, mock)
        day = _parse_day(date, config.timezone)
        asyncio.run(_slots(config, mock, day, staff))

    except (SalonBookError, ValueError, FileNotFoundError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def cancel(
    appointment_id: Annotated[str, typer.Argument(help="Id of the appointment to delete.")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Delete an appointment and its booked services.
    """
    try:
        config = load_config(config_file, mock)
        backend = _build_backend(config, mock)
        asyncio.run(backend.delete_appointment(appointment_id))
        console.print(f"\n[green]✓ Appointment {appointment_id} deleted.[/green]\n")

    except (SalonBookError, ValueError, FileNotFoundError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def list_staff(
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    List all staff members of the salon.
    """
    try:
        config = load_config(config_file, mock)
        backend = _build_backend(config, mock)
        staff = asyncio.run(backend.list_staff())

        if not staff:
            console.print("[yellow]No staff members found.[/yellow]")
            return

        table = Table(title="Staff", show_header=True, header_style="bold cyan")
        table.add_column("Name", style="bold yellow")
        table.add_column("Id", style="dim")

        for member in staff:
            table.add_row(member.name, member.id)

        console.print()
        console.print(table)
        console.print()

    except (SalonBookError, ValueError, FileNotFoundError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def list_services(
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    List all bookable services and deals.
    """
    try:
        config = load_config(config_file, mock)
        backend = _build_backend(config, mock)
        services = asyncio.run(backend.list_services())

        table = Table(title="Services & Deals", show_header=True, header_style="bold cyan")
        table.add_column("Name", style="bold yellow")
        table.add_column("Category")
        table.add_column("Duration", justify="right")
        table.add_column("Price", justify="right")
        table.add_column("Id", style="dim")

        for service in services:
            duration = (
                f"{service.duration_minutes} min"
                if service.duration_minutes
                else f"({config.defaults.duration_minutes} min)"
            )
            table.add_row(service.name, service.category, duration, f"{service.price:.2f}", service.id)

        console.print()
        console.print(table)
        console.print()

    except (SalonBookError, ValueError, FileNotFoundError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def login(
    email: Annotated[str, typer.Option("--email", prompt=True, help="Account email address")],
    password: Annotated[str, typer.Option("--password", prompt=True, hide_input=True, help="Account password")],
    config_file: ConfigOption = None,
):
    """
    Sign in to Supabase and cache the session.
    """
    try:
        config = load_config(config_file)
        config.require_backend()

        authenticator = SupabaseAuthenticator(url=config.supabase_url, api_key=config.supabase_key)
        authenticator.sign_in(email, password)

        if authenticator.insecure_storage_warning:
            console.print(f"[yellow]⚠ {authenticator.insecure_storage_warning}[/yellow]")

        console.print(Panel.fit(
            f"[bold]Account:[/bold] {email}\n"
            f"[bold]Session storage:[/bold] {authenticator.cache_backend}",
            title="✓ Signed in"
        ))

    except (SalonBookError, ValueError, FileNotFoundError) as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}\n")
        raise typer.Exit(1)


@app.command()
def clear_cache(
    config_file: ConfigOption = None,
):
    """
    Clear the cached Supabase session.
    """
    try:
        config = load_config(config_file)
        config.require_backend()

        authenticator = SupabaseAuthenticator(url=config.supabase_url, api_key=config.supabase_key)
        authenticator.clear_cache()

    except (SalonBookError, ValueError, FileNotFoundError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]salonbook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
