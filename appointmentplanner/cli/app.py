"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters import build_store
from ..config import AppConfig, get_default_config_path
from ..domain.conflict_detector import ConflictPolicy
from ..domain.exceptions import ConflictError, SchedulerError, ValidationError
from ..domain.models import Appointment, is_clock, parse_date
from ..domain.validation import derive_end_time
from ..services.scheduling import SchedulingService

app = typer.Typer(
    name="appointmentplanner",
    help="Book participants into meetings without double-booking",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to $APPOINTMENTPLANNER_CONFIG or ./config.yaml"),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show log output.")] = False,
):
    """
    Appointment planner command line.
    """
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    """Explicit config must exist; the default one is optional."""
    if config_file is not None:
        return AppConfig.load_from_yaml(config_file)

    default_path = get_default_config_path()
    if default_path.exists():
        return AppConfig.load_from_yaml(default_path)
    return AppConfig()


def _build_service(config_file: Optional[Path]) -> SchedulingService:
    config = _load_config(config_file)
    return SchedulingService.from_config(config, build_store(config.storage))


def _resolve_participant_ids(service: SchedulingService, identifiers: List[str]) -> List[str]:
    """
    Resolve participant identifiers (id, name or email) to ids.

    Raises:
        ValueError: If an identifier matches nobody
    """
    participants = asyncio.run(service.list_participants())
    resolved: List[str] = []
    unknown: List[str] = []

    for identifier in identifiers:
        key = identifier.lower()
        match = next(
            (
                p for p in participants
                if p.id == identifier or p.name.lower() == key or p.email.lower() == key
            ),
            None,
        )
        if match is None:
            unknown.append(identifier)
        elif match.id not in resolved:
            resolved.append(match.id)

    if unknown:
        raise ValueError(
            f"Unknown participant identifier(s): {', '.join(sorted(set(unknown)))}. "
            "Use a participant id, name or email."
        )
    return resolved


def _describe(appointment: Appointment) -> str:
    return f"{appointment.title} ({appointment.date} {appointment.start_time}-{appointment.end_time})"


def _report_error(service: Optional[SchedulingService], error: Exception) -> None:
    """Print a scheduler error the way the user needs to see it."""
    if isinstance(error, ValidationError):
        console.print("[bold red]Error:[/bold red] some fields are not valid")
        for field_name, message in error.field_errors.items():
            console.print(f"   [yellow]{field_name}[/yellow]: {message}")
        return

    if isinstance(error, ConflictError):
        console.print("[bold red]Error:[/bold red] There are scheduling conflicts.")
        for conflict in error.conflicts:
            name = service.resolve_participant(conflict.participant_id).name if service else conflict.participant_id
            console.print(f"   {name} is already booked: {_describe(conflict.appointment)}")
        if service is not None and service.conflict_policy is ConflictPolicy.WARN:
            console.print("Use [bold]--force[/bold] to save anyway.")
        return

    console.print(f"[bold red]Error:[/bold red] {error}")


def _run(service: Optional[SchedulingService], action):
    """Run a coroutine-producing action, turning failures into exit code 1."""
    try:
        return asyncio.run(action())
    except (SchedulerError, ValueError) as e:
        _report_error(service, e)
        raise typer.Exit(1)


@app.command()
def week(
    day: Annotated[Optional[str], typer.Option("--date", "-d", help="Any date in the week (YYYY-MM-DD). Defaults to today.")] = None,
    offset: Annotated[int, typer.Option("--offset", help="Weeks to move from that date, e.g. -1 or 1.")] = 0,
    config_file: ConfigOption = None,
):
    """
    Show the calendar grid for one week.

    Each cell shows the first appointment starting in the slot and how many
    more start there. Open slots are marked with a dot.
    """
    try:
        service = _build_service(config_file)
        anchor = parse_date(day) if day else service.today()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    anchor = service.grid.shift_week(anchor, offset)
    buckets_by_day = _run(service, lambda: service.week_view(anchor))
    days = list(buckets_by_day)

    table = Table(
        title=f"Week of {days[0].format('DD.MM.YYYY')}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Time", style="dim")
    for current in days:
        table.add_column(current.format("ddd D"))

    for row, slot in enumerate(service.grid.slots):
        cells = [slot.start]
        for current in days:
            bucket = buckets_by_day[current][row]
            cards = service.grid.cards_for_slot(bucket)
            if cards.primary is not None:
                text = f"[bold]{cards.primary.title}[/bold]"
                if cards.overflow_count:
                    text += f"\n[blue]+{cards.overflow_count} more[/blue]"
                cells.append(text)
            elif service.can_create_at(current, slot):
                cells.append("[green]·[/green]")
            else:
                cells.append("")
        table.add_row(*cells)

    console.print()
    console.print(table)
    console.print()


@app.command()
def appointments(
    search: Annotated[Optional[str], typer.Option("--search", "-s", help="Filter by title, description, location or participant.")] = None,
    config_file: ConfigOption = None,
):
    """
    List appointments.
    """
    try:
        service = _build_service(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    found = _run(service, lambda: service.search_appointments(search or ""))

    if not found:
        console.print("[yellow]No appointments found.[/yellow]")
        return

    table = Table(title="Appointments", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="bold yellow")
    table.add_column("Date")
    table.add_column("Time")
    table.add_column("Participants")

    for appointment in sorted(found, key=lambda a: (str(a.date), a.start_time or "")):
        names = ", ".join(service.resolve_participant(pid).name for pid in appointment.participants)
        table.add_row(
            appointment.id or "",
            appointment.title,
            str(appointment.date),
            f"{appointment.start_time} - {appointment.end_time}",
            names,
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def participants(
    search: Annotated[Optional[str], typer.Option("--search", "-s", help="Filter by name or email.")] = None,
    config_file: ConfigOption = None,
):
    """
    List all participants.
    """
    try:
        service = _build_service(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    found = _run(service, lambda: service.search_participants(search or ""))

    if not found:
        console.print("[yellow]No participants found.[/yellow]")
        return

    table = Table(title="Participants", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold yellow")
    table.add_column("E-Mail", style="dim")
    table.add_column("Phone")
    table.add_column("Color")
    table.add_column("Appointments", justify="right")

    counts = _run(service, service.appointment_counts)

    for participant in found:
        table.add_row(
            participant.id or "",
            participant.name,
            participant.email,
            participant.phone,
            participant.color or "",
            str(counts.get(participant.id, 0)),
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def add_participant(
    name: Annotated[str, typer.Argument(help="Display name")],
    email: Annotated[str, typer.Argument(help="Contact e-mail address")],
    phone: Annotated[str, typer.Option("--phone", help="Phone number")] = "",
    color: Annotated[Optional[str], typer.Option("--color", help="Palette color, random if omitted")] = None,
    config_file: ConfigOption = None,
):
    """
    Create a participant.
    """
    try:
        service = _build_service(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    created = _run(
        service,
        lambda: service.create_participant({"name": name, "email": email, "phone": phone, "color": color}),
    )
    console.print(f"[green]✓ Participant created[/green] ({created.id})")


@app.command()
def remove_participant(
    participant_id: Annotated[str, typer.Argument(help="Participant id")],
    config_file: ConfigOption = None,
):
    """
    Delete a participant. Their appointments are kept.
    """
    try:
        service = _build_service(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    _run(service, lambda: service.delete_participant(participant_id))
    console.print("[green]✓ Participant deleted[/green]")


@app.command()
def book(
    title: Annotated[str, typer.Argument(help="Appointment title")],
    day: Annotated[str, typer.Option("--date", "-d", help="Date (YYYY-MM-DD)")],
    start: Annotated[str, typer.Option("--start", help="Start time (HH:mm)")],
    end: Annotated[Optional[str], typer.Option("--end", help="End time (HH:mm). Defaults to the configured duration.")] = None,
    with_: Annotated[Optional[List[str]], typer.Option("--with", "-w", help="Participant id, name or email. Repeatable.")] = None,
    location: Annotated[str, typer.Option("--location", help="Where it happens")] = "",
    description: Annotated[str, typer.Option("--description", help="Free text")] = "",
    force: Annotated[bool, typer.Option("--force", help="Save despite conflicts (warn policy only).")] = False,
    config_file: ConfigOption = None,
):
    """
    Book a new appointment.

    Examples:

        appointmentplanner book "Design review" --date 2024-06-10 --start 09:00 --with alice --with bob
    """
    try:
        config = _load_config(config_file)
        service = SchedulingService.from_config(config, build_store(config.storage))
        participant_ids = _resolve_participant_ids(service, with_ or [])
        end_time = end
        if end_time is None and is_clock(start):
            end_time = derive_end_time(start, config.grid.default_duration_minutes)
    except (FileNotFoundError, ValueError, SchedulerError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    candidate = {
        "title": title,
        "date": day,
        "start_time": start,
        "end_time": end_time,
        "participants": participant_ids,
        "location": location,
        "description": description,
    }

    created = _run(service, lambda: service.create_appointment(candidate, confirm=force))
    console.print(f"[green]✓ Appointment booked[/green]: {_describe(created)} ({created.id})")


@app.command()
def reschedule(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    day: Annotated[Optional[str], typer.Option("--date", "-d", help="New date (YYYY-MM-DD)")] = None,
    start: Annotated[Optional[str], typer.Option("--start", help="New start time (HH:mm); end follows unless --end is given")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="New end time (HH:mm)")] = None,
    title: Annotated[Optional[str], typer.Option("--title", help="New title")] = None,
    with_: Annotated[Optional[List[str]], typer.Option("--with", "-w", help="Replace participants. Repeatable.")] = None,
    force: Annotated[bool, typer.Option("--force", help="Save despite conflicts (warn policy only).")] = False,
    config_file: ConfigOption = None,
):
    """
    Change an existing appointment.
    """
    try:
        config = _load_config(config_file)
        service = SchedulingService.from_config(config, build_store(config.storage))
        changes = {}
        if day is not None:
            changes["date"] = day
        if title is not None:
            changes["title"] = title
        if start is not None:
            changes["start_time"] = start
            if is_clock(start):
                changes["end_time"] = derive_end_time(start, config.grid.default_duration_minutes)
        if end is not None:
            changes["end_time"] = end
        if with_:
            changes["participants"] = _resolve_participant_ids(service, with_)
    except (FileNotFoundError, ValueError, SchedulerError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    updated = _run(service, lambda: service.update_appointment(appointment_id, changes, confirm=force))
    console.print(f"[green]✓ Appointment updated[/green]: {_describe(updated)}")


@app.command()
def cancel(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    config_file: ConfigOption = None,
):
    """
    Delete an appointment.
    """
    try:
        service = _build_service(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    _run(service, lambda: service.delete_appointment(appointment_id))
    console.print("[green]✓ Appointment deleted[/green]")


@app.command()
def check(
    day: Annotated[str, typer.Option("--date", "-d", help="Date (YYYY-MM-DD)")],
    start: Annotated[str, typer.Option("--start", help="Start time (HH:mm)")],
    end: Annotated[str, typer.Option("--end", help="End time (HH:mm)")],
    with_: Annotated[List[str], typer.Option("--with", "-w", help="Participant id, name or email. Repeatable.")],
    exclude: Annotated[Optional[str], typer.Option("--exclude", help="Appointment id being edited")] = None,
    config_file: ConfigOption = None,
):
    """
    Check whether a time range is free for the given participants.
    """
    try:
        service = _build_service(config_file)
        participant_ids = _resolve_participant_ids(service, with_)
    except (FileNotFoundError, ValueError, SchedulerError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    candidate = {"date": day, "start_time": start, "end_time": end, "participants": participant_ids}
    conflicts = _run(service, lambda: service.check_conflicts(candidate, exclude_id=exclude))

    if not conflicts:
        console.print("[green]✓ No conflicts[/green]")
        return

    console.print(f"[yellow]⚠ {len(conflicts)} conflict(s):[/yellow]")
    for conflict in conflicts:
        name = service.resolve_participant(conflict.participant_id).name
        console.print(f"   {name}: {_describe(conflict.appointment)}")
    raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]appointmentplanner[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
