"""Typer CLI for roadmapr."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from collections.abc import Coroutine
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from roadmapr import edits
from roadmapr.errors import BackendError
from roadmapr.models import DateField, Item, LinkField, Roadmap, parse_date
from roadmapr.months import month_start, parse_month, same_month
from roadmapr.persistence import STORE_ENV_VAR, Store, default_store_dir
from roadmapr.projection import WINDOW_SIZES, SectionRow, window_for
from roadmapr.session import RoadmapSession

app = typer.Typer(
    name="roadmapr",
    help="Month-by-month roadmaps with drag-style rescheduling.",
    no_args_is_help=True,
)
console = Console()

LOG_LEVEL_ENV_VAR = "ROADMAPR_LOG_LEVEL"
PASSWORD_ENV_VAR = "ROADMAPR_PASSWORD"
LOG_FORMAT = "%(name)s: %(message)s"

_store_dir: Path | None = None

PasswordOption = Annotated[
    Optional[str],
    typer.Option("--password", envvar=PASSWORD_ENV_VAR, help="Password for protected roadmaps"),
]


def _configure_logging(verbose: int) -> None:
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = getattr(logging, os.environ.get(LOG_LEVEL_ENV_VAR, "WARNING").upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    logging.getLogger("roadmapr").setLevel(level)


def _get_store() -> Store:
    return Store(_store_dir if _store_dir is not None else default_store_dir())


def _run(coro: Coroutine[Any, Any, Any]) -> Any:
    try:
        return asyncio.run(coro)
    except BackendError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


class _HostSignals:
    """Collects what the session asked the CLI to do."""

    def __init__(self) -> None:
        self.auth_required = False
        self.not_found = False

    def on_auth_required(self) -> None:
        self.auth_required = True

    def on_not_found(self) -> None:
        self.not_found = True


async def _open(
    identifier: str,
    password: str | None,
    *,
    editing: bool = False,
) -> tuple[RoadmapSession, _HostSignals]:
    """Load a roadmap, prompting once for a password when it is protected."""
    host = _HostSignals()
    session = RoadmapSession(
        _get_store(),
        editing=editing,
        on_auth_required=host.on_auth_required,
        on_not_found=host.on_not_found,
    )
    roadmap = await session.load_roadmap(identifier, password)
    if roadmap is None and host.auth_required and password is None:
        host.auth_required = False
        roadmap = await session.provide_password(typer.prompt("Password", hide_input=True))

    if host.not_found:
        console.print(f"[red]Roadmap {identifier} not found.[/red]")
        raise typer.Exit(1)
    if host.auth_required:
        console.print(f"[red]Roadmap {identifier} requires a valid password.[/red]")
        raise typer.Exit(1)
    return session, host


async def _commit(session: RoadmapSession, host: _HostSignals, roadmap: Roadmap) -> None:
    session.apply(roadmap)
    await session.flush()
    if host.auth_required:
        console.print(f"[red]Not saved: roadmap {session.identifier} requires a valid password.[/red]")
        raise typer.Exit(1)


def _parse_month_arg(value: str | None) -> datetime:
    if value is None:
        return month_start(datetime.now())
    try:
        return parse_month(value)
    except ValueError:
        console.print(f"[red]Invalid month '{value}'. Use YYYY-MM.[/red]")
        raise typer.Exit(1)


def _parse_date_field(value: str) -> DateField:
    """STAGE=DATE[@PROGRESS], e.g. design=2024-03-10@50%."""
    stage, sep, rest = value.partition("=")
    if not sep:
        stage, rest = "", value
    date_text, _, progress = rest.partition("@")
    try:
        parse_date(date_text)
    except ValueError:
        console.print(f"[red]Invalid date '{date_text}'. Use YYYY-MM-DD.[/red]")
        raise typer.Exit(1)
    return DateField(date=date_text, stage=stage.strip(), progress=progress or None)


def _check_index(roadmap: Roadmap, index: int) -> None:
    if not 0 <= index < len(roadmap.items):
        console.print(f"[red]No item #{index}. The roadmap has {len(roadmap.items)} item(s).[/red]")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.callback()
def main(
    store: Annotated[
        Optional[Path],
        typer.Option("--store", envvar=STORE_ENV_VAR, help="Directory holding roadmap documents"),
    ] = None,
    verbose: Annotated[int, typer.Option("--verbose", "-v", count=True, help="-v for info, -vv for debug")] = 0,
) -> None:
    global _store_dir
    _store_dir = store
    _configure_logging(verbose)


@app.command()
def init(
    name: str,
    identifier: Annotated[Optional[str], typer.Option("--id", help="Identifier (defaults to a slug of the name)")] = None,
    theme: str = "grommet",
    sections: Annotated[Optional[list[str]], typer.Option("--section", "-s", help="Section name, repeatable")] = None,
    notes: Annotated[Optional[str], typer.Option(help="Markdown notes for the roadmap")] = None,
    password: Annotated[Optional[str], typer.Option(help="Protect the roadmap with a password")] = None,
) -> None:
    """Create a new, empty roadmap."""
    store = _get_store()
    identifier = identifier or store.generate_identifier(name)
    roadmap = Roadmap(name=name, theme=theme, notes=notes, sections=list(sections or []))
    try:
        store.create(identifier, roadmap, password)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Created roadmap '{name}' as {identifier}[/green]")


@app.command("list")
def list_roadmaps() -> None:
    """List the roadmaps in the store."""
    store = _get_store()
    identifiers = store.list_identifiers()
    if not identifiers:
        console.print("No roadmaps found.")
        return

    table = Table(title="Roadmaps")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Sections")
    table.add_column("Items")
    table.add_column("Protected")
    for identifier in identifiers:
        try:
            if store.is_protected(identifier):
                table.add_row(identifier, "-", "-", "-", "yes")
                continue
            roadmap = store.load(identifier)
        except BackendError as e:
            table.add_row(identifier, f"[red]{e}[/red]", "-", "-", "")
            continue
        table.add_row(identifier, roadmap.name, str(len(roadmap.sections)), str(len(roadmap.items)), "")
    console.print(table)


def _cell_text(row: SectionRow, month: datetime, roadmap: Roadmap) -> str:
    cell = next(c for c in row.months if c.month == month)
    lines: list[str] = []
    for entry in cell.items:
        item = entry.item
        lines.append(f"[bold]#{entry.index}[/bold] {escape(item.name)}")
        for df in item.date_fields:
            if not same_month(month, df.when):
                continue
            stage = df.stage or "-"
            label = roadmap.label_for(df.stage)
            color = f" ({label.color})" if label and label.color else ""
            progress = f" {df.progress}" if df.progress else ""
            lines.append(f"  [dim]{escape(stage + color + progress)}[/dim]")
        for lf in item.link_fields:
            if lf.link_url:
                lines.append(f"  [dim]{lf.kind.value}: {escape(lf.link_url)}[/dim]")
    return "\n".join(lines)


@app.command()
def show(
    identifier: str,
    start: Annotated[Optional[str], typer.Option("--from", help="First month shown (YYYY-MM), default this month")] = None,
    viewport: Annotated[str, typer.Option(help=f"Viewport class: {', '.join(WINDOW_SIZES)}")] = "medium",
    months: Annotated[Optional[int], typer.Option("--months", "-m", help="Override the number of months shown")] = None,
    show_notes: Annotated[bool, typer.Option("--notes", help="Print the roadmap notes")] = False,
    password: PasswordOption = None,
) -> None:
    """Show the roadmap as a section x month grid."""
    reference = _parse_month_arg(start)
    try:
        window = months if months is not None else window_for(viewport)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    if window < 1:
        console.print("[red]--months must be at least 1.[/red]")
        raise typer.Exit(1)

    session, _ = _run(_open(identifier, password))
    roadmap = session.roadmap
    rows = session.projection(reference, window)

    console.print(f"\n[bold]{escape(roadmap.name)}[/bold]  [dim]({identifier}, theme {roadmap.theme})[/dim]")
    if show_notes and roadmap.notes:
        console.print("\n  [dim]── Notes ──[/dim]")
        for line in roadmap.notes.splitlines():
            console.print(f"  {line}")

    if not rows:
        console.print("\n  [dim]Nothing scheduled in this window.[/dim]\n")
        return

    table = Table(show_lines=True)
    table.add_column("Section")
    shown = [cell.month for cell in rows[0].months]
    for month in shown:
        table.add_column(month.strftime("%B %Y"))
    for row in rows:
        table.add_row(
            escape(row.name) if row.name else "[dim](no section)[/dim]",
            *(_cell_text(row, month, roadmap) for month in shown),
        )
    console.print(table)


@app.command()
def move(
    identifier: str,
    index: Annotated[int, typer.Argument(help="Item number as shown by 'roadmapr show'")],
    from_month: Annotated[str, typer.Option("--from", help="Month the item is dragged from (YYYY-MM)")],
    to_month: Annotated[str, typer.Option("--to", help="Month the item is dropped on (YYYY-MM)")],
    password: PasswordOption = None,
) -> None:
    """Reschedule an item from one month to another, like dragging its card."""
    origin = _parse_month_arg(from_month)
    target = _parse_month_arg(to_month)

    async def run() -> bool:
        session, host = await _open(identifier, password, editing=True)
        _check_index(session.roadmap, index)
        session.drag_start(index, origin)
        session.drag_enter(target)
        changed = session.drop()
        await session.flush()
        if host.auth_required:
            console.print(f"[red]Not saved: roadmap {identifier} requires a valid password.[/red]")
            raise typer.Exit(1)
        return changed

    if _run(run()):
        console.print(f"[green]Moved #{index} from {origin:%b %Y} to {target:%b %Y}.[/green]")
    else:
        console.print(f"[yellow]Nothing to move: #{index} has no date in {origin:%b %Y} that can move to {target:%b %Y}.[/yellow]")


@app.command()
def add(
    identifier: str,
    name: str,
    section: Annotated[Optional[str], typer.Option("--section", "-s", help="Section (created if new)")] = None,
    dates: Annotated[
        Optional[list[str]],
        typer.Option("--date", "-d", help="STAGE=YYYY-MM-DD[@PROGRESS], repeatable"),
    ] = None,
    links: Annotated[Optional[list[str]], typer.Option("--link", "-l", help="Link URL, repeatable")] = None,
    note: Annotated[Optional[str], typer.Option(help="Short note shown on the card")] = None,
    password: PasswordOption = None,
) -> None:
    """Add an item to a roadmap."""
    date_fields = [_parse_date_field(d) for d in dates or []]
    item = Item(
        name=name,
        note=note,
        section=section or None,
        date_fields=date_fields,
        link_fields=[LinkField(link_url=url) for url in links or []],
    )

    async def run() -> int:
        session, host = await _open(identifier, password, editing=True)
        await _commit(session, host, edits.add_item(session.roadmap, item))
        return len(session.roadmap.items) - 1

    new_index = _run(run())
    console.print(f"[green]Added '{name}' as #{new_index}[/green]")


@app.command()
def update(
    identifier: str,
    index: int,
    name: Annotated[Optional[str], typer.Option(help="New item name")] = None,
    section: Annotated[Optional[str], typer.Option("--section", "-s", help="New section; empty string clears it")] = None,
    dates: Annotated[
        Optional[list[str]],
        typer.Option("--date", "-d", help="Replace all dates: STAGE=YYYY-MM-DD[@PROGRESS], repeatable"),
    ] = None,
    links: Annotated[Optional[list[str]], typer.Option("--link", "-l", help="Replace all links, repeatable")] = None,
    note: Annotated[Optional[str], typer.Option(help="New note")] = None,
    password: PasswordOption = None,
) -> None:
    """Update fields of an existing item."""
    date_fields = [_parse_date_field(d) for d in dates] if dates else None
    link_fields = [LinkField(link_url=url) for url in links] if links else None

    async def run() -> None:
        session, host = await _open(identifier, password, editing=True)
        _check_index(session.roadmap, index)
        nxt = edits.update_item(
            session.roadmap,
            index,
            name=name,
            note=note,
            section=section,
            date_fields=date_fields,
            link_fields=link_fields,
        )
        await _commit(session, host, nxt)

    _run(run())
    console.print(f"[green]Updated #{index}.[/green]")


@app.command()
def remove(identifier: str, index: int, password: PasswordOption = None) -> None:
    """Remove an item. Later items shift down by one."""

    async def run() -> str:
        session, host = await _open(identifier, password, editing=True)
        _check_index(session.roadmap, index)
        removed = session.roadmap.items[index].name
        await _commit(session, host, edits.remove_item(session.roadmap, index))
        return removed

    removed = _run(run())
    console.print(f"[green]Removed #{index} '{removed}'.[/green]")


@app.command()
def section(
    identifier: str,
    name: str,
    delete: Annotated[bool, typer.Option("--remove", help="Remove the section instead")] = False,
    password: PasswordOption = None,
) -> None:
    """Add a section, or remove one (its items lose their section)."""

    async def run() -> None:
        session, host = await _open(identifier, password, editing=True)
        try:
            if delete:
                nxt = edits.remove_section(session.roadmap, name)
            else:
                nxt = edits.add_section(session.roadmap, name)
        except (KeyError, ValueError):
            console.print(f"[red]Cannot {'remove' if delete else 'add'} section '{name}'.[/red]")
            raise typer.Exit(1)
        await _commit(session, host, nxt)

    _run(run())
    console.print(f"[green]{'Removed' if delete else 'Added'} section '{name}'.[/green]")


@app.command()
def label(
    identifier: str,
    name: Annotated[str, typer.Argument(help="Stage name the label colors")],
    color: Annotated[Optional[str], typer.Argument(help="Color name or hex value")] = None,
    delete: Annotated[bool, typer.Option("--remove", help="Remove the label instead")] = False,
    password: PasswordOption = None,
) -> None:
    """Set the color for a stage, or remove its label."""
    if not delete and not color:
        console.print("[red]A color is required unless --remove is given.[/red]")
        raise typer.Exit(1)

    async def run() -> None:
        session, host = await _open(identifier, password, editing=True)
        if delete:
            try:
                nxt = edits.remove_label(session.roadmap, name)
            except KeyError:
                console.print(f"[red]No label '{name}'.[/red]")
                raise typer.Exit(1)
        else:
            nxt = edits.set_label(session.roadmap, name, color)
        await _commit(session, host, nxt)

    _run(run())
    console.print(f"[green]{'Removed label' if delete else 'Set label'} '{name}'.[/green]")


@app.command()
def edit(
    identifier: str,
    name: Annotated[Optional[str], typer.Option(help="New roadmap name")] = None,
    theme: Annotated[Optional[str], typer.Option(help="New theme")] = None,
    notes: Annotated[Optional[str], typer.Option(help="New markdown notes; empty string clears them")] = None,
    password: PasswordOption = None,
) -> None:
    """Change the roadmap's name, theme or notes."""

    async def run() -> None:
        session, host = await _open(identifier, password, editing=True)
        nxt = edits.update_roadmap(session.roadmap, name=name, theme=theme, notes=notes)
        await _commit(session, host, nxt)

    _run(run())
    console.print(f"[green]Updated {identifier}.[/green]")


@app.command("import")
def import_roadmap(
    file: Annotated[str, typer.Argument(help="JSON file path, or - for stdin")],
    identifier: Annotated[Optional[str], typer.Option("--id", help="Target identifier (defaults to a slug of the name)")] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Preview without saving")] = False,
    password: PasswordOption = None,
) -> None:
    """Import a whole roadmap document from JSON.

    The document uses the stored layout: name, theme, notes, labels,
    sections and items (each with dateFields and linkFields). An existing
    identifier is replaced wholesale.
    """
    if file == "-":
        raw_text = sys.stdin.read()
    else:
        path = Path(file)
        if not path.exists():
            console.print(f"[red]File not found: {file}[/red]")
            raise typer.Exit(1)
        raw_text = path.read_text()

    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON: {e}[/red]")
        raise typer.Exit(1)
    if isinstance(data, dict) and "roadmap" in data:
        data = data["roadmap"]

    try:
        roadmap = Roadmap.from_dict(data)
        for item in roadmap.items:
            for df in item.date_fields:
                parse_date(df.date)
    except (KeyError, TypeError, ValueError) as e:
        console.print(f"[red]Invalid roadmap document: {e}[/red]")
        raise typer.Exit(1)

    store = _get_store()
    identifier = identifier or store.generate_identifier(roadmap.name)
    replacing = store.exists(identifier)

    if dry_run:
        console.print("\n[bold]Dry run: no changes saved[/bold]\n")
        verb = "replace" if replacing else "create"
        console.print(f"Would {verb} {identifier}: '{roadmap.name}'")
        console.print(f"  {len(roadmap.sections)} section(s), {len(roadmap.labels)} label(s), {len(roadmap.items)} item(s)")
        console.print()
        return

    if replacing:

        async def run() -> None:
            session, host = await _open(identifier, password, editing=True)
            await _commit(session, host, roadmap)

        _run(run())
        console.print(f"[yellow]Replaced {identifier} with {len(roadmap.items)} item(s).[/yellow]")
    else:
        store.create(identifier, roadmap, password)
        console.print(f"[green]Imported '{roadmap.name}' as {identifier} ({len(roadmap.items)} item(s)).[/green]")


@app.command()
def export(
    identifier: str,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Write to a file instead of stdout")] = None,
    password: PasswordOption = None,
) -> None:
    """Print the roadmap document as JSON."""
    session, _ = _run(_open(identifier, password))
    text = json.dumps(session.roadmap.to_dict(), indent=4)
    if output is None:
        typer.echo(text)
        return
    output.write_text(text)
    console.print(f"[green]Exported {identifier} to {output}[/green]")


@app.command()
def delete(
    identifier: str,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
    password: PasswordOption = None,
) -> None:
    """Delete a roadmap."""
    session, _ = _run(_open(identifier, password))
    if not yes:
        typer.confirm(f"Delete '{session.roadmap.name}' ({identifier})?", abort=True)
    try:
        _get_store().delete(identifier, session.password)
    except BackendError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    session.close()
    console.print(f"[green]Deleted {identifier}.[/green]")


if __name__ == "__main__":
    app()
