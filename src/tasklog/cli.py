import functools
from datetime import date
from enum import Enum
from typing import Optional

import typer
from rich import box
from rich.markup import escape
from rich.traceback import install

from . import __version__
from .config import Settings, load_settings
from .errors import TasklogError
from .ledger import Ledger
from .logging_setup import log_audit, setup_logging
from .registry import Registry
from .store import Store
from .timeutil import format_hhmm, parse_date
from .ui import (
    BORDER_STYLE,
    SUCCESS_STYLE,
    UI,
    show_log,
    show_summary,
    show_tasks,
)

# Install rich traceback handler for prettier unhandled exceptions
install(show_locals=False)

app = typer.Typer(help="Log the tasks you work on, from the terminal.", add_completion=False)


class Target(str, Enum):
    start = "start"
    end = "end"
    task = "task"


# --- Helpers ---

def get_settings() -> Settings:
    return load_settings()


def open_store(settings: Settings) -> Store:
    store = Store.open(settings.db_path)
    UI.fast_mode = store.get_config("ui_mode") == "fast"
    return store


def load_ui_mode(settings: Settings) -> None:
    """Pick up ui_mode without requiring a usable store."""
    UI.fast_mode = False
    if not settings.db_path.exists():
        return
    try:
        open_store(settings).close()
    except TasklogError:
        # `db` still shows the path of a file that is not a usable store.
        return


def make_ledger(store: Store, settings: Settings) -> Ledger:
    return Ledger(
        store,
        Registry(store),
        break_name=settings.break_name,
        day_start_hour=settings.day_start_hour,
        open_in_totals=settings.open_in_totals,
    )


def handle_errors(func):
    """Report a TasklogError as one line and exit with code 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except TasklogError as e:
            UI.error(str(e))
            raise typer.Exit(code=1)

    return wrapper


def parse_task_value(value: str):
    """`break` or a display number, for `update <seq> task <value>`."""
    if value.strip().lower() in ("break", "b"):
        return None, True
    try:
        return int(value), False
    except ValueError:
        raise typer.BadParameter(f"expected a task number or 'break', got {value!r}")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show the version and exit."),
):
    """
    Log the tasks you work on, from the terminal.
    """
    if version:
        typer.echo(f"tasklog {__version__}")
        raise typer.Exit()

    settings = get_settings()
    setup_logging(settings.log_dir)

    if ctx.invoked_subcommand is None:
        columns = [("Command", "cyan"), ("Description", "white"), ("Example", "dim")]
        rows = [
            ("init", "Create the database", "tasklog init"),
            ("register NAME", "Register a task name", "tasklog register 'task one'"),
            ("unregister NAME", "Unregister a task name", "tasklog unregister 'task one'"),
            ("list", "Show registered task names", "tasklog list"),
            ("start [NO]", "Start a task (ends the running one)", "tasklog start 1 --at 0917"),
            ("start -b", "Start a break", "tasklog start --break-time"),
            ("end", "End the running task", "tasklog end --at 1800"),
            ("log", "Show entries and the daily summary", "tasklog log --date 2024-01-31"),
            ("update NO FIELD VALUE", "Change start, end or task of an entry", "tasklog update 3 start 0915"),
            ("delete NO", "Delete an entry", "tasklog delete 3"),
            ("db", "Show the database path", "tasklog db"),
        ]
        UI.table(columns, rows)


# --- Commands ---

@app.command()
@handle_errors
def init(force: bool = typer.Option(False, "--force", "-f", help="Recreate the database if it already exists.")):
    """Create the database (or recreate it with --force)."""
    settings = get_settings()
    with Store.create(settings.db_path, force=force) as store:
        log_audit("INIT", f"{store.path} force={force}")
        UI.print(f"Database created: [blue]{escape(str(store.path))}[/blue]", title="Init", border_style="green")


@app.command()
@handle_errors
def register(name: str = typer.Argument(..., help="Task name.")):
    """Register a task name."""
    settings = get_settings()
    with open_store(settings) as store:
        task = Registry(store).register(name)
        log_audit("REGISTER", f"id={task.id} name={task.name}")
        UI.line(f"[{SUCCESS_STYLE}]Registered[/{SUCCESS_STYLE}] {escape(task.name)}")


@app.command()
@handle_errors
def unregister(name: str = typer.Argument(..., help="Task name.")):
    """Unregister a task name. Logged entries are kept."""
    settings = get_settings()
    with open_store(settings) as store:
        task = Registry(store).unregister(name)
        log_audit("UNREGISTER", f"id={task.id} name={task.name}")
        UI.line(f"Unregistered {escape(task.name)}", style="yellow")


@app.command(name="list")
@handle_errors
def list_tasks():
    """Show registered task names with their numbers."""
    settings = get_settings()
    with open_store(settings) as store:
        show_tasks(Registry(store).list_active())


@app.command(name="tasks", hidden=True)
def tasks_alias():
    """Alias of `list`."""
    list_tasks()


@app.command()
@handle_errors
def start(
    number: Optional[int] = typer.Argument(None, help="Task number from `tasklog list`."),
    break_time: bool = typer.Option(False, "--break-time", "-b", help="Start a break instead of a task."),
    at: Optional[str] = typer.Option(None, "--at", "-t", help="Start time, HHMM or HH:MM. Default: now."),
):
    """Start a task. The running task, if any, ends at the same time."""
    if (number is None) == (not break_time):
        raise typer.BadParameter("give either a task number or --break-time")

    settings = get_settings()
    with open_store(settings) as store:
        ledger = make_ledger(store, settings)
        when = ledger.at(at) if at else None
        result = ledger.start(task_number=number, is_break=break_time, at=when)
        started = result.started
        name = escape(ledger.task_name(started))

        if result.already_running:
            UI.line(f"{name} is already running since {format_hhmm(started.start)}", style="yellow")
            return

        if result.ended is not None:
            ended = result.ended
            UI.line(f"{escape(ledger.task_name(ended))} ended at [cyan]{format_hhmm(ended.end)}[/cyan]")
            log_audit("END", f"seq={ended.seq} at={format_hhmm(ended.end)}")

        log_audit("START", f"seq={started.seq} task={ledger.task_name(started)} at={format_hhmm(started.start)}")
        UI.line(f"[{SUCCESS_STYLE}]{name}[/{SUCCESS_STYLE}] started at [cyan]{format_hhmm(started.start)}[/cyan]")


@app.command()
@handle_errors
def end(at: Optional[str] = typer.Option(None, "--at", "-t", help="End time, HHMM or HH:MM. Default: now.")):
    """End the running task."""
    settings = get_settings()
    with open_store(settings) as store:
        ledger = make_ledger(store, settings)
        current = ledger.open_entry()
        when = ledger.at(at, current.work_date) if (at and current) else None
        entry = ledger.end(at=when)
        log_audit("END", f"seq={entry.seq} at={format_hhmm(entry.end)}")
        UI.line(f"{escape(ledger.task_name(entry))} ended at [cyan]{format_hhmm(entry.end)}[/cyan]")


@app.command()
@handle_errors
def log(
    on: Optional[str] = typer.Option(None, "--date", "-d", help="Show one date, YYYYMMDD or YYYY-MM-DD."),
    date_from: Optional[str] = typer.Option(None, "--from", help="First date to show."),
    date_to: Optional[str] = typer.Option(None, "--to", help="Last date to show."),
    show_all: bool = typer.Option(False, "--all", "-a", help="Show every entry instead of today's."),
):
    """Show logged entries and the summary of each day."""
    if on and (date_from or date_to or show_all):
        raise typer.BadParameter("--date cannot be combined with --from/--to/--all")

    settings = get_settings()
    with open_store(settings) as store:
        ledger = make_ledger(store, settings)

        first: Optional[date] = None
        last: Optional[date] = None
        if on:
            first = last = parse_date(on)
        elif date_from or date_to:
            first = parse_date(date_from) if date_from else None
            last = parse_date(date_to) if date_to else None
        elif not show_all:
            first = last = ledger.today()

        rows = ledger.log(first, last)
        show_log(rows)
        for summary in ledger.summaries(rows):
            show_summary(summary)


@app.command()
@handle_errors
def update(
    seq: int = typer.Argument(..., help="Entry number (No column of `tasklog log`)."),
    target: Target = typer.Argument(..., help="What to change."),
    value: str = typer.Argument(..., help="HHMM for start/end; a task number or 'break' for task."),
):
    """Change the start, end or task of an entry."""
    settings = get_settings()
    with open_store(settings) as store:
        ledger = make_ledger(store, settings)
        if target == Target.task:
            number, is_break = parse_task_value(value)
            entry = ledger.reassign(seq, task_number=number, is_break=is_break)
        else:
            current = ledger.get(seq)
            entry = ledger.update(seq, target.value, ledger.at(value, current.work_date))

        log_audit("UPDATE", f"seq={seq} {target.value}={value}")
        row = (
            entry.seq,
            format_hhmm(entry.start),
            format_hhmm(entry.end) if entry.end else "",
            ledger.task_name(entry),
        )
        UI.table([("No", "cyan"), ("Start", "white"), ("End", "white"), ("Task", "green")], [row], right=("No",))


@app.command()
@handle_errors
def delete(
    seq: int = typer.Argument(..., help="Entry number (No column of `tasklog log`)."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
):
    """Delete an entry."""
    settings = get_settings()
    with open_store(settings) as store:
        ledger = make_ledger(store, settings)
        entry = ledger.get(seq)
        running = " (running)" if entry.is_open else ""
        UI.line(
            f'"{escape(ledger.task_name(entry))}" started at '
            f"{entry.work_date.isoformat()} {format_hhmm(entry.start)}{running}"
        )

        if not yes and not typer.confirm("Really delete?", default=False):
            UI.line("Operation canceled.")
            return

        ledger.delete(seq)
        log_audit("DELETE", f"seq={seq} task={ledger.task_name(entry)}")
        UI.line(f"[{SUCCESS_STYLE}]Entry {seq} deleted[/{SUCCESS_STYLE}]")


@app.command(name="show-manager")
@handle_errors
def show_manager():
    """Show the internal bookkeeping row (for debugging)."""
    settings = get_settings()
    with open_store(settings) as store:
        UI.warning("this command shows the internal status for debugging the application.")
        state = make_ledger(store, settings).manager()
        UI.table(
            [("next_task_id", "cyan"), ("next_entry_seq", "cyan"), ("open_entry_seq", "cyan")],
            [(state.next_task_id, state.next_entry_seq, state.open_entry_seq if state.open_entry_seq else "-")],
        )


@app.command(name="reset-manager")
@handle_errors
def reset_manager(yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation.")):
    """Rebuild the internal bookkeeping row from the logged data."""
    settings = get_settings()
    with open_store(settings) as store:
        UI.warning("this operation rewrites internal state and may change which entry is running.")
        if not yes and not typer.confirm("Do you wish to continue?", default=False):
            UI.line("Operation canceled.")
            return

        state, left_open = make_ledger(store, settings).reset_manager()
        log_audit("RESET-MANAGER", f"{state}")
        if left_open:
            UI.warning(f"entries still without an end: {', '.join(map(str, left_open))} (close them with `tasklog update <no> end <time>`)")
        UI.line(f"[{SUCCESS_STYLE}]Manager has been reset.[/{SUCCESS_STYLE}]")


@app.command(name="db")
def show_db_path():
    """Show database path."""
    settings = get_settings()
    load_ui_mode(settings)
    UI.print(f"[bold]Database path:[/bold]\n[blue]{escape(str(settings.db_path))}[/blue]", title="Configuration", border_style=BORDER_STYLE)


@app.command(name="fast-mode")
@handle_errors
def fast_mode():
    """Plain text output (no colors/panels)."""
    settings = get_settings()
    with open_store(settings) as store:
        store.set_config("ui_mode", "fast")
    print("Fast mode enabled.")


@app.command(name="normal-mode")
@handle_errors
def normal_mode():
    """Restore colors and panels."""
    settings = get_settings()
    with open_store(settings) as store:
        store.set_config("ui_mode", "normal")
    UI.fast_mode = False
    UI.print("[bold green]Normal UI restored.[/bold green]", title="Success", border_style="green", box_type=box.ROUNDED)
