from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from rich import box
from rich.align import Align
from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import LogRow, Summary, Task
from .timeutil import format_hhmm

# UI Theme
BORDER_STYLE = "bright_blue"
SUCCESS_STYLE = "bold green"
WARNING_STYLE = "bold yellow"
ERROR_STYLE = "bold red"

console = Console()

LOG_COLUMNS = [
    ("Date", "dim"),
    ("No", "cyan"),
    ("Start", "white"),
    ("End", "white"),
    ("Duration", "bold white"),
    ("Task", "green"),
]


class UI:
    # Plain text output, no panels or colors. Set from the store's ui_mode.
    fast_mode = False

    @staticmethod
    def print(content, title=None, border_style="blue", box_type=box.ROUNDED):
        if UI.fast_mode:
            if title:
                print(f"--- {title.upper()} ---")
            if isinstance(content, Text):
                print(content.plain)
            elif isinstance(content, str):
                print(Text.from_markup(content).plain)
            else:
                console.print(content)
        else:
            if isinstance(content, (str, Text)):
                msg = Align.left(content)
            else:
                msg = content
            console.print(Panel(msg, title=title, border_style=border_style, box=box_type, padding=(0, 1)))

    @staticmethod
    def line(message: str, style: str = ""):
        """One unboxed line, the way the start/end notices are shown."""
        if UI.fast_mode:
            print(Text.from_markup(message).plain)
        else:
            console.print(message, style=style or None, highlight=False)

    @staticmethod
    def error(message: str):
        if UI.fast_mode:
            print(f"Error: {message}")
        else:
            console.print(f"[{ERROR_STYLE}]Error:[/{ERROR_STYLE}] {escape(message)}", highlight=False)

    @staticmethod
    def warning(message: str):
        if UI.fast_mode:
            print(f"Warning: {message}")
        else:
            console.print(f"[{WARNING_STYLE}]Warning:[/{WARNING_STYLE}] {escape(message)}", highlight=False)

    @staticmethod
    def build_table(columns: Sequence[Tuple[str, str]], rows: Iterable[Sequence], right: Sequence[str] = ()) -> Table:
        t = Table(box=box.SIMPLE)
        for col, style in columns:
            t.add_column(col, style=style, justify="right" if col in right else "left")
        for row in rows:
            t.add_row(*[Text(str(r)) for r in row])
        return t

    @staticmethod
    def table(columns, rows, right: Sequence[str] = ()):
        rows = list(rows)
        if UI.fast_mode:
            print("\t".join([c for c, _ in columns]))
            for row in rows:
                print("\t".join([str(r) for r in row]))
            print("")
        else:
            console.print(UI.build_table(columns, rows, right=right))


# --- Renderers ---

def show_tasks(tasks: List[Tuple[int, Task]]):
    if not tasks:
        UI.print("[dim]No tasks registered. Use `tasklog register <name>`.[/dim]", title="Tasks", border_style="dim")
        return
    UI.table([("No", "cyan"), ("Task", "white")], [(n, t.name) for n, t in tasks], right=("No",))


def show_log(rows: List[LogRow]):
    if not rows:
        UI.print("[dim]No entries.[/dim]", title="Log", border_style="dim")
        return
    UI.table(LOG_COLUMNS, [r.as_tuple() for r in rows], right=("No", "Duration"))


def summary_lines(summary: Summary) -> List[str]:
    """Plain text block, also used for fast mode."""
    lines = [
        f"Start    : {format_hhmm(summary.start)}",
        f"End      : {format_hhmm(summary.end)}",
        f"Duration : {summary.total}",
        "",
        "Task duration",
    ]
    lines += [f"{dur:<5}  {name}" for name, dur in summary.task_durations()] or ["NA"]
    lines += ["", "Break"]
    lines += summary.break_intervals() or ["NA"]
    return lines


def show_summary(summary: Summary):
    title = f"Summary {summary.work_date.isoformat()}"
    if UI.fast_mode:
        print(f"--- {title.upper()} ---")
        print("\n".join(summary_lines(summary)))
        print("")
        return

    span = UI.build_table(
        [("Start", "cyan"), ("End", "cyan"), ("Duration", "bold white")],
        [(format_hhmm(summary.start), format_hhmm(summary.end), summary.total)],
        right=("Duration",),
    )
    durations = UI.build_table(
        [("Task", "green"), ("Duration", "bold white")],
        summary.task_durations() or [("NA", "")],
        right=("Duration",),
    )
    breaks = UI.build_table([("Break", "yellow")], [(b,) for b in summary.break_intervals()] or [("NA",)])
    UI.print(Group(span, durations, breaks), title=title, border_style=BORDER_STYLE, box_type=box.ROUNDED)
