from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from .timeutil import format_duration, format_hhmm, minutes_between


@dataclass
class Task:
    id: int
    name: str
    registered: bool = True


@dataclass
class Entry:
    seq: int
    work_date: date
    task_id: Optional[int]
    is_break: bool
    start: datetime
    end: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.end is None

    def duration_minutes(self, until: Optional[datetime] = None) -> Optional[int]:
        """Whole minutes from start to end (or to ``until`` while open)."""
        end = self.end or until
        if end is None:
            return None
        return minutes_between(self.start, end)


@dataclass
class LogRow:
    """An entry with its task reference resolved for display."""

    entry: Entry
    task_name: str

    @property
    def seq(self) -> int:
        return self.entry.seq

    @property
    def duration(self) -> str:
        minutes = self.entry.duration_minutes()
        if minutes is None:
            return "running"
        return format_duration(minutes)

    def as_tuple(self) -> Tuple[str, int, str, str, str, str]:
        e = self.entry
        return (
            e.work_date.isoformat(),
            e.seq,
            format_hhmm(e.start),
            format_hhmm(e.end) if e.end else "",
            self.duration,
            self.task_name,
        )


@dataclass
class Summary:
    work_date: date
    start: datetime
    end: datetime
    # task name -> minutes, in order of first appearance
    per_task: Dict[str, int] = field(default_factory=dict)
    breaks: List[Tuple[datetime, Optional[datetime]]] = field(default_factory=list)

    @property
    def total_minutes(self) -> int:
        return minutes_between(self.start, self.end)

    @property
    def total(self) -> str:
        return format_duration(self.total_minutes)

    def task_durations(self) -> List[Tuple[str, str]]:
        return [(name, format_duration(m)) for name, m in self.per_task.items()]

    def break_intervals(self) -> List[str]:
        return [f"{format_hhmm(s)} - {format_hhmm(e) if e else ''}".rstrip() for s, e in self.breaks]


@dataclass
class ManagerState:
    next_task_id: int
    next_entry_seq: int
    open_entry_seq: Optional[int] = None
