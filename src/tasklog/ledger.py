"""Timed entries against registered tasks or break time.

At most one entry is open at a time. The manager row of the store holds a
pointer to it (``open_entry_seq``); every write that opens, closes or removes
an entry updates that pointer in the same transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from itertools import groupby
from typing import Callable, List, Optional, Sequence, Tuple

from . import timeutil
from .config import BREAK_NAME
from .errors import EntryNotFound, InvalidTimeRange, NoOpenEntry, TaskNotFound
from .models import Entry, LogRow, ManagerState, Summary
from .registry import Registry
from .store import Store

logger = logging.getLogger(__name__)

FIELDS = ("start", "end")


@dataclass
class StartResult:
    started: Entry
    ended: Optional[Entry] = None
    # True when the requested task was already running; nothing was written.
    already_running: bool = False


def _row_to_entry(row) -> Entry:
    return Entry(
        seq=row["seq"],
        work_date=date.fromisoformat(row["work_date"]),
        task_id=row["task_id"],
        is_break=bool(row["is_break"]),
        start=timeutil.from_iso(row["start_time"]),
        end=timeutil.from_iso(row["end_time"]) if row["end_time"] else None,
    )


class Ledger:
    def __init__(
        self,
        store: Store,
        registry: Registry,
        break_name: str = BREAK_NAME,
        day_start_hour: int = 0,
        open_in_totals: bool = False,
        clock: Callable[[], datetime] = timeutil.now,
    ) -> None:
        self.store = store
        self.registry = registry
        self.break_name = break_name
        self.day_start_hour = day_start_hour
        self.open_in_totals = open_in_totals
        self.clock = clock

    # ---- lookups ----

    def get(self, seq: int) -> Entry:
        row = self.store.conn.execute("SELECT * FROM entries WHERE seq = ?", (seq,)).fetchone()
        if row is None:
            raise EntryNotFound(seq)
        return _row_to_entry(row)

    def open_entry(self) -> Optional[Entry]:
        seq = self.store.get_manager().open_entry_seq
        if seq is None:
            return None
        return self.get(seq)

    def task_name(self, entry: Entry) -> str:
        if entry.is_break:
            return self.break_name
        try:
            return self.registry.get(entry.task_id).name
        except TaskNotFound:
            return f"<task {entry.task_id}>"

    def today(self) -> date:
        return timeutil.working_date(self.clock(), self.day_start_hour)

    def at(self, hhmm: str, work_date: Optional[date] = None) -> datetime:
        """Turn an ``HHMM`` argument into a timestamp on ``work_date`` (default: today)."""
        return timeutil.at_time(hhmm, work_date or self.today(), self.day_start_hour)

    # ---- state changes ----

    def start(
        self,
        task_number: Optional[int] = None,
        is_break: bool = False,
        at: Optional[datetime] = None,
    ) -> StartResult:
        """Close the running entry (if any) at ``at`` and open a new one."""
        if (task_number is None) == (not is_break):
            raise ValueError("give exactly one of task_number or is_break")
        at = timeutil.truncate_minute(at or self.clock())

        with self.store.transaction() as conn:
            task_id = None if is_break else self.registry.resolve(task_number)

            current = self.open_entry()
            if current is not None and current.is_break == is_break and current.task_id == task_id:
                return StartResult(started=current, already_running=True)

            ended = None
            if current is not None:
                ended = self._close(current, at)

            seq = self.store.take_entry_seq()
            entry = Entry(
                seq=seq,
                work_date=timeutil.working_date(at, self.day_start_hour),
                task_id=task_id,
                is_break=is_break,
                start=at,
            )
            conn.execute(
                "INSERT INTO entries (seq, work_date, task_id, is_break, start_time, end_time) "
                "VALUES (?, ?, ?, ?, ?, NULL)",
                (seq, entry.work_date.isoformat(), task_id, int(is_break), timeutil.to_iso(at)),
            )
            self.store.set_open_entry(seq)

        return StartResult(started=entry, ended=ended)

    def end(self, at: Optional[datetime] = None) -> Entry:
        at = timeutil.truncate_minute(at or self.clock())
        with self.store.transaction():
            current = self.open_entry()
            if current is None:
                raise NoOpenEntry()
            return self._close(current, at)

    def update(self, seq: int, field: str, value: datetime) -> Entry:
        """
        Overwrite the start or end of one entry.

        Neighbouring entries are left alone, so a manual edit may leave a gap
        or an overlap. Setting the end of the running entry closes it.
        """
        if field not in FIELDS:
            raise ValueError(f"field must be one of {FIELDS}, got {field!r}")
        value = timeutil.truncate_minute(value)

        with self.store.transaction() as conn:
            entry = self.get(seq)
            if field == "start":
                if entry.end is not None and entry.end < value:
                    raise InvalidTimeRange(timeutil.format_hhmm(value), timeutil.format_hhmm(entry.end))
                entry.start = value
                conn.execute("UPDATE entries SET start_time = ? WHERE seq = ?", (timeutil.to_iso(value), seq))
            else:
                if value < entry.start:
                    raise InvalidTimeRange(timeutil.format_hhmm(entry.start), timeutil.format_hhmm(value))
                entry.end = value
                conn.execute("UPDATE entries SET end_time = ? WHERE seq = ?", (timeutil.to_iso(value), seq))
                if self.store.get_manager().open_entry_seq == seq:
                    self.store.set_open_entry(None)
        return entry

    def reassign(self, seq: int, task_number: Optional[int] = None, is_break: bool = False) -> Entry:
        """Book an existing entry on another task, or on break time."""
        if (task_number is None) == (not is_break):
            raise ValueError("give exactly one of task_number or is_break")
        with self.store.transaction() as conn:
            entry = self.get(seq)
            entry.task_id = None if is_break else self.registry.resolve(task_number)
            entry.is_break = is_break
            conn.execute(
                "UPDATE entries SET task_id = ?, is_break = ? WHERE seq = ?",
                (entry.task_id, int(is_break), seq),
            )
        return entry

    def delete(self, seq: int) -> Entry:
        """Remove an entry. Confirmation is the caller's job."""
        with self.store.transaction() as conn:
            entry = self.get(seq)
            conn.execute("DELETE FROM entries WHERE seq = ?", (seq,))
            if self.store.get_manager().open_entry_seq == seq:
                self.store.set_open_entry(None)
        return entry

    def _close(self, entry: Entry, at: datetime) -> Entry:
        if at < entry.start:
            raise InvalidTimeRange(timeutil.format_hhmm(entry.start), timeutil.format_hhmm(at))
        entry.end = at
        self.store.conn.execute("UPDATE entries SET end_time = ? WHERE seq = ?", (timeutil.to_iso(at), entry.seq))
        self.store.set_open_entry(None)
        return entry

    # ---- reading ----

    def log(self, date_from: Optional[date] = None, date_to: Optional[date] = None) -> List[LogRow]:
        """Entries between two working dates (inclusive, either side optional)."""
        sql = "SELECT * FROM entries"
        clauses, params = [], []
        if date_from is not None:
            clauses.append("work_date >= ?")
            params.append(date_from.isoformat())
        if date_to is not None:
            clauses.append("work_date <= ?")
            params.append(date_to.isoformat())
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY work_date, start_time, seq"

        entries = [_row_to_entry(row) for row in self.store.conn.execute(sql, params).fetchall()]
        return [LogRow(entry=e, task_name=self.task_name(e)) for e in entries]

    def summaries(self, rows: Sequence[LogRow]) -> List[Summary]:
        """One summary per working date present in ``rows``."""
        now = self.clock()
        out = []
        for _, day_rows in groupby(rows, key=lambda r: r.entry.work_date):
            summary = summarize(list(day_rows), now, include_open=self.open_in_totals)
            if summary is not None:
                out.append(summary)
        return out

    # ---- bookkeeping ----

    def manager(self) -> ManagerState:
        return self.store.get_manager()

    def reset_manager(self) -> Tuple[ManagerState, List[int]]:
        """
        Rebuild the manager row from the tables, recreating it if missing.

        The open pointer goes to the latest entry without an end. Any other
        unterminated entries are left untouched; their seqs are returned.
        """
        conn = self.store.conn
        with self.store.transaction():
            max_task = conn.execute("SELECT coalesce(max(id), 0) AS m FROM tasks").fetchone()["m"]
            max_seq = conn.execute("SELECT coalesce(max(seq), 0) AS m FROM entries").fetchone()["m"]
            open_rows = conn.execute(
                "SELECT seq FROM entries WHERE end_time IS NULL ORDER BY start_time DESC, seq DESC"
            ).fetchall()
            state = ManagerState(
                next_task_id=max_task + 1,
                next_entry_seq=max_seq + 1,
                open_entry_seq=open_rows[0]["seq"] if open_rows else None,
            )
            self.store.set_manager(state)

        left_open = [r["seq"] for r in open_rows[1:]]
        if left_open:
            logger.warning("entries left open: %s", ", ".join(map(str, left_open)))
        return state, left_open


def summarize(rows: Sequence[LogRow], now: datetime, include_open: bool = False) -> Optional[Summary]:
    """
    Span, per-task totals and break intervals of one day's entries.

    ``rows`` must be ordered by start. Break entries count towards the span
    but not towards task totals. While any entry is open the span runs to
    ``now``; the open entry is left out of the task totals unless
    ``include_open`` is set.
    """
    if not rows:
        return None

    now = timeutil.truncate_minute(now)
    first, last = rows[0].entry, rows[-1].entry
    running = [r.entry for r in rows if r.entry.is_open]
    if running:
        end = max([now] + [e.start for e in running])
    else:
        end = last.end
    summary = Summary(work_date=first.work_date, start=first.start, end=end)

    for row in rows:
        e = row.entry
        if e.is_break:
            summary.breaks.append((e.start, e.end))
            continue
        if e.is_open and not include_open:
            continue
        minutes = e.duration_minutes(until=max(now, e.start))
        summary.per_task[row.task_name] = summary.per_task.get(row.task_name, 0) + minutes

    return summary
