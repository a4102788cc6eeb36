from __future__ import annotations

from datetime import date, datetime

import pytest

from tasklog.errors import EntryNotFound, InvalidTaskNumber, InvalidTimeRange, ManagerMissing, NoOpenEntry
from tasklog.ledger import Ledger
from tasklog.registry import Registry


@pytest.fixture()
def tasks(registry: Registry) -> None:
    registry.register("task one")
    registry.register("task two")


def open_entries(ledger: Ledger) -> list[int]:
    rows = ledger.store.conn.execute("SELECT seq FROM entries WHERE end_time IS NULL").fetchall()
    return [r["seq"] for r in rows]


def test_start_opens_one_entry(ledger: Ledger, tasks, day) -> None:
    result = ledger.start(task_number=1, at=day("09:17"))
    assert result.ended is None
    assert result.started.start == day("09:17")
    assert result.started.work_date == date(2024, 1, 15)
    assert ledger.open_entry().seq == result.started.seq
    assert open_entries(ledger) == [result.started.seq]


def test_start_closes_previous_entry_contiguously(ledger: Ledger, tasks, day) -> None:
    first = ledger.start(task_number=1, at=day("09:17")).started
    result = ledger.start(task_number=2, at=day("11:34"))

    assert result.ended.seq == first.seq
    assert result.ended.end == day("11:34")
    assert result.started.start == result.ended.end
    assert ledger.get(first.seq).end == day("11:34")
    assert open_entries(ledger) == [result.started.seq]


def test_many_starts_keep_single_open_entry(ledger: Ledger, tasks, day) -> None:
    times = ["09:00", "09:30", "10:00", "10:45", "12:00"]
    for i, t in enumerate(times):
        if i % 3 == 2:
            ledger.start(is_break=True, at=day(t))
        else:
            ledger.start(task_number=1 + i % 2, at=day(t))
        assert len(open_entries(ledger)) == 1

    rows = ledger.log()
    for prev, cur in zip(rows, rows[1:]):
        assert prev.entry.end == cur.entry.start


def test_start_same_task_is_noop(ledger: Ledger, tasks, day) -> None:
    first = ledger.start(task_number=1, at=day("09:00")).started
    again = ledger.start(task_number=1, at=day("10:00"))
    assert again.already_running
    assert again.started.seq == first.seq
    assert len(ledger.log()) == 1
    assert ledger.get(first.seq).end is None


def test_break_time_uses_break_name(ledger: Ledger, tasks, day) -> None:
    entry = ledger.start(is_break=True, at=day("12:00")).started
    assert entry.task_id is None
    assert ledger.task_name(entry) == "break time"


def test_start_requires_exactly_one_target(ledger: Ledger, tasks) -> None:
    with pytest.raises(ValueError):
        ledger.start()
    with pytest.raises(ValueError):
        ledger.start(task_number=1, is_break=True)


def test_invalid_number_changes_nothing(ledger: Ledger, tasks, day) -> None:
    first = ledger.start(task_number=1, at=day("09:00")).started
    with pytest.raises(InvalidTaskNumber):
        ledger.start(task_number=9, at=day("10:00"))
    assert ledger.open_entry().seq == first.seq
    assert ledger.get(first.seq).end is None
    assert ledger.manager().next_entry_seq == 2


def test_start_before_open_entry_is_rejected(ledger: Ledger, tasks, day) -> None:
    first = ledger.start(task_number=1, at=day("09:00")).started
    with pytest.raises(InvalidTimeRange):
        ledger.start(task_number=2, at=day("08:00"))
    assert ledger.get(first.seq).end is None
    assert len(ledger.log()) == 1


def test_end_closes_open_entry(ledger: Ledger, tasks, day) -> None:
    ledger.start(task_number=1, at=day("09:00"))
    entry = ledger.end(at=day("17:30"))
    assert entry.end == day("17:30")
    assert ledger.open_entry() is None
    with pytest.raises(NoOpenEntry):
        ledger.end(at=day("18:00"))


def test_end_defaults_to_clock(ledger: Ledger, tasks, day, clock) -> None:
    ledger.start(task_number=1, at=day("09:00"))
    clock.now = datetime(2024, 1, 15, 17, 45, 31)
    assert ledger.end().end == day("17:45")


def test_end_before_start_is_rejected(ledger: Ledger, tasks, day) -> None:
    ledger.start(task_number=1, at=day("09:00"))
    with pytest.raises(InvalidTimeRange):
        ledger.end(at=day("08:59"))
    assert ledger.open_entry() is not None


def test_update_start_does_not_touch_neighbours(ledger: Ledger, tasks, day) -> None:
    a = ledger.start(task_number=1, at=day("09:17")).started
    b = ledger.start(task_number=2, at=day("11:34")).started
    ledger.end(at=day("11:50"))

    ledger.update(b.seq, "start", day("11:40"))
    assert ledger.get(b.seq).start == day("11:40")
    # gap is tolerated, not repaired
    assert ledger.get(a.seq).end == day("11:34")


def test_update_rejects_inverted_range(ledger: Ledger, tasks, day) -> None:
    a = ledger.start(task_number=1, at=day("09:00")).started
    ledger.end(at=day("10:00"))
    with pytest.raises(InvalidTimeRange):
        ledger.update(a.seq, "end", day("08:00"))
    with pytest.raises(InvalidTimeRange):
        ledger.update(a.seq, "start", day("10:01"))
    entry = ledger.get(a.seq)
    assert (entry.start, entry.end) == (day("09:00"), day("10:00"))


def test_update_end_of_open_entry_closes_it(ledger: Ledger, tasks, day) -> None:
    a = ledger.start(task_number=1, at=day("09:00")).started
    ledger.update(a.seq, "end", day("10:00"))
    assert ledger.open_entry() is None
    # a new start does not touch the entry closed by hand
    ledger.start(task_number=2, at=day("11:00"))
    assert ledger.get(a.seq).end == day("10:00")


def test_update_missing_entry(ledger: Ledger, day) -> None:
    with pytest.raises(EntryNotFound):
        ledger.update(42, "start", day("09:00"))


def test_update_unknown_field(ledger: Ledger, tasks, day) -> None:
    a = ledger.start(task_number=1, at=day("09:00")).started
    with pytest.raises(ValueError):
        ledger.update(a.seq, "name", day("09:00"))


def test_reassign(ledger: Ledger, tasks, day) -> None:
    a = ledger.start(task_number=1, at=day("09:00")).started
    ledger.reassign(a.seq, task_number=2)
    assert ledger.task_name(ledger.get(a.seq)) == "task two"
    ledger.reassign(a.seq, is_break=True)
    assert ledger.task_name(ledger.get(a.seq)) == "break time"
    with pytest.raises(InvalidTaskNumber):
        ledger.reassign(a.seq, task_number=5)


def test_delete_open_entry(ledger: Ledger, tasks, day) -> None:
    ledger.start(task_number=1, at=day("09:00"))
    last = ledger.start(task_number=2, at=day("10:00")).started
    ledger.delete(last.seq)

    assert ledger.open_entry() is None
    assert [r.seq for r in ledger.log()] == [1]
    with pytest.raises(NoOpenEntry):
        ledger.end(at=day("11:00"))


def test_delete_closed_entry_keeps_open_pointer(ledger: Ledger, tasks, day) -> None:
    first = ledger.start(task_number=1, at=day("09:00")).started
    second = ledger.start(task_number=2, at=day("10:00")).started
    ledger.delete(first.seq)
    assert ledger.open_entry().seq == second.seq


def test_delete_missing_entry(ledger: Ledger) -> None:
    with pytest.raises(EntryNotFound):
        ledger.delete(1)


def test_seq_is_not_reused_after_delete(ledger: Ledger, tasks, day) -> None:
    a = ledger.start(task_number=1, at=day("09:00")).started
    ledger.delete(a.seq)
    b = ledger.start(task_number=1, at=day("10:00")).started
    assert b.seq == a.seq + 1


def test_log_filters_and_orders(ledger: Ledger, tasks, clock) -> None:
    ledger.start(task_number=1, at=datetime(2024, 1, 16, 9, 0))
    ledger.end(at=datetime(2024, 1, 16, 10, 0))
    ledger.start(task_number=2, at=datetime(2024, 1, 14, 9, 0))
    ledger.end(at=datetime(2024, 1, 14, 10, 0))
    ledger.start(task_number=1, at=datetime(2024, 1, 15, 9, 0))
    ledger.end(at=datetime(2024, 1, 15, 10, 0))

    assert [r.entry.work_date.day for r in ledger.log()] == [14, 15, 16]
    assert [r.seq for r in ledger.log(date(2024, 1, 15), date(2024, 1, 15))] == [3]
    assert [r.seq for r in ledger.log(date(2024, 1, 15))] == [3, 1]
    assert [r.seq for r in ledger.log(None, date(2024, 1, 14))] == [2]


def test_log_keeps_unregistered_task_names(ledger: Ledger, registry: Registry, tasks, day) -> None:
    ledger.start(task_number=1, at=day("09:00"))
    ledger.end(at=day("10:00"))
    registry.unregister("task one")
    rows = ledger.log()
    assert rows[0].task_name == "task one"
    assert rows[0].duration == "01:00"


def test_log_marks_open_entry_running(ledger: Ledger, tasks, day) -> None:
    ledger.start(task_number=1, at=day("09:00"))
    row = ledger.log()[0]
    assert row.duration == "running"
    assert row.as_tuple() == ("2024-01-15", 1, "09:00", "", "running", "task one")


def test_day_start_hour_books_late_work_on_previous_day(store, registry: Registry, tasks, clock) -> None:
    ledger = Ledger(store, registry, day_start_hour=5, clock=clock)
    entry = ledger.start(task_number=1, at=datetime(2024, 1, 16, 1, 30)).started
    assert entry.work_date == date(2024, 1, 15)


def test_reset_manager_rebuilds_from_tables(ledger: Ledger, tasks, day) -> None:
    ledger.start(task_number=1, at=day("09:00"))
    second = ledger.start(task_number=2, at=day("10:00")).started
    ledger.store.conn.execute("UPDATE manager SET next_task_id = 1, next_entry_seq = 1, open_entry_seq = NULL")

    state, left_open = ledger.reset_manager()
    assert left_open == []
    assert (state.next_task_id, state.next_entry_seq, state.open_entry_seq) == (3, 3, second.seq)
    assert ledger.open_entry().seq == second.seq


def test_reset_manager_recreates_missing_row(ledger: Ledger, tasks, day) -> None:
    ledger.start(task_number=1, at=day("09:00"))
    ledger.store.conn.execute("DELETE FROM manager")

    with pytest.raises(ManagerMissing):
        ledger.manager()
    with pytest.raises(ManagerMissing):
        ledger.registry.register("task three")

    state, left_open = ledger.reset_manager()
    assert (state.next_task_id, state.next_entry_seq, state.open_entry_seq) == (3, 2, 1)
    assert left_open == []

    assert ledger.registry.register("task three").id == 3
    result = ledger.start(task_number=2, at=day("10:00"))
    assert result.ended.seq == 1
    assert result.started.seq == 2


def test_reset_manager_reports_extra_open_entries(ledger: Ledger, tasks, day) -> None:
    ledger.start(task_number=1, at=day("09:00"))
    ledger.start(task_number=2, at=day("10:00"))
    ledger.start(task_number=1, at=day("11:00"))
    ledger.store.conn.execute("UPDATE entries SET end_time = NULL WHERE seq IN (1, 2)")

    state, left_open = ledger.reset_manager()
    assert state.open_entry_seq == 3
    assert left_open == [2, 1]
    # nothing is closed behind the user's back
    assert sorted(open_entries(ledger)) == [1, 2, 3]
