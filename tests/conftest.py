# tests/conftest.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest
from typer.testing import CliRunner

from tasklog.ledger import Ledger
from tasklog.registry import Registry
from tasklog.store import Store
from tasklog.ui import UI


class FakeClock:
    """Settable clock for the ledger; defaults to 2024-01-15 18:00."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2024, 1, 15, 18, 0)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture(autouse=True)
def _plain_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in ("TASKLOG_BREAK_NAME", "TASKLOG_DAY_START_HOUR", "TASKLOG_OPEN_IN_TOTALS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TASKLOG_DB_PATH", str(tmp_path / "tasklog.db"))
    monkeypatch.setenv("TASKLOG_LOG_DIR", str(tmp_path / "logs"))
    UI.fast_mode = False


@pytest.fixture()
def store(tmp_path: Path) -> Store:
    s = Store.create(tmp_path / "tasklog.db")
    yield s
    s.close()


@pytest.fixture()
def registry(store: Store) -> Registry:
    return Registry(store)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def ledger(store: Store, registry: Registry, clock: FakeClock) -> Ledger:
    return Ledger(store, registry, clock=clock)


@pytest.fixture()
def day():
    """Build a timestamp on the test day from HH:MM."""

    def _at(hhmm: str) -> datetime:
        h, m = hhmm.split(":")
        return datetime(2024, 1, 15, int(h), int(m))

    return _at


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()
