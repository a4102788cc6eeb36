"""SQLite persistence for tasks, entries and the id/open-entry bookkeeping."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .errors import ManagerMissing, StoreAlreadyExists, StoreNotFound, StoreUnavailable
from .models import ManagerState

logger = logging.getLogger(__name__)

TABLES = ("tasks", "entries", "manager", "config")

SCHEMA = (
    """
    CREATE TABLE tasks (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        registered INTEGER NOT NULL DEFAULT 1
    )
    """,
    "CREATE UNIQUE INDEX tasks_active_name ON tasks (name) WHERE registered = 1",
    """
    CREATE TABLE entries (
        seq INTEGER PRIMARY KEY,
        work_date TEXT NOT NULL,
        task_id INTEGER,
        is_break INTEGER NOT NULL DEFAULT 0,
        start_time TEXT NOT NULL,
        end_time TEXT
    )
    """,
    "CREATE INDEX entries_work_date ON entries (work_date, start_time)",
    """
    CREATE TABLE manager (
        id INTEGER PRIMARY KEY CHECK (id = 0),
        next_task_id INTEGER NOT NULL,
        next_entry_seq INTEGER NOT NULL,
        open_entry_seq INTEGER
    )
    """,
    """
    CREATE TABLE config (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """,
)


class Store:
    """
    One SQLite file holding both the registry and the ledger.

    Writes go through ``transaction()``, which issues ``BEGIN IMMEDIATE`` and
    either commits everything or rolls everything back. Nested calls join
    the outer transaction.
    """

    def __init__(self, conn: sqlite3.Connection, path: Path) -> None:
        self.conn = conn
        self.path = path
        self._depth = 0

    # ---- opening ----

    @staticmethod
    def _connect(path: Path, create: bool) -> sqlite3.Connection:
        if create:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(path), timeout=10, isolation_level=None)
            except (OSError, sqlite3.Error) as e:
                raise StoreUnavailable(path, str(e)) from e
        else:
            conn = sqlite3.connect(f"{path.resolve().as_uri()}?mode=rw", uri=True, timeout=10, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    @classmethod
    def open(cls, path: str | Path) -> "Store":
        """Open an initialized store; ``StoreNotFound`` if missing or not ours."""
        path = Path(path)
        if not path.exists():
            raise StoreNotFound(path)
        try:
            store = cls(cls._connect(path, create=False), path)
            prepared = store.is_prepared()
        except sqlite3.DatabaseError as e:
            raise StoreNotFound(path, f"cannot read database: {e}") from e
        if not prepared:
            store.close()
            raise StoreNotFound(path)
        return store

    @classmethod
    def create(cls, path: str | Path, force: bool = False) -> "Store":
        """Create the store, or recreate it from scratch when ``force`` is set."""
        path = Path(path)
        store = cls(cls._connect(path, create=True), path)
        try:
            prepared = store.is_prepared()
        except sqlite3.DatabaseError:
            # Some other file is in the way.
            store.close()
            if not force:
                raise StoreAlreadyExists(path) from None
            path.unlink()
            store = cls(cls._connect(path, create=True), path)
            prepared = False
        if prepared and not force:
            store.close()
            raise StoreAlreadyExists(path)
        store.initialize()
        return store

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---- schema ----

    def is_prepared(self) -> bool:
        placeholders = ",".join("?" for _ in TABLES)
        row = self.conn.execute(
            f"SELECT count(name) AS c FROM sqlite_master WHERE type = 'table' AND name IN ({placeholders})",
            TABLES,
        ).fetchone()
        return row["c"] == len(TABLES)

    def initialize(self) -> None:
        with self.transaction():
            for table in TABLES:
                self.conn.execute(f"DROP TABLE IF EXISTS {table}")
            for stmt in SCHEMA:
                self.conn.execute(stmt)
            self.conn.execute(
                "INSERT INTO manager (id, next_task_id, next_entry_seq, open_entry_seq) VALUES (0, 1, 1, NULL)"
            )
        logger.debug("schema created at %s", self.path)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        if self._depth == 0:
            self.conn.execute("BEGIN IMMEDIATE")
        self._depth += 1
        try:
            yield self.conn
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self.conn.execute("ROLLBACK")
            raise
        else:
            self._depth -= 1
            if self._depth == 0:
                self.conn.execute("COMMIT")

    # ---- manager row ----

    def get_manager(self) -> ManagerState:
        row = self.conn.execute(
            "SELECT next_task_id, next_entry_seq, open_entry_seq FROM manager WHERE id = 0"
        ).fetchone()
        if row is None:
            raise ManagerMissing()
        return ManagerState(row["next_task_id"], row["next_entry_seq"], row["open_entry_seq"])

    def set_manager(self, state: ManagerState) -> None:
        """Write the whole row, recreating it if it was lost."""
        self.conn.execute(
            "INSERT OR REPLACE INTO manager (id, next_task_id, next_entry_seq, open_entry_seq) VALUES (0, ?, ?, ?)",
            (state.next_task_id, state.next_entry_seq, state.open_entry_seq),
        )

    def take_task_id(self) -> int:
        """Allocate the next task id. Must run inside the inserting transaction."""
        state = self.get_manager()
        self.conn.execute("UPDATE manager SET next_task_id = ? WHERE id = 0", (state.next_task_id + 1,))
        return state.next_task_id

    def take_entry_seq(self) -> int:
        state = self.get_manager()
        self.conn.execute("UPDATE manager SET next_entry_seq = ? WHERE id = 0", (state.next_entry_seq + 1,))
        return state.next_entry_seq

    def set_open_entry(self, seq: Optional[int]) -> None:
        self.conn.execute("UPDATE manager SET open_entry_seq = ? WHERE id = 0", (seq,))

    # ---- config table ----

    def get_config(self, key: str) -> Optional[str]:
        row = self.conn.execute("SELECT value FROM config WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set_config(self, key: str, value: str) -> None:
        with self.transaction():
            self.conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)", (key, value))
