from __future__ import annotations

from pathlib import Path

import pytest

from tasklog.errors import StoreAlreadyExists, StoreNotFound, StoreUnavailable
from tasklog.registry import Registry
from tasklog.store import Store


def test_create_then_open(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "tasklog.db"
    Store.create(path).close()
    with Store.open(path) as store:
        assert store.is_prepared()
        state = store.get_manager()
        assert (state.next_task_id, state.next_entry_seq, state.open_entry_seq) == (1, 1, None)


def test_open_missing(tmp_path: Path) -> None:
    with pytest.raises(StoreNotFound):
        Store.open(tmp_path / "missing.db")
    assert not (tmp_path / "missing.db").exists()


def test_open_empty_file(tmp_path: Path) -> None:
    path = tmp_path / "empty.db"
    path.touch()
    with pytest.raises(StoreNotFound):
        Store.open(path)


def test_open_garbage_file(tmp_path: Path) -> None:
    path = tmp_path / "garbage.db"
    path.write_bytes(b"this is not a database, not even close" * 100)
    with pytest.raises(StoreNotFound):
        Store.open(path)


def test_create_existing_requires_force(tmp_path: Path) -> None:
    path = tmp_path / "tasklog.db"
    with Store.create(path) as store:
        Registry(store).register("keep me?")

    with pytest.raises(StoreAlreadyExists):
        Store.create(path)

    with Store.create(path, force=True) as store:
        assert Registry(store).list_active() == []


def test_force_replaces_garbage_file(tmp_path: Path) -> None:
    path = tmp_path / "garbage.db"
    path.write_bytes(b"this is not a database, not even close" * 100)
    with pytest.raises(StoreAlreadyExists):
        Store.create(path)
    with Store.create(path, force=True) as store:
        assert store.is_prepared()


def test_transaction_rolls_back(store: Store) -> None:
    with pytest.raises(RuntimeError):
        with store.transaction() as conn:
            conn.execute("INSERT INTO tasks (id, name, registered) VALUES (1, 'a', 1)")
            with store.transaction():
                store.take_task_id()
            raise RuntimeError("boom")

    assert store.conn.execute("SELECT count(*) AS c FROM tasks").fetchone()["c"] == 0
    assert store.get_manager().next_task_id == 1


def test_config_table(store: Store) -> None:
    assert store.get_config("ui_mode") is None
    store.set_config("ui_mode", "fast")
    store.set_config("ui_mode", "normal")
    assert store.get_config("ui_mode") == "normal"


def test_create_under_a_file_reports_store_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    with pytest.raises(StoreUnavailable) as excinfo:
        Store.create(blocker / "tasklog.db")
    assert "cannot create database" in str(excinfo.value)
