"""Registered task names.

Tasks have a stable id that is never reused, and a display number that is
just their 1-based position among the active tasks. ``resolve`` is the only
way from one to the other.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple, Union

from .errors import DuplicateTask, InvalidTaskName, InvalidTaskNumber, TaskNotFound
from .models import Task
from .store import Store

logger = logging.getLogger(__name__)


def _row_to_task(row) -> Task:
    return Task(id=row["id"], name=row["name"], registered=bool(row["registered"]))


class Registry:
    def __init__(self, store: Store) -> None:
        self.store = store

    def register(self, name: str) -> Task:
        name = name.strip()
        if not name:
            raise InvalidTaskName(name)

        with self.store.transaction() as conn:
            if self._find_active(name) is not None:
                raise DuplicateTask(name)
            task_id = self.store.take_task_id()
            conn.execute("INSERT INTO tasks (id, name, registered) VALUES (?, ?, 1)", (task_id, name))

        logger.debug("registered task id=%s name=%s", task_id, name)
        return Task(id=task_id, name=name)

    def unregister(self, name_or_id: Union[str, int]) -> Task:
        """Hide an active task from the list. Past entries keep pointing at it."""
        with self.store.transaction() as conn:
            if isinstance(name_or_id, int):
                row = conn.execute(
                    "SELECT * FROM tasks WHERE id = ? AND registered = 1", (name_or_id,)
                ).fetchone()
                task = _row_to_task(row) if row else None
            else:
                task = self._find_active(name_or_id.strip())
            if task is None:
                raise TaskNotFound(name_or_id)
            conn.execute("UPDATE tasks SET registered = 0 WHERE id = ?", (task.id,))

        task.registered = False
        return task

    def list_active(self) -> List[Tuple[int, Task]]:
        """Active tasks by ascending id, paired with their display number."""
        rows = self.store.conn.execute("SELECT * FROM tasks WHERE registered = 1 ORDER BY id").fetchall()
        return [(n, _row_to_task(row)) for n, row in enumerate(rows, start=1)]

    def resolve(self, display_number: int) -> int:
        """Map a display number back to the task id."""
        active = self.list_active()
        if not 1 <= display_number <= len(active):
            raise InvalidTaskNumber(display_number)
        return active[display_number - 1][1].id

    def get(self, task_id: int) -> Task:
        """Look up any task by id, registered or not."""
        row = self.store.conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            raise TaskNotFound(task_id)
        return _row_to_task(row)

    def _find_active(self, name: str) -> Optional[Task]:
        row = self.store.conn.execute(
            "SELECT * FROM tasks WHERE name = ? AND registered = 1", (name,)
        ).fetchone()
        return _row_to_task(row) if row else None
