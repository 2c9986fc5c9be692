from __future__ import annotations
import logging
from typing import List

from sqlalchemy import select, insert, update, delete, not_

from .base import StoreBase, require_name
from .db import tasks
from .errors import NotFound
from .models import TaskOut, to_task_out

logger = logging.getLogger(__name__)

class TaskStore(StoreBase):
    def get_tasks(self, list_id: int) -> List[TaskOut]:
        """Tasks of a list, newest first."""
        with self._read() as conn:
            self._list_row(conn, list_id)
            rows = conn.execute(
                select(tasks).where(tasks.c.list_id == list_id).order_by(tasks.c.id.desc())
            ).mappings().all()
        return [to_task_out(r) for r in rows]

    def get_task(self, task_id: int) -> TaskOut:
        with self._read() as conn:
            return to_task_out(self._task_row(conn, task_id))

    def add_task(self, list_id: int, title: str) -> TaskOut:
        require_name(title, "Title")
        with self._tx() as conn:
            self._list_row(conn, list_id)
            row = conn.execute(insert(tasks).values(
                list_id=list_id, title=title, done=False, accumulated_seconds=0, running_since=None,
            ).returning(tasks)).mappings().one()
        logger.debug("Task added id=%s list=%s", row["id"], list_id)
        return to_task_out(row)

    def _update(self, task_id: int, **values) -> TaskOut:
        with self._tx() as conn:
            row = conn.execute(
                update(tasks).where(tasks.c.id == task_id).values(**values).returning(tasks)
            ).mappings().first()
        if row is None:
            raise NotFound("Task", task_id)
        return to_task_out(row)

    def toggle_done(self, task_id: int) -> TaskOut:
        return self._update(task_id, done=not_(tasks.c.done))

    def rename_task(self, task_id: int, title: str) -> TaskOut:
        require_name(title, "Title")
        return self._update(task_id, title=title)

    def delete_task(self, task_id: int) -> None:
        with self._tx() as conn:
            res = conn.execute(delete(tasks).where(tasks.c.id == task_id))
            if res.rowcount == 0:
                raise NotFound("Task", task_id)
        logger.debug("Task deleted id=%s", task_id)
