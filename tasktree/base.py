from __future__ import annotations
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import select, Table
from sqlalchemy.engine import Connection, Engine, RowMapping
from sqlalchemy.exc import IntegrityError

from .clock import Clock, utc_now
from .db import spaces, folders, lists, tasks
from .errors import IntegrityViolation, NotFound, ValidationFailure

def require_name(value: object, what: str = "Name") -> str:
    """Reject blank names. The value is returned unchanged (not trimmed)."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailure(f"{what} is empty")
    return value

class StoreBase:
    def __init__(self, engine: Engine, *, clock: Optional[Clock] = None) -> None:
        self.engine = engine
        self.clock: Clock = clock or utc_now

    @contextmanager
    def _tx(self) -> Iterator[Connection]:
        try:
            with self.engine.begin() as conn:
                yield conn
        except IntegrityError as e:
            raise IntegrityViolation(str(e.orig)) from e

    @contextmanager
    def _read(self) -> Iterator[Connection]:
        with self.engine.connect() as conn:
            yield conn

    @staticmethod
    def _row(conn: Connection, table: Table, ident: int, kind: str) -> RowMapping:
        r = conn.execute(select(table).where(table.c.id == ident)).mappings().first()
        if r is None:
            raise NotFound(kind, ident)
        return r

    def _space_row(self, conn, space_id: int): return self._row(conn, spaces, space_id, "Space")
    def _folder_row(self, conn, folder_id: int): return self._row(conn, folders, folder_id, "Folder")
    def _list_row(self, conn, list_id: int): return self._row(conn, lists, list_id, "List")
    def _task_row(self, conn, task_id: int): return self._row(conn, tasks, task_id, "Task")

    def close(self) -> None:
        self.engine.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
