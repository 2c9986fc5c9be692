from __future__ import annotations
from typing import Optional, Sequence

from sqlalchemy import (
    create_engine, event, MetaData, Table, Column, ForeignKey, Index, CheckConstraint,
    Integer, Boolean, String, Text,
    select, update, func, text, and_,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql.elements import ColumnElement

from .config import Settings

def get_engine(settings: Settings) -> Engine:
    """Engine over the SQLite file with FK enforcement and explicit BEGIN/COMMIT.

    pysqlite's own transaction handling never BEGINs before DDL and defers
    BEGIN for DML, so SQLAlchemy is given control of transaction start.
    """
    engine = create_engine(
        settings.database_url,
        future=True,
        pool_pre_ping=True,
        echo=settings.echo_sql,
        connect_args={"timeout": settings.busy_timeout},
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _record):
        dbapi_conn.isolation_level = None
        cur = dbapi_conn.cursor()
        try:
            cur.execute("PRAGMA foreign_keys = ON")
        finally:
            cur.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine

metadata = MetaData()

spaces = Table(
    "spaces", metadata,
    Column("id", Integer, primary_key=True),
    Column("name", Text, nullable=False),
    sqlite_autoincrement=True,
)

folders = Table(
    "folders", metadata,
    Column("id", Integer, primary_key=True),
    Column("space_id", Integer, ForeignKey("spaces.id", ondelete="CASCADE"), nullable=False),
    Column("name", Text, nullable=False),
    Column("position", Integer, nullable=False, server_default=text("0")),
    Index("idx_folders_space", "space_id"),
    sqlite_autoincrement=True,
)

# Either folder_id is NULL (space-direct list) or it names a folder whose
# space_id equals lists.space_id.
lists = Table(
    "lists", metadata,
    Column("id", Integer, primary_key=True),
    Column("space_id", Integer, ForeignKey("spaces.id", ondelete="CASCADE"), nullable=True),
    Column("folder_id", Integer, ForeignKey("folders.id", ondelete="CASCADE"), nullable=True),
    Column("name", Text, nullable=False),
    Column("position", Integer, nullable=False, server_default=text("0")),
    Index("idx_lists_space", "space_id"),
    Index("idx_lists_folder", "folder_id"),
    sqlite_autoincrement=True,
)

tasks = Table(
    "tasks", metadata,
    Column("id", Integer, primary_key=True),
    Column("title", Text, nullable=False),
    Column("done", Boolean, nullable=False, server_default=text("0")),
    Column("list_id", Integer, ForeignKey("lists.id", ondelete="CASCADE"), nullable=True),
    Column("accumulated_seconds", Integer, nullable=False, server_default=text("0")),
    Column("running_since", Text, nullable=True),
    CheckConstraint("accumulated_seconds >= 0", name="ck_tasks_accumulated_nonneg"),
    Index("idx_tasks_list", "list_id"),
    sqlite_autoincrement=True,
)

schema_version = Table(
    "schema_version", metadata,
    Column("version", Integer, primary_key=True),
    Column("name", String, nullable=False),
    Column("applied_at", String, nullable=False),
)

CORE_TABLES = (spaces, folders, lists, tasks)

def list_siblings(space_id: Optional[int], folder_id: Optional[int]) -> ColumnElement[bool]:
    """Filter selecting the sibling group of a list with the given parents."""
    if folder_id is not None:
        return lists.c.folder_id == folder_id
    return and_(lists.c.space_id == space_id, lists.c.folder_id.is_(None))

def folder_siblings(space_id: int) -> ColumnElement[bool]:
    return folders.c.space_id == space_id

def next_position(conn: Connection, table: Table, siblings: ColumnElement[bool]) -> int:
    """Position that appends a row to the end of a sibling group (0 for an empty group)."""
    cur = conn.execute(select(func.max(table.c.position)).where(siblings)).scalar()
    return (int(cur) if cur is not None else -1) + 1

def renumber(conn: Connection, table: Table, group_cols: Sequence[str] = (),
             where: Optional[ColumnElement[bool]] = None) -> int:
    """Rewrite positions as 0..n-1 per group, keeping (position, id) order.

    With all positions equal this ranks by primary key, i.e. insertion order.
    Returns the number of rows touched.
    """
    cols = [table.c[name] for name in group_cols]
    stmt = select(table.c.id, *cols).order_by(*cols, table.c.position, table.c.id)
    if where is not None:
        stmt = stmt.where(where)
    rows = conn.execute(stmt).all()
    last_key: object = object()
    pos = 0
    for r in rows:
        key = tuple(r[1:])
        if key != last_key:
            last_key, pos = key, 0
        conn.execute(update(table).where(table.c.id == r[0]).values(position=pos))
        pos += 1
    return len(rows)
