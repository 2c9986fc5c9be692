"""
Schema management for the store: repair, numbered migrations, defaults.

Runs on every open. Stores written before the schema_version table existed
are upgraded in place: each migration inspects the live columns before
altering anything, so applying it to an already-current table is harmless.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, Dict, NamedTuple, Optional, Set

from sqlalchemy import select, insert, update, and_, or_, exists, inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from .clock import format_timestamp, utc_now
from .db import (
    CORE_TABLES, metadata, spaces, folders, lists, tasks, schema_version,
    folder_siblings, list_siblings, next_position, renumber,
)
from .errors import MigrationFailure

logger = logging.getLogger(__name__)

DEFAULT_SPACE_NAME = "My Space"
DEFAULT_FOLDER_NAME = "General"
DEFAULT_SPACE_LIST_NAME = "Inbox"
DEFAULT_FOLDER_LIST_NAME = "Inbox (General)"

def _columns(conn: Connection, table_name: str) -> Set[str]:
    insp = inspect(conn)
    return {c["name"] for c in insp.get_columns(table_name)} if insp.has_table(table_name) else set()

def ensure_columns(conn: Connection, table_name: str, required: Dict[str, str]) -> Set[str]:
    """ADD COLUMN for each missing column; returns the names that were added."""
    cols = _columns(conn, table_name)
    added = set()
    for col, ddl in required.items():
        if col not in cols:
            conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {ddl}"))
            logger.info("Added column %s.%s", table_name, col)
            added.add(col)
    return added

def repair_reserved_names(conn: Connection) -> None:
    """Drop any index/view/trigger squatting on a core table name."""
    for t in CORE_TABLES:
        kinds = conn.execute(
            text("SELECT type FROM sqlite_master WHERE name = :name"), {"name": t.name}
        ).scalars().all()
        for kind in kinds:
            if kind == "table":
                continue
            if kind not in ("index", "view", "trigger"):
                raise MigrationFailure(f"Unexpected {kind} named {t.name!r}")
            conn.execute(text(f'DROP {kind.upper()} IF EXISTS "{t.name}"'))
            logger.warning("Dropped %s occupying reserved table name %r", kind, t.name)

# --- Migrations ---

def _m1_base_tables(conn: Connection) -> None:
    metadata.create_all(conn, tables=list(CORE_TABLES))

def _m2_list_space_id(conn: Connection) -> None:
    ensure_columns(conn, "lists", {
        "space_id": "space_id INTEGER REFERENCES spaces(id) ON DELETE CASCADE",
    })
    # Folder-scoped lists take their space from the folder.
    conn.execute(text(
        "UPDATE lists SET space_id = (SELECT f.space_id FROM folders f WHERE f.id = lists.folder_id) "
        "WHERE folder_id IS NOT NULL"
    ))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_lists_space ON lists(space_id)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_lists_folder ON lists(folder_id)"))

def _m3_task_timer_columns(conn: Connection) -> None:
    ensure_columns(conn, "tasks", {
        "accumulated_seconds": "accumulated_seconds INTEGER NOT NULL DEFAULT 0",
        "running_since": "running_since TEXT",
    })

def _m4_sibling_positions(conn: Connection) -> None:
    if ensure_columns(conn, "folders", {"position": "position INTEGER NOT NULL DEFAULT 0"}):
        n = renumber(conn, folders, ("space_id",))
        logger.info("Backfilled position for %d folders", n)
    if ensure_columns(conn, "lists", {"position": "position INTEGER NOT NULL DEFAULT 0"}):
        n = renumber(conn, lists, ("space_id", "folder_id"))
        logger.info("Backfilled position for %d lists", n)

@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    apply: Callable[[Connection], None]

MIGRATIONS = (
    Migration(1, "base_tables", _m1_base_tables),
    Migration(2, "list_space_id", _m2_list_space_id),
    Migration(3, "task_timer_columns", _m3_task_timer_columns),
    Migration(4, "sibling_positions", _m4_sibling_positions),
)

SCHEMA_VERSION = MIGRATIONS[-1].version

# --- Defaults ---

class Defaults(NamedTuple):
    space_id: int
    folder_id: int
    space_list_id: int
    folder_list_id: int

def _first_id(conn: Connection, stmt) -> Optional[int]:
    r = conn.execute(stmt.limit(1)).first()
    return int(r[0]) if r else None

def ensure_defaults(conn: Connection) -> Defaults:
    """Make sure at least one usable Space -> Folder -> List chain exists."""
    space_id = _first_id(conn, select(spaces.c.id).order_by(spaces.c.id))
    if space_id is None:
        space_id = conn.execute(insert(spaces).values(name=DEFAULT_SPACE_NAME)).inserted_primary_key[0]
        logger.info("Seeded default space id=%s", space_id)
    attach_parentless_lists(conn, space_id)

    folder_id = _first_id(conn, select(folders.c.id).where(folders.c.space_id == space_id).order_by(folders.c.id))
    if folder_id is None:
        folder_id = conn.execute(insert(folders).values(
            space_id=space_id, name=DEFAULT_FOLDER_NAME,
            position=next_position(conn, folders, folder_siblings(space_id)),
        )).inserted_primary_key[0]
        logger.info("Seeded default folder id=%s", folder_id)

    space_list_id = _first_id(conn, select(lists.c.id).where(list_siblings(space_id, None)).order_by(lists.c.id))
    if space_list_id is None:
        space_list_id = conn.execute(insert(lists).values(
            space_id=space_id, folder_id=None, name=DEFAULT_SPACE_LIST_NAME,
            position=next_position(conn, lists, list_siblings(space_id, None)),
        )).inserted_primary_key[0]
        logger.info("Seeded default space list id=%s", space_list_id)

    folder_list_id = _first_id(conn, select(lists.c.id).where(list_siblings(space_id, folder_id)).order_by(lists.c.id))
    if folder_list_id is None:
        folder_list_id = conn.execute(insert(lists).values(
            space_id=space_id, folder_id=folder_id, name=DEFAULT_FOLDER_LIST_NAME,
            position=next_position(conn, lists, list_siblings(space_id, folder_id)),
        )).inserted_primary_key[0]
        logger.info("Seeded default folder list id=%s", folder_list_id)

    return Defaults(int(space_id), int(folder_id), int(space_list_id), int(folder_list_id))

def attach_parentless_lists(conn: Connection, space_id: int) -> None:
    """Lists with no live parent become space-direct lists of `space_id`.

    Covers lists with neither column set and lists whose folder is gone
    (stores written while foreign keys were off).
    """
    folder_gone = and_(
        lists.c.folder_id.is_not(None),
        ~exists().where(folders.c.id == lists.c.folder_id),
    )
    orphan_lists = conn.execute(
        select(lists.c.id).where(or_(
            and_(lists.c.space_id.is_(None), lists.c.folder_id.is_(None)),
            folder_gone,
        )).order_by(lists.c.id)
    ).scalars().all()
    for lid in orphan_lists:
        conn.execute(update(lists).where(lists.c.id == lid).values(
            space_id=space_id, folder_id=None,
            position=next_position(conn, lists, list_siblings(space_id, None)),
        ))
    if orphan_lists:
        logger.info("Attached %d parentless lists to space %s", len(orphan_lists), space_id)

def reattach_tasks(conn: Connection, defaults: Defaults) -> None:
    """Tasks without a list go to the folder default, else the space default."""
    target = defaults.folder_list_id or defaults.space_list_id
    res = conn.execute(
        update(tasks).where(tasks.c.list_id.is_(None)).values(list_id=target)
    )
    if res.rowcount:
        logger.info("Attached %d orphan tasks to list %s", res.rowcount, target)

def migrate(engine: Engine) -> int:
    """Bring the store up to SCHEMA_VERSION and seed defaults; returns the version.

    Everything happens in one transaction: on failure nothing is left half-applied.
    """
    try:
        with engine.begin() as conn:
            repair_reserved_names(conn)
            schema_version.create(conn, checkfirst=True)
            applied = set(conn.execute(select(schema_version.c.version)).scalars().all())
            current = max(applied, default=0)
            if current > SCHEMA_VERSION:
                raise MigrationFailure(
                    f"Store schema is newer than this code (store={current}, code={SCHEMA_VERSION})"
                )
            for m in MIGRATIONS:
                if m.version in applied:
                    continue
                m.apply(conn)
                conn.execute(insert(schema_version).values(
                    version=m.version, name=m.name, applied_at=format_timestamp(utc_now()),
                ))
                logger.info("Applied migration %d (%s)", m.version, m.name)
            reattach_tasks(conn, ensure_defaults(conn))
    except MigrationFailure:
        raise
    except SQLAlchemyError as e:
        raise MigrationFailure(f"Schema setup failed: {e}") from e
    return SCHEMA_VERSION
