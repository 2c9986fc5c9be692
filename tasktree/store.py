from __future__ import annotations
import logging
from typing import Optional

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from .clock import Clock
from .config import Settings, load_settings, normalize_database_url
from .db import get_engine
from .errors import MigrationFailure
from .hierarchy import HierarchyStore
from .schema import migrate
from .tasks import TaskStore
from .timer import TimerStore

logger = logging.getLogger(__name__)

class Store(HierarchyStore, TaskStore, TimerStore):
    """Handle over one opened store. Build it with open_store() and pass it around."""

def open_store(database_url: Optional[str] = None, *, settings: Optional[Settings] = None,
               clock: Optional[Clock] = None) -> Store:
    """Open (creating or upgrading as needed) the store and return a ready handle.

    Safe to call on every start. Raises MigrationFailure if the schema
    cannot be brought up to date; in that case nothing is returned.
    """
    settings = settings or load_settings()
    if database_url is not None:
        settings = settings.model_copy(update={"database_url": normalize_database_url(database_url)})
    try:
        backend = make_url(settings.database_url).get_backend_name()
    except ArgumentError as e:
        raise MigrationFailure(f"Invalid database URL: {e}") from e
    if backend != "sqlite":
        raise MigrationFailure(f"Unsupported database backend {backend!r}; only SQLite is supported")
    engine = get_engine(settings)
    try:
        version = migrate(engine)
    except Exception:
        engine.dispose()
        raise
    logger.info("Store ready url=%s schema_version=%s", engine.url.render_as_string(hide_password=True), version)
    return Store(engine, clock=clock)
