"""
Per-task stopwatch.

State lives entirely in the row: `running_since` NULL means idle, a
timestamp means running since then. Nothing ticks in the background; the
live interval is credited on stop (or computed for display by
TaskOut.elapsed_seconds), so a running timer survives a restart.
"""
from __future__ import annotations
import logging

from sqlalchemy import update

from .base import StoreBase
from .clock import elapsed_between, format_timestamp, parse_timestamp
from .db import tasks
from .models import TaskOut, to_task_out

logger = logging.getLogger(__name__)

class TimerStore(StoreBase):
    def start_timer(self, task_id: int) -> TaskOut:
        """Idle -> Running. Starting a running timer keeps the original start."""
        now = format_timestamp(self.clock())
        with self._tx() as conn:
            cur = self._task_row(conn, task_id)
            since = cur["running_since"]
            if since is not None:
                try:
                    parse_timestamp(since)
                    return to_task_out(cur)
                except ValueError:
                    logger.warning("Task %s: replacing unparseable running_since=%r", task_id, since)
            row = conn.execute(
                update(tasks).where(tasks.c.id == task_id).values(running_since=now).returning(tasks)
            ).mappings().one()
        logger.debug("Timer started task=%s", task_id)
        return to_task_out(row)

    def stop_timer(self, task_id: int) -> TaskOut:
        """Running -> Idle, crediting whole elapsed seconds. No-op when idle."""
        now = self.clock()
        with self._tx() as conn:
            cur = self._task_row(conn, task_id)
            if cur["running_since"] is None:
                return to_task_out(cur)
            try:
                since = parse_timestamp(cur["running_since"])
            except ValueError:
                logger.warning("Task %s: unparseable running_since=%r, crediting 0s",
                               task_id, cur["running_since"])
                since = None
            elapsed = elapsed_between(since, now) if since is not None else 0
            row = conn.execute(update(tasks).where(tasks.c.id == task_id).values(
                accumulated_seconds=tasks.c.accumulated_seconds + elapsed,
                running_since=None,
            ).returning(tasks)).mappings().one()
        logger.debug("Timer stopped task=%s elapsed=%ss total=%ss", task_id, elapsed, row["accumulated_seconds"])
        return to_task_out(row)

    def reset_timer(self, task_id: int) -> TaskOut:
        """Force idle with zero accumulated time; a running interval is discarded."""
        with self._tx() as conn:
            self._task_row(conn, task_id)
            row = conn.execute(update(tasks).where(tasks.c.id == task_id).values(
                accumulated_seconds=0, running_since=None,
            ).returning(tasks)).mappings().one()
        logger.debug("Timer reset task=%s", task_id)
        return to_task_out(row)
