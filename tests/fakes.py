# tests/fakes.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone


class FakeClock:
    """Deterministic clock for timer tests; advance() instead of sleeping."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 5, 9, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)
