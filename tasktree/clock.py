from __future__ import annotations
import math
from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]

def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)

def format_timestamp(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()

def parse_timestamp(s: Optional[str]) -> Optional[datetime]:
    """Parse a stored `running_since` value; also accepts the older `...000Z` form.

    Naive values are taken as UTC. Raises ValueError on garbage.
    """
    if s is None:
        return None
    s = s.strip()
    if not s:
        return None
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt

def elapsed_between(since: datetime, now: datetime) -> int:
    """Whole seconds from `since` to `now`, never negative (clock skew)."""
    return max(0, math.floor((now - since).total_seconds()))

def format_duration(seconds: int) -> str:
    s = max(0, int(seconds))
    hh, rem = divmod(s, 3600)
    mm, ss = divmod(rem, 60)
    return f"{hh:02d}:{mm:02d}:{ss:02d}" if hh > 0 else f"{mm:02d}:{ss:02d}"
