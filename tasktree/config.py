from __future__ import annotations
import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field

ENV_PREFIX = "TASKTREE"
DEFAULT_DATABASE_URL = "sqlite:///./tasks.db"

class Settings(BaseModel):
    database_url: str = DEFAULT_DATABASE_URL
    echo_sql: bool = False
    busy_timeout: float = Field(default=30.0, gt=0)

def _k(suffix: str) -> str:
    return f"{ENV_PREFIX}_{suffix}"

def normalize_database_url(url: str) -> str:
    """Accept either a SQLAlchemy URL or a bare path to the SQLite file."""
    url = url.strip()
    if not url:
        return DEFAULT_DATABASE_URL
    if "://" in url:
        return url
    return f"sqlite:///{os.path.expanduser(url)}"

def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}

def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        v = float(raw)
    except ValueError:
        return default
    return v if v > 0 else default

def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ
    db_url = (env.get(_k("DATABASE_URL")) or env.get("DATABASE_URL") or "").strip()
    return Settings(
        database_url=normalize_database_url(db_url) if db_url else DEFAULT_DATABASE_URL,
        echo_sql=_env_bool(env, _k("ECHO_SQL"), False),
        busy_timeout=_env_float(env, _k("BUSY_TIMEOUT"), 30.0),
    )
