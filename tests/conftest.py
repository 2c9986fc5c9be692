# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest

from tasktree import Store, open_store

from .fakes import FakeClock


@pytest.fixture()
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'tasks.db'}"


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(db_url: str, clock: FakeClock):
    """
    A freshly opened store on a temp file.

    Opening seeds the default chain: space 1 "My Space", folder 1 "General",
    list 1 "Inbox" (space-direct) and list 2 "Inbox (General)".
    """
    s: Store = open_store(db_url, clock=clock)
    try:
        yield s
    finally:
        s.close()
