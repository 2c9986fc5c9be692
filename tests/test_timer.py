# tests/test_timer.py

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import text

from tasktree import format_duration, open_store
from tasktree.clock import parse_timestamp


def _set_running_since(store, task_id: int, value: str) -> None:
    with store.engine.begin() as conn:
        conn.execute(text("UPDATE tasks SET running_since = :v WHERE id = :id"), {"v": value, "id": task_id})


def test_start_twice_keeps_original_start(store, clock) -> None:
    t = store.add_task(1, "focus")
    t0 = clock.now
    started = store.start_timer(t.id)
    clock.advance(30)
    again = store.start_timer(t.id)

    assert started.running_since == t0
    assert again.running_since == t0
    assert again.running is True


def test_stop_accumulates_across_sessions(store, clock) -> None:
    t = store.add_task(1, "Fix bug")
    assert t.accumulated_seconds == 0

    store.start_timer(t.id)
    clock.advance(5)
    after_first = store.stop_timer(t.id)
    assert after_first.accumulated_seconds == 5
    assert after_first.running_since is None

    store.start_timer(t.id)
    clock.advance(3)
    after_second = store.stop_timer(t.id)
    assert after_second.accumulated_seconds == 8
    assert after_second.running_since is None


def test_partial_seconds_round_down(store, clock) -> None:
    t = store.add_task(1, "short")
    store.start_timer(t.id)
    clock.advance(2.9)
    assert store.stop_timer(t.id).accumulated_seconds == 2


def test_stop_when_idle_is_noop(store, clock) -> None:
    t = store.add_task(1, "idle")
    store.start_timer(t.id)
    clock.advance(4)
    store.stop_timer(t.id)
    clock.advance(100)
    assert store.stop_timer(t.id).accumulated_seconds == 4


def test_clock_going_backwards_credits_nothing(store, clock) -> None:
    t = store.add_task(1, "skew")
    store.start_timer(t.id)
    clock.advance(-60)
    assert store.stop_timer(t.id).accumulated_seconds == 0


def test_reset_from_any_state(store, clock) -> None:
    t = store.add_task(1, "reset me")
    store.start_timer(t.id)
    clock.advance(10)
    store.stop_timer(t.id)
    store.start_timer(t.id)
    clock.advance(7)

    running_reset = store.reset_timer(t.id)
    assert running_reset.accumulated_seconds == 0
    assert running_reset.running_since is None

    idle_reset = store.reset_timer(t.id)
    assert idle_reset.accumulated_seconds == 0
    assert idle_reset.running_since is None


def test_running_timer_survives_reopen(db_url, clock) -> None:
    s1 = open_store(db_url, clock=clock)
    t = s1.add_task(1, "long haul")
    s1.start_timer(t.id)
    s1.close()

    clock.advance(90)
    s2 = open_store(db_url, clock=clock)
    try:
        live = s2.get_task(t.id)
        assert live.running is True
        assert live.elapsed_seconds(clock.now) == 90
        assert s2.stop_timer(t.id).accumulated_seconds == 90
    finally:
        s2.close()


def test_elapsed_seconds_for_display(store, clock) -> None:
    t = store.add_task(1, "display")
    store.start_timer(t.id)
    clock.advance(61)
    store.stop_timer(t.id)
    store.start_timer(t.id)
    clock.advance(4)

    task = store.get_task(t.id)
    assert task.accumulated_seconds == 61
    assert task.elapsed_seconds(clock.now) == 65
    assert format_duration(task.elapsed_seconds(clock.now)) == "01:05"


def test_legacy_millisecond_z_timestamp(store, clock) -> None:
    t = store.add_task(1, "from the old app")
    clock.now = datetime(2024, 3, 1, 12, 0, 10, tzinfo=timezone.utc)
    _set_running_since(store, t.id, "2024-03-01T12:00:00.000Z")

    assert store.get_task(t.id).running is True
    assert store.stop_timer(t.id).accumulated_seconds == 10


def test_unparseable_running_since(store, clock) -> None:
    t = store.add_task(1, "garbled")
    _set_running_since(store, t.id, "not a timestamp")
    garbled = store.get_task(t.id)
    assert garbled.running_since is None
    assert garbled.running is False

    stopped = store.stop_timer(t.id)
    assert stopped.accumulated_seconds == 0
    assert stopped.running_since is None

    _set_running_since(store, t.id, "still garbage")
    restarted = store.start_timer(t.id)
    assert restarted.running_since == clock.now


def test_stored_timestamp_is_utc_iso(store, clock) -> None:
    t = store.add_task(1, "iso")
    store.start_timer(t.id)
    with store.engine.connect() as conn:
        raw = conn.execute(text("SELECT running_since FROM tasks WHERE id = :id"), {"id": t.id}).scalar()
    assert parse_timestamp(raw) == clock.now
    assert raw.endswith("+00:00")
