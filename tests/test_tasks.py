# tests/test_tasks.py

from __future__ import annotations

import pytest

from tasktree import IntegrityViolation, NotFound, ValidationFailure


def test_task_crud(store) -> None:
    first = store.add_task(1, "Write report")
    second = store.add_task(1, "Call Bob")

    assert first.done is False
    assert first.accumulated_seconds == 0
    assert first.running_since is None and first.running is False
    assert [t.title for t in store.get_tasks(1)] == ["Call Bob", "Write report"]

    assert store.rename_task(first.id, "Write the report").title == "Write the report"
    assert store.toggle_done(first.id).done is True
    assert store.get_task(first.id).done is True
    assert store.toggle_done(first.id).done is False

    store.delete_task(second.id)
    assert [t.id for t in store.get_tasks(1)] == [first.id]
    with pytest.raises(NotFound):
        store.delete_task(second.id)


def test_tasks_are_scoped_to_their_list(store) -> None:
    store.add_task(1, "inbox task")
    store.add_task(2, "general task")
    assert [t.title for t in store.get_tasks(2)] == ["general task"]
    assert store.get_tasks(store.add_list_to_space(1, "Empty").id) == []


def test_add_task_to_missing_list(store) -> None:
    with pytest.raises(IntegrityViolation):
        store.add_task(999, "lost")
    with pytest.raises(NotFound):
        store.get_tasks(999)


def test_blank_titles_rejected(store) -> None:
    with pytest.raises(ValidationFailure):
        store.add_task(1, " ")
    t = store.add_task(1, "ok")
    with pytest.raises(ValidationFailure):
        store.rename_task(t.id, "")
    assert store.get_task(t.id).title == "ok"


def test_missing_task_operations(store) -> None:
    for op in (store.toggle_done, store.get_task, store.start_timer, store.stop_timer, store.reset_timer):
        with pytest.raises(NotFound):
            op(12345)
    with pytest.raises(NotFound):
        store.rename_task(12345, "x")
