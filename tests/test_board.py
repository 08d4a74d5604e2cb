from __future__ import annotations

from datetime import date

from dayplanner.domain.entities import ProjectRef, TaskOrderUpdate
from dayplanner.domain.enums import NotificationLevel
from dayplanner.domain.errors import PersistenceError
from dayplanner.services.board import (
    BoardState,
    build_buckets,
    diff_snapshots,
    find_container,
    move_task,
)
from dayplanner.services.session import SessionState

from fakes import make_task

MON = date(2024, 3, 4)
TUE = date(2024, 3, 5)
WED = date(2024, 3, 6)
DAYS = [MON, TUE, WED]


class Gateway:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.batches: list[list[TaskOrderUpdate]] = []

    def batch_update_tasks(self, updates: list[TaskOrderUpdate]) -> None:
        self.batches.append(updates)
        if self.error:
            raise self.error


def _board(tasks, session: SessionState | None = None) -> BoardState:
    board = BoardState(session)
    board.load(tasks, DAYS)
    return board


def test_build_buckets_sorts_and_filters() -> None:
    work = ProjectRef(id=1, name="Work")
    tasks = [
        make_task(1, MON, 2),
        make_task(2, MON, 0, projects=(work,)),
        make_task(3, TUE, 0),
        make_task(4, date(2024, 3, 20), 0),
    ]

    buckets = build_buckets(tasks, DAYS)
    assert list(buckets) == ["2024-03-04", "2024-03-05", "2024-03-06"]
    assert [t.id for t in buckets["2024-03-04"]] == [2, 1]
    assert buckets["2024-03-06"] == ()

    filtered = build_buckets(tasks, DAYS, project_id=1)
    assert [t.id for t in filtered["2024-03-04"]] == [2]
    assert filtered["2024-03-05"] == ()


def test_find_container() -> None:
    buckets = build_buckets([make_task(1, MON), make_task(2, TUE)], DAYS)
    assert find_container(buckets, "2024-03-06") == "2024-03-06"
    assert find_container(buckets, "task:2") == "2024-03-05"
    assert find_container(buckets, 1) == "2024-03-04"
    assert find_container(buckets, "task:99") is None
    assert find_container(buckets, None) is None


def test_reorder_within_bucket_emits_order_only() -> None:
    board = _board([make_task(1, MON, 0), make_task(2, MON, 1), make_task(3, MON, 2)])
    gateway = Gateway()

    board.start_drag("task:3")
    assert board.drag_over("task:1")
    assert [t.id for t in board.buckets["2024-03-04"]] == [3, 1, 2]

    assert board.commit(gateway, "task:1")
    assert gateway.batches == [[
        TaskOrderUpdate(id=3, order=0),
        TaskOrderUpdate(id=1, order=1),
        TaskOrderUpdate(id=2, order=2),
    ]]


def test_moving_down_one_slot_sends_two_updates() -> None:
    board = _board([make_task(1, MON, 0), make_task(2, MON, 1), make_task(3, MON, 2)])
    gateway = Gateway()

    board.start_drag("task:1")
    board.drag_over("task:2")
    board.commit(gateway)

    assert [(t.id, t.order) for t in board.buckets["2024-03-04"]] == [(2, 0), (1, 1), (3, 2)]
    assert gateway.batches == [[TaskOrderUpdate(id=2, order=0), TaskOrderUpdate(id=1, order=1)]]


def test_move_across_buckets_carries_date() -> None:
    board = _board([make_task(1, MON, 0), make_task(2, MON, 1), make_task(3, TUE, 0)])
    gateway = Gateway()

    board.start_drag("task:1")
    board.drag_over("task:3")
    assert board.commit(gateway)

    assert [t.id for t in board.buckets["2024-03-04"]] == [2]
    assert [t.id for t in board.buckets["2024-03-05"]] == [1, 3]
    assert board.buckets["2024-03-05"][0].date == TUE
    assert gateway.batches == [[
        TaskOrderUpdate(id=2, order=0),
        TaskOrderUpdate(id=1, order=0, date="2024-03-05"),
        TaskOrderUpdate(id=3, order=1),
    ]]


def test_drop_on_empty_bucket_appends() -> None:
    board = _board([make_task(1, MON, 0)])
    gateway = Gateway()

    board.start_drag("task:1")
    assert board.commit(gateway, "2024-03-06")

    assert board.buckets["2024-03-04"] == ()
    assert gateway.batches == [[TaskOrderUpdate(id=1, order=0, date="2024-03-06")]]


def test_only_changed_tasks_are_sent() -> None:
    board = _board([make_task(1, MON, 0), make_task(2, MON, 1), make_task(3, MON, 2), make_task(4, TUE, 0)])
    gateway = Gateway()

    board.start_drag("task:3")
    board.commit(gateway, "2024-03-06")

    assert gateway.batches == [[TaskOrderUpdate(id=3, order=0, date="2024-03-06")]]


def test_gapped_orders_only_send_tasks_whose_position_changed() -> None:
    board = _board([make_task(1, MON, 0), make_task(2, MON, 5), make_task(3, TUE, 0)])
    gateway = Gateway()

    board.start_drag("task:3")
    board.commit(gateway, "2024-03-04")

    assert gateway.batches == [[TaskOrderUpdate(id=3, order=2, date="2024-03-04")]]


def test_dragging_back_to_start_with_gapped_orders_sends_nothing() -> None:
    board = _board([make_task(1, MON, 0), make_task(2, MON, 1), make_task(3, MON, 3)])
    gateway = Gateway()

    board.start_drag("task:3")
    board.drag_over("task:2")
    board.drag_over("task:1")
    board.drag_over("task:2")
    board.drag_over("2024-03-04")
    assert [t.id for t in board.buckets["2024-03-04"]] == [1, 2, 3]

    assert board.commit(gateway)
    assert gateway.batches == []
    assert board.in_flight == 0


def test_drop_in_place_sends_nothing() -> None:
    board = _board([make_task(1, MON, 0), make_task(2, MON, 1)])
    gateway = Gateway()

    board.start_drag("task:1")
    assert board.drop("task:1") is None
    assert not board.is_dragging

    board.start_drag("task:2")
    assert board.commit(gateway, "task:2")
    assert gateway.batches == []


def test_move_task_keeps_untouched_buckets() -> None:
    buckets = build_buckets([make_task(1, MON, 0), make_task(2, MON, 1), make_task(3, TUE, 0)], DAYS)

    moved = move_task(buckets, "task:2", "task:1")
    assert moved["2024-03-05"] is buckets["2024-03-05"]
    assert moved["2024-03-06"] is buckets["2024-03-06"]
    assert diff_snapshots(buckets, buckets) == []

    assert move_task(buckets, "task:1", "task:1") is buckets
    assert move_task(buckets, "task:1", "task:404") is buckets
    assert move_task(buckets, "2024-03-04", "task:3") is buckets


def test_failed_commit_reverts_and_notifies() -> None:
    session = SessionState()
    board = _board([make_task(1, MON, 0), make_task(2, TUE, 0)], session)
    original = dict(board.buckets)
    gateway = Gateway(PersistenceError("network down"))

    board.start_drag("task:1")
    board.drag_over("task:2")
    assert not board.commit(gateway)

    assert board.buckets == original
    assert session.notifications[-1].level == NotificationLevel.ERROR
    assert session.notifications[-1].message == "Failed to save changes. Reverting..."
    assert session.dragged_task_id is None


def test_cancel_drag_restores_origin() -> None:
    board = _board([make_task(1, MON, 0), make_task(2, TUE, 0)])
    original = dict(board.buckets)

    board.start_drag("task:1")
    board.drag_over("2024-03-06")
    assert board.buckets != original

    board.cancel_drag()
    assert board.buckets == original
    assert not board.is_dragging


def test_load_is_ignored_while_dragging() -> None:
    board = _board([make_task(1, MON, 0)])
    board.start_drag("task:1")

    assert not board.load([make_task(1, MON, 0), make_task(2, MON, 1)], DAYS)
    assert [t.id for t in board.buckets["2024-03-04"]] == [1]

    board.cancel_drag()
    assert board.load([make_task(1, MON, 0), make_task(2, MON, 1)], DAYS)
    assert [t.id for t in board.buckets["2024-03-04"]] == [1, 2]


def test_stale_commit_failure_does_not_clobber_newer_drag() -> None:
    session = SessionState()
    board = _board([make_task(1, MON, 0), make_task(2, TUE, 0)], session)

    board.start_drag("task:1")
    first = board.drop("2024-03-06")
    assert first is not None
    after_first = dict(board.buckets)

    board.start_drag("task:2")
    second = board.drop("2024-03-06")
    assert board.in_flight == 2

    assert not board.complete_commit(first, PersistenceError("late failure"))
    assert board.buckets != first.before
    assert not session.notifications

    assert board.complete_commit(second)
    assert board.in_flight == 0
    assert [t.id for t in board.buckets["2024-03-06"]] == [1, 2]
    assert after_first["2024-03-06"][0].id == 1


def test_active_task_during_drag() -> None:
    session = SessionState()
    board = _board([make_task(1, MON, 0)], session)
    board.start_drag("task:1")

    assert board.active_task().id == 1
    assert session.dragged_task_id == 1
    board.drag_over("2024-03-05")
    assert session.drag_over_id == "2024-03-05"
    assert board.find_container("task:1") == "2024-03-05"
