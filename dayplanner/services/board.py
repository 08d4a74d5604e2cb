from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Iterable, Mapping, Protocol, Sequence

from dayplanner.domain.dates import date_key, parse_date_key
from dayplanner.domain.entities import TaskEntity, TaskOrderUpdate

from .session import SessionState

logger = logging.getLogger(__name__)

TASK_PREFIX = "task:"

Snapshot = Mapping[str, tuple[TaskEntity, ...]]
ItemId = str | int


class BatchGateway(Protocol):
    def batch_update_tasks(self, updates: list[TaskOrderUpdate]) -> None: ...


def task_ref(task_id: int) -> str:
    return f"{TASK_PREFIX}{task_id}"


def parse_task_ref(item_id: ItemId | None) -> int | None:
    if item_id is None or isinstance(item_id, bool):
        return None
    if isinstance(item_id, int):
        return item_id
    text = str(item_id)
    if text.startswith(TASK_PREFIX):
        text = text[len(TASK_PREFIX):]
    try:
        return int(text)
    except ValueError:
        return None


def build_buckets(
    tasks: Iterable[TaskEntity],
    dates: Sequence[date],
    project_id: int | None = None,
) -> dict[str, tuple[TaskEntity, ...]]:
    buckets: dict[str, list[TaskEntity]] = {date_key(day): [] for day in dates}
    for task in tasks:
        if project_id is not None and not task.has_project(project_id):
            continue
        bucket = buckets.get(task.key)
        if bucket is not None:
            bucket.append(task)
    return {
        key: tuple(sorted(items, key=lambda task: (task.order, task.id or 0)))
        for key, items in buckets.items()
    }


def find_container(snapshot: Snapshot, item_id: ItemId | None) -> str | None:
    if item_id is None:
        return None
    if isinstance(item_id, str) and item_id in snapshot:
        return item_id
    task_id = parse_task_ref(item_id)
    if task_id is None:
        return None
    for key, tasks in snapshot.items():
        if any(task.id == task_id for task in tasks):
            return key
    return None


def _index_of(tasks: Sequence[TaskEntity], task_id: int) -> int:
    return next((index for index, task in enumerate(tasks) if task.id == task_id), -1)


def _reindex(tasks: Iterable[TaskEntity]) -> tuple[TaskEntity, ...]:
    return tuple(
        task if task.order == index else replace(task, order=index)
        for index, task in enumerate(tasks)
    )


def move_task(snapshot: Snapshot, active_id: ItemId, over_id: ItemId | None) -> Snapshot:
    """Return the snapshot with the active task moved to the hovered position.

    Hovering a task places the active task at that task's index. Hovering a
    bucket key appends it to that bucket. Anything unresolvable is a no-op and
    returns ``snapshot`` itself.
    """
    if over_id is None or active_id == over_id:
        return snapshot
    if isinstance(active_id, str) and active_id in snapshot:
        return snapshot
    task_id = parse_task_ref(active_id)
    if task_id is None:
        return snapshot

    active_key = find_container(snapshot, active_id)
    over_key = find_container(snapshot, over_id)
    if active_key is None or over_key is None:
        return snapshot

    active_items = list(snapshot[active_key])
    active_index = _index_of(active_items, task_id)
    if active_index == -1:
        return snapshot
    over_items = active_items if active_key == over_key else list(snapshot[over_key])

    if isinstance(over_id, str) and over_id in snapshot:
        over_index = len(over_items)
    else:
        over_index = _index_of(over_items, parse_task_ref(over_id))
    over_index = max(0, min(over_index, len(over_items)))

    result = dict(snapshot)
    if active_key == over_key:
        moved = active_items.pop(active_index)
        active_items.insert(over_index, moved)
        result[active_key] = _reindex(active_items)
        return result

    moved = active_items.pop(active_index)
    over_items.insert(over_index, replace(moved, date=parse_date_key(over_key)))
    result[active_key] = _reindex(active_items)
    result[over_key] = _reindex(over_items)
    return result


def diff_snapshots(before: Snapshot, after: Snapshot) -> list[TaskOrderUpdate]:
    """Minimal batch turning ``before`` into ``after``.

    A task is included only when its bucket or its index changed. Tasks that
    changed bucket carry the destination date. Stored order values are not
    compared, so gaps left by deletes do not produce updates.
    """
    origin: dict[int, tuple[str, int]] = {}
    for key, tasks in before.items():
        for index, task in enumerate(tasks):
            origin.setdefault(task.id, (key, index))

    updates: list[TaskOrderUpdate] = []
    seen: set[int] = set()
    keys = list(before) + [key for key in after if key not in before]
    for key in keys:
        for index, task in enumerate(after.get(key, ())):
            if task.id in seen:
                continue
            seen.add(task.id)
            if task.id not in origin:
                logger.warning("Could not find original location for task %s", task.id)
                continue
            origin_key, origin_index = origin[task.id]
            if origin_key != key:
                updates.append(TaskOrderUpdate(id=task.id, order=index, date=key))
            elif origin_index != index:
                updates.append(TaskOrderUpdate(id=task.id, order=index))
    return updates


@dataclass(frozen=True)
class CommitTicket:
    generation: int
    updates: tuple[TaskOrderUpdate, ...]
    before: Snapshot


class BoardState:
    """Visible date buckets plus the state of the drag gesture in progress."""

    def __init__(self, session: SessionState | None = None) -> None:
        self._session = session
        self.buckets: Snapshot = {}
        self.active_id: ItemId | None = None
        self._last_over: ItemId | None = None
        self._drag_origin: Snapshot | None = None
        self._generation = 0
        self._in_flight: dict[int, CommitTicket] = {}

    @property
    def is_dragging(self) -> bool:
        return self._drag_origin is not None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def load(
        self,
        tasks: Iterable[TaskEntity],
        dates: Sequence[date],
        project_id: int | None = None,
    ) -> bool:
        if self.is_dragging:
            logger.debug("Skipping bucket rebuild during drag")
            return False
        self.buckets = build_buckets(tasks, dates, project_id)
        return True

    def find_container(self, item_id: ItemId | None) -> str | None:
        return find_container(self.buckets, item_id)

    def active_task(self) -> TaskEntity | None:
        task_id = parse_task_ref(self.active_id)
        key = self.find_container(self.active_id)
        if task_id is None or key is None:
            return None
        return next((task for task in self.buckets[key] if task.id == task_id), None)

    def start_drag(self, active_id: ItemId) -> None:
        self._generation += 1
        self._drag_origin = dict(self.buckets)
        self.active_id = active_id
        self._last_over = None
        if self._session:
            self._session.dragged_task_id = parse_task_ref(active_id)

    def drag_over(self, over_id: ItemId | None) -> bool:
        if not self.is_dragging or over_id is None:
            return False
        self._last_over = over_id
        if self._session:
            self._session.drag_over_id = str(over_id)
        updated = move_task(self.buckets, self.active_id, over_id)
        if updated is self.buckets:
            return False
        self.buckets = updated
        return True

    def cancel_drag(self) -> None:
        if self._drag_origin is not None:
            logger.info("Dropped outside, reverting to original state")
            self.buckets = self._drag_origin
        self._end_gesture()

    def drop(self, over_id: ItemId | None = None) -> CommitTicket | None:
        if not self.is_dragging:
            return None
        if over_id is not None and over_id != self._last_over:
            self.drag_over(over_id)
        before = self._drag_origin
        updates = diff_snapshots(before, self.buckets)
        self._end_gesture()
        if not updates:
            logger.debug("No changes detected")
            return None
        ticket = CommitTicket(generation=self._generation, updates=tuple(updates), before=before)
        self._in_flight[ticket.generation] = ticket
        return ticket

    def complete_commit(self, ticket: CommitTicket, error: Exception | None = None) -> bool:
        """Settle a commit. Returns ``False`` when the ticket is stale.

        A ticket is stale once a newer drag has started; its outcome no
        longer describes what is on screen.
        """
        self._in_flight.pop(ticket.generation, None)
        if ticket.generation != self._generation:
            logger.info("Ignoring stale commit %s (current %s)", ticket.generation, self._generation)
            return False
        if error is None:
            logger.info("Committed %d task update(s)", len(ticket.updates))
            return True
        logger.error("Error updating tasks: %s", error)
        self.buckets = ticket.before
        if self._session:
            self._session.error("Failed to save changes. Reverting...")
        return True

    def commit(self, gateway: BatchGateway, over_id: ItemId | None = None) -> bool:
        """Drop, persist the batch and settle it. ``True`` when nothing failed."""
        ticket = self.drop(over_id)
        if ticket is None:
            return True
        try:
            gateway.batch_update_tasks(list(ticket.updates))
        except Exception as exc:  # noqa: BLE001
            self.complete_commit(ticket, exc)
            return False
        self.complete_commit(ticket)
        return True

    def _end_gesture(self) -> None:
        self._drag_origin = None
        self.active_id = None
        self._last_over = None
        if self._session:
            self._session.dragged_task_id = None
            self._session.drag_over_id = None
