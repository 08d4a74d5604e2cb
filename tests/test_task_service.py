from __future__ import annotations

from datetime import date

import pytest

from dayplanner.domain.entities import ProjectRef, TaskEntity, TaskOrderUpdate
from dayplanner.domain.enums import NotificationLevel
from dayplanner.domain.errors import PersistenceError, TaskNotFoundError, TaskValidationError
from dayplanner.services.session import SessionState
from dayplanner.services.task_service import TaskService

from fakes import FakeProjects, FakeRepo, make_task

DAY = date(2024, 3, 5)


def _service(tasks=None, projects=("Work",), user_id="user-1"):
    repo = FakeRepo(tasks)
    project_repo = FakeProjects(list(projects))
    session = SessionState(user_id=user_id)
    service = TaskService(repo, project_repo, session)
    service.refresh()
    return service, repo, project_repo, session


def test_refresh_scopes_to_signed_in_user() -> None:
    service, repo, _, _ = _service([make_task(1, DAY)])

    assert repo.filters[-1].user_id == "user-1"
    assert [t.id for t in service.tasks] == [1]


def test_validate_requires_title_and_project() -> None:
    with pytest.raises(TaskValidationError, match="Title is required") as title_error:
        TaskService.validate(TaskEntity(id=None, title="  ", date=DAY, projects=(ProjectRef("Work"),)))
    assert title_error.value.field == "title"

    with pytest.raises(TaskValidationError, match="At least one project is required"):
        TaskService.validate(TaskEntity(id=None, title="Write report", date=DAY))


def test_save_task_creates_with_resolved_projects() -> None:
    service, repo, projects, session = _service()
    draft = TaskEntity(
        id=None,
        title=" Gym ",
        date=DAY,
        projects=(ProjectRef("work"), ProjectRef("Health")),
    )

    created = service.save_task(draft)

    assert created.id == 1
    assert created.title == "Gym"
    assert created.user_id == "user-1"
    assert [p.name for p in created.projects] == ["Work", "Health"]
    assert projects.created == ["Health"]
    assert service.tasks == [created]
    assert session.notifications[-1].message == "Task created successfully"


def test_create_failure_rolls_back_cache() -> None:
    existing = make_task(1, DAY, projects=(ProjectRef("Work", 1),))
    service, repo, _, session = _service([existing])
    repo.fail_on.add("create")

    with pytest.raises(PersistenceError):
        service.create_task(TaskEntity(id=None, title="New", date=DAY, projects=(ProjectRef("Work"),)))

    assert service.tasks == [existing]
    assert session.notifications[-1].level == NotificationLevel.ERROR
    assert session.notifications[-1].message.startswith("Failed to create task:")


def test_update_failure_restores_previous_version() -> None:
    original = make_task(1, DAY, projects=(ProjectRef("Work", 1),))
    service, repo, _, session = _service([original])
    repo.fail_on.add("update")

    with pytest.raises(PersistenceError):
        service.update_task(original.with_changes(title="Changed"))

    assert service.get_task(1) == original
    assert session.notifications[-1].message == "Failed to update task: update failed"


def test_delete_failure_restores_task() -> None:
    original = make_task(1, DAY)
    service, repo, _, _ = _service([original])
    repo.fail_on.add("delete")

    with pytest.raises(PersistenceError):
        service.delete_task(1)

    assert service.tasks == [original]


def test_delete_removes_from_cache() -> None:
    service, repo, _, session = _service([make_task(1, DAY), make_task(2, DAY, 1)])

    service.delete_task(1)

    assert [t.id for t in service.tasks] == [2]
    assert repo.calls == [("delete", 1)]
    assert session.notifications[-1].message == "Task deleted successfully"


def test_toggle_completed() -> None:
    service, repo, _, _ = _service([make_task(1, DAY, projects=(ProjectRef("Work", 1),))])

    toggled = service.toggle_completed(1)

    assert toggled.completed
    assert repo.get_task(1).completed
    with pytest.raises(TaskNotFoundError):
        service.toggle_completed(42)


def test_change_missing_task_notifies() -> None:
    service, _, _, session = _service()

    with pytest.raises(TaskNotFoundError):
        service.change_task(5, title="Nope")

    assert session.notifications[-1].message == "Task with ID 5 not found for update"


def test_lookups_outside_cache_are_scoped_to_user() -> None:
    service, repo, _, _ = _service()
    repo.tasks.append(make_task(8, DAY, user_id="user-2"))

    assert service.get_task(8) is None
    with pytest.raises(TaskNotFoundError):
        service.change_task(8, title="Not mine")
    assert repo.calls == []


def test_tasks_for_week_reads_from_cache() -> None:
    service, _, _, _ = _service(
        [make_task(1, date(2024, 3, 4)), make_task(2, date(2024, 3, 10)), make_task(3, date(2024, 3, 11))]
    )

    assert [t.id for t in service.tasks_for_week(DAY)] == [1, 2]


def test_next_order_and_buckets() -> None:
    service, _, _, _ = _service([make_task(1, DAY, 0), make_task(2, DAY, 4), make_task(3, date(2024, 3, 6), 0)])

    assert service.next_order(DAY) == 5
    assert service.next_order(date(2024, 3, 7)) == 0
    buckets = service.buckets([DAY])
    assert [t.id for t in buckets["2024-03-05"]] == [1, 2]


def test_batch_update_passes_user_scope() -> None:
    service, repo, _, _ = _service()
    updates = [TaskOrderUpdate(id=1, order=0, date="2024-03-06")]

    service.batch_update_tasks(updates)

    assert repo.batches == [updates]


def test_create_project_reuses_existing() -> None:
    service, _, projects, _ = _service()

    assert service.create_project(" work ").id == 1
    assert service.create_project("Errands").name == "Errands"
    assert projects.created == ["Errands"]
    with pytest.raises(TaskValidationError):
        service.create_project("  ")
