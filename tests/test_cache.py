from __future__ import annotations

from datetime import date

import pytest

from dayplanner.domain.enums import MutationState
from dayplanner.domain.errors import MutationStateError, PersistenceError
from dayplanner.services.cache import OptimisticMutation, TaskCache

from fakes import make_task

DAY = date(2024, 3, 5)


def test_upsert_replaces_or_prepends() -> None:
    cache = TaskCache([make_task(1, DAY)])
    cache.upsert(make_task(1, DAY, title="Renamed"))
    cache.upsert(make_task(2, DAY))

    assert [t.id for t in cache.all()] == [2, 1]
    assert cache.get(1).title == "Renamed"


def test_swap_matches_by_identity() -> None:
    cache = TaskCache()
    draft = make_task(None, DAY, title="Draft")
    cache.upsert(draft)

    stored = draft.with_changes(id=7)
    cache.swap(draft, stored)

    assert cache.all() == [stored]


def test_tasks_for_date_and_week() -> None:
    cache = TaskCache([
        make_task(1, date(2024, 3, 4)),
        make_task(2, date(2024, 3, 10)),
        make_task(3, date(2024, 3, 11)),
    ])

    assert [t.id for t in cache.tasks_for_date("2024-03-04T08:00:00")] == [1]
    assert [t.id for t in cache.tasks_for_week(date(2024, 3, 6))] == [1, 2]


def test_mutation_confirms_with_server_result() -> None:
    cache = TaskCache([make_task(1, DAY)])
    updated = make_task(1, DAY, completed=True)
    mutation = OptimisticMutation(cache, speculate=lambda c: c.upsert(updated))

    result = mutation.run(lambda: updated.with_changes(notes="from server"))

    assert mutation.state == MutationState.CONFIRMED
    assert result.notes == "from server"
    assert cache.get(1).notes == "from server"


def test_mutation_rolls_back_on_failure() -> None:
    original = make_task(1, DAY)
    cache = TaskCache([original])
    mutation = OptimisticMutation(cache, speculate=lambda c: c.remove(1))

    def remote():
        raise PersistenceError("offline")

    with pytest.raises(PersistenceError):
        mutation.run(remote)

    assert mutation.state == MutationState.ROLLED_BACK
    assert cache.all() == [original]


def test_mutation_states_are_terminal() -> None:
    cache = TaskCache()
    mutation = OptimisticMutation(cache, speculate=lambda c: None)

    with pytest.raises(MutationStateError):
        mutation.confirm()

    mutation.apply()
    assert mutation.state == MutationState.PENDING
    with pytest.raises(MutationStateError):
        mutation.apply()

    mutation.rollback()
    with pytest.raises(MutationStateError):
        mutation.confirm()
    with pytest.raises(MutationStateError):
        mutation.rollback()
