# tests/test_repository.py

from __future__ import annotations

import json
from datetime import datetime

import pytest

from dayminder.core.dates import CalendarDay
from dayminder.tasks.capability import LimitedFeature
from dayminder.tasks.errors import LimitExceeded, PersistenceFailure, TagNotFound, TaskNotFound
from dayminder.tasks.repository import TAGS_KEY, TASKS_KEY, TaskRepository
from dayminder.tasks.task_models import (
    OffsetReminder,
    RecurrenceKind,
    ReminderUnit,
    TagDraft,
    TaskDraft,
    TaskUpdate,
)

from .fakes import FakeBlobStore, FakeClock, FakeNotifier


def _draft(title: str = "task", **kwargs) -> TaskDraft:
    kwargs.setdefault("anchor", datetime(2024, 1, 17, 9, 0))
    return TaskDraft(title=title, **kwargs)


def _weekly(title: str = "gym", days: set[int] | None = None) -> TaskDraft:
    return _draft(title, recurrence=RecurrenceKind.WEEKLY, weekly_days=frozenset(days or {1, 3}))


def _stored(blob_store: FakeBlobStore, key: str):
    return json.loads(blob_store.data[key].decode("utf-8"))


# ---- tasks ----


@pytest.mark.asyncio
async def test_add_task_persists_and_schedules(repo: TaskRepository, blob_store: FakeBlobStore, notifier: FakeNotifier) -> None:
    task = await repo.add_task(
        _draft("dentist", reminders=(OffsetReminder(ReminderUnit.MINUTES, 30),))
    )

    assert repo.tasks == [task]
    assert blob_store.writes == [(TASKS_KEY,)]
    assert _stored(blob_store, TASKS_KEY)[0]["title"] == "dentist"
    assert [at for _, at, _ in notifier.scheduled] == [datetime(2024, 1, 17, 9, 0), datetime(2024, 1, 17, 8, 30)]
    assert repo.reminder_handles(task.id) == ["n0", "n1"]


@pytest.mark.asyncio
async def test_add_task_validation_fails_before_any_side_effect(repo: TaskRepository, blob_store: FakeBlobStore) -> None:
    with pytest.raises(ValueError):
        await repo.add_task(_draft("  "))
    with pytest.raises(ValueError):
        await repo.add_task(_draft("x", recurrence=RecurrenceKind.WEEKLY))

    assert repo.tasks == []
    assert blob_store.writes == []


@pytest.mark.asyncio
async def test_free_tier_allows_one_repeating_task(repo: TaskRepository, blob_store: FakeBlobStore) -> None:
    await repo.add_task(_weekly())

    with pytest.raises(LimitExceeded) as err:
        await repo.add_task(_weekly("run"))
    assert err.value.feature is LimitedFeature.RECURRENCE
    assert repo.repeating_task_count() == 1
    assert len(blob_store.writes) == 1

    # One-off tasks are never gated.
    await repo.add_task(_draft("one-off"))
    assert len(repo.tasks) == 2


@pytest.mark.asyncio
async def test_premium_lifts_repeating_limit(repo: TaskRepository) -> None:
    await repo.upgrade_to_premium()
    for i in range(3):
        await repo.add_task(_weekly(f"gym {i}"))
    assert repo.repeating_task_count() == 3
    assert repo.stats().limits.max_repeating_tasks is None


@pytest.mark.asyncio
async def test_monthly_day_selection_limit(repo: TaskRepository) -> None:
    with pytest.raises(LimitExceeded) as err:
        await repo.add_task(
            _draft("rent", recurrence=RecurrenceKind.MONTHLY, monthly_days=frozenset({1, 15}))
        )
    assert err.value.feature is LimitedFeature.MONTHLY_DATES

    task = await repo.add_task(
        _draft("rent", recurrence=RecurrenceKind.MONTHLY, monthly_days=frozenset({1}))
    )
    assert task.monthly_days == frozenset({1})


@pytest.mark.asyncio
async def test_update_into_recurrence_is_gated(repo: TaskRepository) -> None:
    await repo.add_task(_weekly())
    single = await repo.add_task(_draft("single"))

    with pytest.raises(LimitExceeded):
        await repo.update_task(single.id, TaskUpdate(recurrence=RecurrenceKind.YEARLY))
    assert repo.get_task(single.id).recurrence is RecurrenceKind.NONE


@pytest.mark.asyncio
async def test_update_between_repeating_kinds_is_not_gated(repo: TaskRepository) -> None:
    weekly = await repo.add_task(_weekly())
    updated = await repo.update_task(weekly.id, TaskUpdate(recurrence=RecurrenceKind.YEARLY))
    assert updated.recurrence is RecurrenceKind.YEARLY
    assert updated.weekly_days == frozenset()


@pytest.mark.asyncio
async def test_update_replaces_reminders(repo: TaskRepository, notifier: FakeNotifier) -> None:
    task = await repo.add_task(_draft("call mom"))
    old_handles = repo.reminder_handles(task.id)

    updated = await repo.update_task(
        task.id,
        TaskUpdate(title="call dad", anchor=datetime(2024, 1, 18, 19, 0)),
    )

    assert notifier.cancelled == old_handles
    new_handles = repo.reminder_handles(task.id)
    assert new_handles and set(new_handles).isdisjoint(old_handles)
    assert notifier.scheduled[-1][1] == datetime(2024, 1, 18, 19, 0)
    assert notifier.scheduled[-1][2]["body"] == "call dad"
    assert repo.get_task(task.id) is updated


@pytest.mark.asyncio
async def test_delete_task_cancels_reminders(repo: TaskRepository, notifier: FakeNotifier, blob_store: FakeBlobStore) -> None:
    task = await repo.add_task(_draft())
    handles = repo.reminder_handles(task.id)

    await repo.delete_task(task.id)

    assert repo.tasks == []
    assert notifier.cancelled == handles
    assert _stored(blob_store, TASKS_KEY) == []


@pytest.mark.asyncio
async def test_unknown_ids_raise_not_found(repo: TaskRepository) -> None:
    with pytest.raises(TaskNotFound):
        await repo.delete_task("missing")
    with pytest.raises(TaskNotFound):
        await repo.update_task("missing", TaskUpdate(title="x"))
    with pytest.raises(TaskNotFound):
        await repo.toggle_task_complete("missing", CalendarDay(2024, 1, 15))
    with pytest.raises(TagNotFound):
        await repo.delete_tag("missing")
    with pytest.raises(TagNotFound):
        await repo.add_task(_draft(tag_id="missing"))


@pytest.mark.asyncio
async def test_toggle_complete_is_persisted_per_day(repo: TaskRepository, blob_store: FakeBlobStore) -> None:
    task = await repo.add_task(_weekly())
    wednesday = CalendarDay(2024, 1, 17)

    assert await repo.toggle_task_complete(task.id, wednesday) is True
    assert repo.is_task_completed_on(task.id, datetime(2024, 1, 17, 21, 0))
    assert not repo.is_task_completed_on(task, CalendarDay(2024, 1, 24))
    assert _stored(blob_store, TASKS_KEY)[0]["completed_days"] == ["2024-01-17"]

    assert await repo.toggle_task_complete(task.id, wednesday) is False
    assert _stored(blob_store, TASKS_KEY)[0]["completed_days"] == []


@pytest.mark.asyncio
async def test_notifier_failure_does_not_block_mutation(repo: TaskRepository, notifier: FakeNotifier) -> None:
    notifier.fail = True
    task = await repo.add_task(_draft())
    assert repo.tasks == [task]
    assert repo.reminder_handles(task.id) == []


@pytest.mark.asyncio
async def test_persistence_failure_leaves_memory_updated(repo: TaskRepository, blob_store: FakeBlobStore) -> None:
    blob_store.fail_writes = True

    with pytest.raises(PersistenceFailure):
        await repo.add_task(_draft("unsaved"))

    assert [t.title for t in repo.tasks] == ["unsaved"]
    assert TASKS_KEY not in blob_store.data


# ---- tags ----


@pytest.mark.asyncio
async def test_free_tier_tag_limit(repo: TaskRepository, blob_store: FakeBlobStore) -> None:
    for name in ("work", "home", "health"):
        await repo.add_tag(TagDraft(name))

    with pytest.raises(LimitExceeded) as err:
        await repo.add_tag(TagDraft("fun"))
    assert err.value.feature is LimitedFeature.TAG
    assert len(repo.tags) == 3
    assert blob_store.writes == [(TAGS_KEY,)] * 3


@pytest.mark.asyncio
async def test_update_tag(repo: TaskRepository) -> None:
    tag = await repo.add_tag(TagDraft("work", 1))
    updated = await repo.update_tag(tag.id, name=" office ", color_index=4)
    assert (updated.name, updated.color_index) == ("office", 4)

    with pytest.raises(ValueError):
        await repo.update_tag(tag.id, color_index=99)


@pytest.mark.asyncio
async def test_delete_tag_clears_tasks_in_one_write(repo: TaskRepository, blob_store: FakeBlobStore) -> None:
    await repo.upgrade_to_premium()
    work = await repo.add_tag(TagDraft("work"))
    home = await repo.add_tag(TagDraft("home"))
    a = await repo.add_task(_draft("a", tag_id=work.id))
    b = await repo.add_task(
        _draft("b", recurrence=RecurrenceKind.WEEKLY, weekly_days=frozenset({2}), tag_id=work.id)
    )
    c = await repo.add_task(_draft("c", tag_id=home.id))
    blob_store.writes.clear()

    cleared = await repo.delete_tag(work.id)

    assert cleared == 2
    assert blob_store.writes == [(TAGS_KEY, TASKS_KEY)]
    assert [t.id for t in repo.tags] == [home.id]
    assert repo.get_task(a.id).tag_id is None
    assert repo.get_task(b.id).tag_id is None
    assert repo.get_task(c.id).tag_id == home.id
    stored_tags = {t["tag_id"] for t in _stored(blob_store, TASKS_KEY)}
    assert work.id not in stored_tags


# ---- lifecycle ----


@pytest.mark.asyncio
async def test_load_restores_collections_and_reschedules(blob_store: FakeBlobStore, clock: FakeClock) -> None:
    first = TaskRepository(blob_store, FakeNotifier(), clock=clock.now)
    await first.upgrade_to_premium()
    tag = await first.add_tag(TagDraft("work"))
    task = await first.add_task(_weekly("gym"))
    await first.toggle_task_complete(task.id, CalendarDay(2024, 1, 15))

    notifier = FakeNotifier()
    second = TaskRepository(blob_store, notifier, clock=clock.now)
    await second.load()

    assert second.is_premium is True
    assert [t.id for t in second.tags] == [tag.id]
    loaded = second.get_task(task.id)
    assert loaded.weekly_days == frozenset({1, 3})
    assert second.is_task_completed_on(loaded, CalendarDay(2024, 1, 15))
    assert notifier.scheduled
    assert second.reminder_handles(task.id)


@pytest.mark.asyncio
async def test_load_tolerates_corrupt_and_missing_data(notifier: FakeNotifier, clock: FakeClock) -> None:
    good = {
        "id": "ok",
        "title": "ok",
        "anchor": "2024-01-20T10:00:00",
        "recurrence": "none",
        "created_at": "2024-01-01T00:00:00",
    }
    store = FakeBlobStore(
        {
            TASKS_KEY: json.dumps([good, {"title": "no id"}, "junk"]).encode("utf-8"),
            TAGS_KEY: b"{not json",
        }
    )
    repo = TaskRepository(store, notifier, clock=clock.now)
    await repo.load()

    assert [t.id for t in repo.tasks] == ["ok"]
    assert repo.tags == []
    assert repo.is_premium is False


@pytest.mark.asyncio
async def test_clear_all_data(repo: TaskRepository, blob_store: FakeBlobStore, notifier: FakeNotifier) -> None:
    await repo.upgrade_to_premium()
    await repo.add_tag(TagDraft("work"))
    task = await repo.add_task(_draft())
    handles = repo.reminder_handles(task.id)

    await repo.clear_all_data()

    assert repo.tasks == [] and repo.tags == []
    assert repo.is_premium is False
    assert notifier.cancelled == handles
    assert blob_store.data == {}
    assert blob_store.removed == [("tasks", "tags", "is_premium")]


@pytest.mark.asyncio
async def test_clear_all_data_failure_raises(repo: TaskRepository, blob_store: FakeBlobStore) -> None:
    await repo.add_task(_draft())
    blob_store.fail_writes = True
    with pytest.raises(PersistenceFailure):
        await repo.clear_all_data()
    assert repo.tasks == []


@pytest.mark.asyncio
async def test_load_skips_bad_nested_entries_but_keeps_the_task(notifier: FakeNotifier, clock: FakeClock) -> None:
    raw = {
        "id": "keep",
        "title": "dentist",
        "anchor": "2024-01-20T10:00:00",
        "recurrence": "none",
        "created_at": "2024-01-01T00:00:00",
        "reminders": [{"type": "weeks", "value": 1}, {"type": "minutes", "value": 10}, "junk"],
        "completed_days": ["not-a-day", "2024-01-15"],
    }
    store = FakeBlobStore({TASKS_KEY: json.dumps([raw]).encode("utf-8")})
    repo = TaskRepository(store, notifier, clock=clock.now)
    await repo.load()

    (task,) = repo.tasks
    assert task.id == "keep"
    assert task.reminders == (OffsetReminder(ReminderUnit.MINUTES, 10),)
    assert task.completed_days == {CalendarDay(2024, 1, 15)}
    assert [at for _, at, _ in notifier.scheduled] == [datetime(2024, 1, 20, 10, 0), datetime(2024, 1, 20, 9, 50)]

    # The next write keeps the task rather than dropping it.
    await repo.toggle_task_complete("keep", CalendarDay(2024, 1, 16))
    assert [t["id"] for t in _stored(store, TASKS_KEY)] == ["keep"]


@pytest.mark.asyncio
async def test_refresh_reminders_plans_the_following_occurrence(repo: TaskRepository, notifier: FakeNotifier, clock: FakeClock) -> None:
    task = await repo.add_task(
        _draft(
            "standup",
            anchor=datetime(2024, 1, 15, 9, 0),
            recurrence=RecurrenceKind.WEEKLY,
            weekly_days=frozenset({1}),
            reminders=(OffsetReminder(ReminderUnit.MINUTES, 10),),
        )
    )
    assert repo.reminder_handles(task.id) == ["n0", "n1"]

    clock.advance(hours=1, minutes=1)
    await repo.refresh_reminders(task.id)

    assert notifier.cancelled == ["n0", "n1"]
    assert repo.reminder_handles(task.id) == ["n2", "n3"]
    assert [at for _, at, _ in notifier.scheduled[2:]] == [datetime(2024, 1, 22, 9, 0), datetime(2024, 1, 22, 8, 50)]

    await repo.refresh_reminders("gone")
    assert len(notifier.scheduled) == 4
