# src/dayminder/tasks/repository.py

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from ..core.dates import CalendarDay
from ..core.ports import BlobStore, NotificationScheduler
from . import ledger
from .capability import (
    LimitedFeature,
    Limits,
    can_add_recurring_task,
    can_add_tag,
    can_select_monthly_days,
    limits_for,
)
from .errors import LimitExceeded, PersistenceFailure, TagNotFound, TaskNotFound
from .recurrence import tasks_due_on
from .reminders import plan_reminders
from .task_models import (
    RecurrenceKind,
    Tag,
    TagDraft,
    Task,
    TaskDraft,
    TaskUpdate,
    UNSET,
    new_id,
    validate_tag_fields,
)

logger = logging.getLogger(__name__)

TASKS_KEY = "tasks"
TAGS_KEY = "tags"
PREMIUM_KEY = "is_premium"
ALL_KEYS = (TASKS_KEY, TAGS_KEY, PREMIUM_KEY)


@dataclass(frozen=True, slots=True)
class RepositoryStats:
    total_tasks: int
    repeating_tasks: int
    tags: int
    is_premium: bool
    limits: Limits


class TaskRepository:
    """
    Authoritative in-memory task/tag collections.

    Every mutation:
    - validates input and consults the capability gate first,
    - updates memory and (re)schedules reminders,
    - persists the *entire* affected collection(s) before returning.

    Callers must await one mutation before issuing the next.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        notifier: NotificationScheduler,
        *,
        is_premium: bool = False,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = blob_store
        self._notifier = notifier
        self._clock = clock
        self._tasks: list[Task] = []
        self._tags: list[Tag] = []
        self._is_premium = is_premium
        self._handles: dict[str, list[str]] = {}

    # ---- read side ----

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks)

    @property
    def tags(self) -> list[Tag]:
        return list(self._tags)

    @property
    def is_premium(self) -> bool:
        return self._is_premium

    @property
    def limits(self) -> Limits:
        return limits_for(self._is_premium)

    def get_task(self, task_id: str) -> Task:
        for task in self._tasks:
            if task.id == task_id:
                return task
        raise TaskNotFound(task_id)

    def get_tag(self, tag_id: str) -> Tag:
        for tag in self._tags:
            if tag.id == tag_id:
                return tag
        raise TagNotFound(tag_id)

    def find_tag(self, tag_id: str | None) -> Tag | None:
        if not tag_id:
            return None
        return next((t for t in self._tags if t.id == tag_id), None)

    def repeating_task_count(self) -> int:
        return sum(1 for t in self._tasks if t.is_repeating)

    def reminder_handles(self, task_id: str) -> list[str]:
        return list(self._handles.get(task_id, ()))

    def stats(self) -> RepositoryStats:
        return RepositoryStats(
            total_tasks=len(self._tasks),
            repeating_tasks=self.repeating_task_count(),
            tags=len(self._tags),
            is_premium=self._is_premium,
            limits=self.limits,
        )

    def tasks_due_on(self, day: CalendarDay | date | datetime) -> list[Task]:
        return tasks_due_on(self._tasks, day)

    def is_task_completed_on(self, task: Task | str, day: CalendarDay | date | datetime) -> bool:
        if isinstance(task, str):
            task = self.get_task(task)
        return ledger.is_completed(task, day)

    # ---- lifecycle ----

    async def load(self) -> None:
        """Load all collections, then re-plan reminders for every task."""
        raw_tasks = await self._load_json(TASKS_KEY, default=[])
        raw_tags = await self._load_json(TAGS_KEY, default=[])
        raw_premium = await self._load_json(PREMIUM_KEY, default=False)

        self._tasks = self._decode_items(raw_tasks, Task.from_dict, "task")
        self._tags = self._decode_items(raw_tags, Tag.from_dict, "tag")
        self._is_premium = bool(raw_premium)

        for task in self._tasks:
            await self._schedule_task(task)

        logger.info(
            "Repository loaded tasks=%d tags=%d premium=%s",
            len(self._tasks),
            len(self._tags),
            self._is_premium,
        )

    async def _load_json(self, key: str, *, default: Any) -> Any:
        try:
            data = await self._store.get(key)
        except Exception:
            logger.exception("Failed to read %s from blob store", key)
            return default
        if data is None:
            return default
        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Stored %s is not valid JSON; starting empty.", key)
            return default

    @staticmethod
    def _decode_items(raw: Any, decode: Callable[[dict[str, Any]], Any], what: str) -> list[Any]:
        if not isinstance(raw, list):
            logger.warning("Stored %s collection is not a list; ignoring.", what)
            return []
        out = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            try:
                out.append(decode(item))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed %s record: %r", what, item)
        return out

    # ---- persistence ----

    @staticmethod
    def _encode(value: Any) -> bytes:
        return json.dumps(value, ensure_ascii=False).encode("utf-8")

    def _serialized(self, key: str) -> bytes:
        if key == TASKS_KEY:
            return self._encode([t.to_dict() for t in self._tasks])
        if key == TAGS_KEY:
            return self._encode([t.to_dict() for t in self._tags])
        return self._encode(self._is_premium)

    async def _persist(self, *keys: str) -> None:
        items = {key: self._serialized(key) for key in keys}
        try:
            if len(items) == 1:
                ((key, value),) = items.items()
                await self._store.set(key, value)
            else:
                await self._store.set_many(items)
        except Exception as exc:
            logger.exception("Persisting %s failed", ", ".join(keys))
            raise PersistenceFailure(f"could not save {', '.join(keys)}") from exc

    # ---- reminders ----

    async def _schedule_task(self, task: Task) -> None:
        handles: list[str] = []
        for planned in plan_reminders(task, self._clock()):
            try:
                handles.append(await self._notifier.schedule(planned.at, planned.payload()))
            except Exception:
                logger.exception("Scheduling reminder failed task=%s at=%s", task.id, planned.at)
        self._handles[task.id] = handles
        logger.debug("Task %s reminders scheduled: %d", task.id, len(handles))

    async def _cancel_task_reminders(self, task_id: str) -> None:
        handles = self._handles.pop(task_id, [])
        if not handles:
            return
        try:
            await self._notifier.cancel_many(handles)
        except Exception:
            logger.exception("Cancelling reminders failed task=%s", task_id)

    # ---- capability checks ----

    def _check_monthly_days(self, recurrence: RecurrenceKind, monthly_days: Iterable[int]) -> None:
        if recurrence != RecurrenceKind.MONTHLY:
            return
        limit = self.limits.max_monthly_days
        if limit is not None and not can_select_monthly_days(
            self._is_premium, len(set(monthly_days)), limit
        ):
            raise LimitExceeded(LimitedFeature.MONTHLY_DATES)

    def _check_recurring(self) -> None:
        limit = self.limits.max_repeating_tasks
        if limit is not None and not can_add_recurring_task(
            self._is_premium, self.repeating_task_count(), limit
        ):
            raise LimitExceeded(LimitedFeature.RECURRENCE)

    def _check_tag_ref(self, tag_id: str | None) -> None:
        if tag_id is not None:
            self.get_tag(tag_id)

    # ---- task mutations ----

    async def add_task(self, draft: TaskDraft) -> Task:
        draft.validate()
        if draft.recurrence != RecurrenceKind.NONE:
            self._check_recurring()
        self._check_monthly_days(draft.recurrence, draft.monthly_days)
        self._check_tag_ref(draft.tag_id)

        task = draft.build(task_id=new_id(), created_at=self._clock())
        await self._schedule_task(task)
        self._tasks.append(task)
        logger.info("Task added id=%s recurrence=%s", task.id, task.recurrence.value)

        await self._persist(TASKS_KEY)
        return task

    async def update_task(self, task_id: str, update: TaskUpdate) -> Task:
        index, old = self._task_index(task_id)
        updated = update.apply(old)

        if old.recurrence == RecurrenceKind.NONE and updated.recurrence != RecurrenceKind.NONE:
            self._check_recurring()
        if update.recurrence is not UNSET or update.monthly_days is not UNSET:
            self._check_monthly_days(updated.recurrence, updated.monthly_days)
        if update.tag_id is not UNSET:
            self._check_tag_ref(updated.tag_id)

        await self._cancel_task_reminders(task_id)
        self._tasks[index] = updated
        await self._schedule_task(updated)
        logger.info("Task updated id=%s", task_id)

        await self._persist(TASKS_KEY)
        return updated

    async def delete_task(self, task_id: str) -> None:
        index, _ = self._task_index(task_id)
        await self._cancel_task_reminders(task_id)
        del self._tasks[index]
        logger.info("Task deleted id=%s", task_id)

        await self._persist(TASKS_KEY)

    async def refresh_reminders(self, task_id: str) -> None:
        """Plan reminders for the task's next occurrence again (after its start alarm fired)."""
        try:
            task = self.get_task(task_id)
        except TaskNotFound:
            logger.debug("Refresh skipped, task gone id=%s", task_id)
            return
        await self._cancel_task_reminders(task_id)
        await self._schedule_task(task)

    async def toggle_task_complete(self, task_id: str, day: CalendarDay | date | datetime) -> bool:
        task = self.get_task(task_id)
        is_completed = ledger.toggle(task, day)
        logger.info(
            "Task %s %s on %s",
            task_id,
            "completed" if is_completed else "reopened",
            CalendarDay.of(day),
        )

        await self._persist(TASKS_KEY)
        return is_completed

    def _task_index(self, task_id: str) -> tuple[int, Task]:
        for i, task in enumerate(self._tasks):
            if task.id == task_id:
                return i, task
        raise TaskNotFound(task_id)

    # ---- tag mutations ----

    async def add_tag(self, draft: TagDraft) -> Tag:
        draft.validate()
        limit = self.limits.max_tags
        if limit is not None and not can_add_tag(self._is_premium, len(self._tags), limit):
            raise LimitExceeded(LimitedFeature.TAG)

        tag = Tag(
            id=new_id(),
            name=draft.name.strip(),
            color_index=int(draft.color_index),
            created_at=self._clock(),
        )
        self._tags.append(tag)
        logger.info("Tag added id=%s name=%s", tag.id, tag.name)

        await self._persist(TAGS_KEY)
        return tag

    async def update_tag(
        self,
        tag_id: str,
        *,
        name: str | None = None,
        color_index: int | None = None,
    ) -> Tag:
        tag = self.get_tag(tag_id)
        new_name = tag.name if name is None else name
        new_color = tag.color_index if color_index is None else int(color_index)
        validate_tag_fields(name=new_name, color_index=new_color)

        tag.name = new_name.strip()
        tag.color_index = new_color
        logger.info("Tag updated id=%s", tag_id)

        await self._persist(TAGS_KEY)
        return tag

    async def delete_tag(self, tag_id: str) -> int:
        """Delete a tag and clear it from every task; returns how many tasks were cleared."""
        tag = self.get_tag(tag_id)
        self._tags.remove(tag)

        cleared = 0
        for task in self._tasks:
            if task.tag_id == tag_id:
                task.tag_id = None
                cleared += 1
        logger.info("Tag deleted id=%s (cleared from %d tasks)", tag_id, cleared)

        await self._persist(TAGS_KEY, TASKS_KEY)
        return cleared

    # ---- account ----

    async def upgrade_to_premium(self) -> None:
        self._is_premium = True
        logger.info("Upgraded to premium")
        await self._persist(PREMIUM_KEY)

    async def clear_all_data(self) -> None:
        for task_id in list(self._handles):
            await self._cancel_task_reminders(task_id)
        self._tasks = []
        self._tags = []
        self._is_premium = False
        try:
            await self._store.remove(ALL_KEYS)
        except Exception as exc:
            logger.exception("Clearing stored data failed")
            raise PersistenceFailure("could not clear stored data") from exc
        logger.info("All data cleared")
