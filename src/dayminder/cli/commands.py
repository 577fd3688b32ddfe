# src/dayminder/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, time
from typing import cast

from ..core.dates import (
    WEEKDAY_NAMES,
    CalendarDay,
    format_date,
    format_date_time,
    format_short_date,
    format_time,
    generate_date_range,
    round_to_nearest_five_minutes,
)
from ..core.state import AppState
from ..tasks.capability import LimitedFeature
from ..tasks.errors import LimitExceeded, NotFound, PersistenceFailure
from ..tasks.recurrence import is_next_occurrence_on, occurrence_on, upcoming
from ..tasks.task_models import (
    DEFAULT_REMINDER_OPTIONS,
    TAG_PALETTE_SIZE,
    OffsetReminder,
    RecurrenceKind,
    Reminder,
    TagDraft,
    Task,
    TaskDraft,
    TaskUpdate,
    parse_reminder,
)

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

_LIMIT_MESSAGES = {
    LimitedFeature.RECURRENCE: "Free plan allows 1 repeating task. Use /premium to upgrade.",
    LimitedFeature.TAG: "Free plan allows 3 tags. Use /premium to upgrade.",
    LimitedFeature.MONTHLY_DATES: "Free plan allows 1 day per month. Use /premium to upgrade.",
}

_REPEAT_ALIASES = {
    "none": RecurrenceKind.NONE,
    "no": RecurrenceKind.NONE,
    "once": RecurrenceKind.NEXT_WEEK_ONCE,
    "next_week_once": RecurrenceKind.NEXT_WEEK_ONCE,
    "nextweek": RecurrenceKind.NEXT_WEEK_ONCE,
    "weekly": RecurrenceKind.WEEKLY,
    "monthly": RecurrenceKind.MONTHLY,
    "yearly": RecurrenceKind.YEARLY,
}


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return await h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return await h2(state, args)
        except LimitExceeded as e:
            return _LIMIT_MESSAGES.get(e.feature, str(e))
        except NotFound as e:
            return f"Not found: {e.item_id}"
        except PersistenceFailure:
            return "Saving failed. Your change is kept for now but may be lost on restart."
        except ValueError as e:
            return f"Invalid input: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- parsing helpers ----


# Boolean switches; tokens after them are not their value.
_FLAG_OPTIONS = frozenset({"no-alarm"})


def _split_options(args: list[str]) -> tuple[list[str], dict[str, str]]:
    """
    Split "pos pos --opt value words --flag" into positionals and options.
    An option's value is every token up to the next "--" token.
    Flags in _FLAG_OPTIONS take no value.
    """
    positional: list[str] = []
    options: dict[str, str] = {}
    current: str | None = None
    for token in args:
        if token.startswith("--") and len(token) > 2:
            name = token[2:].lower()
            options[name] = ""
            current = None if name in _FLAG_OPTIONS else name
            continue
        if current is None:
            positional.append(token)
        else:
            options[current] = f"{options[current]} {token}".strip()
    return positional, options


def _parse_int_set(raw: str, *, what: str) -> frozenset[int]:
    try:
        return frozenset(int(p) for p in raw.replace(",", " ").split() if p.strip())
    except ValueError:
        raise ValueError(f"{what} must be numbers, got {raw!r}") from None


def _parse_repeat(raw: str) -> RecurrenceKind:
    kind = _REPEAT_ALIASES.get(raw.strip().lower())
    if kind is None:
        raise ValueError(f"unknown repeat kind {raw!r} (none|once|weekly|monthly|yearly)")
    return kind


def _parse_reminders(raw: str) -> tuple[Reminder, ...]:
    if raw.strip().lower() in ("", "none", "off"):
        return ()
    return tuple(parse_reminder(p) for p in raw.replace(",", " ").split())


def _reminder_shorthand(reminder: OffsetReminder) -> str:
    return f"{reminder.value}{reminder.unit.value[0]}"


def _reminder_presets() -> str:
    return ", ".join(_reminder_shorthand(r) for r in DEFAULT_REMINDER_OPTIONS)


def _parse_time(raw: str) -> time:
    try:
        return time.fromisoformat(raw.strip())
    except ValueError:
        raise ValueError(f"time must look like HH:MM, got {raw!r}") from None


def parse_day(raw: str, *, today: CalendarDay) -> CalendarDay:
    """Accept YYYY-MM-DD, today, tomorrow, yesterday, +N, -N."""
    s = raw.strip().lower()
    if s in ("", "today"):
        return today
    if s == "tomorrow":
        return today.add_days(1)
    if s == "yesterday":
        return today.add_days(-1)
    if s[0] in "+-" and s[1:].isdigit():
        return today.add_days(int(s))
    try:
        return CalendarDay.parse(s)
    except ValueError:
        raise ValueError(f"date must look like YYYY-MM-DD, got {raw!r}") from None


def _resolve_task(state: AppState, token: str) -> Task:
    """Exact id or unique id prefix."""
    repo = state.repository
    matches = [t for t in repo.tasks if t.id == token or t.id.startswith(token)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise ValueError(f"id prefix {token!r} is ambiguous")
    return repo.get_task(token)


def _resolve_tag_id(state: AppState, token: str) -> str | None:
    if token.strip().lower() in ("", "none"):
        return None
    repo = state.repository
    matches = [t for t in repo.tags if t.id.startswith(token) or t.name.lower() == token.lower()]
    if len(matches) == 1:
        return matches[0].id
    if len(matches) > 1:
        raise ValueError(f"tag {token!r} is ambiguous")
    return repo.get_tag(token).id


# ---- formatting ----


def _describe_recurrence(task: Task) -> str:
    kind = task.recurrence
    if kind == RecurrenceKind.WEEKLY:
        return "weekly: " + ", ".join(WEEKDAY_NAMES[d] for d in sorted(task.weekly_days))
    if kind == RecurrenceKind.MONTHLY:
        return "monthly: " + ", ".join(str(d) for d in sorted(task.monthly_days))
    if kind == RecurrenceKind.NEXT_WEEK_ONCE:
        return "once next week"
    if kind == RecurrenceKind.YEARLY:
        return f"yearly: {task.anchor.month}/{task.anchor.day}"
    return ""


def _task_line(state: AppState, task: Task, day: CalendarDay) -> str:
    done = state.repository.is_task_completed_on(task, day)
    at = occurrence_on(task, day) or task.anchor
    parts = [f"[{'x' if done else ' '}] {format_time(at)}  {task.title}"]
    tag = state.repository.find_tag(task.tag_id)
    if tag is not None:
        parts.append(f"#{tag.name}")
    rec = _describe_recurrence(task)
    if rec:
        parts.append(f"({rec})")
    if task.is_repeating and is_next_occurrence_on(task, day, state.now()):
        parts.append("<- next")
    parts.append(f"id={task.id[:8]}")
    return "  ".join(parts)


def _day_listing(state: AppState, day: CalendarDay) -> str:
    tasks = state.repository.tasks_due_on(day)
    if not tasks:
        return f"{format_date(day)}: nothing to do."
    todo = [t for t in tasks if not state.repository.is_task_completed_on(t, day)]
    done = [t for t in tasks if state.repository.is_task_completed_on(t, day)]
    lines = [f"{format_date(day)}: {len(todo)} to do, {len(done)} done"]
    lines.extend(f"  {_task_line(state, t, day)}" for t in todo + done)
    return "\n".join(lines)


# ---- commands ----


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str]) -> str:
    stats = state.repository.stats()
    limits = stats.limits

    def _cap(value: int, limit: int | None) -> str:
        return str(value) if limit is None else f"{value}/{limit}"

    plan = "premium" if stats.is_premium else "free"
    return (
        "Status:\n"
        f"  Plan: {plan}\n"
        f"  Tasks: {stats.total_tasks}\n"
        f"  Repeating tasks: {_cap(stats.repeating_tasks, limits.max_repeating_tasks)}\n"
        f"  Tags: {_cap(stats.tags, limits.max_tags)}\n"
        f"  Notifications: {'on' if state.notifications_permitted else 'off'}\n"
        f"  Pending reminders: {len(state.reminders.pending())}"
    )


async def cmd_today(state: AppState, args: list[str]) -> str:
    state.selected_day = state.today()
    return _day_listing(state, state.selected_day)


async def cmd_day(state: AppState, args: list[str]) -> str:
    """
    /day             -> show the selected day
    /day 2024-01-15  -> select and show a day (also: today, tomorrow, +N, -N)
    """
    if args:
        state.selected_day = parse_day(args[0], today=state.today())
    return _day_listing(state, state.selected_day)


async def cmd_week(state: AppState, args: list[str]) -> str:
    start = parse_day(args[0], today=state.today()) if args else state.today()
    days = int(getattr(state.settings, "week_view_days", 7))
    lines = []
    for day in generate_date_range(start, days):
        tasks = state.repository.tasks_due_on(day)
        done = sum(1 for t in tasks if state.repository.is_task_completed_on(t, day))
        marker = "*" if day == state.selected_day else " "
        lines.append(f"{marker} {format_short_date(day)}: {len(tasks)} tasks, {done} done")
    return "\n".join(lines)


async def cmd_upcoming(state: AppState, args: list[str]) -> str:
    items = upcoming(state.repository.tasks, state.now(), limit=20)
    if not items:
        return "Nothing upcoming."
    lines = ["Upcoming:"]
    for task, at in items:
        lines.append(f"  {format_date_time(at)}  {task.title}  id={task.id[:8]}")
    return "\n".join(lines)


async def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add YYYY-MM-DD HH:MM title words [--repeat weekly] [--days 1,3] [--dates 15]
         [--tag NAME|ID] [--remind 10m,1h] [--no-alarm]
    """
    positional, options = _split_options(args)
    if len(positional) < 3:
        return (
            "Usage: /add YYYY-MM-DD HH:MM title [--repeat none|once|weekly|monthly|yearly] "
            "[--days 0-6,...] [--dates 1-31,...] [--tag NAME] [--remind 10m,1h,1d] [--no-alarm]\n"
            f"Reminder presets: {_reminder_presets()}"
        )

    day = parse_day(positional[0], today=state.today())
    anchor = round_to_nearest_five_minutes(datetime.combine(day.to_date(), _parse_time(positional[1])))
    title = " ".join(positional[2:])

    draft = TaskDraft(
        title=title,
        anchor=anchor,
        recurrence=_parse_repeat(options["repeat"]) if "repeat" in options else RecurrenceKind.NONE,
        weekly_days=_parse_int_set(options.get("days", ""), what="weekdays"),
        monthly_days=_parse_int_set(options.get("dates", ""), what="day numbers"),
        tag_id=_resolve_tag_id(state, options["tag"]) if "tag" in options else None,
        start_alarm="no-alarm" not in options,
        reminders=_parse_reminders(options.get("remind", "")),
    )
    task = await state.repository.add_task(draft)
    return f"Added {task.title!r} at {format_date_time(task.anchor)} (id={task.id[:8]})."


async def cmd_edit(state: AppState, args: list[str]) -> str:
    """
    /edit ID [--title words] [--date YYYY-MM-DD] [--time HH:MM] [--repeat KIND]
             [--days ...] [--dates ...] [--tag NAME|none] [--remind ...|none] [--alarm on|off]
    """
    positional, options = _split_options(args)
    if not positional or not options:
        return "Usage: /edit ID [--title ..] [--date ..] [--time ..] [--repeat ..] [--tag ..] [--remind ..]"

    task = _resolve_task(state, positional[0])
    changes: dict[str, object] = {}

    if "title" in options:
        changes["title"] = options["title"]
    if "date" in options or "time" in options:
        day = parse_day(options["date"], today=state.today()) if "date" in options else CalendarDay.of(task.anchor)
        at = _parse_time(options["time"]) if "time" in options else task.anchor.time()
        changes["anchor"] = round_to_nearest_five_minutes(datetime.combine(day.to_date(), at))
    if "repeat" in options:
        changes["recurrence"] = _parse_repeat(options["repeat"])
    if "days" in options:
        changes["weekly_days"] = _parse_int_set(options["days"], what="weekdays")
    if "dates" in options:
        changes["monthly_days"] = _parse_int_set(options["dates"], what="day numbers")
    if "tag" in options:
        changes["tag_id"] = _resolve_tag_id(state, options["tag"])
    if "remind" in options:
        changes["reminders"] = _parse_reminders(options["remind"])
    if "alarm" in options:
        changes["start_alarm"] = options["alarm"].lower() in ("on", "yes", "true", "1", "")

    updated = await state.repository.update_task(task.id, TaskUpdate(**changes))  # type: ignore[arg-type]
    return f"Updated {updated.title!r} (id={updated.id[:8]})."


async def cmd_show(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /show ID"
    task = _resolve_task(state, args[0])
    tag = state.repository.find_tag(task.tag_id)
    reminders = ", ".join(r.label() for r in task.reminders) or "none"
    done = ", ".join(d.key() for d in sorted(task.completed_days)) or "none"
    lines = [
        f"{task.title} (id={task.id})",
        f"  When: {format_date_time(task.anchor)}",
        f"  Repeat: {_describe_recurrence(task) or 'none'}",
        f"  Tag: {tag.name if tag else 'none'}",
        f"  Start alarm: {'on' if task.start_alarm else 'off'}",
        f"  Reminders: {reminders}",
        f"  Completed on: {done}",
    ]
    return "\n".join(lines)


async def cmd_rm(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /rm ID"
    task = _resolve_task(state, args[0])
    await state.repository.delete_task(task.id)
    return f"Deleted {task.title!r}."


async def cmd_done(state: AppState, args: list[str]) -> str:
    """
    /done ID        -> toggle completion on the selected day
    /done ID DATE   -> toggle completion on DATE
    """
    if not args:
        return "Usage: /done ID [YYYY-MM-DD]"
    task = _resolve_task(state, args[0])
    day = parse_day(args[1], today=state.today()) if len(args) > 1 else state.selected_day
    completed = await state.repository.toggle_task_complete(task.id, day)
    return f"{task.title!r} marked {'done' if completed else 'not done'} for {format_date(day)}."


async def cmd_tags(state: AppState, args: list[str]) -> str:
    tags = state.repository.tags
    if not tags:
        return "No tags yet. Use /tag add NAME."
    lines = ["Tags:"]
    for tag in tags:
        used = sum(1 for t in state.repository.tasks if t.tag_id == tag.id)
        lines.append(f"  {tag.name} (color {tag.color_index}, {used} tasks) id={tag.id[:8]}")
    return "\n".join(lines)


async def cmd_tag(state: AppState, args: list[str]) -> str:
    """
    /tag add NAME [--color N]
    /tag rename TAG NEW NAME
    /tag color TAG N
    /tag rm TAG
    """
    usage = "Usage: /tag add NAME [--color N] | /tag rename TAG NAME | /tag color TAG N | /tag rm TAG"
    if not args:
        return usage

    sub = args[0].lower()
    rest = args[1:]
    repo = state.repository

    if sub == "add":
        positional, options = _split_options(rest)
        if not positional:
            return usage
        color = int(options.get("color") or 0)
        tag = await repo.add_tag(TagDraft(name=" ".join(positional), color_index=color))
        return f"Tag {tag.name!r} added (id={tag.id[:8]})."

    if sub == "rename" and len(rest) >= 2:
        tag_id = _resolve_tag_id(state, rest[0])
        if tag_id is None:
            return usage
        tag = await repo.update_tag(tag_id, name=" ".join(rest[1:]))
        return f"Tag renamed to {tag.name!r}."

    if sub == "color" and len(rest) == 2:
        tag_id = _resolve_tag_id(state, rest[0])
        if tag_id is None:
            return usage
        tag = await repo.update_tag(tag_id, color_index=int(rest[1]))
        return f"Tag {tag.name!r} now uses color {tag.color_index} (0..{TAG_PALETTE_SIZE - 1})."

    if sub in ("rm", "delete") and len(rest) == 1:
        tag_id = _resolve_tag_id(state, rest[0])
        if tag_id is None:
            return usage
        cleared = await repo.delete_tag(tag_id)
        return f"Tag deleted ({cleared} tasks untagged)."

    return usage


async def cmd_premium(state: AppState, args: list[str]) -> str:
    if state.repository.is_premium:
        return "Premium is already active. All limits are lifted."
    if not args or args[0].lower() not in ("on", "yes", "upgrade"):
        return "Premium lifts the limits on repeating tasks, tags and monthly days. Use /premium on."
    await state.repository.upgrade_to_premium()
    return "Upgraded to premium. All limits are lifted."


async def cmd_reset(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args or args[0].lower() != "yes":
        return "This deletes every task and tag. Use /reset yes to confirm."
    if emit:
        emit("Clearing all data...")
    logger.debug("Reset requested")
    await state.repository.clear_all_data()
    return "All data cleared."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show plan, counts and limits.")
registry.register("today", cmd_today, help_text="Show today's tasks.")
registry.register("day", cmd_day, help_text="Show/select a day: /day 2024-01-15 | +1 | -1.")
registry.register("week", cmd_week, help_text="Task counts for the next days: /week [DATE].")
registry.register("upcoming", cmd_upcoming, help_text="Next occurrence of every task.")
registry.register("add", cmd_add, help_text="Add a task: /add DATE HH:MM title [--repeat ..].")
registry.register("edit", cmd_edit, help_text="Edit a task: /edit ID --title .. --time ..")
registry.register("show", cmd_show, help_text="Show task details: /show ID.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm ID.", aliases=["del"])
registry.register("done", cmd_done, help_text="Toggle completion: /done ID [DATE].")
registry.register("tags", cmd_tags, help_text="List tags.")
registry.register("tag", cmd_tag, help_text="Manage tags: /tag add | rename | color | rm.")
registry.register("premium", cmd_premium, help_text="Upgrade to premium: /premium on.")
registry.register("reset", cmd_reset, help_text="Delete all data: /reset yes.")
