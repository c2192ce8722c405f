"""Period summaries matching the assistant's per-metric tools.

These work on any slice of the history (a period or an explicit date range)
and share the rounding rules of the main metrics.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Literal, Sequence

from .models import Session, Task
from .primitives import (
    date_key,
    day_of_week,
    duration_minutes,
    hour_of,
    local_midnight,
    round_half_up,
    round_int,
    to_local,
)

Period = Literal["today", "last_7_days", "last_30_days", "last_90_days", "all_time"]
PERIODS: tuple[str, ...] = ("today", "last_7_days", "last_30_days", "last_90_days", "all_time")

_PERIOD_DAYS = {"today": 0, "last_7_days": 7, "last_30_days": 30, "last_90_days": 90}

DISTRIBUTION_KEYS = (
    "under_15min",
    "15_to_25min",
    "25_to_45min",
    "45_to_60min",
    "60_to_90min",
    "over_90min",
)


@dataclass(frozen=True)
class SessionSummary:
    session_count: int
    total_focus_minutes: int
    average_session_minutes: float
    distribution: dict[str, int]


@dataclass(frozen=True)
class HourTotal:
    hour: int
    total_minutes: int
    session_count: int


@dataclass(frozen=True)
class HourlyDistribution:
    peak_hours: tuple[HourTotal, ...]
    all_hours: tuple[HourTotal, ...]


@dataclass(frozen=True)
class WeekdayTotal:
    day: str
    total_minutes: int
    session_count: int


@dataclass(frozen=True)
class LongestSession:
    longest_minutes: int
    date: str | None


@dataclass(frozen=True)
class TaskTotal:
    task_title: str
    total_focus_minutes: int
    session_count: int
    average_session_minutes: float


@dataclass(frozen=True)
class TopTasks:
    items: tuple[TaskTotal, ...]
    has_enough_data: bool


@dataclass(frozen=True)
class TaskFocus:
    found: bool
    tasks: tuple[TaskTotal, ...]
    total_focus_minutes: int


@dataclass(frozen=True)
class PeriodComparison:
    period1: SessionSummary
    period2: SessionSummary


def period_start(period: str, now: datetime) -> datetime | None:
    if period == "all_time":
        return None
    if period not in _PERIOD_DAYS:
        raise ValueError(f"未知统计区间：{period}")
    return local_midnight(now.date() - timedelta(days=_PERIOD_DAYS[period]), now.tzinfo)


def filter_period(sessions: Iterable[Session], period: str, now: datetime) -> list[Session]:
    start = period_start(period, now)
    if start is None:
        return list(sessions)
    return [item for item in sessions if to_local(item.started_at, now.tzinfo) >= start]


def filter_range(sessions: Iterable[Session], start: date, end: date, now: datetime) -> list[Session]:
    """Sessions starting between local midnight of ``start`` and the end of ``end``."""
    lower = local_midnight(start, now.tzinfo)
    upper = local_midnight(end + timedelta(days=1), now.tzinfo)
    return [item for item in sessions if lower <= to_local(item.started_at, now.tzinfo) < upper]


def duration_bucket(minutes: float) -> str:
    if minutes < 15:
        return "under_15min"
    if minutes < 25:
        return "15_to_25min"
    if minutes < 45:
        return "25_to_45min"
    if minutes < 60:
        return "45_to_60min"
    if minutes < 90:
        return "60_to_90min"
    return "over_90min"


def summarize_sessions(sessions: Sequence[Session], exact_average: bool = False) -> SessionSummary:
    """Count, total and duration buckets.

    The average divides the rounded total unless ``exact_average`` is set, in
    which case it divides the raw minutes.
    """
    distribution = {key: 0 for key in DISTRIBUTION_KEYS}
    for item in sessions:
        distribution[duration_bucket(duration_minutes(item))] += 1

    raw_total = sum(duration_minutes(item) for item in sessions)
    total = round_int(raw_total)
    average = 0.0
    if sessions:
        average = round_half_up((raw_total if exact_average else total) / len(sessions), 1)
    return SessionSummary(
        session_count=len(sessions),
        total_focus_minutes=total,
        average_session_minutes=average,
        distribution=distribution,
    )


def hourly_distribution(sessions: Sequence[Session], now: datetime) -> HourlyDistribution:
    totals = [0.0] * 24
    counts = [0] * 24
    for item in sessions:
        hour = hour_of(item.started_at, now.tzinfo)
        totals[hour] += duration_minutes(item)
        counts[hour] += 1

    hours = [
        HourTotal(hour=hour, total_minutes=round_int(total), session_count=counts[hour])
        for hour, total in enumerate(totals)
    ]
    hours = [entry for entry in hours if entry.total_minutes > 0]
    hours.sort(key=lambda entry: entry.total_minutes, reverse=True)
    return HourlyDistribution(peak_hours=tuple(hours[:3]), all_hours=tuple(hours))


def weekday_stats(sessions: Sequence[Session], now: datetime) -> list[WeekdayTotal]:
    minutes: dict[str, float] = {}
    counts: dict[str, int] = {}
    for item in sessions:
        day = day_of_week(to_local(item.started_at, now.tzinfo).date())
        minutes[day] = minutes.get(day, 0.0) + duration_minutes(item)
        counts[day] = counts.get(day, 0) + 1

    return [
        WeekdayTotal(day=day, total_minutes=round_int(total), session_count=counts[day])
        for day, total in minutes.items()
    ]


def longest_session(sessions: Sequence[Session], now: datetime) -> LongestSession:
    if not sessions:
        return LongestSession(longest_minutes=0, date=None)

    longest = sessions[0]
    for item in sessions:
        if item.duration_seconds > longest.duration_seconds:
            longest = item
    return LongestSession(
        longest_minutes=round_int(duration_minutes(longest)),
        date=date_key(longest.started_at, now.tzinfo),
    )


def compare_periods(first: Sequence[Session], second: Sequence[Session]) -> PeriodComparison:
    return PeriodComparison(
        period1=summarize_sessions(first, exact_average=True),
        period2=summarize_sessions(second, exact_average=True),
    )


def _task_totals(
    sessions: Iterable[Session],
    titles: dict[str, str],
) -> list[TaskTotal]:
    minutes: dict[str, float] = {}
    counts: dict[str, int] = {}
    names: dict[str, str] = {}
    for item in sessions:
        if not item.task_id:
            continue
        minutes[item.task_id] = minutes.get(item.task_id, 0.0) + duration_minutes(item)
        counts[item.task_id] = counts.get(item.task_id, 0) + 1
        names.setdefault(item.task_id, (titles.get(item.task_id) or "").strip() or "Unknown")

    return [
        TaskTotal(
            task_title=names[task_id],
            total_focus_minutes=round_int(total),
            session_count=counts[task_id],
            average_session_minutes=round_half_up(total / counts[task_id], 1),
        )
        for task_id, total in minutes.items()
    ]


def top_tasks(
    sessions: Sequence[Session],
    tasks: Iterable[Task],
    limit: int = 3,
    order: Literal["asc", "desc"] = "desc",
) -> TopTasks:
    titles = {task.id: task.title for task in tasks}
    items = _task_totals(sessions, titles)
    if not items:
        return TopTasks(items=(), has_enough_data=False)

    items.sort(key=lambda entry: entry.total_focus_minutes, reverse=(order != "asc"))
    return TopTasks(items=tuple(items[: max(0, limit)]), has_enough_data=True)


def task_focus_by_name(
    sessions: Sequence[Session],
    tasks: Iterable[Task],
    name: str,
) -> TaskFocus:
    needle = name.strip().lower()
    matching_ids = {task.id: task.title for task in tasks if needle and needle in task.title.lower()}
    matching = [item for item in sessions if item.task_id in matching_ids]
    if not matching:
        return TaskFocus(found=False, tasks=(), total_focus_minutes=0)

    return TaskFocus(
        found=True,
        tasks=tuple(_task_totals(matching, matching_ids)),
        total_focus_minutes=round_int(sum(duration_minutes(item) for item in matching)),
    )
