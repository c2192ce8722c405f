"""The nine session metrics.

Every function takes the full session history and an explicit ``now``; local
time means the timezone of ``now``. None of them reads the system clock.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
import math
from typing import Iterable, Sequence

from .models import Session, Task
from .primitives import (
    MONTH_ABBR,
    date_key,
    day_of_week,
    days_ago,
    duration_minutes,
    hour_of,
    local_midnight,
    local_now,
    mean,
    median,
    mode,
    round_half_up,
    round_int,
    to_local,
)
from .results import (
    DailyFlowWavesResult,
    EarnedFreedomResult,
    FlowStreakDay,
    FlowStreakResult,
    FlowWindowBucket,
    FocusDensityLabel,
    FocusDensityResult,
    FlowZoneLabel,
    HourlySlot,
    NaturalFlowWindowResult,
    ResistancePointResult,
    SessionLength,
    TaskFlowHarmonyResult,
    TaskFlowItem,
    WarmupPhaseResult,
    WeeklyWorkTimeResult,
    WorkDay,
)

BLOCK_GAP = timedelta(minutes=30)
BUCKET_MINUTES = 5
MAX_BUCKETS = 30
SUCCESS_MINUTES = 20
WARMUP_FACTOR = 0.22


def _chronological(sessions: Iterable[Session]) -> list[Session]:
    return sorted(sessions, key=lambda item: to_local(item.started_at, None))


def _since(sessions: Iterable[Session], start: datetime) -> list[Session]:
    return [item for item in sessions if to_local(item.started_at, start.tzinfo) >= start]


def _on_day(sessions: Iterable[Session], now: datetime) -> list[Session]:
    today = now.strftime("%Y-%m-%d")
    return [item for item in sessions if date_key(item.started_at, now.tzinfo) == today]


def daily_flow_waves(sessions: Sequence[Session], now: datetime) -> DailyFlowWavesResult:
    now = local_now(now)
    tz = now.tzinfo
    recent = _since(sessions, days_ago(now, 14))
    if len(recent) < 5:
        return DailyFlowWavesResult()

    hour_totals = [0.0] * 24
    for item in recent:
        hour_totals[hour_of(item.started_at, tz)] += duration_minutes(item)

    avg = mean([total for total in hour_totals if total > 0])

    slots: list[HourlySlot] = []
    for hour, total in enumerate(hour_totals):
        label: FlowZoneLabel = "normal"
        if avg > 0:
            if total > avg * 1.3:
                label = "peak"
            elif total < avg * 0.7:
                # empty hours land here too
                label = "trough"
        slots.append(HourlySlot(hour=hour, total_minutes=round_half_up(total, 1), label=label))

    peak_hour: int | None = None
    trough_hour: int | None = None
    max_total = 0.0
    min_total = math.inf
    for slot in slots:
        if slot.total_minutes > max_total:
            max_total = slot.total_minutes
            peak_hour = slot.hour
        if 0 < slot.total_minutes < min_total:
            min_total = slot.total_minutes
            trough_hour = slot.hour

    return DailyFlowWavesResult(
        slots=tuple(slots),
        peak_hour=peak_hour,
        trough_hour=trough_hour,
        has_enough_data=True,
    )


def week_monday(now: datetime, week_offset: int = 0) -> date:
    today = now.date()
    return today - timedelta(days=today.weekday()) + timedelta(days=week_offset * 7)


def format_week_label(monday: date) -> str:
    sunday = monday + timedelta(days=6)
    return (
        f"{monday.day} {MONTH_ABBR[monday.month - 1]} – "
        f"{sunday.day} {MONTH_ABBR[sunday.month - 1]}"
    )


def weekly_work_time(
    sessions: Sequence[Session],
    now: datetime,
    week_offset: int = 0,
) -> WeeklyWorkTimeResult:
    """Focus minutes per day for the Monday-Sunday week ``week_offset`` weeks from now."""
    now = local_now(now)
    tz = now.tzinfo
    monday = week_monday(now, week_offset)
    week_days = [monday + timedelta(days=i) for i in range(7)]
    week_start = local_midnight(monday, tz)
    week_end = local_midnight(monday + timedelta(days=7), tz)

    day_totals = {day.isoformat(): 0.0 for day in week_days}
    has_data = False
    for item in sessions:
        started = to_local(item.started_at, tz)
        key = started.strftime("%Y-%m-%d")
        if key in day_totals:
            day_totals[key] += duration_minutes(item)
        if week_start <= started < week_end:
            has_data = True

    days = tuple(
        WorkDay(
            date=day.isoformat(),
            day_label=day_of_week(day),
            total_minutes=round_int(day_totals[day.isoformat()]),
        )
        for day in week_days
    )
    return WeeklyWorkTimeResult(
        days=days,
        week_total_minutes=sum(day.total_minutes for day in days),
        week_label=format_week_label(monday),
        week_offset=week_offset,
        has_enough_data=has_data,
    )


def density_label(percentage: int) -> FocusDensityLabel:
    if percentage >= 80:
        return "sharp"
    if percentage >= 60:
        return "good"
    if percentage >= 40:
        return "scattered_start"
    return "scattered_mind"


def split_blocks(sessions: Sequence[Session]) -> list[list[Session]]:
    """Group chronologically ordered sessions into blocks separated by gaps over 30 minutes."""
    if not sessions:
        return []
    blocks: list[list[Session]] = [[sessions[0]]]
    for prev, current in zip(sessions, sessions[1:]):
        gap = to_local(current.started_at, None) - to_local(prev.ended_at, None)
        if gap > BLOCK_GAP:
            blocks.append([current])
        else:
            blocks[-1].append(current)
    return blocks


def focus_density(sessions: Sequence[Session], now: datetime) -> FocusDensityResult:
    now = local_now(now)
    todays = _on_day(sessions, now)
    if not todays:
        return FocusDensityResult()
    if len(todays) == 1:
        return FocusDensityResult(percentage=100, label="sharp", has_enough_data=True)

    weighted = 0.0
    total_focus = 0.0
    for block in split_blocks(_chronological(todays)):
        block_focus = sum(duration_minutes(item) for item in block)
        total_focus += block_focus

        density = 100.0
        if len(block) > 1:
            span = to_local(block[-1].ended_at, None) - to_local(block[0].started_at, None)
            span_minutes = span.total_seconds() / 60
            if span_minutes > 0:
                density = min(100.0, block_focus / span_minutes * 100)
        weighted += block_focus * density

    percentage = round_int(weighted / total_focus) if total_focus > 0 else 0
    return FocusDensityResult(
        percentage=percentage,
        label=density_label(percentage),
        has_enough_data=True,
    )


def resistance_point(sessions: Sequence[Session], now: datetime) -> ResistancePointResult:
    now = local_now(now)
    if len(sessions) < 10:
        return ResistancePointResult()

    ordered = _chronological(sessions)
    durations = [round_int(duration_minutes(item)) for item in ordered]
    mode_value = mode(durations)
    median_value = median(durations)

    diff = abs(mode_value - median_value) / max(median_value, 1)
    resistance_minute = round_int(median_value) if diff > 0.2 else int(mode_value)

    recent = tuple(
        SessionLength(
            date=date_key(item.started_at, now.tzinfo),
            duration_minutes=round_int(duration_minutes(item)),
        )
        for item in _since(ordered, days_ago(now, 7))
    )
    return ResistancePointResult(
        resistance_minute=resistance_minute,
        last_7_days_sessions=recent,
        has_enough_data=True,
    )


def _earned_and_used(sessions: Iterable[Session]) -> tuple[float, float]:
    earned = 0.0
    used = 0.0
    for item in sessions:
        earned += duration_minutes(item) / 5
        used += item.break_duration_seconds / 60
    return earned, used


def earned_freedom(sessions: Sequence[Session], now: datetime) -> EarnedFreedomResult:
    now = local_now(now)
    todays = _on_day(sessions, now)
    earned, used = _earned_and_used(todays)
    week_earned, week_used = _earned_and_used(_since(sessions, days_ago(now, 7)))

    return EarnedFreedomResult(
        earned_minutes=round_int(earned),
        used_minutes=round_int(used),
        balance_minutes=round_int(earned - used),
        week_earned=round_int(week_earned),
        week_used=round_int(week_used),
        has_enough_data=bool(todays),
    )


def natural_flow_window(sessions: Sequence[Session], now: datetime) -> NaturalFlowWindowResult:
    if len(sessions) < 20:
        return NaturalFlowWindowResult()

    durations = [duration_minutes(item) for item in sessions]
    bucket_count = min(MAX_BUCKETS, math.ceil(max(durations) / BUCKET_MINUTES) + 1)
    counts = [
        sum(1 for value in durations if i * BUCKET_MINUTES <= value < (i + 1) * BUCKET_MINUTES)
        for i in range(bucket_count)
    ]

    # Length loop outside, strict ">" so the first best window found wins.
    best_start, best_sum, best_len = 0, 0, 2
    for length in (2, 3):
        for start in range(len(counts) - length + 1):
            window_sum = sum(counts[start:start + length])
            if window_sum > best_sum:
                best_start, best_sum, best_len = start, window_sum, length

    dominant = set(range(best_start, min(best_start + best_len, len(counts))))
    buckets = tuple(
        FlowWindowBucket(
            range_start=i * BUCKET_MINUTES,
            range_end=(i + 1) * BUCKET_MINUTES,
            count=count,
            is_dominant=i in dominant,
        )
        for i, count in enumerate(counts)
        if count > 0 or i in dominant
    )
    return NaturalFlowWindowResult(
        buckets=buckets,
        dominant_window_start=best_start * BUCKET_MINUTES,
        dominant_window_end=(best_start + best_len) * BUCKET_MINUTES,
        median=round_int(median(durations)),
        has_enough_data=True,
    )


def daily_focus_minutes(sessions: Iterable[Session], now: datetime) -> dict[str, float]:
    scores: dict[str, float] = {}
    for item in sessions:
        key = date_key(item.started_at, now.tzinfo)
        scores[key] = scores.get(key, 0.0) + duration_minutes(item)
    return scores


def flow_streak(sessions: Sequence[Session], now: datetime) -> FlowStreakResult:
    """Current and record runs of days whose focus reaches half the 30-day daily mean."""
    now = local_now(now)
    if len(sessions) < 3:
        return FlowStreakResult()

    scores = daily_focus_minutes(sessions, now)
    today = now.date()
    cutoff = (today - timedelta(days=30)).isoformat()
    threshold = mean([score for day, score in scores.items() if day >= cutoff]) * 0.5

    def filled(day: str) -> bool:
        return threshold > 0 and scores.get(day, 0.0) >= threshold

    last_30_days = tuple(
        FlowStreakDay(date=day, filled=filled(day))
        for day in ((today - timedelta(days=i)).isoformat() for i in range(29, -1, -1))
    )

    current_streak = 0
    for entry in reversed(last_30_days):
        if not entry.filled:
            break
        current_streak += 1

    # Walks the whole history, not just the last 30 days.
    record_streak = 0
    run = 0
    cursor = date.fromisoformat(min(scores))
    last_day = date.fromisoformat(max(scores))
    while cursor <= last_day:
        if filled(cursor.isoformat()):
            run += 1
            record_streak = max(record_streak, run)
        else:
            run = 0
        cursor += timedelta(days=1)

    return FlowStreakResult(
        current_streak=current_streak,
        record_streak=record_streak,
        last_30_days=last_30_days,
        has_enough_data=True,
    )


def task_flow_harmony(
    sessions: Sequence[Session],
    tasks: Iterable[Task],
    now: datetime,
) -> TaskFlowHarmonyResult:
    tagged = [item for item in _chronological(sessions) if item.task_id]
    if len(tagged) < 10:
        return TaskFlowHarmonyResult()

    titles = {task.id: task.title for task in tasks}
    totals: dict[str, float] = {}
    counts: dict[str, int] = {}
    for item in tagged:
        task_id = str(item.task_id)
        totals[task_id] = totals.get(task_id, 0.0) + duration_minutes(item)
        counts[task_id] = counts.get(task_id, 0) + 1

    items = [
        TaskFlowItem(
            task_title=(titles.get(task_id) or "").strip() or "Unknown",
            total_focus_minutes=round_int(total),
            session_count=counts[task_id],
        )
        for task_id, total in totals.items()
    ]
    items.sort(key=lambda entry: entry.total_focus_minutes, reverse=True)
    return TaskFlowHarmonyResult(items=tuple(items[:10]), has_enough_data=True)


def previous_month(now: datetime) -> int:
    return 12 if now.month == 1 else now.month - 1


def warmup_phase(sessions: Sequence[Session], now: datetime) -> WarmupPhaseResult:
    now = local_now(now)
    successful = [item for item in sessions if duration_minutes(item) >= SUCCESS_MINUTES]
    if len(successful) < 30:
        return WarmupPhaseResult()

    durations = [duration_minutes(item) for item in successful]
    avg = mean(durations)
    std_dev = math.sqrt(sum((value - avg) ** 2 for value in durations) / len(durations))
    cv = std_dev / avg if avg > 0 else 0.0
    if cv > 0.6:
        return WarmupPhaseResult()

    avg_warmup = round_half_up(avg * WARMUP_FACTOR, 1)

    # Month number only, so the same month of any year matches.
    month = previous_month(now)
    prev_durations = [
        duration_minutes(item)
        for item in successful
        if to_local(item.started_at, now.tzinfo).month == month
    ]
    prev_warmup: float | None = None
    change: float | None = None
    if len(prev_durations) >= 10:
        prev_warmup = round_half_up(mean(prev_durations) * WARMUP_FACTOR, 1)
        change = round_half_up(avg_warmup - prev_warmup, 1)

    return WarmupPhaseResult(
        avg_warmup_minutes=avg_warmup,
        prev_month_warmup=prev_warmup,
        change_minutes=change,
        has_enough_data=True,
    )
