from __future__ import annotations

from datetime import date, datetime, time as dtime, timedelta, timezone, tzinfo
import math
from typing import Iterable, Sequence

from .clock import local_zone
from .models import Session

DAY_KEYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def duration_minutes(session: Session) -> float:
    return session.duration_seconds / 60


def local_now(now: datetime) -> datetime:
    """Give a naive ``now`` the system zone; aware values pass through."""
    if now.tzinfo is None:
        return now.replace(tzinfo=local_zone())
    return now


def to_local(instant: datetime, tz: tzinfo | None) -> datetime:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(tz)


def date_key(instant: datetime, tz: tzinfo | None) -> str:
    return to_local(instant, tz).strftime("%Y-%m-%d")


def hour_of(instant: datetime, tz: tzinfo | None) -> int:
    return to_local(instant, tz).hour


def local_midnight(day: date, tz: tzinfo | None) -> datetime:
    return datetime.combine(day, dtime.min).replace(tzinfo=tz)


def days_ago(now: datetime, days: int) -> datetime:
    """Local midnight ``days`` calendar days before the day of ``now``."""
    return local_midnight(now.date() - timedelta(days=days), now.tzinfo)


def day_of_week(day: date) -> str:
    return DAY_KEYS[day.weekday()]


def round_half_up(value: float, digits: int = 0) -> float:
    # Halves go towards +inf, so 2.5 -> 3 and -2.5 -> -2.
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round_int(value: float) -> int:
    return int(math.floor(value + 0.5))


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def median(values: Iterable[float]) -> float:
    ordered = sorted(values)
    if not ordered:
        return 0
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def mode(values: Iterable[float]) -> float:
    counts: dict[float, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1

    best_value: float = 0
    best_count = 0
    for value, count in counts.items():
        if count > best_count:
            best_value = value
            best_count = count
    return best_value
