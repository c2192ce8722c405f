from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query

from ...clock import Clock
from ...db import FlowtimeDB
from ...insights import (
    Period,
    compare_periods,
    filter_period,
    filter_range,
    hourly_distribution,
    longest_session,
    summarize_sessions,
    task_focus_by_name,
    top_tasks,
    weekday_stats,
)
from ...models import Session
from ..deps import get_clock, get_db
from ..schemas import (
    HourlyDistributionOut,
    LongestSessionOut,
    PeriodComparisonOut,
    SessionSummaryOut,
    TaskFocusOut,
    TopTasksOut,
    WeekdayTotalOut,
)

router = APIRouter(prefix="/api/v1/insights", tags=["insights"])


def _period_sessions(
    db: FlowtimeDB,
    clock: Clock,
    user_id: str,
    period: str,
) -> tuple[list[Session], datetime]:
    now = clock.now()
    return filter_period(db.list_all_sessions(user_id), period, now), now


@router.get("/summary", response_model=SessionSummaryOut)
def get_summary(
    user_id: str = "local",
    period: Period = "last_7_days",
    db: FlowtimeDB = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> SessionSummaryOut:
    sessions, _ = _period_sessions(db, clock, user_id, period)
    return SessionSummaryOut(**asdict(summarize_sessions(sessions)))


@router.get("/hourly", response_model=HourlyDistributionOut)
def get_hourly(
    user_id: str = "local",
    period: Period = "last_30_days",
    db: FlowtimeDB = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> HourlyDistributionOut:
    sessions, now = _period_sessions(db, clock, user_id, period)
    return HourlyDistributionOut.model_validate(asdict(hourly_distribution(sessions, now)))


@router.get("/weekdays", response_model=list[WeekdayTotalOut])
def get_weekdays(
    user_id: str = "local",
    period: Period = "last_30_days",
    db: FlowtimeDB = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> list[WeekdayTotalOut]:
    sessions, now = _period_sessions(db, clock, user_id, period)
    return [WeekdayTotalOut(**asdict(entry)) for entry in weekday_stats(sessions, now)]


@router.get("/longest", response_model=LongestSessionOut)
def get_longest(
    user_id: str = "local",
    period: Period = "all_time",
    db: FlowtimeDB = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> LongestSessionOut:
    sessions, now = _period_sessions(db, clock, user_id, period)
    return LongestSessionOut(**asdict(longest_session(sessions, now)))


@router.get("/top-tasks", response_model=TopTasksOut)
def get_top_tasks(
    user_id: str = "local",
    period: Period = "last_30_days",
    limit: int = Query(default=3, ge=1, le=50),
    order: Literal["asc", "desc"] = "desc",
    db: FlowtimeDB = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> TopTasksOut:
    sessions, _ = _period_sessions(db, clock, user_id, period)
    result = top_tasks(sessions, db.list_tasks(user_id), limit=limit, order=order)
    return TopTasksOut.model_validate(asdict(result))


@router.get("/compare", response_model=PeriodComparisonOut)
def get_comparison(
    period1_start: date,
    period1_end: date,
    period2_start: date,
    period2_end: date,
    user_id: str = "local",
    db: FlowtimeDB = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> PeriodComparisonOut:
    if period1_end < period1_start or period2_end < period2_start:
        raise HTTPException(status_code=400, detail="结束日期早于开始日期")
    now = clock.now()
    sessions = db.list_all_sessions(user_id)
    result = compare_periods(
        filter_range(sessions, period1_start, period1_end, now),
        filter_range(sessions, period2_start, period2_end, now),
    )
    return PeriodComparisonOut.model_validate(asdict(result))


@router.get("/task", response_model=TaskFocusOut)
def get_task_focus(
    name: str = Query(min_length=1),
    user_id: str = "local",
    period: Period = "all_time",
    db: FlowtimeDB = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> TaskFocusOut:
    sessions, _ = _period_sessions(db, clock, user_id, period)
    result = task_focus_by_name(sessions, db.list_tasks(user_id), name)
    return TaskFocusOut.model_validate(asdict(result))
