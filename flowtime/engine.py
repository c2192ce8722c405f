from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
import logging
from typing import Any, Callable, Iterable

from .clock import Clock, RealClock
from .db import FlowtimeDB
from .metrics import (
    daily_flow_waves,
    earned_freedom,
    flow_streak,
    focus_density,
    natural_flow_window,
    resistance_point,
    task_flow_harmony,
    warmup_phase,
    weekly_work_time,
)
from .models import Session, Task
from .primitives import duration_minutes, local_now, round_int
from .results import AnalyticsReport, AnalyticsSummary

logger = logging.getLogger(__name__)


class Metric(str, Enum):
    DAILY_FLOW_WAVES = "daily_flow_waves"
    WEEKLY_WORK_TIME = "weekly_work_time"
    FOCUS_DENSITY = "focus_density"
    RESISTANCE_POINT = "resistance_point"
    EARNED_FREEDOM = "earned_freedom"
    NATURAL_FLOW_WINDOW = "natural_flow_window"
    FLOW_STREAK = "flow_streak"
    TASK_FLOW_HARMONY = "task_flow_harmony"
    WARMUP_PHASE = "warmup_phase"


@dataclass(frozen=True)
class AnalyticsSnapshot:
    sessions: tuple[Session, ...]
    tasks: tuple[Task, ...] = ()

    @classmethod
    def of(cls, sessions: Iterable[Session], tasks: Iterable[Task] = ()) -> "AnalyticsSnapshot":
        return cls(sessions=tuple(sessions), tasks=tuple(tasks))


MetricRunner = Callable[[AnalyticsSnapshot, datetime, int], Any]

METRIC_RUNNERS: dict[Metric, MetricRunner] = {
    Metric.DAILY_FLOW_WAVES: lambda snap, now, _: daily_flow_waves(snap.sessions, now),
    Metric.WEEKLY_WORK_TIME: lambda snap, now, offset: weekly_work_time(snap.sessions, now, offset),
    Metric.FOCUS_DENSITY: lambda snap, now, _: focus_density(snap.sessions, now),
    Metric.RESISTANCE_POINT: lambda snap, now, _: resistance_point(snap.sessions, now),
    Metric.EARNED_FREEDOM: lambda snap, now, _: earned_freedom(snap.sessions, now),
    Metric.NATURAL_FLOW_WINDOW: lambda snap, now, _: natural_flow_window(snap.sessions, now),
    Metric.FLOW_STREAK: lambda snap, now, _: flow_streak(snap.sessions, now),
    Metric.TASK_FLOW_HARMONY: lambda snap, now, _: task_flow_harmony(snap.sessions, snap.tasks, now),
    Metric.WARMUP_PHASE: lambda snap, now, _: warmup_phase(snap.sessions, now),
}


def compute_metric(
    metric: Metric,
    snapshot: AnalyticsSnapshot,
    now: datetime,
    week_offset: int = 0,
) -> Any:
    runner = METRIC_RUNNERS[Metric(metric)]
    return runner(snapshot, local_now(now), week_offset)


def summarize(snapshot: AnalyticsSnapshot) -> AnalyticsSummary:
    return AnalyticsSummary(
        total_sessions=len(snapshot.sessions),
        all_time_minutes=round_int(sum(duration_minutes(item) for item in snapshot.sessions)),
    )


def build_analytics(
    snapshot: AnalyticsSnapshot,
    now: datetime,
    week_offset: int = 0,
) -> AnalyticsReport:
    ref = local_now(now)
    logger.debug(
        "computing analytics over %d sessions and %d tasks at %s",
        len(snapshot.sessions),
        len(snapshot.tasks),
        ref.isoformat(),
    )
    results = {
        metric.value: compute_metric(metric, snapshot, ref, week_offset)
        for metric in Metric
    }
    return AnalyticsReport(summary=summarize(snapshot), **results)


def load_snapshot(db: FlowtimeDB, user_id: str) -> AnalyticsSnapshot:
    return AnalyticsSnapshot.of(db.list_all_sessions(user_id), db.list_tasks(user_id))


def run_analytics(
    db: FlowtimeDB,
    user_id: str,
    clock: Clock | None = None,
    week_offset: int = 0,
) -> AnalyticsReport:
    snapshot = load_snapshot(db, user_id)
    now = (clock or RealClock()).now()
    return build_analytics(snapshot, now, week_offset)


def report_to_dict(report: Any) -> dict[str, Any]:
    return asdict(report)
