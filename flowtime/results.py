from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

FlowZoneLabel = Literal["peak", "normal", "trough"]
FocusDensityLabel = Literal["sharp", "good", "scattered_start", "scattered_mind"]


@dataclass(frozen=True)
class HourlySlot:
    hour: int
    total_minutes: float
    label: FlowZoneLabel


@dataclass(frozen=True)
class DailyFlowWavesResult:
    slots: tuple[HourlySlot, ...] = ()
    peak_hour: int | None = None
    trough_hour: int | None = None
    has_enough_data: bool = False


@dataclass(frozen=True)
class WorkDay:
    date: str
    day_label: str
    total_minutes: int


@dataclass(frozen=True)
class WeeklyWorkTimeResult:
    days: tuple[WorkDay, ...]
    week_total_minutes: int
    week_label: str
    week_offset: int
    has_enough_data: bool


@dataclass(frozen=True)
class FocusDensityResult:
    percentage: int = 0
    label: FocusDensityLabel = "scattered_mind"
    has_enough_data: bool = False


@dataclass(frozen=True)
class SessionLength:
    date: str
    duration_minutes: int


@dataclass(frozen=True)
class ResistancePointResult:
    resistance_minute: int = 0
    last_7_days_sessions: tuple[SessionLength, ...] = ()
    has_enough_data: bool = False


@dataclass(frozen=True)
class EarnedFreedomResult:
    earned_minutes: int
    used_minutes: int
    balance_minutes: int
    week_earned: int
    week_used: int
    has_enough_data: bool


@dataclass(frozen=True)
class FlowWindowBucket:
    range_start: int
    range_end: int
    count: int
    is_dominant: bool = False


@dataclass(frozen=True)
class NaturalFlowWindowResult:
    buckets: tuple[FlowWindowBucket, ...] = ()
    dominant_window_start: int = 0
    dominant_window_end: int = 0
    median: int = 0
    has_enough_data: bool = False


@dataclass(frozen=True)
class FlowStreakDay:
    date: str
    filled: bool


@dataclass(frozen=True)
class FlowStreakResult:
    current_streak: int = 0
    record_streak: int = 0
    last_30_days: tuple[FlowStreakDay, ...] = ()
    has_enough_data: bool = False


@dataclass(frozen=True)
class TaskFlowItem:
    task_title: str
    total_focus_minutes: int
    session_count: int
    estimated_minutes: int | None = None


@dataclass(frozen=True)
class TaskFlowHarmonyResult:
    items: tuple[TaskFlowItem, ...] = ()
    has_enough_data: bool = False


@dataclass(frozen=True)
class WarmupPhaseResult:
    avg_warmup_minutes: float = 0.0
    prev_month_warmup: float | None = None
    change_minutes: float | None = None
    has_enough_data: bool = False


@dataclass(frozen=True)
class AnalyticsSummary:
    total_sessions: int
    all_time_minutes: int


@dataclass(frozen=True)
class AnalyticsReport:
    daily_flow_waves: DailyFlowWavesResult
    weekly_work_time: WeeklyWorkTimeResult
    focus_density: FocusDensityResult
    resistance_point: ResistancePointResult
    earned_freedom: EarnedFreedomResult
    natural_flow_window: NaturalFlowWindowResult
    flow_streak: FlowStreakResult
    task_flow_harmony: TaskFlowHarmonyResult
    warmup_phase: WarmupPhaseResult
    summary: AnalyticsSummary = field(default_factory=lambda: AnalyticsSummary(0, 0))
