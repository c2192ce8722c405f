from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class SessionOut(BaseModel):
    id: str
    user_id: str
    started_at: datetime
    ended_at: datetime
    duration_seconds: int
    break_duration_seconds: int
    task_id: str | None = None


class SessionIn(BaseModel):
    user_id: str = "local"
    started_at: datetime
    ended_at: datetime
    duration_seconds: int = Field(ge=0)
    break_duration_seconds: int = Field(default=0, ge=0)
    task_id: str | None = None


class TaskOut(BaseModel):
    id: str
    user_id: str
    title: str


class TaskIn(BaseModel):
    user_id: str = "local"
    title: str = Field(min_length=1)


class HourlySlotOut(BaseModel):
    hour: int
    total_minutes: float
    label: Literal["peak", "normal", "trough"]


class DailyFlowWavesOut(BaseModel):
    slots: list[HourlySlotOut]
    peak_hour: int | None
    trough_hour: int | None
    has_enough_data: bool


class WorkDayOut(BaseModel):
    date: str
    day_label: str
    total_minutes: int


class WeeklyWorkTimeOut(BaseModel):
    days: list[WorkDayOut]
    week_total_minutes: int
    week_label: str
    week_offset: int
    has_enough_data: bool


class FocusDensityOut(BaseModel):
    percentage: int
    label: Literal["sharp", "good", "scattered_start", "scattered_mind"]
    has_enough_data: bool


class SessionLengthOut(BaseModel):
    date: str
    duration_minutes: int


class ResistancePointOut(BaseModel):
    resistance_minute: int
    last_7_days_sessions: list[SessionLengthOut]
    has_enough_data: bool


class EarnedFreedomOut(BaseModel):
    earned_minutes: int
    used_minutes: int
    balance_minutes: int
    week_earned: int
    week_used: int
    has_enough_data: bool


class FlowWindowBucketOut(BaseModel):
    range_start: int
    range_end: int
    count: int
    is_dominant: bool


class NaturalFlowWindowOut(BaseModel):
    buckets: list[FlowWindowBucketOut]
    dominant_window_start: int
    dominant_window_end: int
    median: int
    has_enough_data: bool


class FlowStreakDayOut(BaseModel):
    date: str
    filled: bool


class FlowStreakOut(BaseModel):
    current_streak: int
    record_streak: int
    last_30_days: list[FlowStreakDayOut]
    has_enough_data: bool


class TaskFlowItemOut(BaseModel):
    task_title: str
    total_focus_minutes: int
    session_count: int
    estimated_minutes: int | None = None


class TaskFlowHarmonyOut(BaseModel):
    items: list[TaskFlowItemOut]
    has_enough_data: bool


class WarmupPhaseOut(BaseModel):
    avg_warmup_minutes: float
    prev_month_warmup: float | None
    change_minutes: float | None
    has_enough_data: bool


class AnalyticsSummaryOut(BaseModel):
    total_sessions: int
    all_time_minutes: int


class AnalyticsOut(BaseModel):
    daily_flow_waves: DailyFlowWavesOut
    weekly_work_time: WeeklyWorkTimeOut
    focus_density: FocusDensityOut
    resistance_point: ResistancePointOut
    earned_freedom: EarnedFreedomOut
    natural_flow_window: NaturalFlowWindowOut
    flow_streak: FlowStreakOut
    task_flow_harmony: TaskFlowHarmonyOut
    warmup_phase: WarmupPhaseOut
    summary: AnalyticsSummaryOut


class SessionSummaryOut(BaseModel):
    session_count: int
    total_focus_minutes: int
    average_session_minutes: float
    distribution: dict[str, int]


class HourTotalOut(BaseModel):
    hour: int
    total_minutes: int
    session_count: int


class HourlyDistributionOut(BaseModel):
    peak_hours: list[HourTotalOut]
    all_hours: list[HourTotalOut]


class WeekdayTotalOut(BaseModel):
    day: str
    total_minutes: int
    session_count: int


class LongestSessionOut(BaseModel):
    longest_minutes: int
    date: str | None


class TaskTotalOut(BaseModel):
    task_title: str
    total_focus_minutes: int
    session_count: int
    average_session_minutes: float


class TopTasksOut(BaseModel):
    items: list[TaskTotalOut]
    has_enough_data: bool


class TaskFocusOut(BaseModel):
    found: bool
    tasks: list[TaskTotalOut]
    total_focus_minutes: int


class PeriodComparisonOut(BaseModel):
    period1: SessionSummaryOut
    period2: SessionSummaryOut


class FileResult(BaseModel):
    path: str


class HealthOut(BaseModel):
    status: str = Field(default="ok")


class MetaOut(BaseModel):
    app: str
    version: str
    db_path: str
    platform: str
    metrics: list[str]
