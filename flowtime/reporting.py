from __future__ import annotations

from datetime import datetime
from pathlib import Path

from .clock import Clock, RealClock
from .db import FlowtimeDB
from .engine import build_analytics, load_snapshot
from .metrics import week_monday
from .primitives import local_now
from .results import AnalyticsReport

DENSITY_TEXT = {
    "sharp": "专注锐利",
    "good": "状态良好",
    "scattered_start": "开局分散",
    "scattered_mind": "注意力分散",
}


def format_minutes(minutes: int) -> str:
    total = max(0, int(minutes))
    hours, mins = divmod(total, 60)
    if hours > 0:
        return f"{hours}小时{mins:02d}分"
    return f"{mins}分"


def render_weekly_report(report: AnalyticsReport, now: datetime) -> str:
    week = report.weekly_work_time
    lines: list[str] = []
    lines.append(f"# Flowtime 周报 {week.week_label}")
    lines.append("")
    lines.append(f"- 统计区间：{week.days[0].date} 至 {week.days[-1].date}")
    lines.append(f"- 生成时间：{now.strftime('%Y-%m-%d %H:%M:%S %Z')}")
    lines.append(f"- 历史会话：{report.summary.total_sessions} 次，累计 {format_minutes(report.summary.all_time_minutes)}")
    lines.append("")

    lines.append("## 每日专注时长")
    if week.has_enough_data:
        lines.append("| 日期 | 星期 | 时长 |")
        lines.append("| --- | --- | --- |")
        for day in week.days:
            lines.append(f"| {day.date} | {day.day_label} | {format_minutes(day.total_minutes)} |")
        lines.append(f"| 合计 | | {format_minutes(week.week_total_minutes)} |")
    else:
        lines.append("本周暂无专注会话。")
    lines.append("")

    lines.append("## 今日状态")
    density = report.focus_density
    if density.has_enough_data:
        lines.append(f"- 专注密度：{density.percentage}%（{DENSITY_TEXT[density.label]}）")
    else:
        lines.append("- 专注密度：今天暂无数据")
    freedom = report.earned_freedom
    lines.append(
        f"- 休息额度：获得 {freedom.earned_minutes} 分，已用 {freedom.used_minutes} 分，"
        f"余额 {freedom.balance_minutes} 分"
    )
    lines.append(f"- 近 7 天休息额度：获得 {freedom.week_earned} 分，已用 {freedom.week_used} 分")
    lines.append("")

    lines.append("## 连续专注")
    streak = report.flow_streak
    if streak.has_enough_data:
        lines.append(f"- 当前连续：{streak.current_streak} 天")
        lines.append(f"- 历史最长：{streak.record_streak} 天")
        lines.append("- 近 30 天：" + "".join("■" if day.filled else "□" for day in streak.last_30_days))
    else:
        lines.append("会话不足，暂无连续记录。")
    lines.append("")

    lines.append("## 任务分布")
    harmony = report.task_flow_harmony
    if harmony.has_enough_data:
        lines.append("| 任务 | 时长 | 会话 |")
        lines.append("| --- | --- | --- |")
        for item in harmony.items:
            lines.append(
                f"| {item.task_title} | {format_minutes(item.total_focus_minutes)} | {item.session_count} |"
            )
    else:
        lines.append("带任务的会话不足 10 次。")
    lines.append("")

    lines.append("## 专注习惯")
    waves = report.daily_flow_waves
    if waves.has_enough_data and waves.peak_hour is not None:
        lines.append(f"- 高峰时段：{waves.peak_hour:02d}:00")
    resistance = report.resistance_point
    if resistance.has_enough_data:
        lines.append(f"- 阻力点：{resistance.resistance_minute} 分钟")
    window = report.natural_flow_window
    if window.has_enough_data:
        lines.append(
            f"- 自然心流区间：{window.dominant_window_start}-{window.dominant_window_end} 分钟"
            f"（中位数 {window.median} 分钟）"
        )
    warmup = report.warmup_phase
    if warmup.has_enough_data:
        text = f"- 热身时间：{warmup.avg_warmup_minutes} 分钟"
        if warmup.change_minutes is not None:
            text += f"（较上月 {warmup.change_minutes:+.1f} 分钟）"
        lines.append(text)
    lines.append("")

    return "\n".join(lines)


def generate_weekly_report(
    db: FlowtimeDB,
    user_id: str,
    out_dir: Path,
    week_offset: int = 0,
    now: datetime | None = None,
    clock: Clock | None = None,
) -> Path:
    ref = local_now(now or (clock or RealClock()).now())

    report = build_analytics(load_snapshot(db, user_id), ref, week_offset)
    monday = week_monday(ref, week_offset)

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    report_path = out_dir / f"week-{monday.isoformat()}.md"
    report_path.write_text(render_weekly_report(report, ref), encoding="utf-8")
    return report_path
