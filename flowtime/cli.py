from __future__ import annotations

import argparse
from datetime import date, datetime, time as dtime, timedelta
import json
import logging
from pathlib import Path
import sys

from .clock import Clock, RealClock, local_zone
from .db import FlowtimeDB, SessionRecord, default_db_path, default_user
from .engine import Metric, build_analytics, compute_metric, load_snapshot, report_to_dict
from .exporting import export_analytics_json, export_sessions_csv, import_sessions_csv
from .insights import (
    PERIODS,
    filter_period,
    hourly_distribution,
    longest_session,
    summarize_sessions,
    task_focus_by_name,
)
from .reporting import DENSITY_TEXT, format_minutes, generate_weekly_report


DEFAULT_OUT_DIR = Path(__file__).resolve().parent / "out"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def parse_instant(value: str) -> datetime:
    text = value.strip()
    local_tz = local_zone()

    try:
        if len(text) == 10:
            day = date.fromisoformat(text)
            return datetime.combine(day, dtime.min).replace(tzinfo=local_tz)

        dt = datetime.fromisoformat(text)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=local_tz)
        return dt
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"时间格式错误：{value}，请使用 YYYY-MM-DD 或 ISO 日期时间"
        ) from exc


def parse_week_offset(value: str) -> int:
    try:
        offset = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"周偏移必须是整数：{value}") from exc
    if offset > 0:
        raise argparse.ArgumentTypeError("周偏移不能大于 0（不能查看未来的周）")
    return offset


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flowtime",
        description="Flowtime：专注会话记录与行为分析工具",
    )
    parser.add_argument(
        "--db",
        default=str(default_db_path()),
        help="SQLite 数据库路径（默认 flowtime/data/flowtime.sqlite，可用 FLOWTIME_DB 覆盖）",
    )
    parser.add_argument("--user", default=default_user(), help="用户 ID（默认 FLOWTIME_USER 或 local）")
    parser.add_argument("--debug", action="store_true", help="输出调试日志")

    subparsers = parser.add_subparsers(dest="command", required=True)

    log_parser = subparsers.add_parser("log", help="查看会话记录")
    log_parser.add_argument("--since", type=parse_instant, default=None, help="起始时间")
    log_parser.add_argument("--task-id", default=None, help="按任务 ID 过滤")
    log_parser.add_argument("--limit", type=int, default=20, help="最多显示条数")

    add_parser = subparsers.add_parser("add", help="手动添加一条专注会话")
    add_parser.add_argument("--start", type=parse_instant, required=True, help="开始时间")
    add_parser.add_argument("--minutes", type=float, required=True, help="专注时长（分钟）")
    add_parser.add_argument("--break", dest="break_minutes", type=float, default=0.0, help="休息时长（分钟）")
    add_parser.add_argument("--task-id", default=None, help="关联任务 ID")

    task_add_parser = subparsers.add_parser("task-add", help="新建任务")
    task_add_parser.add_argument("title", help="任务标题")

    subparsers.add_parser("tasks", help="列出任务")

    analytics_parser = subparsers.add_parser("analytics", help="计算全部九项分析指标")
    analytics_parser.add_argument("--week-offset", type=parse_week_offset, default=0, help="周偏移（0 为本周）")
    analytics_parser.add_argument("--json", action="store_true", help="以 JSON 输出")

    metric_parser = subparsers.add_parser("metric", help="计算单项指标")
    metric_parser.add_argument("name", choices=[metric.value for metric in Metric], help="指标名称")
    metric_parser.add_argument("--week-offset", type=parse_week_offset, default=0, help="周偏移（0 为本周）")

    insights_parser = subparsers.add_parser("insights", help="查看区间统计")
    insights_parser.add_argument("--period", choices=PERIODS, default="last_7_days", help="统计区间")
    insights_parser.add_argument("--task", default=None, help="按任务标题（不区分大小写）查看专注时长")

    report_parser = subparsers.add_parser("report", help="生成周报 Markdown")
    report_parser.add_argument("--week-offset", type=parse_week_offset, default=0, help="周偏移（0 为本周）")
    report_parser.add_argument(
        "--out-dir",
        default=str(DEFAULT_OUT_DIR),
        help="输出目录，默认 flowtime/out",
    )

    export_parser = subparsers.add_parser("export", help="导出 CSV")
    export_parser.add_argument(
        "--out-dir",
        default=str(DEFAULT_OUT_DIR),
        help="输出目录，默认 flowtime/out",
    )
    export_parser.add_argument("--analytics", action="store_true", help="同时导出 analytics.json")

    import_parser = subparsers.add_parser("import", help="从 CSV 导入会话")
    import_parser.add_argument("csv_path", help="CSV 文件路径")

    serve_parser = subparsers.add_parser("serve", help="启动 HTTP 接口")
    serve_parser.add_argument("--host", default="127.0.0.1", help="监听地址")
    serve_parser.add_argument("--port", type=int, default=8000, help="监听端口")

    return parser


def main(argv: list[str] | None = None, clock: Clock | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )

    if args.command == "serve":
        return _handle_serve(args)

    db = FlowtimeDB(Path(args.db))
    clock = clock or RealClock()

    try:
        if args.command == "log":
            return _handle_log(args, db)
        if args.command == "add":
            return _handle_add(args, db, parser)
        if args.command == "task-add":
            return _handle_task_add(args, db)
        if args.command == "tasks":
            return _handle_tasks(args, db)
        if args.command == "analytics":
            return _handle_analytics(args, db, clock)
        if args.command == "metric":
            return _handle_metric(args, db, clock)
        if args.command == "insights":
            return _handle_insights(args, db, clock)
        if args.command == "report":
            return _handle_report(args, db, clock)
        if args.command == "export":
            return _handle_export(args, db, clock)
        if args.command == "import":
            return _handle_import(args, db)
    except ValueError as exc:
        print(f"错误：{exc}", file=sys.stderr)
        return 1

    parser.print_help()
    return 2


def _handle_log(args: argparse.Namespace, db: FlowtimeDB) -> int:
    sessions = db.list_sessions(
        user_id=args.user,
        since=args.since,
        task_id=(args.task_id.strip() if args.task_id else None),
        limit=args.limit,
    )

    if not sessions:
        print("没有匹配记录。")
        return 0

    for item in sessions:
        start_text = item.started_at.astimezone(local_zone()).strftime("%Y-%m-%d %H:%M:%S")
        print(
            f"{start_text} | 专注 {format_minutes(round(item.duration_seconds / 60))} | "
            f"休息 {format_minutes(round(item.break_duration_seconds / 60))} | "
            f"任务: {item.task_id or '-'} | ID: {item.id}"
        )
    return 0


def _handle_add(args: argparse.Namespace, db: FlowtimeDB, parser: argparse.ArgumentParser) -> int:
    if args.minutes < 0 or args.break_minutes < 0:
        parser.error("时长参数不能为负数")

    duration = int(round(args.minutes * 60))
    session = db.add_session(
        SessionRecord(
            user_id=args.user,
            started_at=args.start,
            ended_at=args.start + timedelta(seconds=duration),
            duration_seconds=duration,
            break_duration_seconds=int(round(args.break_minutes * 60)),
            task_id=args.task_id,
        )
    )
    print(f"已记录会话：{session.id}")
    return 0


def _handle_task_add(args: argparse.Namespace, db: FlowtimeDB) -> int:
    task = db.add_task(args.user, args.title)
    print(f"已创建任务：{task.id} {task.title}")
    return 0


def _handle_tasks(args: argparse.Namespace, db: FlowtimeDB) -> int:
    tasks = db.list_tasks(args.user)
    if not tasks:
        print("暂无任务。")
        return 0
    for task in tasks:
        print(f"{task.id} | {task.title}")
    return 0


def _handle_analytics(args: argparse.Namespace, db: FlowtimeDB, clock: Clock) -> int:
    report = build_analytics(load_snapshot(db, args.user), clock.now(), args.week_offset)
    if args.json:
        print(json.dumps(report_to_dict(report), ensure_ascii=False, indent=2))
        return 0

    week = report.weekly_work_time
    print(f"[本周 {week.week_label}]")
    for day in week.days:
        print(f"{day.date} {day.day_label}: {format_minutes(day.total_minutes)}")
    print(f"合计: {format_minutes(week.week_total_minutes)}")
    print("")

    density = report.focus_density
    print("[今日]")
    if density.has_enough_data:
        print(f"专注密度: {density.percentage}% {DENSITY_TEXT[density.label]}")
    else:
        print("专注密度: 数据不足")
    freedom = report.earned_freedom
    print(f"休息余额: {freedom.balance_minutes} 分（获得 {freedom.earned_minutes} / 已用 {freedom.used_minutes}）")
    print("")

    streak = report.flow_streak
    print("[习惯]")
    print(f"连续专注: {streak.current_streak} 天（最长 {streak.record_streak} 天）" if streak.has_enough_data else "连续专注: 数据不足")
    waves = report.daily_flow_waves
    print(f"高峰时段: {waves.peak_hour:02d}:00" if waves.peak_hour is not None else "高峰时段: 数据不足")
    resistance = report.resistance_point
    print(f"阻力点: {resistance.resistance_minute} 分钟" if resistance.has_enough_data else "阻力点: 数据不足")
    warmup = report.warmup_phase
    print(f"热身时间: {warmup.avg_warmup_minutes} 分钟" if warmup.has_enough_data else "热身时间: 数据不足")
    print(f"历史会话: {report.summary.total_sessions} 次，累计 {format_minutes(report.summary.all_time_minutes)}")
    return 0


def _handle_metric(args: argparse.Namespace, db: FlowtimeDB, clock: Clock) -> int:
    result = compute_metric(Metric(args.name), load_snapshot(db, args.user), clock.now(), args.week_offset)
    print(json.dumps(report_to_dict(result), ensure_ascii=False, indent=2))
    return 0


def _handle_insights(args: argparse.Namespace, db: FlowtimeDB, clock: Clock) -> int:
    now = clock.now()
    sessions = filter_period(db.list_all_sessions(args.user), args.period, now)
    summary = summarize_sessions(sessions)
    print(f"[{args.period}]")
    print(f"会话: {summary.session_count} 次")
    print(f"专注总时长: {format_minutes(summary.total_focus_minutes)}")
    print(f"平均时长: {summary.average_session_minutes} 分钟")
    for key, count in summary.distribution.items():
        print(f"  {key}: {count}")

    peaks = hourly_distribution(sessions, now).peak_hours
    if peaks:
        print("高峰时段: " + ", ".join(f"{entry.hour:02d}:00（{entry.total_minutes} 分）" for entry in peaks))
    longest = longest_session(sessions, now)
    if longest.date is not None:
        print(f"最长会话: {longest.longest_minutes} 分钟（{longest.date}）")

    if args.task:
        focus = task_focus_by_name(sessions, db.list_tasks(args.user), args.task)
        if not focus.found:
            print(f"没有找到任务：{args.task}")
        else:
            for entry in focus.tasks:
                print(f"任务 {entry.task_title}: {format_minutes(entry.total_focus_minutes)}，{entry.session_count} 次")
            print(f"任务合计: {format_minutes(focus.total_focus_minutes)}")
    return 0


def _handle_report(args: argparse.Namespace, db: FlowtimeDB, clock: Clock) -> int:
    report_path = generate_weekly_report(
        db=db,
        user_id=args.user,
        out_dir=Path(args.out_dir),
        week_offset=args.week_offset,
        clock=clock,
    )
    print(f"周报已生成：{report_path}")
    return 0


def _handle_export(args: argparse.Namespace, db: FlowtimeDB, clock: Clock) -> int:
    csv_path = export_sessions_csv(db=db, user_id=args.user, out_dir=Path(args.out_dir))
    print(f"CSV 已导出：{csv_path}")
    if args.analytics:
        report = build_analytics(load_snapshot(db, args.user), clock.now())
        json_path = export_analytics_json(report, Path(args.out_dir))
        print(f"分析结果已导出：{json_path}")
    return 0


def _handle_import(args: argparse.Namespace, db: FlowtimeDB) -> int:
    count = import_sessions_csv(db=db, user_id=args.user, csv_path=Path(args.csv_path))
    print(f"已导入 {count} 条会话。")
    return 0


def _handle_serve(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError as exc:
        print(f"HTTP 服务启动失败：缺少依赖 uvicorn。{exc}", file=sys.stderr)
        return 2

    from .api.app import create_app

    app = create_app(db_path=Path(args.db))
    uvicorn.run(app, host=args.host, port=args.port, log_level="debug" if args.debug else "warning")
    return 0
