from __future__ import annotations

import csv
from datetime import datetime, timezone
import json
import logging
from pathlib import Path

from .db import FlowtimeDB, SessionRecord
from .engine import report_to_dict
from .results import AnalyticsReport

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "id",
    "started_at",
    "ended_at",
    "duration_seconds",
    "break_duration_seconds",
    "task_id",
]


def export_sessions_csv(db: FlowtimeDB, user_id: str, out_dir: Path) -> Path:
    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)
    csv_path = out_path / "flowtime.csv"

    sessions = db.list_all_sessions(user_id)

    with csv_path.open("w", encoding="utf-8", newline="") as fp:
        writer = csv.writer(fp)
        writer.writerow(CSV_COLUMNS)
        for item in sessions:
            writer.writerow(
                [
                    item.id,
                    item.started_at.isoformat(),
                    item.ended_at.isoformat(),
                    item.duration_seconds,
                    item.break_duration_seconds,
                    item.task_id or "",
                ]
            )

    return csv_path


def _parse_instant(text: str) -> datetime:
    value = datetime.fromisoformat(text.strip())
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def import_sessions_csv(db: FlowtimeDB, user_id: str, csv_path: Path) -> int:
    """Load sessions written by :func:`export_sessions_csv`; returns the number imported."""
    imported = 0
    with Path(csv_path).open("r", encoding="utf-8", newline="") as fp:
        reader = csv.DictReader(fp)
        for line_no, row in enumerate(reader, start=2):
            try:
                record = SessionRecord(
                    user_id=user_id,
                    started_at=_parse_instant(row["started_at"]),
                    ended_at=_parse_instant(row["ended_at"]),
                    duration_seconds=int(row["duration_seconds"]),
                    break_duration_seconds=int(row.get("break_duration_seconds") or 0),
                    task_id=(row.get("task_id") or "").strip() or None,
                )
                db.add_session(record)
            except (KeyError, ValueError) as exc:
                raise ValueError(f"第 {line_no} 行格式错误：{exc}") from exc
            imported += 1

    logger.info("imported %d sessions from %s", imported, csv_path)
    return imported


def export_analytics_json(report: AnalyticsReport, out_dir: Path) -> Path:
    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)
    json_path = out_path / "analytics.json"
    json_path.write_text(
        json.dumps(report_to_dict(report), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    return json_path
