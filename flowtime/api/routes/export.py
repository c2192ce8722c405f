from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ...clock import Clock
from ...db import FlowtimeDB
from ...engine import build_analytics, load_snapshot
from ...exporting import export_analytics_json, export_sessions_csv
from ..deps import get_clock, get_db
from ..schemas import FileResult

router = APIRouter(prefix="/api/v1", tags=["export"])

DEFAULT_OUT_DIR = Path(__file__).resolve().parents[2] / "out"


class ExportCsvRequest(BaseModel):
    user_id: str = "local"
    out_dir: str | None = None


class ExportAnalyticsRequest(ExportCsvRequest):
    week_offset: int = Field(default=0, le=0)


@router.post("/export/csv", response_model=FileResult)
def export_csv(payload: ExportCsvRequest, db: FlowtimeDB = Depends(get_db)) -> FileResult:
    out_dir = Path(payload.out_dir) if payload.out_dir else DEFAULT_OUT_DIR
    csv_path = export_sessions_csv(db, payload.user_id, out_dir)
    return FileResult(path=str(csv_path))


@router.post("/export/analytics", response_model=FileResult)
def export_analytics(
    payload: ExportAnalyticsRequest,
    db: FlowtimeDB = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> FileResult:
    out_dir = Path(payload.out_dir) if payload.out_dir else DEFAULT_OUT_DIR
    report = build_analytics(load_snapshot(db, payload.user_id), clock.now(), payload.week_offset)
    return FileResult(path=str(export_analytics_json(report, out_dir)))
