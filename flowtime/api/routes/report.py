from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ...clock import Clock
from ...db import FlowtimeDB
from ...reporting import generate_weekly_report
from ..deps import get_clock, get_db
from ..schemas import FileResult

router = APIRouter(prefix="/api/v1", tags=["report"])


class WeeklyReportRequest(BaseModel):
    user_id: str = "local"
    week_offset: int = Field(default=0, le=0)
    out_dir: str | None = None


@router.post("/report/weekly", response_model=FileResult)
def generate_report(
    payload: WeeklyReportRequest,
    db: FlowtimeDB = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> FileResult:
    out_dir = Path(payload.out_dir) if payload.out_dir else Path(__file__).resolve().parents[2] / "out"
    report_path = generate_weekly_report(
        db=db,
        user_id=payload.user_id,
        out_dir=out_dir,
        week_offset=payload.week_offset,
        clock=clock,
    )
    return FileResult(path=str(report_path))
