from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from ...clock import Clock
from ...db import FlowtimeDB
from ...engine import Metric, build_analytics, compute_metric, load_snapshot, report_to_dict
from ..deps import get_clock, get_db
from ..schemas import AnalyticsOut

router = APIRouter(prefix="/api/v1", tags=["analytics"])


@router.get("/analytics", response_model=AnalyticsOut)
def get_analytics(
    user_id: str = "local",
    week_offset: int = Query(default=0, le=0),
    db: FlowtimeDB = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AnalyticsOut:
    report = build_analytics(load_snapshot(db, user_id), clock.now(), week_offset)
    return AnalyticsOut.model_validate(report_to_dict(report))


@router.get("/analytics/{metric}")
def get_metric(
    metric: Metric,
    user_id: str = "local",
    week_offset: int = Query(default=0, le=0),
    db: FlowtimeDB = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> dict[str, Any]:
    result = compute_metric(metric, load_snapshot(db, user_id), clock.now(), week_offset)
    return {"metric": metric.value, "result": report_to_dict(result)}
