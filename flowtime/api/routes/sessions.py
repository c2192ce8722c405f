from __future__ import annotations

from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query

from ...db import FlowtimeDB, SessionRecord
from ..deps import get_db
from ..schemas import SessionIn, SessionOut

router = APIRouter(prefix="/api/v1", tags=["sessions"])


@router.get("/sessions", response_model=list[SessionOut])
def list_sessions(
    user_id: str = "local",
    since: datetime | None = None,
    task_id: str | None = None,
    limit: int = Query(default=30, ge=1, le=2000),
    db: FlowtimeDB = Depends(get_db),
) -> list[SessionOut]:
    items = db.list_sessions(user_id=user_id, since=since, task_id=task_id, limit=limit)
    return [SessionOut(**asdict(item)) for item in items]


@router.get("/sessions/{session_id}", response_model=SessionOut)
def get_session(session_id: str, db: FlowtimeDB = Depends(get_db)) -> SessionOut:
    item = db.get_session(session_id)
    if item is not None:
        return SessionOut(**asdict(item))
    raise HTTPException(status_code=404, detail="session not found")


@router.post("/sessions", response_model=SessionOut)
def create_session(payload: SessionIn, db: FlowtimeDB = Depends(get_db)) -> SessionOut:
    try:
        item = db.add_session(SessionRecord(**payload.model_dump()))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return SessionOut(**asdict(item))
