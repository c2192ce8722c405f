from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from ...db import FlowtimeDB
from ..deps import get_db
from ..schemas import TaskIn, TaskOut

router = APIRouter(prefix="/api/v1", tags=["tasks"])


@router.get("/tasks", response_model=list[TaskOut])
def list_tasks(user_id: str = "local", db: FlowtimeDB = Depends(get_db)) -> list[TaskOut]:
    return [TaskOut(**asdict(task)) for task in db.list_tasks(user_id)]


@router.post("/tasks", response_model=TaskOut)
def create_task(payload: TaskIn, db: FlowtimeDB = Depends(get_db)) -> TaskOut:
    try:
        task = db.add_task(payload.user_id, payload.title)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return TaskOut(**asdict(task))
