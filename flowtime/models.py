from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Session:
    id: str
    user_id: str
    started_at: datetime
    ended_at: datetime
    duration_seconds: int
    break_duration_seconds: int = 0
    task_id: str | None = None


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    user_id: str = ""
