from __future__ import annotations

from pathlib import Path

from fastapi import Request

from ..clock import Clock
from ..db import FlowtimeDB


def get_db(request: Request) -> FlowtimeDB:
    db_path = Path(request.app.state.db_path)
    return FlowtimeDB(db_path)


def get_clock(request: Request) -> Clock:
    return request.app.state.clock
