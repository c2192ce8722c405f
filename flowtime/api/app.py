from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI

from ..clock import Clock, RealClock
from ..db import default_db_path
from .routes.analytics import router as analytics_router
from .routes.export import router as export_router
from .routes.health import router as health_router
from .routes.insights import router as insights_router
from .routes.meta import router as meta_router
from .routes.report import router as report_router
from .routes.sessions import router as sessions_router
from .routes.tasks import router as tasks_router

logger = logging.getLogger(__name__)


def create_app(db_path: Path | None = None, clock: Clock | None = None) -> FastAPI:
    resolved_db = Path(db_path or default_db_path())

    app = FastAPI(title="Flowtime API", version="0.1.0")
    app.state.db_path = str(resolved_db)
    app.state.clock = clock or RealClock()

    app.include_router(health_router)
    app.include_router(meta_router)
    app.include_router(sessions_router)
    app.include_router(tasks_router)
    app.include_router(analytics_router)
    app.include_router(insights_router)
    app.include_router(report_router)
    app.include_router(export_router)

    logger.debug("Flowtime API configured with db %s", resolved_db)
    return app
