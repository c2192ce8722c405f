from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import os
from pathlib import Path
import sqlite3
import uuid

from .models import Session, Task

logger = logging.getLogger(__name__)

_SESSION_COLUMNS = (
    "id, user_id, started_at, ended_at, duration_seconds, break_duration_seconds, task_id"
)


def _to_utc_text(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S")


def _from_utc_text(text: str) -> datetime:
    return datetime.strptime(text, "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class SessionRecord:
    user_id: str
    started_at: datetime
    ended_at: datetime
    duration_seconds: int
    break_duration_seconds: int = 0
    task_id: str | None = None


def validate_record(record: SessionRecord) -> None:
    if not record.user_id.strip():
        raise ValueError("user_id 不能为空")
    if record.duration_seconds < 0 or record.break_duration_seconds < 0:
        raise ValueError("时长不能为负数")
    if _to_utc_text(record.ended_at) < _to_utc_text(record.started_at):
        raise ValueError("结束时间早于开始时间")


class FlowtimeDB:
    def __init__(self, db_path: Path, journal_mode: str | None = None) -> None:
        self.db_path = Path(db_path)
        raw_mode = (journal_mode or os.getenv("FLOWTIME_JOURNAL_MODE") or "MEMORY").strip()
        self.journal_mode = raw_mode.upper() if raw_mode else "MEMORY"
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        self._apply_journal_mode(conn)
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _apply_journal_mode(self, conn: sqlite3.Connection) -> None:
        try:
            conn.execute(f"PRAGMA journal_mode={self.journal_mode}")
        except sqlite3.OperationalError:
            logger.warning("journal mode %s rejected, using MEMORY", self.journal_mode)
            conn.execute("PRAGMA journal_mode=MEMORY")

    def init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    started_at TEXT NOT NULL,
                    ended_at TEXT NOT NULL,
                    duration_seconds INTEGER NOT NULL CHECK (duration_seconds >= 0),
                    break_duration_seconds INTEGER NOT NULL DEFAULT 0
                        CHECK (break_duration_seconds >= 0),
                    task_id TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_sessions_user_started
                ON sessions(user_id, started_at)
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    title TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_tasks_user
                ON tasks(user_id)
                """
            )
            conn.commit()

    def add_session(self, record: SessionRecord) -> Session:
        try:
            validate_record(record)
        except ValueError:
            logger.warning("rejected session for user %r: %r", record.user_id, record)
            raise

        session = Session(
            id=uuid.uuid4().hex,
            user_id=record.user_id.strip(),
            started_at=_from_utc_text(_to_utc_text(record.started_at)),
            ended_at=_from_utc_text(_to_utc_text(record.ended_at)),
            duration_seconds=int(record.duration_seconds),
            break_duration_seconds=int(record.break_duration_seconds),
            task_id=(record.task_id or "").strip() or None,
        )
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO sessions ({_SESSION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    session.id,
                    session.user_id,
                    _to_utc_text(session.started_at),
                    _to_utc_text(session.ended_at),
                    session.duration_seconds,
                    session.break_duration_seconds,
                    session.task_id,
                ),
            )
            conn.commit()
        return session

    def get_session(self, session_id: str) -> Session | None:
        items = self._read_sessions(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE id = ?",
            [session_id],
        )
        return items[0] if items else None

    def list_sessions(
        self,
        user_id: str,
        since: datetime | None = None,
        task_id: str | None = None,
        limit: int = 20,
    ) -> list[Session]:
        clauses = ["user_id = ?"]
        params: list[object] = [user_id]

        if since is not None:
            clauses.append("started_at >= ?")
            params.append(_to_utc_text(since))
        if task_id:
            clauses.append("task_id = ?")
            params.append(task_id.strip())

        safe_limit = max(1, min(2000, int(limit)))
        query = (
            f"SELECT {_SESSION_COLUMNS} "
            "FROM sessions "
            f"WHERE {' AND '.join(clauses)} "
            "ORDER BY started_at DESC "
            "LIMIT ?"
        )
        params.append(safe_limit)
        return self._read_sessions(query, params)

    def list_sessions_between(self, user_id: str, start: datetime, end: datetime) -> list[Session]:
        query = (
            f"SELECT {_SESSION_COLUMNS} "
            "FROM sessions "
            "WHERE user_id = ? AND started_at >= ? AND started_at < ? "
            "ORDER BY started_at ASC"
        )
        return self._read_sessions(query, [user_id, _to_utc_text(start), _to_utc_text(end)])

    def list_all_sessions(self, user_id: str) -> list[Session]:
        query = (
            f"SELECT {_SESSION_COLUMNS} "
            "FROM sessions "
            "WHERE user_id = ? "
            "ORDER BY started_at ASC"
        )
        return self._read_sessions(query, [user_id])

    def _read_sessions(self, query: str, params: list[object]) -> list[Session]:
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()

        items: list[Session] = []
        for row in rows:
            items.append(
                Session(
                    id=row["id"],
                    user_id=row["user_id"],
                    started_at=_from_utc_text(row["started_at"]),
                    ended_at=_from_utc_text(row["ended_at"]),
                    duration_seconds=int(row["duration_seconds"]),
                    break_duration_seconds=int(row["break_duration_seconds"]),
                    task_id=row["task_id"],
                )
            )
        logger.debug("read %d sessions", len(items))
        return items

    def add_task(self, user_id: str, title: str) -> Task:
        clean_title = title.strip()
        if not clean_title:
            raise ValueError("任务标题不能为空")

        task = Task(id=uuid.uuid4().hex, title=clean_title, user_id=user_id)
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO tasks (id, user_id, title) VALUES (?, ?, ?)",
                (task.id, task.user_id, task.title),
            )
            conn.commit()
        return task

    def get_task(self, task_id: str) -> Task | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, user_id, title FROM tasks WHERE id = ?",
                (task_id,),
            ).fetchone()
        if row is None:
            return None
        return Task(id=row["id"], title=row["title"], user_id=row["user_id"])

    def list_tasks(self, user_id: str) -> list[Task]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, user_id, title FROM tasks WHERE user_id = ? ORDER BY title ASC",
                (user_id,),
            ).fetchall()
        return [Task(id=row["id"], title=row["title"], user_id=row["user_id"]) for row in rows]


def default_db_path() -> Path:
    override = os.getenv("FLOWTIME_DB", "").strip()
    if override:
        return Path(override)
    return Path(__file__).resolve().parent / "data" / "flowtime.sqlite"


def default_user() -> str:
    return os.getenv("FLOWTIME_USER", "").strip() or "local"
