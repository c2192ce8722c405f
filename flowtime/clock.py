from __future__ import annotations

from datetime import datetime, timezone, tzinfo
import logging
import os
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def _system_zone_name() -> str:
    name = (os.getenv("FLOWTIME_TZ") or os.getenv("TZ") or "").strip().lstrip(":")
    if name:
        return name
    target = os.path.realpath("/etc/localtime")
    if "zoneinfo/" in target:
        return target.split("zoneinfo/", 1)[1]
    return ""


def local_zone() -> tzinfo:
    """The machine's IANA zone; a fixed offset only when no zone name can be found."""
    name = _system_zone_name()
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("unknown time zone %r, using the current UTC offset", name)
    return datetime.now().astimezone().tzinfo or timezone.utc


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class RealClock:
    def __init__(self, zone: tzinfo | None = None) -> None:
        self.zone = zone or local_zone()

    def now(self) -> datetime:
        return datetime.now(self.zone)


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        base = start or datetime(2026, 1, 1, tzinfo=timezone.utc)
        if base.tzinfo is None:
            base = base.replace(tzinfo=timezone.utc)
        self._current = base

    def now(self) -> datetime:
        return self._current
