from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_day_key(now: datetime, tz: str = "UTC") -> str:
    """Return the calendar day of ``now`` in ``tz`` as ``YYYY-MM-DD``.

    Callers capture ``now`` once per request and derive every day-scoped
    value from it, so a request straddling midnight sees a single day.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz)).strftime("%Y-%m-%d")


def to_epoch_ms(now: datetime) -> int:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return int(now.timestamp() * 1000)


def daily_counter_key(day: str) -> str:
    return f"daily:{day}"
