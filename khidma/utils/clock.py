# -*- coding: utf-8 -*-
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

DAY = timedelta(days=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    value = ensure_aware(value)
    return value.isoformat() if value else None


def days_left(ends_at: datetime, now: datetime) -> int:
    """Whole days remaining, rounded up; zero once ends_at has passed."""
    remaining = ensure_aware(ends_at) - ensure_aware(now)
    if remaining <= timedelta(0):
        return 0
    return math.ceil(remaining / DAY)


def from_unix(ts: Optional[int]) -> Optional[datetime]:
    if ts is None:
        return None
    return datetime.fromtimestamp(int(ts), tz=timezone.utc)


def start_of_day(now: datetime) -> datetime:
    now = ensure_aware(now)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)
