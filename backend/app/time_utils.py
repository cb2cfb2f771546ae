from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_in(hours: float) -> datetime:
    return utcnow() + timedelta(hours=hours)


def has_passed(moment: Optional[datetime]) -> bool:
    """True once a naive-UTC (or aware) moment lies in the past. None never passes."""
    if moment is None:
        return False
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment < utcnow()


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    ISO-8601 with trailing 'Z', seconds precision.
    Naive values are UTC by convention.
    """
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
