"""Provide utility helpers for timestamps."""

from __future__ import annotations

import math
import time
from datetime import datetime, timezone
from typing import Any, Optional


def now_ms() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        if not isinstance(value, str):
            value = str(value)
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        dt = datetime.fromisoformat(value)
        # If a naive timestamp slips in, assume UTC to avoid crashes.
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError:
        return None


def parse_millis(value: Any) -> Optional[float]:
    """Coerce a stored timestamp into epoch milliseconds.

    Accepts numbers (already milliseconds), ``datetime`` objects and ISO-8601
    strings.  Anything else, including NaN, yields ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else float(value)
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return dt.timestamp() * 1000
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            dt = _parse_iso(value)
            return dt.timestamp() * 1000 if dt else None
        return None if math.isnan(parsed) else parsed
    return None
