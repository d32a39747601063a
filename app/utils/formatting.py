from __future__ import annotations

import datetime
from typing import Optional


def _seconds(value: object) -> int:
    try:
        return max(0, int(value or 0))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0


def format_clock(seconds: object) -> str:
    """Player overlay format: ``h:mm:ss`` past an hour, otherwise ``m:ss``."""
    total = _seconds(seconds)
    hrs, remainder = divmod(total, 3600)
    mins, secs = divmod(remainder, 60)
    if hrs > 0:
        return f"{hrs}:{mins:02d}:{secs:02d}"
    return f"{mins}:{secs:02d}"


def format_minutes(seconds: object) -> str:
    """Student header format, e.g. ``12p 05s``."""
    mins, secs = divmod(_seconds(seconds), 60)
    return f"{mins}p {secs:02d}s"


def format_hours(seconds: object) -> str:
    """Teacher table format, e.g. ``2h 15p``."""
    total = _seconds(seconds)
    return f"{total // 3600}h {(total % 3600) // 60}p"


def format_duration(seconds: object) -> str:
    """Video list format ``m:ss`` without an hour component."""
    mins, secs = divmod(_seconds(seconds), 60)
    return f"{mins}:{secs:02d}"


def _coerce_datetime(value: object) -> object:
    """Accept serialized ISO-8601 strings as well as date objects."""
    if isinstance(value, str) and value:
        try:
            return datetime.datetime.fromisoformat(value)
        except ValueError:
            return None
    return value


def format_date(value: object) -> str:
    """Vietnamese short date, ``dd/mm/yyyy``."""
    value = _coerce_datetime(value)
    if isinstance(value, datetime.datetime):
        value = value.date()
    if isinstance(value, datetime.date):
        return value.strftime("%d/%m/%Y")
    return ""


def format_datetime(value: object) -> str:
    """Vietnamese date and time, ``HH:MM:SS dd/mm/yyyy``."""
    value = _coerce_datetime(value)
    if isinstance(value, datetime.datetime):
        return value.strftime("%H:%M:%S %d/%m/%Y")
    return format_date(value)


def isoformat_or_none(value: object) -> Optional[str]:
    if value in (None, "", "null"):
        return None
    if isinstance(value, datetime.datetime):
        return value.isoformat()
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.datetime.min.time()).isoformat()
    if isinstance(value, str):
        try:
            return datetime.datetime.fromisoformat(value).isoformat()
        except ValueError:
            return value
    return None


def format_score(value: object) -> str:
    if value is None:
        return "-"
    try:
        return f"{float(value):.1f}"  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return "-"
