"""Calendar helpers: Monday-start weeks and human-readable labels."""

from __future__ import annotations

from datetime import date, timedelta


def week_start(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    # Sunday is weekday() == 6, so this steps back 6 days to Monday
    return day - timedelta(days=day.weekday())


def next_week_start(day: date) -> date:
    """Monday of the week after the one containing ``day``."""
    return week_start(day) + timedelta(days=7)


def resolve_week(day: date, which: str | None) -> date:
    """Resolve "this"/"next" (or None) to a Monday relative to ``day``."""
    if which and which.lower() == "next":
        return next_week_start(day)
    return week_start(day)


def format_week_label(start: date) -> str:
    """Label a work week as "Jan 27 - Jan 31" (Monday to Friday)."""
    end = start + timedelta(days=4)
    return f"{_short(start)} - {_short(end)}"


def format_day_label(day: date) -> str:
    return _short(day)


def _short(day: date) -> str:
    return f"{day.strftime('%b')} {day.day}"


def format_hours(hours: float) -> str:
    """Render hours without a trailing ".0" (4.0 -> "4", 4.5 -> "4.5")."""
    if float(hours).is_integer():
        return str(int(hours))
    return f"{hours:g}"


def format_duration(minutes: int) -> str:
    """Render minutes as "45m", "2h" or "2h 15m"."""
    if minutes < 60:
        return f"{minutes}m"
    hrs, mins = divmod(minutes, 60)
    return f"{hrs}h {mins}m" if mins else f"{hrs}h"


__all__ = [
    "format_day_label",
    "format_duration",
    "format_hours",
    "format_week_label",
    "next_week_start",
    "resolve_week",
    "week_start",
]
