from __future__ import annotations

from datetime import datetime

from .models import Duration

MAX_BREAK_MINUTES = 60


def format_time(duration: Duration) -> str:
    """Render a duration as HH:MM:SS for consistent report output."""
    return f"{duration.hours:02}:{duration.minutes:02}:{duration.seconds:02}"


def to_minutes(duration: Duration) -> int:
    return duration.hours * 60 + duration.minutes


def validate_break_duration(minutes: float, max_minutes: int = MAX_BREAK_MINUTES) -> bool:
    """Advisory policy check; nothing blocks a transition on it."""
    return minutes <= max_minutes


def calculate_time_difference(start: datetime, end: datetime) -> int:
    """Whole minutes between two instants, rounded."""
    return round((end - start).total_seconds() / 60)


def efficiency_from(work: Duration, brk: Duration) -> int:
    """Share of the day spent working, as a 0-100 score."""
    total = to_minutes(work) + to_minutes(brk)
    if total == 0:
        return 0
    return round(to_minutes(work) / total * 100)


def work_status(efficiency: float) -> str:
    if efficiency >= 80:
        return "Excellent"
    if efficiency >= 60:
        return "Good"
    if efficiency >= 40:
        return "Fair"
    return "Needs Improvement"


def break_status(average_break_minutes: float) -> str:
    if average_break_minutes <= 15:
        return "Short Breaks"
    if average_break_minutes <= 30:
        return "Moderate Breaks"
    return "Long Breaks"
