from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any


def parse_iso_utc(value: str | None) -> datetime | None:
    """Parse an ISO timestamp and normalize to UTC."""
    if not value:
        return None

    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        # Stored values should be timezone-aware; treat naive values as UTC for resilience.
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso_utc(value: datetime) -> str:
    if value.tzinfo is None:
        raise ValueError("Datetime must be timezone-aware")
    return value.astimezone(timezone.utc).isoformat()


class SessionState(str, Enum):
    CHECKED_OUT = "checked_out"
    CHECKED_IN = "checked_in"
    ON_BREAK = "on_break"


@dataclass(frozen=True, slots=True)
class Duration:
    hours: int = 0
    minutes: int = 0
    seconds: int = 0

    @classmethod
    def from_timedelta(cls, delta: timedelta) -> Duration:
        # Negative spans (clock skew) collapse to zero.
        total = max(0, int(delta.total_seconds()))
        hours, remainder = divmod(total, 3600)
        minutes, seconds = divmod(remainder, 60)
        return cls(hours=hours, minutes=minutes, seconds=seconds)

    def total_seconds(self) -> int:
        return self.hours * 3600 + self.minutes * 60 + self.seconds

    def to_timedelta(self) -> timedelta:
        return timedelta(seconds=self.total_seconds())

    def to_dict(self) -> dict[str, int]:
        return {"hours": self.hours, "minutes": self.minutes, "seconds": self.seconds}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Duration:
        # Stored values are taken as-is; no renormalization of minutes/seconds.
        return cls(
            hours=int(data["hours"]),
            minutes=int(data["minutes"]),
            seconds=int(data["seconds"]),
        )


@dataclass(frozen=True, slots=True)
class BreakRecord:
    start_time: datetime
    end_time: datetime | None = None
    duration: Duration = field(default_factory=Duration)
    reason: str | None = None
    approved: bool | None = None

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "startTime": to_iso_utc(self.start_time),
            "duration": self.duration.to_dict(),
        }
        if self.end_time is not None:
            data["endTime"] = to_iso_utc(self.end_time)
        if self.reason is not None:
            data["reason"] = self.reason
        if self.approved is not None:
            data["approved"] = self.approved
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BreakRecord:
        start = parse_iso_utc(data["startTime"])
        if start is None:
            raise ValueError("Break record is missing startTime")
        return cls(
            start_time=start,
            end_time=parse_iso_utc(data.get("endTime")),
            duration=Duration.from_dict(data.get("duration") or {"hours": 0, "minutes": 0, "seconds": 0}),
            reason=data.get("reason"),
            approved=data.get("approved"),
        )


@dataclass(frozen=True, slots=True)
class DailyTimeRecord:
    """One finalized working day, created at checkout and never mutated."""

    date: str
    check_in_time: str
    total_work_time: Duration
    total_break_time: Duration
    efficiency: float
    check_out_time: str | None = None
    breaks: tuple[BreakRecord, ...] = ()
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "date": self.date,
            "checkInTime": self.check_in_time,
            "totalWorkTime": self.total_work_time.to_dict(),
            "totalBreakTime": self.total_break_time.to_dict(),
            "breaks": [item.to_dict() for item in self.breaks],
            "efficiency": self.efficiency,
        }
        if self.check_out_time is not None:
            data["checkOutTime"] = self.check_out_time
        if self.notes is not None:
            data["notes"] = self.notes
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DailyTimeRecord:
        day = str(data["date"])
        # Reports compare days as ISO dates; reject anything that does not parse.
        date.fromisoformat(day)
        return cls(
            date=day,
            check_in_time=str(data["checkInTime"]),
            check_out_time=data.get("checkOutTime"),
            total_work_time=Duration.from_dict(data["totalWorkTime"]),
            total_break_time=Duration.from_dict(data["totalBreakTime"]),
            breaks=tuple(BreakRecord.from_dict(item) for item in data.get("breaks", [])),
            notes=data.get("notes"),
            efficiency=data["efficiency"],
        )


@dataclass(frozen=True, slots=True)
class WeeklyReport:
    week_start_date: str
    total_work_hours: float
    average_efficiency: int
    total_break_time: int
    most_productive_day: str


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """The in-progress session as persisted in the session-state slot."""

    state: SessionState = SessionState.CHECKED_OUT
    date: str | None = None
    check_in_time: datetime | None = None
    breaks: tuple[BreakRecord, ...] = ()
    current_break: BreakRecord | None = None
    total_break_time: Duration = field(default_factory=Duration)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "date": self.date,
            "checkInTime": to_iso_utc(self.check_in_time) if self.check_in_time else None,
            "breaks": [item.to_dict() for item in self.breaks],
            "currentBreak": self.current_break.to_dict() if self.current_break else None,
            "totalBreakTime": self.total_break_time.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionSnapshot:
        current = data.get("currentBreak")
        snapshot = cls(
            state=SessionState(data["state"]),
            date=data.get("date"),
            check_in_time=parse_iso_utc(data.get("checkInTime")),
            breaks=tuple(BreakRecord.from_dict(item) for item in data.get("breaks", [])),
            current_break=BreakRecord.from_dict(current) if current else None,
            total_break_time=Duration.from_dict(data["totalBreakTime"]),
        )

        # An open session needs a check-in time, and only a break state carries an open break.
        if snapshot.state is not SessionState.CHECKED_OUT and snapshot.check_in_time is None:
            raise ValueError(f"Snapshot in state {snapshot.state.value} has no check-in time")
        if (snapshot.state is SessionState.ON_BREAK) != (snapshot.current_break is not None):
            raise ValueError(f"Snapshot in state {snapshot.state.value} has an inconsistent open break")
        return snapshot
