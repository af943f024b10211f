from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Protocol

from .errors import AlreadyCheckedIn, InvalidState, NoActiveBreak, NotCheckedIn
from .history import HistoryLedger
from .models import (
    BreakRecord,
    DailyTimeRecord,
    Duration,
    SessionSnapshot,
    SessionState,
    to_iso_utc,
)
from .secure_store import SESSION_SLOT, SecureStateStore


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return utc_now()


class TimeTracker:
    """Check-in / break / check-out cycle for the current working day.

    The in-progress session lives in the ``session-state`` slot so a restart
    resumes where it left off; checkout turns it into a DailyTimeRecord in
    the history ledger and clears the slot.
    """

    def __init__(
        self,
        store: SecureStateStore,
        ledger: HistoryLedger,
        clock: Clock | None = None,
        tz: tzinfo = timezone.utc,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.clock = clock or SystemClock()
        self.tz = tz
        self.logger = logger or logging.getLogger(__name__)
        self._session = self._resume()

    def _resume(self) -> SessionSnapshot:
        raw = self.store.load(SESSION_SLOT)
        if raw is None:
            return SessionSnapshot()

        if not isinstance(raw, dict):
            self.logger.warning("Ignoring session slot with unexpected shape: %s", type(raw).__name__)
            return SessionSnapshot()

        try:
            snapshot = SessionSnapshot.from_dict(raw)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            self.logger.warning("Ignoring malformed session snapshot: %s", exc)
            return SessionSnapshot()

        if snapshot.state is not SessionState.CHECKED_OUT:
            self.logger.info("Resumed session: state=%s since=%s", snapshot.state.value, snapshot.check_in_time)
        return snapshot

    @property
    def state(self) -> SessionState:
        return self._session.state

    def get_current_state(self) -> SessionSnapshot:
        return self._session

    def get_time_history(self) -> list[DailyTimeRecord]:
        return self.ledger.read()

    def local_day_key(self, dt_utc: datetime | None = None) -> str:
        current = dt_utc or self.clock.now()
        return current.astimezone(self.tz).date().isoformat()

    def check_in(self) -> SessionSnapshot:
        if self.state is not SessionState.CHECKED_OUT:
            raise AlreadyCheckedIn("Already checked in", self.state)

        now = self.clock.now()
        self._commit(
            SessionSnapshot(
                state=SessionState.CHECKED_IN,
                date=self.local_day_key(now),
                check_in_time=now,
            )
        )
        self.logger.info("Checked in at %s", now.isoformat())
        return self._session

    def start_break(self, reason: str | None = None) -> BreakRecord:
        if self.state is not SessionState.CHECKED_IN:
            raise InvalidState("A break can only start while checked in", self.state)

        opened = BreakRecord(start_time=self.clock.now(), reason=reason)
        self._commit(replace(self._session, state=SessionState.ON_BREAK, current_break=opened))
        self.logger.info("Break started: reason=%s", reason or "-")
        return opened

    def end_break(self) -> BreakRecord:
        current = self._session.current_break
        if self.state is not SessionState.ON_BREAK or current is None:
            raise NoActiveBreak("No break in progress", self.state)

        now = self.clock.now()
        duration = Duration.from_timedelta(now - current.start_time)
        closed = replace(current, end_time=now, duration=duration)
        total_break = Duration.from_timedelta(
            self._session.total_break_time.to_timedelta() + duration.to_timedelta()
        )

        self._commit(
            replace(
                self._session,
                state=SessionState.CHECKED_IN,
                breaks=self._session.breaks + (closed,),
                current_break=None,
                total_break_time=total_break,
            )
        )
        self.logger.info("Break ended after %ss", duration.total_seconds())
        return closed

    def check_out(self, efficiency: float, notes: str | None = None) -> DailyTimeRecord:
        """Finalize the session. ``efficiency`` is an opaque caller-supplied score."""
        if self.state is SessionState.CHECKED_OUT:
            raise NotCheckedIn("Not checked in", self.state)
        if self.state is SessionState.ON_BREAK:
            raise InvalidState("End the current break before checking out", self.state)

        session = self._session
        if session.check_in_time is None:
            raise InvalidState("Session has no check-in time", self.state)
        now = self.clock.now()
        worked = (now - session.check_in_time) - session.total_break_time.to_timedelta()

        record = DailyTimeRecord(
            date=self.local_day_key(now),
            check_in_time=to_iso_utc(session.check_in_time),
            check_out_time=to_iso_utc(now),
            total_work_time=Duration.from_timedelta(worked),
            total_break_time=session.total_break_time,
            breaks=session.breaks,
            notes=notes,
            efficiency=efficiency,
        )

        self.ledger.append(record)
        self.store.remove(SESSION_SLOT)
        self._session = SessionSnapshot()
        self.logger.info(
            "Checked out: date=%s worked=%ss breaks=%d",
            record.date,
            record.total_work_time.total_seconds(),
            len(record.breaks),
        )
        return record

    def elapsed(self, at: datetime | None = None) -> tuple[Duration, Duration]:
        """Preview (work, break) totals for the open session without mutating it."""
        session = self._session
        if session.state is SessionState.CHECKED_OUT or session.check_in_time is None:
            return Duration(), Duration()

        now = at or self.clock.now()
        break_span = session.total_break_time.to_timedelta()
        if session.current_break is not None:
            break_span += max(timedelta(0), now - session.current_break.start_time)

        worked = (now - session.check_in_time) - break_span
        return Duration.from_timedelta(worked), Duration.from_timedelta(break_span)

    def clear_data(self) -> None:
        self.store.remove(SESSION_SLOT)
        self.ledger.clear()
        self._session = SessionSnapshot()
        self.logger.info("Cleared session and history data")

    def _commit(self, snapshot: SessionSnapshot) -> None:
        self._session = snapshot
        self.store.save(SESSION_SLOT, snapshot.to_dict())
