from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from cryptography.fernet import Fernet

from timeclock.crypto import FernetCipher
from timeclock.db import Database, MemoryStore
from timeclock.errors import AlreadyCheckedIn, InvalidState, NoActiveBreak, NotCheckedIn
from timeclock.history import HistoryLedger
from timeclock.models import Duration, SessionState
from timeclock.secure_store import HISTORY_SLOT, SESSION_SLOT, SecureStateStore
from timeclock.tracker import TimeTracker

KEY = Fernet.generate_key()


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def set(self, hour: int, minute: int = 0) -> None:
        self.current = self.current.replace(hour=hour, minute=minute)


def build_tracker(kv=None, clock=None, tz=ZoneInfo("UTC")):
    kv = kv if kv is not None else MemoryStore()
    store = SecureStateStore(kv, FernetCipher(KEY))
    ledger = HistoryLedger(store)
    clock = clock or FakeClock(datetime(2026, 2, 2, 9, 0, tzinfo=timezone.utc))
    return TimeTracker(store=store, ledger=ledger, clock=clock, tz=tz), clock, kv


def test_full_day_with_one_break() -> None:
    tracker, clock, _ = build_tracker()

    tracker.check_in()
    clock.set(12, 0)
    tracker.start_break("lunch")
    clock.set(12, 30)
    closed = tracker.end_break()
    clock.set(17, 30)
    record = tracker.check_out(efficiency=94)

    assert closed.duration == Duration(0, 30, 0)
    assert closed.reason == "lunch"
    assert record.total_break_time == Duration(0, 30, 0)
    assert record.total_work_time == Duration(8, 0, 0)
    assert record.date == "2026-02-02"
    assert record.efficiency == 94
    assert len(record.breaks) == 1
    assert tracker.state is SessionState.CHECKED_OUT
    assert tracker.get_time_history() == [record]


def test_transition_arithmetic_with_seconds() -> None:
    start = datetime(2026, 2, 2, 8, 0, 0, tzinfo=timezone.utc)
    tracker, clock, _ = build_tracker(clock=FakeClock(start))

    tracker.check_in()
    clock.current = start + timedelta(hours=1, seconds=15)
    tracker.start_break()
    clock.current = start + timedelta(hours=1, minutes=7, seconds=45)
    tracker.end_break()
    clock.current = start + timedelta(hours=3, minutes=2, seconds=5)
    record = tracker.check_out(efficiency=50)

    assert record.total_break_time == Duration(0, 7, 30)
    assert record.total_work_time == Duration(2, 54, 35)


def test_breaks_accumulate() -> None:
    tracker, clock, _ = build_tracker()

    tracker.check_in()
    for hour in (10, 13, 15):
        clock.set(hour, 0)
        tracker.start_break()
        clock.set(hour, 20)
        tracker.end_break()

    assert tracker.get_current_state().total_break_time == Duration(1, 0, 0)
    assert len(tracker.get_current_state().breaks) == 3


def test_invalid_transitions_raise_typed_errors() -> None:
    tracker, _, _ = build_tracker()

    with pytest.raises(InvalidState):
        tracker.start_break()
    with pytest.raises(NoActiveBreak):
        tracker.end_break()

    tracker.check_in()
    with pytest.raises(AlreadyCheckedIn):
        tracker.check_in()
    with pytest.raises(NoActiveBreak):
        tracker.end_break()

    tracker.start_break()
    with pytest.raises(AlreadyCheckedIn):
        tracker.check_in()
    with pytest.raises(InvalidState):
        tracker.start_break()
    with pytest.raises(InvalidState):
        tracker.check_out(efficiency=0)
    assert tracker.state is SessionState.ON_BREAK


def test_double_checkout_leaves_ledger_unchanged() -> None:
    tracker, clock, kv = build_tracker()

    tracker.check_in()
    clock.set(17, 0)
    tracker.check_out(efficiency=80)
    stored_history = kv.get(HISTORY_SLOT)

    with pytest.raises(NotCheckedIn):
        tracker.check_out(efficiency=80)

    assert kv.get(HISTORY_SLOT) == stored_history
    assert len(tracker.get_time_history()) == 1


def test_failed_transition_does_not_touch_snapshot() -> None:
    tracker, _, kv = build_tracker()
    tracker.check_in()
    stored = kv.get(SESSION_SLOT)

    with pytest.raises(AlreadyCheckedIn):
        tracker.check_in()

    assert kv.get(SESSION_SLOT) == stored


def test_session_resumes_from_storage() -> None:
    db = Database(":memory:")
    db.initialize()
    tracker, clock, _ = build_tracker(kv=db)

    tracker.check_in()
    clock.set(11, 0)
    tracker.start_break("coffee")

    resumed, _, _ = build_tracker(kv=db, clock=clock)
    snapshot = resumed.get_current_state()

    assert snapshot.state is SessionState.ON_BREAK
    assert snapshot.check_in_time == datetime(2026, 2, 2, 9, 0, tzinfo=timezone.utc)
    assert snapshot.current_break is not None
    assert snapshot.current_break.reason == "coffee"

    clock.set(11, 15)
    resumed.end_break()
    clock.set(17, 0)
    record = resumed.check_out(efficiency=70)

    assert record.total_work_time == Duration(7, 45, 0)


def test_checkout_clears_session_slot() -> None:
    tracker, clock, kv = build_tracker()
    tracker.check_in()
    assert kv.get(SESSION_SLOT) is not None

    clock.set(10, 0)
    tracker.check_out(efficiency=100)

    assert kv.get(SESSION_SLOT) is None


def test_corrupt_session_slot_resumes_checked_out() -> None:
    kv = MemoryStore()
    kv.set(SESSION_SLOT, "not-a-fernet-token")

    tracker, _, _ = build_tracker(kv=kv)

    assert tracker.state is SessionState.CHECKED_OUT
    tracker.check_in()
    assert tracker.state is SessionState.CHECKED_IN


def test_elapsed_counts_open_break_without_mutating() -> None:
    tracker, clock, kv = build_tracker()
    tracker.check_in()
    clock.set(10, 0)
    tracker.start_break()
    stored = kv.get(SESSION_SLOT)

    clock.set(10, 20)
    work, brk = tracker.elapsed()

    assert work == Duration(1, 0, 0)
    assert brk == Duration(0, 20, 0)
    assert kv.get(SESSION_SLOT) == stored
    assert tracker.state is SessionState.ON_BREAK


def test_elapsed_when_checked_out_is_zero() -> None:
    tracker, _, _ = build_tracker()

    assert tracker.elapsed() == (Duration(), Duration())


def test_record_date_uses_configured_timezone() -> None:
    tz = ZoneInfo("America/New_York")
    start = datetime(2026, 2, 3, 1, 0, tzinfo=timezone.utc)
    tracker, clock, _ = build_tracker(clock=FakeClock(start), tz=tz)

    tracker.check_in()
    clock.current = start + timedelta(hours=2)
    record = tracker.check_out(efficiency=100)

    assert record.date == "2026-02-02"


def test_clear_data_erases_both_slots() -> None:
    tracker, clock, kv = build_tracker()
    tracker.check_in()
    clock.set(12, 0)
    tracker.check_out(efficiency=90)
    clock.set(13, 0)
    tracker.check_in()

    tracker.clear_data()

    assert kv.get(SESSION_SLOT) is None
    assert kv.get(HISTORY_SLOT) is None
    assert tracker.state is SessionState.CHECKED_OUT
    assert tracker.get_time_history() == []


@pytest.mark.parametrize(
    "payload",
    [
        ["not", "a", "snapshot"],
        "checked_in",
        {"state": "checked_in", "checkInTime": None, "totalBreakTime": {"hours": 0, "minutes": 0, "seconds": 0}},
        {
            "state": "on_break",
            "checkInTime": "2026-02-02T09:00:00+00:00",
            "currentBreak": None,
            "totalBreakTime": {"hours": 0, "minutes": 0, "seconds": 0},
        },
        {
            "state": "checked_out",
            "currentBreak": {"startTime": "2026-02-02T10:00:00+00:00"},
            "totalBreakTime": {"hours": 0, "minutes": 0, "seconds": 0},
        },
    ],
)
def test_inconsistent_session_snapshot_resumes_checked_out(payload) -> None:
    kv = MemoryStore()
    SecureStateStore(kv, FernetCipher(KEY)).save(SESSION_SLOT, payload)

    tracker, _, _ = build_tracker(kv=kv)

    assert tracker.state is SessionState.CHECKED_OUT
    tracker.check_in()
    tracker.start_break()
    assert tracker.state is SessionState.ON_BREAK


def test_tracker_starts_on_unreachable_storage() -> None:
    db = Database(":memory:")
    db.initialize()
    db.close()

    tracker, _, _ = build_tracker(kv=db)

    assert tracker.state is SessionState.CHECKED_OUT
    assert tracker.get_time_history() == []
