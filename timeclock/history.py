from __future__ import annotations

import logging

from .models import DailyTimeRecord
from .secure_store import HISTORY_SLOT, SecureStateStore

MAX_HISTORY_DAYS = 30


class HistoryLedger:
    """Newest-first list of finalized days, capped at ``capacity`` entries."""

    def __init__(
        self,
        store: SecureStateStore,
        capacity: int = MAX_HISTORY_DAYS,
        logger: logging.Logger | None = None,
    ) -> None:
        if capacity <= 0:
            raise ValueError("History capacity must be positive")
        self.store = store
        self.capacity = capacity
        self.logger = logger or logging.getLogger(__name__)

    def read(self) -> list[DailyTimeRecord]:
        raw = self.store.load(HISTORY_SLOT)
        if raw is None:
            return []

        if not isinstance(raw, list):
            self.logger.warning("Ignoring history slot with unexpected shape: %s", type(raw).__name__)
            return []

        try:
            return [DailyTimeRecord.from_dict(item) for item in raw]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            self.logger.warning("Ignoring malformed history slot: %s", exc)
            return []

    def append(self, record: DailyTimeRecord) -> list[DailyTimeRecord]:
        # Read-modify-write of the whole slot; concurrent writers race, last one wins.
        history = self.read()
        history.insert(0, record)
        del history[self.capacity:]

        self.store.save(HISTORY_SLOT, [item.to_dict() for item in history])
        return history

    def clear(self) -> None:
        self.store.remove(HISTORY_SLOT)
