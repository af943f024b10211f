from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Protocol


class KeyValueStore(Protocol):
    def get(self, slot: str) -> str | None: ...

    def set(self, slot: str, value: str) -> None: ...

    def remove(self, slot: str) -> None: ...


class MemoryStore:
    """Dict-backed slot store for tests and throwaway sessions."""

    def __init__(self) -> None:
        self.slots: dict[str, str] = {}

    def get(self, slot: str) -> str | None:
        return self.slots.get(slot)

    def set(self, slot: str, value: str) -> None:
        self.slots[slot] = value

    def remove(self, slot: str) -> None:
        self.slots.pop(slot, None)


class Database:
    """Thin SQLite access layer holding opaque, already-encrypted slot values."""

    def __init__(self, db_path: str | Path) -> None:
        self._conn = sqlite3.connect(str(db_path))
        self._conn.row_factory = sqlite3.Row
        self._closed = False

    def close(self) -> None:
        if self._closed:
            return
        self._conn.close()
        self._closed = True

    def initialize(self) -> None:
        # slots: one row per named storage slot (session-state, time-history).
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS slots (
              key TEXT PRIMARY KEY,
              value TEXT NOT NULL
            );
            """
        )
        self._conn.commit()

    def get(self, slot: str) -> str | None:
        row = self._conn.execute("SELECT value FROM slots WHERE key = ?", (slot,)).fetchone()
        if row is None:
            return None
        return str(row["value"])

    def set(self, slot: str, value: str) -> None:
        # Last writer wins; there is no versioning across processes.
        self._conn.execute(
            """
            INSERT INTO slots (key, value)
            VALUES (?, ?)
            ON CONFLICT(key)
            DO UPDATE SET value=excluded.value
            """,
            (slot, value),
        )
        self._conn.commit()

    def remove(self, slot: str) -> None:
        self._conn.execute("DELETE FROM slots WHERE key = ?", (slot,))
        self._conn.commit()
