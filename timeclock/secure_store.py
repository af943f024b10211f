from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .crypto import Cipher
from .db import KeyValueStore
from .errors import PersistenceError

SESSION_SLOT = "session-state"
HISTORY_SLOT = "time-history"


class LoadStatus(str, Enum):
    OK = "ok"
    MISSING = "missing"
    CORRUPT = "corrupt"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True, slots=True)
class LoadResult:
    status: LoadStatus
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.status is LoadStatus.OK


class SecureStateStore:
    """Encrypts JSON values into named slots of a key/value store.

    Reads fail soft: an empty slot, an unreachable store and a slot that
    cannot be decrypted or parsed all come back from ``load`` as ``None``.
    Callers that need to tell them apart use ``load_result``.
    """

    def __init__(self, store: KeyValueStore, cipher: Cipher, logger: logging.Logger | None = None) -> None:
        self.store = store
        self.cipher = cipher
        self.logger = logger or logging.getLogger(__name__)

    def save(self, slot: str, value: Any) -> bool:
        try:
            payload = self.cipher.encrypt(json.dumps(value))
            self.store.set(slot, payload)
        except Exception:
            self.logger.exception("Failed to save slot %s", slot)
            return False
        return True

    def load_result(self, slot: str) -> LoadResult:
        try:
            raw = self.store.get(slot)
        except Exception:
            self.logger.exception("Failed to read slot %s", slot)
            return LoadResult(LoadStatus.UNAVAILABLE)

        if raw is None:
            return LoadResult(LoadStatus.MISSING)

        try:
            value = self._decode(raw)
        except PersistenceError as exc:
            self.logger.warning("Discarding unreadable slot %s: %s", slot, exc)
            return LoadResult(LoadStatus.CORRUPT)
        return LoadResult(LoadStatus.OK, value)

    def load(self, slot: str) -> Any:
        return self.load_result(slot).value

    def remove(self, slot: str) -> bool:
        try:
            self.store.remove(slot)
        except Exception:
            self.logger.exception("Failed to remove slot %s", slot)
            return False
        return True

    def _decode(self, raw: str) -> Any:
        try:
            plaintext = self.cipher.decrypt(raw)
        except PersistenceError:
            raise
        except Exception as exc:
            # Injected ciphers may fail with their own exception types.
            raise PersistenceError(f"Decryption failed: {exc}") from exc

        try:
            return json.loads(plaintext)
        except ValueError as exc:
            raise PersistenceError("Stored data is not valid JSON") from exc
