"""Per-key mutual exclusion for accounts and loans"""

import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterator, List

from loan_ledger.domain.exceptions import ResourceBusyError


class _Entry:
    __slots__ = ("lock", "refs")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.refs = 0


class KeyedLocks:
    """
    Lock table handing out one lock per key.

    Several keys are always acquired in sorted order so two callers locking
    overlapping sets cannot deadlock. Acquisition is bounded by
    ``timeout_seconds`` for the whole set; on expiry ResourceBusyError is raised
    and nothing stays held. Locks are re-entrant per thread, so an outer scope
    can keep accounts locked across a transfer that locks them again.
    Entries are dropped once no caller references them.
    """

    def __init__(self, name: str, timeout_seconds: float = 5.0):
        self.name = name
        self.timeout_seconds = timeout_seconds
        self._guard = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.refs += 1
            return entry

    def _checkin(self, key: str) -> None:
        with self._guard:
            entry = self._entries[key]
            entry.refs -= 1
            if entry.refs == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        deadline = time.monotonic() + self.timeout_seconds
        held: List[str] = []
        try:
            for key in sorted(set(keys)):
                entry = self._checkout(key)
                wait = max(0.0, deadline - time.monotonic())
                if not entry.lock.acquire(timeout=wait):
                    self._checkin(key)
                    raise ResourceBusyError(
                        f"Timed out waiting for {self.name} lock",
                        {"resource": self.name, "key": key, "timeout_seconds": self.timeout_seconds},
                    )
                held.append(key)
            yield
        finally:
            for key in reversed(held):
                self._entries[key].lock.release()
                self._checkin(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
