"""Coalescing event queue drained by an engine thread with a bounded wait."""

from __future__ import annotations

import threading
from typing import Dict, Generic, Hashable, List, TypeVar

T = TypeVar("T", bound=Hashable)


class ChangeQueue(Generic[T]):
    """Collects items and hands them out in batches.

    Duplicate items pending at the same time are collapsed to their first
    arrival, so a burst of notifications for one path is processed once.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._pending: Dict[T, None] = {}

    def add(self, item: T) -> None:
        with self._cond:
            self._pending.setdefault(item, None)
            self._cond.notify()

    def get_batch(self, timeout: float) -> List[T]:
        """Wait up to ``timeout`` seconds for items; returns [] on timeout."""
        with self._cond:
            if not self._pending:
                self._cond.wait(timeout)
            batch = list(self._pending)
            self._pending.clear()
            return batch

    def wake(self) -> None:
        """Release a blocked ``get_batch`` early (used on shutdown)."""
        with self._cond:
            self._cond.notify_all()

    def __len__(self) -> int:
        with self._cond:
            return len(self._pending)


__all__ = ["ChangeQueue"]
