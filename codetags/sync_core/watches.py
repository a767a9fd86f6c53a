"""Per-directory watch bookkeeping for one engine."""

from __future__ import annotations

import os
import threading
from typing import Dict, List, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers.api import BaseObserver, ObservedWatch

from codetags.logger import WatchRegistrationError
from .config import LOGGER
from .utils import is_under, iter_directories


class WatchRegistry:
    """Maps watchdog watch handles to the directories they cover, both ways.

    Each directory gets its own non-recursive watch so that the registry
    knows exactly which subtrees are live. Removed directories are dropped
    with ``discard_under``; ``remove_all`` tears everything down at shutdown.
    """

    def __init__(self, observer: BaseObserver, handler: FileSystemEventHandler, logger=LOGGER):
        self.observer = observer
        self.handler = handler
        self.logger = logger
        self._lock = threading.Lock()
        self._path_to_watch: Dict[str, ObservedWatch] = {}
        self._watch_to_path: Dict[ObservedWatch, str] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._path_to_watch)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._path_to_watch

    def paths(self) -> List[str]:
        with self._lock:
            return sorted(self._path_to_watch)

    def path_for(self, watch: ObservedWatch) -> Optional[str]:
        with self._lock:
            return self._watch_to_path.get(watch)

    def _add_one(self, path: str) -> bool:
        with self._lock:
            if path in self._path_to_watch:
                return False
        try:
            watch = self.observer.schedule(self.handler, path, recursive=False)
        except (OSError, KeyError, ValueError) as exc:
            raise WatchRegistrationError(f"cannot watch {path}: {exc}") from exc
        with self._lock:
            self._path_to_watch[path] = watch
            self._watch_to_path[watch] = path
        return True

    def add(self, path: str) -> int:
        """Watch ``path`` and every directory below it; returns how many were added.

        Directories that cannot be watched are logged and skipped; the rest of
        the tree still gets watches.
        """
        added = 0
        for directory in iter_directories(os.path.abspath(path)):
            try:
                if self._add_one(directory):
                    added += 1
            except WatchRegistrationError as exc:
                self.logger.warning("%s", exc)
        return added

    def refresh(self, path: str) -> int:
        """Re-watch ``path`` and its subtree, replacing any handles already held.

        A directory that was deleted and recreated keeps its old entry while
        the emitter behind it is dead, so the stale handles are dropped first.
        """
        self.discard_under(path)
        return self.add(path)

    def discard_under(self, path: str) -> int:
        """Unschedule ``path`` and every watched directory below it."""
        path = os.path.abspath(path)
        with self._lock:
            stale = [
                (p, w) for p, w in self._path_to_watch.items() if is_under(p, path)
            ]
            for p, w in stale:
                del self._path_to_watch[p]
                self._watch_to_path.pop(w, None)
        self._unschedule([w for _p, w in stale])
        return len(stale)

    def remove_all(self) -> None:
        with self._lock:
            watches = list(self._watch_to_path)
            self._path_to_watch.clear()
            self._watch_to_path.clear()
        self._unschedule(watches)

    def _unschedule(self, watches: List[ObservedWatch]) -> None:
        for watch in watches:
            try:
                self.observer.unschedule(watch)
            except (KeyError, OSError, ValueError):
                # Emitter already gone (directory removed while watched).
                pass


__all__ = ["WatchRegistry"]
