"""Watchdog event handler responsible for enqueueing file changes."""

from __future__ import annotations

import os

from watchdog.events import FileSystemEventHandler

from .models import ChangeEvent, EventKind
from .queue import ChangeQueue


def _fs_path(raw) -> str:
    if isinstance(raw, bytes):
        raw = os.fsdecode(raw)
    return os.path.abspath(raw)


class TagEventHandler(FileSystemEventHandler):
    """Translates watchdog callbacks into ChangeEvents for one engine.

    Moves are split into a removal at the source and an arrival at the
    destination; the engine works out the rest from the filesystem state.
    """

    def __init__(self, queue: ChangeQueue):
        super().__init__()
        self.queue = queue

    def _put(self, kind: EventKind, raw_path, is_directory: bool) -> None:
        if not raw_path:
            return
        self.queue.add(ChangeEvent(kind, _fs_path(raw_path), bool(is_directory)))

    def on_created(self, event):
        self._put(EventKind.CREATED, event.src_path, event.is_directory)

    def on_modified(self, event):
        # Directory mtime bumps accompany every child change; nothing to do.
        if event.is_directory:
            return
        self._put(EventKind.MODIFIED, event.src_path, False)

    def on_closed(self, event):
        if event.is_directory:
            return
        self._put(EventKind.MODIFIED, event.src_path, False)

    def on_deleted(self, event):
        self._put(EventKind.DELETED, event.src_path, event.is_directory)

    def on_moved(self, event):
        self._put(EventKind.DELETED, event.src_path, event.is_directory)
        self._put(EventKind.CREATED, getattr(event, "dest_path", None), event.is_directory)


__all__ = ["TagEventHandler"]
