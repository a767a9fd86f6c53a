"""Per-repository synchronization loop.

The engine owns a watch registry, an event queue and a background thread.
``start`` builds the watch set and performs a full synchronous scan; the
thread then drains filesystem events until ``stop`` is called.

Suppression of self-triggered events relies on one signal only: the file's
modification time compared with the last one processed. Stamping a file
rewrites it, which produces one more notification and therefore one more
parse; that parse finds every line already stamped and writes nothing.
"""

from __future__ import annotations

import os
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional, Set

from codetags.logger import (
    ArtifactWriteError,
    ContextLogger,
    SupervisorStartupError,
    TransientIOError,
)
from .config import LOGGER, SyncSettings
from .extractor import TagExtractor
from .handler import TagEventHandler
from .ignore import IgnoreMatcher
from .index import TagIndex
from .models import ChangeEvent, EngineState, Repository
from .queue import ChangeQueue
from .summary import write_summary
from .utils import create_observer, is_under, iter_files
from .watches import WatchRegistry


class SyncEngine:
    def __init__(
        self,
        repo: Repository,
        index: TagIndex,
        settings: Optional[SyncSettings] = None,
        *,
        observer_factory=None,
    ):
        self.repo = repo
        self.root = os.path.abspath(repo.root_path)
        self.index = index
        self.settings = settings or SyncSettings.from_env()
        self.log = ContextLogger(LOGGER, repo=repo.name)
        self.matcher = IgnoreMatcher(self.root, self.settings.ignore_file)
        self.extractor = TagExtractor(self.settings.extensions)
        self.ignore_path = os.path.join(self.root, self.settings.ignore_file)
        self.summary_path = Path(self.root) / self.settings.summary_file

        self.state = EngineState.STOPPED
        self.queue: ChangeQueue[ChangeEvent] = ChangeQueue()
        self._observer_factory = observer_factory or (
            lambda: create_observer(self.settings.use_polling)
        )
        self._observer = None
        self.watches: Optional[WatchRegistry] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

        # Only touched by the thread that currently drives the engine.
        self._last_mtime: Dict[str, int] = {}
        self._ignored: Set[str] = set()

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """INIT: watch every directory, scan every file, then start WATCHING.

        Raises SupervisorStartupError when the notification facility cannot
        be created; nothing is left running in that case.
        """
        if self.running:
            return
        self.state = EngineState.INIT
        self._stop.clear()
        try:
            self._observer = self._observer_factory()
            self._observer.start()
        except Exception as exc:
            self.state = EngineState.STOPPED
            self._observer = None
            raise SupervisorStartupError(f"cannot start observer for {self.root}: {exc}") from exc

        self.watches = WatchRegistry(
            self._observer, TagEventHandler(self.queue), logger=self.log
        )
        count = self.watches.add(self.root)
        self.log.info("Watching %d directories under %s", count, self.root)

        self.scan()

        self._thread = threading.Thread(
            target=self._run, name=f"codetags-sync-{self.repo.name}", daemon=True
        )
        self.state = EngineState.WATCHING
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        self.queue.wake()
        if self._thread is not None:
            self._thread.join(timeout if timeout is not None else self.settings.poll_timeout * 5)
            self._thread = None
        if self.watches is not None:
            self.watches.remove_all()
        if self._observer is not None:
            try:
                self._observer.stop()
                self._observer.join(self.settings.poll_timeout * 5)
            except RuntimeError:
                # Observer thread was never started.
                pass
            self._observer = None
        if self.state is not EngineState.STOPPED:
            self.log.info("Stopped")
        self.state = EngineState.STOPPED

    def _run(self) -> None:
        while not self._stop.is_set():
            batch = self.queue.get_batch(self.settings.poll_timeout)
            for event in batch:
                if self._stop.is_set():
                    break
                try:
                    self.handle_event(event)
                except Exception:
                    self.log.exception("Unhandled error processing %s", event.path)

    # ------------------------------------------------------------------
    # scanning
    # ------------------------------------------------------------------
    def scan(self) -> int:
        """Process every eligible, non-ignored file once; returns tags indexed."""
        self._ignored.clear()
        for path in iter_files(self.root):
            if self.matcher.is_ignored(path):
                self._ignored.add(path)
                continue
            self.process_path(path, regenerate=False)
        self.regenerate_summary()
        return len(self.index)

    def rescan(self) -> None:
        """Re-evaluate the whole tree after the ignore file changed."""
        previous = self.state
        self.state = EngineState.RESCAN
        try:
            self.matcher.reload()
            self.log.info("Ignore patterns reloaded: %d pattern(s)", len(self.matcher.patterns))

            now_ignored: Set[str] = set()
            candidates: List[str] = []
            for path in iter_files(self.root):
                if self.matcher.is_ignored(path):
                    now_ignored.add(path)
                else:
                    candidates.append(path)
            previously_ignored = set(self._ignored)
            newly_ignored = sorted(now_ignored - previously_ignored)
            if newly_ignored:
                self.index.remove_all_under(newly_ignored)
                for path in newly_ignored:
                    self._last_mtime.pop(path, None)

            for path in sorted(previously_ignored - now_ignored):
                self.process_path(path, regenerate=False)

            for path in candidates:
                if path not in previously_ignored:
                    self.process_path(path, regenerate=False)

            self._ignored = now_ignored
            self.regenerate_summary()
        finally:
            self.state = previous

    # ------------------------------------------------------------------
    # event handling
    # ------------------------------------------------------------------
    def handle_event(self, event: ChangeEvent) -> None:
        path = event.path
        if path == self.ignore_path:
            self.rescan()
            return
        if event.is_directory or os.path.isdir(path):
            self._handle_directory(path)
            return
        self.process_path(path)

    def _handle_directory(self, path: str) -> None:
        if os.path.isdir(path):
            if self.watches is not None:
                self.watches.refresh(path)
            for file_path in iter_files(path):
                self.process_path(file_path, regenerate=False)
            self.regenerate_summary()
            return
        if self.watches is not None:
            self.watches.discard_under(path)
        removed = self.index.remove_all_under([path])
        for tracked in [p for p in self._last_mtime if is_under(p, path)]:
            del self._last_mtime[tracked]
        self._ignored = {p for p in self._ignored if not is_under(p, path)}
        if removed:
            self.regenerate_summary()

    def process_path(self, path: str, regenerate: bool = True) -> None:
        """Bring the index in line with the current state of one file."""
        path = os.path.abspath(path)
        if not self.extractor.is_source_file(path):
            return

        if self.matcher.is_ignored(path):
            self._ignored.add(path)
            self._forget(path, regenerate)
            return
        self._ignored.discard(path)

        try:
            st = os.stat(path)
        except OSError:
            self._forget(path, regenerate)
            return

        if self._last_mtime.get(path) == st.st_mtime_ns:
            return
        self._last_mtime[path] = st.st_mtime_ns

        if self.settings.settle_secs > 0:
            time.sleep(self.settings.settle_secs)
        try:
            tags = self.extractor.parse_file(path, self.root, st.st_mtime)
        except TransientIOError as exc:
            self.log.warning("Dropping tags for unreadable file: %s", exc)
            self.index.remove_all_for_file(path)
            self._last_mtime.pop(path, None)
        else:
            self.index.replace_file(path, tags)
        if regenerate:
            self.regenerate_summary()

    def _forget(self, path: str, regenerate: bool) -> None:
        self.index.remove_all_for_file(path)
        self._last_mtime.pop(path, None)
        if regenerate:
            self.regenerate_summary()

    def regenerate_summary(self) -> bool:
        try:
            write_summary(self.summary_path, self.index.all_tags())
        except ArtifactWriteError as exc:
            self.log.warning("Summary not written: %s", exc)
            return False
        return True


__all__ = ["SyncEngine"]
