"""One SyncEngine + TagIndex pair per registered repository."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from codetags.logger import CodetagsError
from .config import SyncSettings, build_logger
from .engine import SyncEngine
from .handler import TagEventHandler
from .index import TagIndex
from .models import ChangeEvent, Repository
from .queue import ChangeQueue
from .registry import ensure_store, load_registrations
from .utils import create_observer

logger = build_logger("codetags.supervisor")

EngineFactory = Callable[[Repository, TagIndex, SyncSettings], SyncEngine]


@dataclass
class RepoHandle:
    """The unit the supervisor owns: engine and index live and die together."""

    repo: Repository
    index: TagIndex
    engine: SyncEngine


class RepoSupervisor:
    """Keeps the set of running engines equal to the registration list.

    Changes are picked up from filesystem notifications on the list's
    directory and, as a fallback, from its modification time at every poll
    timeout.
    """

    def __init__(
        self,
        settings: Optional[SyncSettings] = None,
        *,
        engine_factory: Optional[EngineFactory] = None,
        observer_factory=None,
    ):
        self.settings = settings or SyncSettings.from_env()
        self.registry_path = os.path.abspath(str(self.settings.registry_path))
        self._engine_factory = engine_factory or (
            lambda repo, index, settings: SyncEngine(repo, index, settings)
        )
        self._observer_factory = observer_factory or (
            lambda: create_observer(self.settings.use_polling)
        )
        self._lock = threading.Lock()
        self._reconcile_lock = threading.Lock()
        self._handles: Dict[str, RepoHandle] = {}
        self._queue: ChangeQueue[ChangeEvent] = ChangeQueue()
        self._observer = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._registry_mtime: Optional[int] = None

    @property
    def repositories(self) -> Dict[str, Repository]:
        with self._lock:
            return {name: h.repo for name, h in self._handles.items()}

    def handle(self, name: str) -> Optional[RepoHandle]:
        with self._lock:
            return self._handles.get(name)

    # ------------------------------------------------------------------
    # reconciliation
    # ------------------------------------------------------------------
    def _current_mtime(self) -> Optional[int]:
        try:
            return os.stat(self.registry_path).st_mtime_ns
        except OSError:
            return None

    def reconcile(self) -> List[str]:
        """Start/stop engines so they match the registration list.

        Returns the names whose engines were started or stopped.
        """
        with self._reconcile_lock:
            self._registry_mtime = self._current_mtime()
            wanted = load_registrations(self.settings.registry_path)
            # Engine start-up runs a full scan; keep it outside the handle lock.
            with self._lock:
                stale = [
                    self._handles.pop(name)
                    for name in sorted(self._handles)
                    if wanted.get(name) != self._handles[name].repo
                ]
                missing = [wanted[name] for name in sorted(wanted) if name not in self._handles]

            changed: List[str] = []
            for handle in stale:
                self._stop_handle(handle)
                changed.append(handle.repo.name)
            for repo in missing:
                handle = self._start_handle(repo)
                if handle is None:
                    continue
                with self._lock:
                    self._handles[repo.name] = handle
                if repo.name not in changed:
                    changed.append(repo.name)
            return changed

    def _start_handle(self, repo: Repository) -> Optional[RepoHandle]:
        index = TagIndex()
        engine = None
        try:
            engine = self._engine_factory(repo, index, self.settings)
            engine.start()
        except CodetagsError as exc:
            logger.error("Could not start repository %s: %s", repo.name, exc)
            return None
        except Exception:
            logger.exception("Unexpected failure starting repository %s", repo.name)
            if engine is not None:
                engine.stop()
            return None
        logger.info("Monitoring %s at %s (%d tags)", repo.name, repo.root_path, len(index))
        return RepoHandle(repo=repo, index=index, engine=engine)

    def _stop_handle(self, handle: RepoHandle) -> None:
        try:
            handle.engine.stop()
        except Exception:
            logger.exception("Error stopping repository %s", handle.repo.name)
        logger.info("Stopped monitoring %s", handle.repo.name)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        ensure_store(self.settings.registry_path)
        self._stop.clear()
        self.reconcile()
        try:
            self._observer = self._observer_factory()
            self._observer.schedule(
                TagEventHandler(self._queue), os.path.dirname(self.registry_path), recursive=False
            )
            self._observer.start()
        except Exception as exc:
            logger.warning(
                "Registration list notifications unavailable, polling only: %s", exc
            )
            self._observer = None
        self._thread = threading.Thread(target=self._run, name="codetags-supervisor", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.is_set():
            batch = self._queue.get_batch(self.settings.poll_timeout)
            if self._stop.is_set():
                break
            touched = any(event.path == self.registry_path for event in batch)
            if touched or self._current_mtime() != self._registry_mtime:
                try:
                    self.reconcile()
                except Exception:
                    logger.exception("Failed to reload registrations")

    def stop(self) -> None:
        self._stop.set()
        self._queue.wake()
        if self._thread is not None:
            self._thread.join(self.settings.poll_timeout * 5)
            self._thread = None
        if self._observer is not None:
            try:
                self._observer.stop()
                self._observer.join(self.settings.poll_timeout * 5)
            except RuntimeError:
                pass
            self._observer = None
        with self._reconcile_lock, self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
        for handle in handles:
            self._stop_handle(handle)


__all__ = ["RepoHandle", "RepoSupervisor"]
