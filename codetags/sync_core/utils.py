"""Misc utilities shared across sync_core modules."""

from __future__ import annotations

import os
from typing import Iterator, List, Tuple, Type

from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from .config import LOGGER


def create_observer(use_polling: bool, observer_cls: Type[BaseObserver] = Observer) -> BaseObserver:
    """Create a watchdog observer based on configuration."""
    if use_polling:
        try:
            from watchdog.observers.polling import PollingObserver

            LOGGER.info("Using polling observer for filesystem events")
            return PollingObserver()
        except ImportError:
            LOGGER.warning("Polling observer unavailable, falling back to default Observer")
    return observer_cls()


def walk_tree(root: str) -> Iterator[Tuple[str, List[str], List[str]]]:
    """os.walk without following symlinks; unreadable directories are logged and skipped."""

    def _onerror(exc: OSError) -> None:
        LOGGER.warning("Cannot list %s: %s", getattr(exc, "filename", root), exc)

    yield from os.walk(root, onerror=_onerror, followlinks=False)


def iter_directories(root: str) -> Iterator[str]:
    for dirpath, _dirs, _files in walk_tree(root):
        yield dirpath


def iter_files(root: str) -> Iterator[str]:
    for dirpath, _dirs, files in walk_tree(root):
        for name in sorted(files):
            path = os.path.join(dirpath, name)
            if os.path.isfile(path) and not os.path.islink(path):
                yield path


def is_under(path: str, prefix: str) -> bool:
    prefix = prefix.rstrip(os.sep)
    return path == prefix or path.startswith(prefix + os.sep)


__all__ = ["create_observer", "is_under", "iter_directories", "iter_files", "walk_tree"]
