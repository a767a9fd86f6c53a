"""In-memory tag store for one repository."""

from __future__ import annotations

import os
import threading
from typing import Dict, Iterable, List, Set, Tuple

from .models import Tag


class TagIndex:
    """Tags keyed by id plus a derived file -> ids mapping.

    Every public method holds the index lock for its whole duration, so no
    caller can observe the two mappings out of step.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._by_id: Dict[str, Tag] = {}
        self._by_file: Dict[str, Set[str]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)

    def __contains__(self, tag_id: object) -> bool:
        with self._lock:
            return tag_id in self._by_id

    def _unlink(self, tag_id: str) -> None:
        tag = self._by_id.pop(tag_id, None)
        if tag is None:
            return
        ids = self._by_file.get(tag.absolute_path)
        if ids is not None:
            ids.discard(tag_id)
            if not ids:
                del self._by_file[tag.absolute_path]

    def upsert(self, tag: Tag) -> None:
        with self._lock:
            # The id may previously have belonged to another file.
            self._unlink(tag.id)
            self._by_id[tag.id] = tag
            self._by_file.setdefault(tag.absolute_path, set()).add(tag.id)

    def remove(self, tag_id: str) -> None:
        with self._lock:
            self._unlink(tag_id)

    def remove_all_for_file(self, path: str) -> Set[str]:
        """Drop every tag owned by ``path``; returns the removed ids."""
        with self._lock:
            ids = self._by_file.pop(path, set())
            for tag_id in ids:
                self._by_id.pop(tag_id, None)
            return ids

    def replace_file(self, path: str, tags: Iterable[Tag]) -> None:
        """Swap a file's whole tag set in one step."""
        with self._lock:
            self.remove_all_for_file(path)
            for tag in tags:
                self.upsert(tag)

    def remove_all_under(self, path_prefixes: Iterable[str]) -> Set[str]:
        """Remove tags whose file equals, or lies beneath, any of the prefixes."""
        prefixes = [p.rstrip(os.sep) or os.sep for p in path_prefixes]
        removed: Set[str] = set()
        with self._lock:
            for file_path in list(self._by_file):
                for prefix in prefixes:
                    boundary = prefix if prefix.endswith(os.sep) else prefix + os.sep
                    if file_path == prefix or file_path.startswith(boundary):
                        removed |= self.remove_all_for_file(file_path)
                        break
        return removed

    def all_tags(self) -> List[Tag]:
        with self._lock:
            return list(self._by_id.values())

    def snapshot(self) -> Tuple[List[Tag], Dict[str, Set[str]]]:
        """Tags and the file -> ids mapping, copied under a single lock hold."""
        with self._lock:
            return (
                list(self._by_id.values()),
                {path: set(ids) for path, ids in self._by_file.items()},
            )

    def ids_for_file(self, path: str) -> Set[str]:
        with self._lock:
            return set(self._by_file.get(path, ()))

    def files(self) -> List[str]:
        with self._lock:
            return list(self._by_file)

    def get(self, tag_id: str):
        with self._lock:
            return self._by_id.get(tag_id)


__all__ = ["TagIndex"]
