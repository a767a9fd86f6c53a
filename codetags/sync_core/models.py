"""Data records shared by the sync engine components."""

from __future__ import annotations

import enum
from dataclasses import dataclass


@dataclass(frozen=True)
class Tag:
    """One codetag found in a source file.

    ``relative_path`` is computed once at parse time against the repository
    root the file was parsed under.
    """

    id: str
    type: str
    content: str
    absolute_path: str
    relative_path: str
    line_number: int
    last_modified: float

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "content": self.content,
            "absolute_path": self.absolute_path,
            "relative_path": self.relative_path,
            "line_number": self.line_number,
            "last_modified": self.last_modified,
        }


@dataclass(frozen=True)
class Repository:
    name: str
    root_path: str


class EventKind(str, enum.Enum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass(frozen=True)
class ChangeEvent:
    """Filesystem notification reduced to what the engine needs."""

    kind: EventKind
    path: str
    is_directory: bool = False


class EngineState(str, enum.Enum):
    INIT = "init"
    WATCHING = "watching"
    RESCAN = "rescan"
    STOPPED = "stopped"
