"""Shared configuration and logging helpers for the sync engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Optional

from codetags.logger import get_logger, safe_bool, safe_float


def build_logger(name: str = "codetags.sync"):
    """Create a logger, falling back to logging.getLogger when the main logger fails."""
    try:
        return get_logger(name)
    except Exception:  # pragma: no cover - fallback for logger import issues
        import logging

        return logging.getLogger(name)


LOGGER = build_logger()

ID_PREFIX = "CT-"
ID_HEX_DIGITS = 8

TAG_TYPES = ("NOTE", "TODO", "WARNING", "WARN", "FIXME", "FIX", "BUG")

SOURCE_EXTS = frozenset(
    {
        ".c",
        ".h",
        ".cpp",
        ".hpp",
        ".java",
        ".js",
        ".ts",
        ".py",
        ".rb",
        ".go",
        ".rs",
        ".php",
    }
)

DEFAULT_IGNORE_FILE = ".ctagsignore"
DEFAULT_SUMMARY_FILE = "codetags.md"
REGISTRY_FILE_NAME = "registered_repos.txt"
PID_FILE_NAME = "daemon.pid"


def _split_extensions(raw: Optional[str]) -> FrozenSet[str]:
    exts = set()
    for item in (raw or "").split(","):
        item = item.strip().lower()
        if not item:
            continue
        exts.add(item if item.startswith(".") else "." + item)
    return frozenset(exts)


def default_home() -> Path:
    """Configuration directory holding the registration list and PID file."""
    env = os.environ.get("CODETAGS_HOME")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".ctags"


@dataclass(frozen=True)
class SyncSettings:
    """Settings handed explicitly to every engine and to the supervisor."""

    home: Path = field(default_factory=default_home)
    ignore_file: str = DEFAULT_IGNORE_FILE
    summary_file: str = DEFAULT_SUMMARY_FILE
    poll_timeout: float = 1.0
    settle_secs: float = 0.01
    use_polling: bool = False
    extensions: FrozenSet[str] = SOURCE_EXTS

    @property
    def registry_path(self) -> Path:
        return self.home / REGISTRY_FILE_NAME

    @property
    def pid_path(self) -> Path:
        return self.home / PID_FILE_NAME

    @classmethod
    def from_env(cls) -> "SyncSettings":
        return cls(
            home=default_home(),
            ignore_file=os.environ.get("CODETAGS_IGNORE_FILE") or DEFAULT_IGNORE_FILE,
            summary_file=os.environ.get("CODETAGS_SUMMARY_FILE") or DEFAULT_SUMMARY_FILE,
            poll_timeout=safe_float(
                os.environ.get("CODETAGS_POLL_TIMEOUT"), 1.0, LOGGER, "CODETAGS_POLL_TIMEOUT"
            ),
            settle_secs=safe_float(
                os.environ.get("CODETAGS_SETTLE_SECS"), 0.01, LOGGER, "CODETAGS_SETTLE_SECS"
            ),
            use_polling=safe_bool(
                os.environ.get("CODETAGS_USE_POLLING"), False, LOGGER, "CODETAGS_USE_POLLING"
            ),
            extensions=SOURCE_EXTS
            | _split_extensions(os.environ.get("CODETAGS_EXTRA_EXTENSIONS")),
        )
