"""Ignore-file evaluation for a single repository.

Patterns follow a gitignore-like subset:

- blank lines and lines starting with ``#`` or a space are skipped
- a trailing ``/`` restricts the pattern to directories
- a leading ``/`` anchors the pattern to the repository root; otherwise it
  may match at any depth
- ``*`` and ``?`` never cross a path separator

A path is checked together with every ancestor directory, so ``build/``
excludes everything below a ``build`` directory.
"""

from __future__ import annotations

import os
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Pattern

from codetags.logger import MalformedPatternError
from .config import LOGGER


def translate_glob(pattern: str) -> str:
    """Translate a glob into a regex body where wildcards stop at ``/``."""
    out: List[str] = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        i += 1
        if c == "*":
            # Runs of stars behave like one star within a segment.
            while i < n and pattern[i] == "*":
                i += 1
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            j = i
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                j += 1
            if j >= n:
                raise MalformedPatternError(f"unterminated character class in {pattern!r}")
            body = pattern[i:j]
            i = j + 1
            negate = body[:1] in ("!", "^")
            if negate:
                body = body[1:]
            body = body.replace("/", "")
            if not body:
                raise MalformedPatternError(f"empty character class in {pattern!r}")
            escaped = "".join("\\" + ch if ch in "\\[]^" else ch for ch in body)
            out.append(("[^/" if negate else "[") + escaped + "]")
        elif c == "\\":
            if i < n:
                out.append(re.escape(pattern[i]))
                i += 1
            else:
                out.append(re.escape(c))
        else:
            out.append(re.escape(c))
    return "".join(out)


@dataclass(frozen=True)
class IgnorePattern:
    raw: str
    regex: Optional[Pattern[str]]
    dir_only: bool
    anchored: bool

    @classmethod
    def parse(cls, raw: str) -> "IgnorePattern":
        text = raw
        dir_only = text.endswith("/")
        if dir_only:
            text = text.rstrip("/")
        anchored = text.startswith("/")
        if anchored:
            text = text.lstrip("/")
        regex = None
        if text:
            try:
                body = translate_glob(text)
                prefix = "" if anchored else "(?:.*/)?"
                regex = re.compile(prefix + body + r"\Z")
            except (MalformedPatternError, re.error) as exc:
                LOGGER.warning("Ignoring malformed pattern %r: %s", raw, exc)
                regex = None
        return cls(raw=raw, regex=regex, dir_only=dir_only, anchored=anchored)

    def matches(self, candidate: str, is_dir: bool) -> bool:
        if self.regex is None:
            return False
        if self.dir_only and not is_dir:
            return False
        return self.regex.match(candidate) is not None


def read_patterns(ignore_path: Path) -> List[str]:
    """Return usable pattern lines from an ignore file, or [] when unreadable."""
    try:
        text = ignore_path.read_text(encoding="utf-8", errors="ignore")
    except FileNotFoundError:
        return []
    except OSError as exc:
        LOGGER.warning("Could not read ignore file %s: %s", ignore_path, exc)
        return []
    patterns = []
    for raw in text.splitlines():
        if not raw or raw.startswith("#") or raw.startswith(" "):
            continue
        line = raw.rstrip()
        if line:
            patterns.append(line)
    return patterns


class IgnoreMatcher:
    """Evaluates a repository's ignore patterns against absolute paths."""

    def __init__(self, root: Path | str, ignore_file: str):
        self.root = os.path.abspath(str(root))
        self.ignore_path = Path(self.root) / ignore_file
        self._lock = threading.Lock()
        self._patterns: List[IgnorePattern] = []
        self.reload()

    @property
    def patterns(self) -> List[str]:
        with self._lock:
            return [p.raw for p in self._patterns]

    def reload(self) -> None:
        compiled = [IgnorePattern.parse(p) for p in read_patterns(self.ignore_path)]
        with self._lock:
            self._patterns = compiled

    def relative(self, path: str) -> Optional[str]:
        """Root-relative path with ``/`` separators; None for the root or outside it."""
        path = os.path.abspath(path)
        if path == self.root:
            return None
        prefix = self.root.rstrip(os.sep) + os.sep
        if not path.startswith(prefix):
            return None
        return path[len(prefix):].replace(os.sep, "/")

    def is_ignored(self, path: str, is_dir: bool = False) -> bool:
        rel = self.relative(path)
        if not rel:
            return False
        candidates = [(rel, is_dir)]
        parent = rel
        while "/" in parent:
            parent = parent.rsplit("/", 1)[0]
            candidates.append((parent, True))
        with self._lock:
            patterns = list(self._patterns)
        for pattern in patterns:
            for candidate, candidate_is_dir in candidates:
                if pattern.matches(candidate, candidate_is_dir):
                    return True
        return False


__all__ = ["IgnoreMatcher", "IgnorePattern", "read_patterns", "translate_glob"]
