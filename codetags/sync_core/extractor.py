"""Tag detection, identifier stamping and file rewriting."""

from __future__ import annotations

import os
import re
import secrets
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from codetags.logger import TransientIOError
from .config import ID_HEX_DIGITS, ID_PREFIX, SOURCE_EXTS, TAG_TYPES
from .models import Tag

# Longest keywords first so WARNING wins over WARN at the same offset.
_KEYWORD_RE = re.compile(
    "(" + "|".join(sorted(TAG_TYPES, key=len, reverse=True)) + "):"
)
_ID_RE = re.compile(
    r"(?<![A-Za-z0-9])" + re.escape(ID_PREFIX) + r"[0-9A-F]{%d}(?![A-Za-z0-9])" % ID_HEX_DIGITS
)
_COMMENT_MARKERS = ("//", "/*", "#")


def generate_id() -> str:
    return ID_PREFIX + "".join(secrets.choice("0123456789ABCDEF") for _ in range(ID_HEX_DIGITS))


def find_id(line: str) -> Optional[str]:
    """First well-formed identifier anywhere in the line."""
    m = _ID_RE.search(line)
    return m.group(0) if m else None


def _first_marker(line: str) -> int:
    positions = [line.find(marker) for marker in _COMMENT_MARKERS]
    positions = [p for p in positions if p >= 0]
    return min(positions) if positions else -1


def match_tag(line: str) -> Optional[Tuple[str, int]]:
    """Return (keyword, offset just past its colon) for a qualifying line.

    A keyword only counts when a comment marker starts at or before it. This
    is a textual heuristic and will also fire inside string literals.
    """
    marker = _first_marker(line)
    if marker < 0:
        return None
    for m in _KEYWORD_RE.finditer(line):
        if m.start() >= marker:
            return m.group(1), m.end()
    return None


def _split_ending(line: str) -> Tuple[str, str]:
    body = line.rstrip("\r\n")
    return body, line[len(body):]


def stamp_line(line: str, tag_id: Optional[str] = None) -> str:
    """Insert an id right after the keyword colon, unless the line already has one.

    A fresh id is drawn only when one is actually inserted and ``tag_id`` is
    not given.
    """
    body, ending = _split_ending(line)
    hit = match_tag(body)
    if hit is None or find_id(body) is not None:
        return line
    _, colon_end = hit
    rest = body[colon_end:]
    spacer = "" if (not rest or rest[0].isspace()) else " "
    tag_id = tag_id or generate_id()
    return body[:colon_end] + " " + tag_id + spacer + rest + ending


def extract_content(body: str, colon_end: int, tag_id: Optional[str]) -> str:
    remainder = body[colon_end:]
    if tag_id:
        pos = remainder.find(tag_id)
        if pos >= 0:
            before = remainder[:pos].strip()
            after = remainder[pos + len(tag_id):].strip()
            return " ".join(part for part in (before, after) if part)
    return remainder.strip()


def relative_to_root(path: str, repo_root: str) -> str:
    root = os.path.abspath(repo_root).rstrip(os.sep)
    if path.startswith(root + os.sep):
        return path[len(root) + 1:]
    return path


class TagExtractor:
    """Parses source files into Tag records, stamping missing identifiers."""

    def __init__(self, extensions: Iterable[str] = SOURCE_EXTS):
        self.extensions = frozenset(e.lower() for e in extensions)

    def is_source_file(self, path: str | Path) -> bool:
        suffix = Path(path).suffix.lower()
        return bool(suffix) and suffix in self.extensions

    def parse_file(self, path: str, repo_root: str, mtime: float) -> List[Tag]:
        """Stamp every unstamped tag line in ``path`` and return its tags.

        Raises TransientIOError when the file cannot be read or rewritten.
        """
        path = os.path.abspath(path)
        if not self.is_source_file(path):
            return []
        # Bytes that are not valid UTF-8 survive the read/rewrite unchanged.
        try:
            with open(path, "r", encoding="utf-8", errors="surrogateescape", newline="") as fh:
                lines = fh.readlines()
        except OSError as exc:
            raise TransientIOError(f"cannot read {path}: {exc}") from exc

        stamped = [stamp_line(line) for line in lines]
        if stamped != lines:
            try:
                with open(path, "w", encoding="utf-8", errors="surrogateescape", newline="") as fh:
                    fh.writelines(stamped)
                mtime = os.stat(path).st_mtime
            except OSError as exc:
                raise TransientIOError(f"cannot rewrite {path}: {exc}") from exc
            lines = stamped

        rel = relative_to_root(path, repo_root)
        tags: List[Tag] = []
        for number, line in enumerate(lines, start=1):
            body, _ = _split_ending(line)
            hit = match_tag(body)
            if hit is None:
                continue
            keyword, colon_end = hit
            tag_id = find_id(body)
            content = extract_content(body, colon_end, tag_id)
            tags.append(
                Tag(
                    id=tag_id or generate_id(),
                    type=keyword,
                    content=content,
                    absolute_path=path,
                    relative_path=rel,
                    line_number=number,
                    last_modified=mtime,
                )
            )
        return tags


__all__ = [
    "TagExtractor",
    "extract_content",
    "find_id",
    "generate_id",
    "match_tag",
    "relative_to_root",
    "stamp_line",
]
