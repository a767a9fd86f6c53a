"""Markdown summary artifact listing every indexed tag."""

from __future__ import annotations

from datetime import datetime
from itertools import groupby
from pathlib import Path
from typing import Iterable, List

from codetags.logger import ArtifactWriteError
from .models import Tag

HEADER = "# Codetags\n"


def format_time(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def render_summary(tags: Iterable[Tag]) -> str:
    """Group tags by type (type-sorted) and render them deterministically."""
    ordered = sorted(tags, key=lambda t: (t.type, t.relative_path, t.line_number, t.id))
    out: List[str] = [HEADER]
    for tag_type, group in groupby(ordered, key=lambda t: t.type):
        out.append(f"## {tag_type}\n")
        for tag in group:
            out.append(f"- **[{tag.id}]** {tag.content}\n")
            out.append(f"  - *File:* {tag.relative_path}:{tag.line_number}\n")
            out.append(f"  - *Modified:* {format_time(tag.last_modified)}\n")
    return "".join(out)


def write_summary(path: Path, tags: Iterable[Tag]) -> None:
    """Write the artifact; raises ArtifactWriteError on failure."""
    text = render_summary(tags)
    try:
        path.write_text(text, encoding="utf-8", errors="surrogateescape")
    except OSError as exc:
        raise ArtifactWriteError(f"cannot write {path}: {exc}") from exc


__all__ = ["HEADER", "format_time", "render_summary", "write_summary"]
