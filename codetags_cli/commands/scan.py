"""One-shot scan commands (no watcher)."""
from __future__ import annotations

import argparse

from codetags.sync_core.engine import SyncEngine
from codetags.sync_core.index import TagIndex
from codetags_cli.core import current_repo, get_settings, output_json


def _scan_once() -> TagIndex:
    index = TagIndex()
    engine = SyncEngine(current_repo(), index, get_settings())
    engine.scan()
    return index


def cmd_scan(args: argparse.Namespace) -> None:
    """Stamp, index and summarize the working directory once."""
    index = _scan_once()
    print(f"Manual scan completed: {len(index)} tag(s).")


def cmd_list(args: argparse.Namespace) -> None:
    """Like scan, but print the tags as JSON."""
    index = _scan_once()
    tag_type = (getattr(args, "tag_type", None) or "").upper()
    tags = sorted(index.all_tags(), key=lambda t: (t.type, t.relative_path, t.line_number))
    output_json(
        {
            "ok": True,
            "tags": [t.to_dict() for t in tags if not tag_type or t.type == tag_type],
        }
    )
