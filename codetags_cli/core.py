"""Shared helpers for CLI commands."""
from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any, Optional

from codetags.sync_core.config import SyncSettings
from codetags.sync_core.models import Repository


def get_settings() -> SyncSettings:
    return SyncSettings.from_env()


def current_repo(path: Optional[str] = None) -> Repository:
    """Repository for ``path`` (default: the working directory), named after its folder."""
    root = Path(path or os.getcwd()).resolve()
    return Repository(name=root.name, root_path=str(root))


def output_json(data: Any) -> None:
    """Write JSON to stdout; single place for all commands."""
    json.dump(data, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
