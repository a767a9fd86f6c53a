"""Remove command: stop monitoring the working directory."""
from __future__ import annotations

import argparse
import os

from codetags.sync_core.registry import unregister
from codetags_cli.core import current_repo, get_settings


def cmd_remove(args: argparse.Namespace) -> None:
    settings = get_settings()
    repo = current_repo()
    removed = unregister(settings.registry_path, repo.name)
    try:
        os.remove(os.path.join(repo.root_path, settings.summary_file))
    except FileNotFoundError:
        pass
    if removed:
        print("Repository removed from monitoring")
    else:
        print(f"Repository {repo.name} was not registered")
