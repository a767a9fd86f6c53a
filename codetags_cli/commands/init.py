"""Init command: register the working directory and start the daemon."""
from __future__ import annotations

import argparse
import os
import sys
import time

from codetags.daemon import kill_existing_daemon, spawn_daemon
from codetags.sync_core.registry import register
from codetags.sync_core.summary import HEADER
from codetags_cli.core import current_repo, get_settings


def cmd_init(args: argparse.Namespace) -> None:
    settings = get_settings()
    repo = current_repo()

    kill_existing_daemon(settings.pid_path)

    summary = os.path.join(repo.root_path, settings.summary_file)
    with open(summary, "w", encoding="utf-8") as fh:
        fh.write(HEADER)

    added = register(settings.registry_path, repo)
    state = "registered" if added else "already registered"
    print(f"Codetags initialized in {repo.root_path} ({state} as {repo.name}).")

    if getattr(args, "no_daemon", False):
        return
    print("Starting daemon in background...", file=sys.stderr)
    spawn_daemon()
    time.sleep(0.2)
