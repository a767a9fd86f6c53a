"""Daemon command: run the supervisor in the foreground."""
from __future__ import annotations

import argparse

from codetags.daemon import run_daemon
from codetags_cli.core import get_settings


def cmd_daemon(args: argparse.Namespace) -> None:
    run_daemon(get_settings())
