"""Daemon process glue: PID file handling and the supervisor run loop."""

from __future__ import annotations

import os
import signal
import subprocess
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from codetags.logger import get_logger
from codetags.sync_core.config import SyncSettings
from codetags.sync_core.supervisor import RepoSupervisor

logger = get_logger("codetags.daemon")


def read_pid(pid_path: Path) -> Optional[int]:
    try:
        return int(pid_path.read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return None


def write_pid(pid_path: Path, pid: Optional[int] = None) -> None:
    pid_path.parent.mkdir(parents=True, exist_ok=True)
    pid_path.write_text(f"{pid or os.getpid()}\n", encoding="utf-8")


def remove_pid(pid_path: Path) -> None:
    try:
        pid_path.unlink()
    except FileNotFoundError:
        pass


def _alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def kill_existing_daemon(pid_path: Path, grace_secs: float = 0.1) -> bool:
    """Terminate the daemon recorded in ``pid_path``; returns True if one was signalled."""
    pid = read_pid(pid_path)
    signalled = False
    if pid is not None and pid != os.getpid() and _alive(pid):
        try:
            os.kill(pid, signal.SIGTERM)
            signalled = True
            time.sleep(grace_secs)
            if _alive(pid):
                os.kill(pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        except PermissionError as exc:
            logger.warning("Cannot signal daemon pid %s: %s", pid, exc)
    remove_pid(pid_path)
    return signalled


def spawn_daemon() -> subprocess.Popen:
    """Start ``codetags daemon`` detached from the current terminal."""
    cmd = [sys.executable or "python3", "-m", "codetags_cli.main", "daemon"]
    return subprocess.Popen(
        cmd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
        close_fds=True,
    )


def run_daemon(settings: Optional[SyncSettings] = None, stop_event: Optional[threading.Event] = None) -> None:
    """Run the supervisor until SIGTERM/SIGINT (or ``stop_event``) is seen."""
    settings = settings or SyncSettings.from_env()
    stop_event = stop_event or threading.Event()

    def _on_signal(signum, _frame):
        logger.info("Received signal %s, shutting down", signum)
        stop_event.set()

    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGTERM, _on_signal)
        signal.signal(signal.SIGINT, _on_signal)

    write_pid(settings.pid_path)
    supervisor = RepoSupervisor(settings)
    logger.info("Daemon started (pid %d), registrations at %s", os.getpid(), settings.registry_path)
    try:
        supervisor.start()
        while not stop_event.wait(settings.poll_timeout):
            pass
    finally:
        supervisor.stop()
        if read_pid(settings.pid_path) == os.getpid():
            remove_pid(settings.pid_path)
        logger.info("Daemon stopped")


__all__ = [
    "kill_existing_daemon",
    "read_pid",
    "remove_pid",
    "run_daemon",
    "spawn_daemon",
    "write_pid",
]
