import os
import sys
from pathlib import Path

import pytest

# Ensure repository root is on sys.path so `import codetags...` works locally
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from codetags.sync_core.config import SyncSettings  # noqa: E402


class FakeObserver:
    """Stands in for a watchdog observer: records schedule/unschedule calls."""

    def __init__(self, fail_on=None):
        self.scheduled = {}
        self.unscheduled = []
        self.started = False
        self.stopped = False
        self.fail_on = set(fail_on or ())
        self._n = 0

    def schedule(self, handler, path, recursive=False):
        if path in self.fail_on:
            raise OSError(28, "inotify watch limit reached", path)
        self._n += 1
        watch = ("watch", self._n, path)
        self.scheduled[watch] = (handler, path, recursive)
        return watch

    def unschedule(self, watch):
        self.unscheduled.append(watch)
        self.scheduled.pop(watch)

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        pass


@pytest.fixture
def settings(tmp_path):
    return SyncSettings(
        home=tmp_path / "home",
        poll_timeout=0.05,
        settle_secs=0.0,
    )


@pytest.fixture
def repo_root(tmp_path):
    root = tmp_path / "repo"
    root.mkdir()
    return root


def bump_mtime(path, seconds=5):
    """Move a file's mtime forward so the debounce check sees a change."""
    st = os.stat(path)
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + seconds * 1_000_000_000))
