import logging

import pytest

from codetags.sync_core.handler import TagEventHandler
from codetags.sync_core.queue import ChangeQueue
from codetags.sync_core.watches import WatchRegistry

from conftest import FakeObserver

pytestmark = pytest.mark.unit


def _tree(root):
    (root / "a" / "b").mkdir(parents=True)
    (root / "c").mkdir()
    (root / "a" / "file.py").write_text("x = 1\n")


def test_add_watches_each_directory_non_recursively(repo_root):
    _tree(repo_root)
    observer = FakeObserver()
    reg = WatchRegistry(observer, TagEventHandler(ChangeQueue()))

    assert reg.add(str(repo_root)) == 4
    assert reg.paths() == sorted(
        str(p) for p in (repo_root, repo_root / "a", repo_root / "a" / "b", repo_root / "c")
    )
    assert {recursive for _h, _p, recursive in observer.scheduled.values()} == {False}
    for watch, (_h, path, _r) in observer.scheduled.items():
        assert reg.path_for(watch) == path


def test_add_is_idempotent(repo_root):
    _tree(repo_root)
    observer = FakeObserver()
    reg = WatchRegistry(observer, TagEventHandler(ChangeQueue()))
    reg.add(str(repo_root))
    assert reg.add(str(repo_root / "a")) == 0
    assert len(observer.scheduled) == len(reg) == 4


def test_failed_directory_is_logged_and_skipped(repo_root, caplog):
    _tree(repo_root)
    observer = FakeObserver(fail_on={str(repo_root / "c")})
    reg = WatchRegistry(observer, TagEventHandler(ChangeQueue()))
    with caplog.at_level(logging.WARNING):
        assert reg.add(str(repo_root)) == 3
    assert str(repo_root / "c") not in reg
    assert any("cannot watch" in r.getMessage() for r in caplog.records)


def test_remove_all_unschedules_everything(repo_root):
    _tree(repo_root)
    observer = FakeObserver()
    reg = WatchRegistry(observer, TagEventHandler(ChangeQueue()))
    reg.add(str(repo_root))
    reg.remove_all()
    assert len(reg) == 0
    assert observer.scheduled == {}
    assert len(observer.unscheduled) == 4


def test_remove_all_tolerates_vanished_emitters(repo_root):
    observer = FakeObserver()
    reg = WatchRegistry(observer, TagEventHandler(ChangeQueue()))
    reg.add(str(repo_root))
    observer.scheduled.clear()
    reg.remove_all()
    assert len(reg) == 0


def test_discard_under_drops_subtree_only(repo_root):
    _tree(repo_root)
    (repo_root / "ab").mkdir()
    observer = FakeObserver()
    reg = WatchRegistry(observer, TagEventHandler(ChangeQueue()))
    reg.add(str(repo_root))

    assert reg.discard_under(str(repo_root / "a")) == 2
    assert reg.paths() == sorted(str(p) for p in (repo_root, repo_root / "ab", repo_root / "c"))
    assert len(observer.unscheduled) == 2


def test_refresh_replaces_stale_handles(repo_root):
    _tree(repo_root)
    observer = FakeObserver()
    reg = WatchRegistry(observer, TagEventHandler(ChangeQueue()))
    reg.add(str(repo_root))
    sub = str(repo_root / "a")
    old = {w for w, (_h, p, _r) in observer.scheduled.items() if p.startswith(sub)}

    assert reg.refresh(sub) == 2
    assert set(observer.unscheduled) == old
    new = {w for w, (_h, p, _r) in observer.scheduled.items() if p.startswith(sub)}
    assert len(new) == 2 and not (new & old)
    assert sub in reg and len(reg) == 4
