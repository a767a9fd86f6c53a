import threading
import time

import pytest

from codetags.logger import SupervisorStartupError
from codetags.sync_core.registry import register
from codetags.sync_core.models import Repository
from codetags.sync_core.supervisor import RepoSupervisor

from conftest import FakeObserver, bump_mtime


class FakeEngine:
    fail_for = set()
    crash_for = set()

    def __init__(self, repo, index, settings):
        self.repo = repo
        self.index = index
        self.started = False
        self.stopped = False

    def start(self):
        if self.repo.name in self.fail_for:
            raise SupervisorStartupError("no watches for you")
        if self.repo.name in self.crash_for:
            raise RuntimeError("boom")
        self.started = True

    def stop(self, timeout=None):
        self.stopped = True


@pytest.fixture
def engines(monkeypatch):
    created = []

    def factory(repo, index, settings):
        engine = FakeEngine(repo, index, settings)
        created.append(engine)
        return engine

    monkeypatch.setattr(FakeEngine, "fail_for", set())
    monkeypatch.setattr(FakeEngine, "crash_for", set())
    return created, factory


def _mkrepo(tmp_path, name):
    path = tmp_path / name
    path.mkdir()
    return Repository(name, str(path))


@pytest.mark.unit
def test_reconcile_starts_and_stops_to_match_registrations(tmp_path, settings, engines):
    created, factory = engines
    sup = RepoSupervisor(settings, engine_factory=factory)
    a = _mkrepo(tmp_path, "a")
    b = _mkrepo(tmp_path, "b")
    register(settings.registry_path, a)
    register(settings.registry_path, b)

    assert sorted(sup.reconcile()) == ["a", "b"]
    assert set(sup.repositories) == {"a", "b"}
    assert all(e.started for e in created)

    settings.registry_path.write_text(f"b:{b.root_path}\n")
    assert sup.reconcile() == ["a"]
    assert set(sup.repositories) == {"b"}
    assert created[0].stopped and not created[1].stopped


@pytest.mark.unit
def test_path_change_restarts_engine(tmp_path, settings, engines):
    created, factory = engines
    sup = RepoSupervisor(settings, engine_factory=factory)
    old = _mkrepo(tmp_path, "old")
    new = tmp_path / "new"
    new.mkdir()
    settings.registry_path.parent.mkdir(parents=True)
    settings.registry_path.write_text(f"proj:{old.root_path}\n")
    sup.reconcile()

    settings.registry_path.write_text(f"proj:{new}\n")
    assert sup.reconcile() == ["proj"]
    assert created[0].stopped
    assert sup.handle("proj").repo.root_path == str(new)
    assert sup.handle("proj").engine is created[-1]


@pytest.mark.unit
def test_each_repository_gets_its_own_index(tmp_path, settings, engines):
    _created, factory = engines
    sup = RepoSupervisor(settings, engine_factory=factory)
    register(settings.registry_path, _mkrepo(tmp_path, "a"))
    register(settings.registry_path, _mkrepo(tmp_path, "b"))
    sup.reconcile()
    assert sup.handle("a").index is not sup.handle("b").index
    assert sup.handle("a").engine.index is sup.handle("a").index


@pytest.mark.unit
def test_failing_repository_does_not_block_others(tmp_path, settings, engines):
    created, factory = engines
    FakeEngine.fail_for.add("bad")
    FakeEngine.crash_for.add("worse")
    sup = RepoSupervisor(settings, engine_factory=factory)
    for name in ("bad", "good", "worse"):
        register(settings.registry_path, _mkrepo(tmp_path, name))

    assert sup.reconcile() == ["good"]
    assert set(sup.repositories) == {"good"}
    crashed = [e for e in created if e.repo.name == "worse"]
    assert crashed and crashed[0].stopped


@pytest.mark.unit
def test_missing_directory_is_not_started(tmp_path, settings, engines):
    created, factory = engines
    settings.registry_path.parent.mkdir(parents=True)
    settings.registry_path.write_text(f"ghost:{tmp_path / 'ghost'}\n")
    sup = RepoSupervisor(settings, engine_factory=factory)
    assert sup.reconcile() == []
    assert created == []


@pytest.mark.unit
def test_stop_stops_every_engine(tmp_path, settings, engines):
    created, factory = engines
    register(settings.registry_path, _mkrepo(tmp_path, "a"))
    observer = FakeObserver()
    sup = RepoSupervisor(settings, engine_factory=factory, observer_factory=lambda: observer)
    sup.start()
    assert observer.started
    assert [p for _h, p, _r in observer.scheduled.values()] == [str(settings.home)]
    sup.stop()
    assert observer.stopped
    assert sup.repositories == {}
    assert all(e.stopped for e in created)


@pytest.mark.unit
def test_registry_edits_are_picked_up_by_polling_fallback(tmp_path, settings, engines):
    created, factory = engines
    # Notifications unavailable: the supervisor falls back to mtime polling.
    observer = FakeObserver(fail_on={str(settings.home)})
    sup = RepoSupervisor(settings, engine_factory=factory, observer_factory=lambda: observer)
    sup.start()
    try:
        assert sup.repositories == {}
        repo = _mkrepo(tmp_path, "late")
        settings.registry_path.write_text(f"late:{repo.root_path}\n")
        bump_mtime(settings.registry_path)
        deadline = time.monotonic() + 5.0
        while time.monotonic() < deadline and "late" not in sup.repositories:
            time.sleep(0.02)
        assert "late" in sup.repositories
    finally:
        sup.stop()


@pytest.mark.unit
def test_lookups_are_not_blocked_while_an_engine_starts(tmp_path, settings):
    seen = {}
    sup = None

    class SlowEngine(FakeEngine):
        def start(self):
            # Another thread queries the supervisor mid-start.
            t = threading.Thread(target=lambda: seen.update(repos=sup.repositories, a=sup.handle("a")))
            t.start()
            t.join(2.0)
            seen["blocked"] = t.is_alive()
            super().start()

    register(settings.registry_path, _mkrepo(tmp_path, "a"))
    register(settings.registry_path, _mkrepo(tmp_path, "b"))
    sup = RepoSupervisor(settings, engine_factory=SlowEngine)

    assert sorted(sup.reconcile()) == ["a", "b"]
    assert seen["blocked"] is False
    # "b" started after "a" was published, so the lookup saw it.
    assert set(seen["repos"]) == {"a"}
    assert seen["a"].repo.name == "a"
