"""Registration store: one ``name:absolute_path`` line per repository."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List

from codetags.logger import RegistrationError
from .config import build_logger
from .models import Repository

logger = build_logger("codetags.registry")


def parse_registrations(text: str) -> List[Repository]:
    """Parse store contents; malformed lines are skipped."""
    repos = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        name, sep, path = line.partition(":")
        if not sep or not name or not path:
            logger.warning("Skipping malformed registration line: %r", line)
            continue
        repos.append(Repository(name=name, root_path=path))
    return repos


def load_registrations(store: Path, require_existing: bool = True) -> Dict[str, Repository]:
    """Registered repositories by name; later lines win on duplicate names."""
    try:
        text = store.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    repos: Dict[str, Repository] = {}
    for repo in parse_registrations(text):
        if require_existing and not os.path.isdir(repo.root_path):
            logger.info("Skipping %s: %s does not exist", repo.name, repo.root_path)
            continue
        repos[repo.name] = repo
    return repos


def ensure_store(store: Path) -> None:
    store.parent.mkdir(parents=True, exist_ok=True)
    if not store.exists():
        store.touch()


def register(store: Path, repo: Repository) -> bool:
    """Append ``repo`` unless its name is already registered; returns True when added."""
    if not repo.name or ":" in repo.name:
        raise RegistrationError(f"invalid repository name: {repo.name!r}")
    if not os.path.isabs(repo.root_path):
        raise RegistrationError(f"repository path must be absolute: {repo.root_path!r}")
    ensure_store(store)
    existing = load_registrations(store, require_existing=False)
    if repo.name in existing:
        return False
    with store.open("a", encoding="utf-8") as fh:
        fh.write(f"{repo.name}:{repo.root_path}\n")
    return True


def unregister(store: Path, name: str) -> bool:
    """Drop every line registered under ``name``; returns True when something was removed."""
    if not store.exists():
        return False
    lines = store.read_text(encoding="utf-8").splitlines()
    kept = [
        line for line in lines
        if line.strip() and line.partition(":")[0] != name
    ]
    removed = len(kept) != len([line for line in lines if line.strip()])
    tmp = store.with_name(store.name + ".tmp")
    tmp.write_text("".join(line + "\n" for line in kept), encoding="utf-8")
    os.replace(tmp, store)
    return removed


__all__ = [
    "ensure_store",
    "load_registrations",
    "parse_registrations",
    "register",
    "unregister",
]
