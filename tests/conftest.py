"""Shared fixtures for tests that drive a real git executable."""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

import pytest

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")

_LEAKY_GIT_VARS = (
    "GIT_DIR",
    "GIT_WORK_TREE",
    "GIT_INDEX_FILE",
    "GIT_CONFIG_COUNT",
    "GIT_CONFIG_PARAMETERS",
)


def git(*args: str, cwd: Path) -> str:
    """Run git for fixture setup and return its stripped stdout."""

    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    )
    return result.stdout.strip()


def init_repo(path: Path, *files: str) -> Path:
    """Create a repository on branch ``main`` with one commit."""

    path.mkdir(parents=True, exist_ok=True)
    git("init", "-q", cwd=path)
    git("symbolic-ref", "HEAD", "refs/heads/main", cwd=path)
    for name in files or ("README",):
        (path / name).write_text(f"{name}\n", encoding="utf-8")
        git("add", name, cwd=path)
    git("commit", "-q", "-m", "initial", cwd=path)
    return path


@pytest.fixture
def git_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate git from the user's global and system configuration."""

    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(home / ".gitconfig"))
    monkeypatch.setenv("GIT_CONFIG_SYSTEM", os.devnull)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for name in ("AUTHOR", "COMMITTER"):
        monkeypatch.setenv(f"GIT_{name}_NAME", "Test User")
        monkeypatch.setenv(f"GIT_{name}_EMAIL", "test@example.com")
    for var in _LEAKY_GIT_VARS:
        monkeypatch.delenv(var, raising=False)
    return home
