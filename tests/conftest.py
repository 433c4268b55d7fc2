import logging
import os
import subprocess
from collections.abc import Generator
from pathlib import Path

import pytest

_LEAKY_ENV = (
    "GIT_DIR",
    "GIT_WORK_TREE",
    "GIT_INDEX_FILE",
    "GIT_AUTHOR_NAME",
    "GIT_AUTHOR_EMAIL",
    "GIT_COMMITTER_NAME",
    "GIT_COMMITTER_EMAIL",
)


@pytest.fixture(autouse=True)
def reset_config(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Generator[None, None, None]:
    # Keep the developer's global git config and qcmt settings out of tests.
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for name in list(os.environ):
        if name.startswith("QCMT_") or name in _LEAKY_ENV:
            monkeypatch.delenv(name, raising=False)

    from qcmt.config import clear_active_config

    clear_active_config()
    yield
    clear_active_config()
    qcmt_logger = logging.getLogger("qcmt")
    for handler in list(qcmt_logger.handlers):
        qcmt_logger.removeHandler(handler)
    qcmt_logger.propagate = True
    qcmt_logger.setLevel(logging.NOTSET)


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


@pytest.fixture
def run_git():
    return git


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """An empty repository on branch ``main`` with an identity configured."""
    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    git(repo, "config", "user.name", "Tester")
    git(repo, "config", "user.email", "tester@example.com")
    return repo


@pytest.fixture
def seeded_repo(git_repo: Path) -> Path:
    """``git_repo`` with one commit tracking ``b.txt`` (2 lines)."""
    (git_repo / "b.txt").write_text("one\ntwo\n")
    git(git_repo, "add", "b.txt")
    git(git_repo, "commit", "-q", "-m", "chore: init")
    return git_repo


@pytest.fixture
def fake_popen(monkeypatch: pytest.MonkeyPatch) -> list:
    """Record detached spawns instead of starting a process.

    Only the push module's view of ``subprocess`` is replaced, so git
    commands run through ``subprocess.run`` keep working.
    """
    from types import SimpleNamespace

    from qcmt import push as push_module

    spawned: list = []

    class _FakePopen:
        pid = 4242

        def __init__(self, command, **kwargs):
            spawned.append((command, kwargs))

        def wait(self):  # pragma: no cover - must never be called
            raise AssertionError("background push must not be awaited")

    fake = SimpleNamespace(
        Popen=_FakePopen,
        DEVNULL=subprocess.DEVNULL,
        STDOUT=subprocess.STDOUT,
    )
    monkeypatch.setattr(push_module, "subprocess", fake)
    return spawned
