"""Detached background push.

After a commit the interactive process re-runs ``python -m qcmt`` with
``QCMT_BACKGROUND_PUSH`` set and exits without waiting. The child only
pushes the current branch and reports to its own output, which is
redirected to the push log file.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Mapping, Optional

from .config import Config
from .exceptions import ConfigError, GitError
from .git import GitRepo

logger = logging.getLogger(__name__)

BACKGROUND_ENV = "QCMT_BACKGROUND_PUSH"
PUSH_LOG_NAME = "qcmt-push.log"


def is_background_push(env: Optional[Mapping[str, str]] = None) -> bool:
    """Return True when this process was spawned to push only."""
    value = (env if env is not None else os.environ).get(BACKGROUND_ENV, "")
    return value.strip().lower() in {"1", "true", "yes", "on"}


def push_log_path(repo: GitRepo, config: Config) -> Path:
    """Return where the background push writes its output.

    Relative paths live inside the git directory; the log must never land
    in the work tree, where the next run would stage and commit it.
    """
    if not config.push_log_file:
        return repo.git_path(PUSH_LOG_NAME)
    path = Path(config.push_log_file).expanduser()
    if not path.is_absolute():
        return repo.git_path(path.as_posix())

    resolved = path.resolve(strict=False)
    work_tree = repo.repo_path.resolve()
    git_dir = repo.git_dir().resolve()
    if resolved.is_relative_to(work_tree) and not resolved.is_relative_to(git_dir):
        raise ConfigError(f"Push log {path} is inside the work tree {work_tree}")
    return path


def _detach_kwargs() -> dict:
    if os.name == "nt":
        flags = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(
            subprocess, "CREATE_NEW_PROCESS_GROUP", 0
        )
        return {"creationflags": flags}
    return {"start_new_session": True}


def spawn_background_push(repo: GitRepo, config: Config) -> Path:
    """Start the detached push process and return its log path.

    Must only be called once the branch reference points at the new commit.
    The child is never waited on.
    """
    log_path = push_log_path(repo, config)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    env = os.environ.copy()
    env[BACKGROUND_ENV] = "1"
    command = [sys.executable, "-m", "qcmt", "--repo-path", str(repo.repo_path)]
    if config.remote:
        command += ["--remote", config.remote]

    with open(log_path, "ab") as log_file:
        process = subprocess.Popen(
            command,
            cwd=str(repo.repo_path),
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=log_file,
            stderr=subprocess.STDOUT,
            close_fds=True,
            **_detach_kwargs(),
        )
    logger.debug("Spawned background push pid=%s log=%s", process.pid, log_path)
    return log_path


def run_background_push(config: Config) -> int:
    """Push the current branch; failures are logged and never raised."""
    try:
        repo = GitRepo(config=config)
        branch = repo.current_branch()
        remote = config.remote or repo.upstream_remote(branch) or "origin"
        output = repo.push(remote=remote, branch=branch)
    except GitError as exc:
        logger.error("Push failed: %s", exc)
        return 1
    logger.info("Pushed %s to %s", branch, remote)
    if output:
        logger.debug("%s", output)
    return 0
