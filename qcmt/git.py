"""Git operations for qcmt."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Type, Union

from .config import Config, get_active_config
from .exceptions import (
    CommitError,
    ConfigError,
    GitError,
    PushError,
    RepositoryOpenError,
    StorageError,
)

logger = logging.getLogger(__name__)


def find_git_repo_root(start_path: Optional[Path] = None) -> Optional[Path]:
    """Return the top-level Git repository directory for ``start_path``.

    Attempts ``git rev-parse --show-toplevel`` first so worktrees and
    submodules are handled correctly. Falls back to walking parent
    directories looking for a ``.git`` directory or file. Returns ``None``
    when no Git repository can be found starting from ``start_path``.
    """

    path = Path(start_path or Path.cwd()).expanduser().resolve(strict=False)
    if path.is_file():
        path = path.parent
    if not path.exists():
        return None

    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=path,
            capture_output=True,
            text=True,
            check=True,
        )
        top = result.stdout.strip()
        if top:
            return Path(top)
    except (subprocess.CalledProcessError, FileNotFoundError):
        pass

    for candidate in (path, *path.parents):
        git_meta = candidate / ".git"
        if git_meta.exists():
            return candidate

    return None


@dataclass(frozen=True)
class Identity:
    """Author and committer identity read from git configuration."""

    name: str
    email: str

    def as_env(self) -> Dict[str, str]:
        return {
            "GIT_AUTHOR_NAME": self.name,
            "GIT_AUTHOR_EMAIL": self.email,
            "GIT_COMMITTER_NAME": self.name,
            "GIT_COMMITTER_EMAIL": self.email,
        }


@dataclass(frozen=True)
class HasParent:
    """The branch already points at a commit."""

    ref: str
    commit: str


@dataclass(frozen=True)
class NoParent:
    """The branch is unborn: the next commit is a root commit."""

    ref: str


ParentResolution = Union[HasParent, NoParent]


class IndexMutator:
    """Collects index additions and removals and writes them in one pass."""

    def __init__(self, repo: "GitRepo") -> None:
        self._repo = repo
        self._paths: List[str] = []
        self._seen: set[str] = set()

    def __len__(self) -> int:
        return len(self._paths)

    def add(self, path: str) -> None:
        self._queue(path)

    def remove(self, path: str) -> None:
        # update-index --remove drops entries whose file is gone, so the
        # queued path is enough for both directions.
        self._queue(path)

    def _queue(self, path: str) -> None:
        if path in self._seen:
            return
        self._seen.add(path)
        self._paths.append(path)

    def write(self) -> int:
        """Persist every queued mutation with a single index write."""
        if not self._paths:
            return 0
        payload = "".join(f"{p}\0" for p in self._paths)
        self._repo._run_git_command(
            ["update-index", "--add", "--remove", "-z", "--stdin"],
            input_text=payload,
        )
        count = len(self._paths)
        logger.debug("Index written with %d path(s)", count)
        self._paths = []
        self._seen = set()
        return count


class GitRepo:
    """Handles Git repository operations."""

    def __init__(
        self,
        repo_path: Optional[str] = None,
        config: Optional[Config] = None,
    ) -> None:
        """Open the repository at or above ``repo_path``."""

        self._config = config or get_active_config()
        start = Path(repo_path or self._config.git_repo_path)
        root = find_git_repo_root(start)
        if root is None or not self._is_git_repo(root):
            raise RepositoryOpenError(f"Not a Git repository: {start}")
        self.repo_path = root

    @staticmethod
    def _is_git_repo(path: Path) -> bool:
        """Check if ``path`` is inside a Git work tree."""
        try:
            subprocess.run(
                ["git", "rev-parse", "--git-dir"],
                cwd=path,
                capture_output=True,
                text=True,
                check=True,
            )
            return True
        except (subprocess.CalledProcessError, FileNotFoundError):
            return False

    def _run_git_command(
        self,
        args: List[str],
        *,
        input_text: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        error_cls: Type[GitError] = StorageError,
        strip: bool = True,
    ) -> str:
        """Run a Git command and return its output."""
        run_env = None
        if env:
            run_env = os.environ.copy()
            run_env.update(env)
        try:
            result = subprocess.run(
                ["git"] + args,
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                check=True,
                input=input_text,
                env=run_env,
            )
        except subprocess.CalledProcessError as e:
            cmd = " ".join(args)
            raise error_cls(
                f"Git command failed: {cmd}\n{(e.stderr or '').strip()}"
            ) from e
        except FileNotFoundError as exc:
            raise error_cls(
                "Git command not found. Please install Git."
            ) from exc
        return result.stdout.strip() if strip else result.stdout

    def _run_git_unchecked(self, args: List[str]) -> subprocess.CompletedProcess:
        """Run a Git command whose non-zero exit status is meaningful."""
        try:
            return subprocess.run(
                ["git"] + args,
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise GitError("Git command not found. Please install Git.") from exc

    # ------------------------------------------------------------------
    # Status and index
    # ------------------------------------------------------------------
    def status_entries(self) -> List[Tuple[str, str]]:
        """Return ``(xy_code, path)`` pairs for the whole working tree.

        Untracked directories are expanded to their files and renames are
        reported as a deletion plus an addition.
        """
        output = self._run_git_command(
            [
                "status",
                "--porcelain=v1",
                "-z",
                "--untracked-files=all",
                "--no-renames",
            ],
            strip=False,
        )
        entries: List[Tuple[str, str]] = []
        for record in output.split("\0"):
            if not record:
                continue
            if len(record) < 4 or record[2] != " ":
                raise StorageError(f"Unexpected status record: {record!r}")
            entries.append((record[:2], record[3:]))
        return entries

    def index_mutator(self) -> IndexMutator:
        return IndexMutator(self)

    # ------------------------------------------------------------------
    # Trees and commits
    # ------------------------------------------------------------------
    def write_tree(self) -> str:
        """Materialise the persisted index as a tree object."""
        return self._run_git_command(["write-tree"])

    def empty_tree(self) -> str:
        return self._run_git_command(
            ["hash-object", "-t", "tree", "-w", "--stdin"], input_text=""
        )

    def head_ref(self) -> str:
        """Return the ref HEAD points at, or ``HEAD`` when detached."""
        result = self._run_git_unchecked(["symbolic-ref", "-q", "HEAD"])
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
        if result.returncode == 1:
            return "HEAD"
        raise CommitError(f"Cannot resolve HEAD: {result.stderr.strip()}")

    def resolve_parent(self) -> ParentResolution:
        """Resolve the branch tip, treating an unborn branch as ``NoParent``."""
        ref = self.head_ref()
        result = self._run_git_unchecked(
            ["rev-parse", "--verify", "-q", f"{ref}^{{commit}}"]
        )
        tip = result.stdout.strip()
        if result.returncode == 0 and tip:
            return HasParent(ref=ref, commit=tip)
        if result.returncode == 1 and not tip:
            return NoParent(ref=ref)
        raise CommitError(
            f"Cannot resolve branch tip {ref}: {result.stderr.strip()}"
        )

    def tree_of_commit(self, commit: str) -> str:
        """Return the tree id of ``commit``."""
        return self._run_git_command(["rev-parse", "--verify", f"{commit}^{{tree}}"])

    def resolve_identity(self) -> Identity:
        values = {}
        for key in ("user.name", "user.email"):
            result = self._run_git_unchecked(["config", "--get", key])
            value = result.stdout.strip()
            if result.returncode != 0 or not value:
                raise ConfigError(
                    f"Git identity is not configured: set {key} "
                    f"(git config --global {key} ...)"
                )
            values[key] = value
        return Identity(name=values["user.name"], email=values["user.email"])

    def create_commit(
        self,
        tree: str,
        message: str,
        identity: Identity,
        parent: Optional[str] = None,
    ) -> str:
        """Write a commit object and return its id. No ref is moved."""
        args = ["commit-tree", tree]
        if parent:
            args += ["-p", parent]
        return self._run_git_command(
            args,
            input_text=message if message.endswith("\n") else message + "\n",
            env=identity.as_env(),
            error_cls=CommitError,
        )

    def update_ref(
        self, ref: str, new: str, old: Optional[str], reason: str
    ) -> None:
        """Move ``ref`` to ``new`` only if it still points at ``old``.

        ``old=None`` requires that the ref does not exist yet.
        """
        self._run_git_command(
            ["update-ref", "-m", reason, ref, new, old or ""],
            error_cls=CommitError,
        )

    # ------------------------------------------------------------------
    # Diff statistics
    # ------------------------------------------------------------------
    def diff_tree_numstat(self, old_tree: str, new_tree: str) -> List[Tuple[int, int, str]]:
        """Return ``(insertions, deletions, path)`` per changed file."""
        output = self._run_git_command(
            ["diff-tree", "-r", "--numstat", "--no-renames", old_tree, new_tree]
        )
        stats: List[Tuple[int, int, str]] = []
        for line in output.splitlines():
            if not line:
                continue
            added, deleted, path = line.split("\t", 2)
            # Binary files report "-" for both counts.
            stats.append(
                (
                    int(added) if added.isdigit() else 0,
                    int(deleted) if deleted.isdigit() else 0,
                    path,
                )
            )
        return stats

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------
    def current_branch(self) -> str:
        ref = self.head_ref()
        prefix = "refs/heads/"
        if not ref.startswith(prefix):
            raise PushError("HEAD is detached; nothing to push")
        return ref[len(prefix):]

    def upstream_remote(self, branch: str) -> Optional[str]:
        result = self._run_git_unchecked(["config", "--get", f"branch.{branch}.remote"])
        remote = result.stdout.strip()
        return remote or None

    def git_dir(self) -> Path:
        return Path(self._run_git_command(["rev-parse", "--absolute-git-dir"]))

    def git_path(self, name: str) -> Path:
        """Return the absolute path of ``name`` inside the git directory."""
        rel = self._run_git_command(["rev-parse", "--git-path", name])
        path = Path(rel)
        if not path.is_absolute():
            path = self.repo_path / path
        return path

    def push(
        self, remote: Optional[str] = None, branch: Optional[str] = None
    ) -> str:
        """Push one branch to the same-named branch on ``remote``.

        Credentials come from the ambient git configuration (credential
        helpers, ssh agent). Returns the stdout from git push.
        """
        if branch is None:
            branch = self.current_branch()
        if remote is None:
            remote = self.upstream_remote(branch) or "origin"
        refspec = f"refs/heads/{branch}:refs/heads/{branch}"
        logger.info("Pushing %s to %s", branch, remote)
        return self._run_git_command(
            ["push", "--porcelain", remote, refspec],
            env={"GIT_TERMINAL_PROMPT": "0"},
            error_cls=PushError,
        )
