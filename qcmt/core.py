"""Core workflow logic for qcmt."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .config import Config, get_active_config
from .exceptions import (
    CommitError,
    ConfigError,
    QcmtError,
    StorageError,
    ValidationError,
)
from .git import GitRepo, HasParent, NoParent
from .push import spawn_background_push
from .status import ChangeKind, StatusFlag, classify, parse_status_code

logger = logging.getLogger(__name__)

RESET = "\033[0m"
CYAN = "\033[96m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
MAGENTA = "\033[95m"
DIM = "\033[2m"
RED = "\033[91m"

_KIND_COLORS = {
    ChangeKind.ADDED: GREEN,
    ChangeKind.MODIFIED: YELLOW,
    ChangeKind.DELETED: RED,
}


@dataclass
class FileChange:
    """Represents a staged file change with its kind and path."""

    file_path: str
    kind: ChangeKind


@dataclass(frozen=True)
class DiffStats:
    """Line counts between the prior tip tree and the staged tree."""

    insertions: int = 0
    deletions: int = 0


@dataclass
class CommitResult:
    """Result of a commit operation."""

    commit_hash: str
    tree: str
    ref: str
    message: str
    parent: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.parent is None


class CommitWorkflow:
    """Stage everything, summarise, commit and hand the push to the background."""

    def __init__(
        self,
        repo_path: Optional[str] = None,
        config: Optional[Config] = None,
    ) -> None:
        self._config = config or get_active_config()
        self.git_repo = GitRepo(repo_path, self._config)

    # ------------------------------------------------------------------
    # Classification and staging
    # ------------------------------------------------------------------
    def stage_changes(self) -> List[FileChange]:
        """Classify every relevant working-tree entry and stage it.

        The index is written exactly once, after the whole scan, and only
        when there is something to stage.
        """
        flags_by_path: Dict[str, StatusFlag] = {}
        for code, path in self.git_repo.status_entries():
            # A path can show up twice, e.g. staged deletion plus untracked copy.
            flags = parse_status_code(code)
            flags_by_path[path] = flags_by_path.get(path, StatusFlag.CURRENT) | flags

        mutator = self.git_repo.index_mutator()
        changes: List[FileChange] = []
        for path, flags in flags_by_path.items():
            kind = classify(flags)
            if kind is None:
                logger.debug("Skipping %s (%s)", path, flags)
                continue
            if kind.removes_entry:
                mutator.remove(path)
            else:
                mutator.add(path)
            changes.append(FileChange(file_path=path, kind=kind))

        mutator.write()
        logger.info("Staged %d change(s)", len(changes))
        return changes

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------
    def _base_and_staged_trees(self) -> Tuple[str, str]:
        """Return the prior tip tree (or the empty tree) and the staged tree."""
        staged_tree = self.git_repo.write_tree()
        try:
            parent = self.git_repo.resolve_parent()
        except CommitError as exc:
            raise StorageError(str(exc)) from exc
        if isinstance(parent, HasParent):
            base_tree = self.git_repo.tree_of_commit(parent.commit)
        else:
            base_tree = self.git_repo.empty_tree()
        return base_tree, staged_tree

    def has_staged_changes(self) -> bool:
        """False when the staged tree is identical to the prior tip tree."""
        base_tree, staged_tree = self._base_and_staged_trees()
        return base_tree != staged_tree

    def compute_stats(self) -> DiffStats:
        """Compare the prior tip tree (or the empty tree) with the staged tree."""
        base_tree, staged_tree = self._base_and_staged_trees()

        insertions = deletions = 0
        for added, removed, _path in self.git_repo.diff_tree_numstat(
            base_tree, staged_tree
        ):
            insertions += added
            deletions += removed
        return DiffStats(insertions=insertions, deletions=deletions)

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------
    def commit(self, message: str) -> CommitResult:
        """Commit the persisted index on top of the current branch tip."""
        message = message.strip()
        if not message:
            raise ValidationError("Commit message must not be empty")

        tree = self.git_repo.write_tree()
        identity = self.git_repo.resolve_identity()
        parent = self.git_repo.resolve_parent()

        parent_commit = parent.commit if isinstance(parent, HasParent) else None
        commit_hash = self.git_repo.create_commit(
            tree, message, identity, parent=parent_commit
        )
        subject = message.splitlines()[0]
        reason = (
            f"commit (initial): {subject}"
            if isinstance(parent, NoParent)
            else f"commit: {subject}"
        )
        self.git_repo.update_ref(parent.ref, commit_hash, parent_commit, reason)
        logger.info("Committed %s on %s", commit_hash, parent.ref)
        return CommitResult(
            commit_hash=commit_hash,
            tree=tree,
            ref=parent.ref,
            message=message,
            parent=parent_commit,
        )

    # ------------------------------------------------------------------
    # Interactive run
    # ------------------------------------------------------------------
    def execute(
        self,
        prompt: Callable[[str], str] = input,
        message: Optional[str] = None,
    ) -> int:
        """Run the whole workflow and return a process exit code."""
        changes = self.stage_changes()
        # A staged edit that was reverted in the work tree stages nothing.
        if not changes or not self.has_staged_changes():
            print(f"{DIM}No changes to commit.{RESET}")
            return 0

        for change in changes:
            color = _KIND_COLORS[change.kind]
            print(f"{color}{change.kind.marker} {change.file_path}{RESET}")

        stats = self.compute_stats()
        print(
            f"\n{CYAN}{len(changes)}{RESET} file(s) staged, "
            f"{GREEN}+{stats.insertions}{RESET} insertion(s), "
            f"{RED}-{stats.deletions}{RESET} deletion(s)"
        )

        if message is None:
            try:
                message = prompt(f"{MAGENTA}: {RESET}")
            except (EOFError, KeyboardInterrupt):
                print(f"\n{YELLOW}Aborted; changes remain staged.{RESET}")
                return 1

        result = self.commit(message)
        print(
            f"{GREEN}[{result.commit_hash[:7]}]{RESET} "
            f"{result.message.splitlines()[0]}"
        )

        if self._config.auto_push:
            try:
                log_path = spawn_background_push(self.git_repo, self._config)
            except (OSError, QcmtError) as exc:
                # The commit stands; only the hand-off failed.
                logger.warning("Could not start background push: %s", exc)
                print(f"{YELLOW}Committed, but the push could not start: {exc}{RESET}")
            else:
                print(f"{DIM}Pushing in the background (log: {log_path}){RESET}")
        print(f"{GREEN}Success!{RESET}")
        return 0


def run_workflow(
    config: Config,
    prompt: Callable[[str], str] = input,
    message: Optional[str] = None,
) -> int:
    """Run :class:`CommitWorkflow`, turning failures into exit codes."""
    try:
        workflow = CommitWorkflow(config=config)
        return workflow.execute(prompt=prompt, message=message)
    except ConfigError as exc:
        print(f"{RED}Configuration error: {exc}{RESET}")
        return 2
    except QcmtError as exc:
        logger.debug("Workflow failed", exc_info=True)
        print(f"{RED}Error: {exc}{RESET}")
        return 1
