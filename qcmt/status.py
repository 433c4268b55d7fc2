"""Working-tree status flags and their classification into change kinds."""

from __future__ import annotations

import enum
from typing import Optional

from .exceptions import StorageError


class StatusFlag(enum.Flag):
    """Raw status bits of a single working-tree entry."""

    CURRENT = 0
    INDEX_NEW = enum.auto()
    INDEX_MODIFIED = enum.auto()
    INDEX_DELETED = enum.auto()
    WT_NEW = enum.auto()
    WT_MODIFIED = enum.auto()
    WT_DELETED = enum.auto()
    IGNORED = enum.auto()
    CONFLICTED = enum.auto()


class ChangeKind(enum.Enum):
    """Normalised kind of a staged change."""

    ADDED = "+"
    MODIFIED = "M"
    DELETED = "-"

    @property
    def marker(self) -> str:
        return self.value

    @property
    def removes_entry(self) -> bool:
        """True when staging this change drops the path from the index."""
        return self is ChangeKind.DELETED


# Porcelain v1 pairs that mean "unmerged".
_UNMERGED = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}

_INDEX_CODES = {
    " ": StatusFlag.CURRENT,
    "A": StatusFlag.INDEX_NEW,
    "M": StatusFlag.INDEX_MODIFIED,
    "T": StatusFlag.INDEX_MODIFIED,
    "D": StatusFlag.INDEX_DELETED,
}

_WORKTREE_CODES = {
    " ": StatusFlag.CURRENT,
    "A": StatusFlag.WT_NEW,
    "M": StatusFlag.WT_MODIFIED,
    "T": StatusFlag.WT_MODIFIED,
    "D": StatusFlag.WT_DELETED,
}


def parse_status_code(code: str) -> StatusFlag:
    """Translate a porcelain ``XY`` status code into ``StatusFlag`` bits."""
    if len(code) != 2:
        raise StorageError(f"Malformed status code: {code!r}")
    if code == "??":
        return StatusFlag.WT_NEW
    if code == "!!":
        return StatusFlag.IGNORED
    if code in _UNMERGED or "U" in code:
        return StatusFlag.CONFLICTED

    index_code, worktree_code = code[0], code[1]
    try:
        return _INDEX_CODES[index_code] | _WORKTREE_CODES[worktree_code]
    except KeyError as exc:
        raise StorageError(f"Unknown status code: {code!r}") from exc


def classify(flags: StatusFlag) -> Optional[ChangeKind]:
    """Map any combination of status bits to a change kind, or None to skip.

    A working-copy deletion wins over index additions and modifications:
    the file is gone, so removal is the only staging action that matches
    what will be reported.
    """
    if flags & (StatusFlag.CONFLICTED | StatusFlag.IGNORED):
        return None
    if flags & StatusFlag.WT_DELETED:
        return ChangeKind.DELETED
    if flags & (StatusFlag.WT_NEW | StatusFlag.INDEX_NEW):
        return ChangeKind.ADDED
    if flags & (StatusFlag.WT_MODIFIED | StatusFlag.INDEX_MODIFIED):
        return ChangeKind.MODIFIED
    if flags & StatusFlag.INDEX_DELETED:
        return ChangeKind.DELETED
    return None
