"""qcmt - stage everything, commit, and push in the background."""

from importlib import import_module
from typing import TYPE_CHECKING

__version__ = "0.1.0"

# Public API (lazy-exported to avoid import-time side effects)
__all__ = [
    # Config
    "Config", "load_config",
    # Git
    "GitRepo", "IndexMutator",
    # Status
    "StatusFlag", "ChangeKind", "classify",
    # Core workflow
    "CommitWorkflow", "FileChange", "DiffStats", "CommitResult",
    # Exceptions
    "QcmtError", "GitError", "RepositoryOpenError", "StorageError",
    "CommitError", "PushError", "ConfigError", "ValidationError",
]


def __getattr__(name: str):
    """Lazy attribute loader so ``import qcmt`` stays cheap."""
    mapping = {
        "Config": ("qcmt.config", "Config"),
        "load_config": ("qcmt.config", "load_config"),
        "GitRepo": ("qcmt.git", "GitRepo"),
        "IndexMutator": ("qcmt.git", "IndexMutator"),
        "StatusFlag": ("qcmt.status", "StatusFlag"),
        "ChangeKind": ("qcmt.status", "ChangeKind"),
        "classify": ("qcmt.status", "classify"),
        "CommitWorkflow": ("qcmt.core", "CommitWorkflow"),
        "FileChange": ("qcmt.core", "FileChange"),
        "DiffStats": ("qcmt.core", "DiffStats"),
        "CommitResult": ("qcmt.core", "CommitResult"),
        "QcmtError": ("qcmt.exceptions", "QcmtError"),
        "GitError": ("qcmt.exceptions", "GitError"),
        "RepositoryOpenError": ("qcmt.exceptions", "RepositoryOpenError"),
        "StorageError": ("qcmt.exceptions", "StorageError"),
        "CommitError": ("qcmt.exceptions", "CommitError"),
        "PushError": ("qcmt.exceptions", "PushError"),
        "ConfigError": ("qcmt.exceptions", "ConfigError"),
        "ValidationError": ("qcmt.exceptions", "ValidationError"),
    }
    if name in mapping:
        mod_name, attr = mapping[name]
        mod = import_module(mod_name)
        value = getattr(mod, attr)
        globals()[name] = value  # cache for future access
        return value
    raise AttributeError(f"module 'qcmt' has no attribute {name!r}")


if TYPE_CHECKING:
    from .config import Config, load_config
    from .git import GitRepo, IndexMutator
    from .status import StatusFlag, ChangeKind, classify
    from .core import CommitWorkflow, FileChange, DiffStats, CommitResult
    from .exceptions import (
        QcmtError,
        GitError,
        RepositoryOpenError,
        StorageError,
        CommitError,
        PushError,
        ConfigError,
        ValidationError,
    )
