"""Custom exceptions for qcmt."""


class QcmtError(Exception):
    """Base exception for qcmt."""


class GitError(QcmtError):
    """Raised when a git command fails."""


class RepositoryOpenError(GitError):
    """Raised when no repository can be found or opened."""


class StorageError(GitError):
    """Raised when status, index or object storage cannot be read or written."""


class CommitError(GitError):
    """Raised when a commit cannot be written or the branch cannot be advanced."""


class PushError(GitError):
    """Raised by the background push when transport to the remote fails."""


class ConfigError(QcmtError):
    """Raised for configuration problems such as a missing committer identity."""


class ValidationError(QcmtError):
    """Raised when user input (e.g. a commit message) is rejected."""
