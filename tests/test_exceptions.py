from qcmt.exceptions import (
    CommitError,
    ConfigError,
    GitError,
    PushError,
    QcmtError,
    RepositoryOpenError,
    StorageError,
    ValidationError,
)


def test_exceptions_hierarchy_and_str():
    # Given exception classes
    # When instantiating
    base = QcmtError("base")
    git_errors = [
        GitError("git"),
        RepositoryOpenError("open"),
        StorageError("storage"),
        CommitError("commit"),
        PushError("push"),
    ]
    c = ConfigError("cfg")
    v = ValidationError("val")

    # Then hierarchy holds
    assert isinstance(base, Exception)
    for err in git_errors:
        assert isinstance(err, GitError)
        assert isinstance(err, QcmtError)
    assert isinstance(c, QcmtError)
    assert not isinstance(c, GitError)
    assert isinstance(v, QcmtError)
    # And messages are retained
    assert "storage" in str(git_errors[2])
    assert "cfg" in str(c)
    assert "val" in str(v)
