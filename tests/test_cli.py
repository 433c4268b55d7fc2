import json

import qcmt.cli as cli_module
import qcmt.core as core_module
from qcmt.exceptions import StorageError
from qcmt.git import GitRepo
from qcmt.push import BACKGROUND_ENV


def _prompt(answer):
    asked = []

    def prompt(text):
        asked.append(text)
        return answer

    prompt.asked = asked
    return prompt


def _eof_prompt(text):
    raise EOFError


def _no_spawn(monkeypatch):
    spawned = []

    def fake_spawn(repo, config):
        spawned.append((repo.repo_path, config))
        return repo.repo_path / ".git" / "qcmt-push.log"

    monkeypatch.setattr(core_module, "spawn_background_push", fake_spawn)
    return spawned


def test_cli_help_returns_zero():
    cli = cli_module.CLI()
    assert cli.run(["--help"]) == 0


def test_cli_bad_option_returns_two():
    assert cli_module.CLI().run(["--definitely-not-an-option"]) == 2


def test_no_changes_exits_zero_without_commit_or_push(
    monkeypatch, seeded_repo, run_git, capsys
):
    spawned = _no_spawn(monkeypatch)
    prior = run_git(seeded_repo, "rev-parse", "HEAD")
    prompt = _prompt("never used")

    code = cli_module.CLI(prompt=prompt).run(["--repo-path", str(seeded_repo)])

    assert code == 0
    assert "No changes to commit" in capsys.readouterr().out
    assert prompt.asked == []
    assert spawned == []
    assert run_git(seeded_repo, "rev-parse", "HEAD") == prior


def test_interactive_run_commits_and_spawns_push(
    monkeypatch, seeded_repo, run_git, capsys
):
    spawned = _no_spawn(monkeypatch)
    prior = run_git(seeded_repo, "rev-parse", "HEAD")
    (seeded_repo / "a.txt").write_text("1\n2\n3\n")
    (seeded_repo / "b.txt").unlink()
    prompt = _prompt("feat: add a, drop b")

    code = cli_module.CLI(prompt=prompt).run(["--repo-path", str(seeded_repo)])

    out = capsys.readouterr().out
    assert code == 0
    assert len(prompt.asked) == 1
    assert "+ a.txt" in out
    assert "- b.txt" in out
    assert "+3" in out and "-2" in out
    assert run_git(seeded_repo, "log", "-1", "--pretty=%s") == "feat: add a, drop b"
    assert run_git(seeded_repo, "rev-parse", "HEAD^") == prior
    assert len(spawned) == 1


def test_message_option_skips_prompt_and_no_push(monkeypatch, git_repo, run_git):
    spawned = _no_spawn(monkeypatch)
    (git_repo / "x.txt").write_text("x\n")
    prompt = _prompt("unused")

    code = cli_module.CLI(prompt=prompt).run(
        ["--repo-path", str(git_repo), "-m", "chore: init", "--no-push"]
    )

    assert code == 0
    assert prompt.asked == []
    assert spawned == []
    assert run_git(git_repo, "log", "--pretty=%s") == "chore: init"


def test_abort_at_prompt_keeps_changes_staged(monkeypatch, seeded_repo, run_git):
    spawned = _no_spawn(monkeypatch)
    prior = run_git(seeded_repo, "rev-parse", "HEAD")
    (seeded_repo / "a.txt").write_text("a\n")

    code = cli_module.CLI(prompt=_eof_prompt).run(["--repo-path", str(seeded_repo)])

    assert code == 1
    assert spawned == []
    assert run_git(seeded_repo, "rev-parse", "HEAD") == prior
    assert run_git(seeded_repo, "diff", "--cached", "--name-only") == "a.txt"

    # A second run re-stages the same change without duplication.
    code = cli_module.CLI(prompt=_prompt("feat: a")).run(
        ["--repo-path", str(seeded_repo)]
    )
    assert code == 0
    assert run_git(seeded_repo, "show", "--name-only", "--pretty=", "HEAD") == "a.txt"


def test_missing_identity_exits_two(monkeypatch, git_repo, run_git):
    _no_spawn(monkeypatch)
    run_git(git_repo, "config", "--unset", "user.email")
    (git_repo / "x.txt").write_text("x\n")

    code = cli_module.CLI(prompt=_prompt("feat: x")).run(
        ["--repo-path", str(git_repo)]
    )

    assert code == 2


def test_not_a_repository_exits_one(tmp_path, capsys):
    plain = tmp_path / "plain"
    plain.mkdir()

    code = cli_module.CLI().run(["--repo-path", str(plain)])

    assert code == 1
    assert "Not a Git repository" in capsys.readouterr().out


def test_background_mode_only_pushes(monkeypatch, seeded_repo):
    monkeypatch.setenv(BACKGROUND_ENV, "1")
    seen = {}

    def fake_push(config):
        seen["repo"] = config.git_repo_path
        return 0

    monkeypatch.setattr(cli_module, "run_background_push", fake_push)
    monkeypatch.setattr(
        cli_module,
        "run_workflow",
        lambda *a, **k: (_ for _ in ()).throw(AssertionError("must not commit")),
    )

    code = cli_module.CLI().run(["--repo-path", str(seeded_repo)])

    assert code == 0
    assert seen["repo"] == str(seeded_repo.resolve())


def test_config_is_read_from_repo_root_when_run_from_subdirectory(
    monkeypatch, seeded_repo, run_git
):
    spawned = _no_spawn(monkeypatch)
    (seeded_repo / ".qcmt").mkdir()
    (seeded_repo / ".qcmt" / "config.json").write_text(json.dumps({"auto_push": False}))
    run_git(seeded_repo, "add", ".qcmt")
    run_git(seeded_repo, "commit", "-q", "-m", "chore: config")
    sub = seeded_repo / "sub"
    sub.mkdir()
    (sub / "x.txt").write_text("x\n")
    monkeypatch.chdir(sub)

    code = cli_module.CLI(prompt=_prompt("feat: x")).run([])

    assert code == 0
    assert spawned == []
    assert run_git(seeded_repo, "log", "-1", "--pretty=%s") == "feat: x"
    assert run_git(seeded_repo, "show", "--name-only", "--pretty=", "HEAD") == "sub/x.txt"


def test_relative_push_log_is_never_committed(
    monkeypatch, fake_popen, seeded_repo, run_git
):
    monkeypatch.setenv("QCMT_PUSH_LOG", "push.log")
    (seeded_repo / "a.txt").write_text("a\n")

    code = cli_module.CLI(prompt=_prompt("feat: a")).run(
        ["--repo-path", str(seeded_repo)]
    )

    assert code == 0
    assert len(fake_popen) == 1
    assert not (seeded_repo / "push.log").exists()
    assert (seeded_repo / ".git" / "push.log").exists()
    after_first = run_git(seeded_repo, "rev-parse", "HEAD")

    code = cli_module.CLI(prompt=_prompt("never used")).run(
        ["--repo-path", str(seeded_repo)]
    )

    assert code == 0
    assert run_git(seeded_repo, "rev-parse", "HEAD") == after_first


def test_reverted_staged_edit_commits_nothing(
    monkeypatch, seeded_repo, run_git, capsys
):
    spawned = _no_spawn(monkeypatch)
    prior = run_git(seeded_repo, "rev-parse", "HEAD")
    original = (seeded_repo / "b.txt").read_text()
    (seeded_repo / "b.txt").write_text("changed\n")
    run_git(seeded_repo, "add", "b.txt")
    (seeded_repo / "b.txt").write_text(original)
    prompt = _prompt("never used")

    code = cli_module.CLI(prompt=prompt).run(["--repo-path", str(seeded_repo)])

    assert code == 0
    assert "No changes to commit" in capsys.readouterr().out
    assert prompt.asked == []
    assert spawned == []
    assert run_git(seeded_repo, "rev-parse", "HEAD") == prior


def test_push_hand_off_failure_keeps_commit_and_exit_zero(
    monkeypatch, seeded_repo, run_git, capsys
):
    def broken_git_path(self, name):
        raise StorageError("Git command failed: rev-parse --git-path")

    monkeypatch.setattr(GitRepo, "git_path", broken_git_path)
    prior = run_git(seeded_repo, "rev-parse", "HEAD")
    (seeded_repo / "a.txt").write_text("a\n")

    code = cli_module.CLI(prompt=_prompt("feat: a")).run(
        ["--repo-path", str(seeded_repo)]
    )

    out = capsys.readouterr().out
    assert code == 0
    assert "push could not start" in out
    assert run_git(seeded_repo, "rev-parse", "HEAD^") == prior
    assert run_git(seeded_repo, "log", "-1", "--pretty=%s") == "feat: a"
