from __future__ import annotations

import logging
import stat
import subprocess
from pathlib import Path

import pytest

from groupmirror.tools import vcs
from groupmirror.tools.vcs import GitCommandError, GitRepository, run_git, ssh_identity


def test_run_git_requires_existing_directory(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        run_git(tmp_path / "missing", ["status"])


def test_run_git_raises_with_captured_output(tmp_path: Path, caplog) -> None:
    with caplog.at_level(logging.DEBUG, logger="groupmirror.tools.vcs"):
        with pytest.raises(GitCommandError) as excinfo:
            run_git(tmp_path, ["pet the", "kittens"])
    error = excinfo.value
    assert error.returncode != 0
    assert "pet the" in error.stderr
    assert "Execute: git 'pet the' kittens" in caplog.text
    assert "Command failed" in caplog.text
    assert "[stderr]" in caplog.text


def test_run_git_returns_raw_result_when_not_checking(tmp_path: Path) -> None:
    result = run_git(tmp_path, ["pet the", "kittens"], check=False)
    assert result.returncode != 0
    assert isinstance(result.stderr, str)


def test_ssh_identity_writes_restricted_files_and_cleans_up() -> None:
    with ssh_identity("PRIVATE KEY\n") as env:
        wrapper = Path(env["GIT_SSH"])
        key = wrapper.parent / "key"
        assert key.read_text(encoding="utf-8") == "PRIVATE KEY\n"
        assert stat.S_IMODE(key.stat().st_mode) == 0o400
        assert stat.S_IMODE(wrapper.stat().st_mode) == 0o700
        script = wrapper.read_text(encoding="utf-8")
        assert script.startswith("#!/bin/sh\n")
        assert "StrictHostKeyChecking=no" in script
        assert f"IdentityFile={key}" in script
        assert "IdentitiesOnly=yes" in script
    assert not wrapper.parent.exists()


def test_ssh_identity_cleans_up_on_error() -> None:
    captured = {}
    with pytest.raises(RuntimeError):
        with ssh_identity("KEY") as env:
            captured["dir"] = Path(env["GIT_SSH"]).parent
            raise RuntimeError("boom")
    assert not captured["dir"].exists()


def test_run_git_points_git_ssh_at_wrapper(tmp_path: Path, monkeypatch) -> None:
    seen = {}

    def fake_run(command, cwd, env, capture_output, text, check):
        seen["command"] = command
        seen["cwd"] = cwd
        wrapper = Path(env["GIT_SSH"])
        seen["wrapper_dir"] = wrapper.parent
        seen["key"] = (wrapper.parent / "key").read_text(encoding="utf-8")
        return subprocess.CompletedProcess(command, 0, b"ok\n", b"")

    monkeypatch.setattr(vcs.subprocess, "run", fake_run)
    result = run_git(tmp_path, ["push", "origin", "master"], ssh_key="SECRET")

    assert result.stdout == "ok\n"
    assert seen["command"] == ["git", "push", "origin", "master"]
    assert seen["cwd"] == tmp_path
    assert seen["key"] == "SECRET"
    assert not seen["wrapper_dir"].exists()


def test_run_git_without_key_inherits_environment(tmp_path: Path, monkeypatch) -> None:
    seen = {}

    def fake_run(command, cwd, env, capture_output, text, check):
        seen["env"] = env
        return subprocess.CompletedProcess(command, 0, b"", b"")

    monkeypatch.setattr(vcs.subprocess, "run", fake_run)
    run_git(tmp_path, ["status"])
    assert seen["env"] is None


# ------------------------------------------------------------ working copy


def test_clone_refuses_existing_directory(tmp_path: Path, remote) -> None:
    target = tmp_path / "checkout"
    target.mkdir()
    with pytest.raises(FileExistsError):
        GitRepository(target, str(remote.path)).clone()


def test_primitives_require_a_checkout(tmp_path: Path, remote) -> None:
    plain = tmp_path / "plain"
    plain.mkdir()
    repo = GitRepository(plain, str(remote.path))
    with pytest.raises(FileNotFoundError):
        repo.pull()
    with pytest.raises(FileNotFoundError):
        repo.commit("message")


def test_clone_commit_push_round_trip(tmp_path: Path, remote) -> None:
    repo = GitRepository(tmp_path / "checkout", str(remote.path))
    assert repo.prepare() == "clone"
    repo.configure("Audit Bot", "audit@example.com")
    assert repo.git("config", "user.name").stdout.strip() == "Audit Bot"

    (repo.root / "dc=net").mkdir()
    (repo.root / "dc=net" / "cn=cats").write_text("snowshoe\n", encoding="utf-8")
    repo.add("dc=net/cn=cats")
    assert repo.commit("add cats") is True
    repo.push()

    assert remote.log() == ["add cats", "initialize repo"]
    assert remote.show("dc=net/cn=cats") == "snowshoe\n"
    assert Path("dc=net/cn=cats") in repo.list_tracked_paths()


def test_commit_with_nothing_staged_is_not_an_error(tmp_path: Path, remote, caplog) -> None:
    repo = GitRepository(tmp_path / "checkout", str(remote.path))
    repo.prepare()
    repo.configure("Audit Bot", "audit@example.com")
    head = repo.head()
    with caplog.at_level(logging.INFO, logger="groupmirror.tools.vcs"):
        assert repo.commit("empty") is False
    assert repo.head() == head
    assert "No changes to git repository" in caplog.text


def test_pull_discards_local_edits_and_fetches_remote(tmp_path: Path, remote) -> None:
    repo = GitRepository(tmp_path / "checkout", str(remote.path))
    repo.prepare()
    (repo.root / "README.md").write_text("scribbled\n", encoding="utf-8")
    (repo.root / "stray").mkdir()
    (repo.root / "stray" / "file").write_text("x\n", encoding="utf-8")

    remote.push_edit(tmp_path / "other", "cn=new", "bob\n", "other")

    assert repo.prepare() == "pull"
    assert (repo.root / "README.md").read_text(encoding="utf-8") == "Audit mirror.\n"
    assert not (repo.root / "stray").exists()
    assert (repo.root / "cn=new").read_text(encoding="utf-8") == "bob\n"
