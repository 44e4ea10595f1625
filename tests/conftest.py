from __future__ import annotations

import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def run_git(cwd: Path, *cmd: str) -> str:
    result = subprocess.run(
        ["git", *cmd],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout


@dataclass(slots=True)
class Remote:
    """Bare repository standing in for the hosted mirror."""

    base: Path
    path: Path
    repo: str = "kittens/audit"

    def clone(self, destination: Path) -> Path:
        run_git(destination.parent, "clone", str(self.path), destination.name)
        return destination

    def log(self) -> list[str]:
        output = run_git(self.path, "log", "--format=%s", "master")
        return output.splitlines()

    def files(self) -> list[str]:
        output = run_git(self.path, "ls-tree", "-r", "--name-only", "master")
        return output.splitlines()

    def show(self, filename: str) -> str:
        return run_git(self.path, "show", f"master:{filename}")

    def push_edit(self, workdir: Path, filename: str, content: str, message: str) -> None:
        """Commit ``content`` at ``filename`` from a separate clone and push it."""

        if not workdir.exists():
            self.clone(workdir)
        target = workdir / filename
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        run_git(workdir, "add", filename)
        run_git(workdir, "-c", "user.name=Someone", "-c", "user.email=someone@example.com", "commit", "-m", message)
        run_git(workdir, "push", "origin", "master")


@pytest.fixture()
def remote(tmp_path: Path) -> Remote:
    """Create a bare remote seeded with a README on ``master``."""

    base = tmp_path / "remote"
    bare = base / "kittens" / "audit.git"
    bare.mkdir(parents=True)
    run_git(bare, "init", "--bare")
    run_git(bare, "symbolic-ref", "HEAD", "refs/heads/master")

    seed = tmp_path / "seed"
    seed.mkdir()
    run_git(seed, "init")
    run_git(seed, "symbolic-ref", "HEAD", "refs/heads/master")
    (seed / "README.md").write_text("Audit mirror.\n", encoding="utf-8")
    run_git(seed, "add", "README.md")
    run_git(
        seed,
        "-c",
        "user.name=Seeder",
        "-c",
        "user.email=seed@example.com",
        "commit",
        "-m",
        "initialize repo",
    )
    run_git(seed, "push", str(bare), "master")
    return Remote(base=base, path=bare)


@pytest.fixture()
def config_data(tmp_path: Path, remote: Remote) -> Dict[str, Any]:
    return {
        "checkout_directory": str(tmp_path / "checkout"),
        "commit_message": "audit run",
        "git_name": "Audit Bot",
        "git_email": "audit@example.com",
        "repo": remote.repo,
        "remote_base": f"{remote.base.as_posix()}/",
    }
