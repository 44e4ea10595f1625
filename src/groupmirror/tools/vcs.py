"""Git helpers for the mirror working copy.

Commands run the ``git`` binary from an argument vector; remote commands may
carry a throwaway SSH identity.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

LOGGER = logging.getLogger(__name__)

SSH_BINARY = "/usr/bin/ssh"


class GitError(RuntimeError):
    """Raised when a git command fails or the repository cannot be used."""


class GitCommandError(GitError):
    """Raised when ``git`` exits non-zero.

    The captured output is kept on the exception so callers can report it.
    """

    def __init__(
        self,
        args: Sequence[str],
        returncode: int,
        stdout: str,
        stderr: str,
    ) -> None:
        self.args_list = tuple(args)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"git command failed ({returncode}): {_render(args)}")


def _render(args: Sequence[str]) -> str:
    return shlex.join(["git", *args])


@contextmanager
def ssh_identity(private_key: str) -> Iterator[Dict[str, str]]:
    """Yield environment overrides that point ``GIT_SSH`` at a private key.

    The key and a wrapper script live in a fresh temporary directory that is
    removed when the block exits, whether or not the command succeeded.  The
    wrapper ignores the invoking user's SSH configuration, skips host key
    prompts and offers only the supplied identity.
    """

    with tempfile.TemporaryDirectory(prefix="groupmirror-ssh-") as tempdir:
        key_path = Path(tempdir) / "key"
        wrapper_path = Path(tempdir) / "ssh"
        key_path.write_text(private_key, encoding="utf-8")
        wrapper_path.write_text(
            "\n".join(
                [
                    "#!/bin/sh",
                    f"exec {SSH_BINARY} -o StrictHostKeyChecking=no -o UserKnownHostsFile=/dev/null \\",
                    f"  -o IdentityFile={shlex.quote(str(key_path))} -o IdentitiesOnly=yes \\",
                    "  -F /dev/null \\",
                    '  "$@"',
                    "",
                ]
            ),
            encoding="utf-8",
        )
        os.chmod(key_path, 0o400)
        os.chmod(wrapper_path, 0o700)
        yield {"GIT_SSH": str(wrapper_path)}


def _log_failure(result: subprocess.CompletedProcess[str], args: Sequence[str]) -> None:
    for stream, text in (("stdout", result.stdout), ("stderr", result.stderr)):
        for line in (text or "").split("\n"):
            if line.strip():
                LOGGER.warning("[%s] %s", stream, line)
    LOGGER.critical("Command failed (%s): %s", result.returncode, _render(args))


def run_git(
    cwd: Path | str,
    args: Sequence[str],
    *,
    ssh_key: Optional[str] = None,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Run ``git`` with ``args`` inside ``cwd``.

    When ``ssh_key`` is given the command runs with an ephemeral identity (see
    :func:`ssh_identity`).  A non-zero exit raises :class:`GitCommandError`
    unless ``check`` is ``False``, in which case the raw result is returned.
    """

    workdir = Path(cwd)
    if not workdir.is_dir():
        raise FileNotFoundError(f"Attempted to run 'git' in non-existing directory {workdir}!")

    command = ["git", *args]
    LOGGER.debug("Execute: %s", _render(args))

    def _execute(extra_env: Optional[Dict[str, str]]) -> subprocess.CompletedProcess[bytes]:
        env = None
        if extra_env:
            env = os.environ.copy()
            env.update(extra_env)
        return subprocess.run(
            command,
            cwd=workdir,
            env=env,
            capture_output=True,
            text=False,
            check=False,
        )

    if ssh_key is None:
        process = _execute(None)
    else:
        with ssh_identity(ssh_key) as ssh_env:
            process = _execute(ssh_env)

    stdout = process.stdout.decode("utf-8", errors="replace") if process.stdout else ""
    stderr = process.stderr.decode("utf-8", errors="replace") if process.stderr else ""
    result = subprocess.CompletedProcess(process.args, process.returncode, stdout, stderr)
    if check and result.returncode != 0:
        _log_failure(result, args)
        raise GitCommandError(args, result.returncode, stdout, stderr)
    return result


class GitRepository:
    """Working copy of the mirror repository.

    One instance owns one checkout directory for the length of a run.  Remote
    operations (clone, pull, push) carry the SSH key; local ones do not.
    """

    def __init__(
        self,
        root: Path | str,
        remote_url: str,
        *,
        ssh_key: Optional[str] = None,
        branch: str = "master",
    ) -> None:
        self.root = Path(root)
        self.remote_url = remote_url
        self.branch = branch
        self._ssh_key = ssh_key

    # ------------------------------------------------------------------ git IO
    def git(
        self,
        *args: str,
        remote: bool = False,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        """Execute ``git`` with ``args`` relative to the working copy."""

        ssh_key = self._ssh_key if remote else None
        return run_git(self.root, list(args), ssh_key=ssh_key, check=check)

    def is_checkout(self) -> bool:
        return self.root.is_dir() and (self.root / ".git").is_dir()

    def _ensure_checkout(self) -> None:
        if not self.is_checkout():
            raise FileNotFoundError(
                f"Cannot operate in {self.root}: does not exist or is not a git repo"
            )

    # ---------------------------------------------------------------- bootstrap
    def clone(self) -> None:
        """Clone the remote into the (not yet existing) working copy path."""

        if self.root.exists():
            raise FileExistsError(f"Cannot clone to {self.root}: already exists")
        LOGGER.debug("Cloning from %s to %s", self.remote_url, self.root)
        self.root.mkdir(parents=True)
        self.git("clone", self.remote_url, ".", remote=True)

    def pull(self) -> None:
        """Discard local edits and fast-forward to the remote branch tip."""

        self._ensure_checkout()
        LOGGER.debug("Pulling from %s to %s", self.remote_url, self.root)
        self.git("reset", "--hard", "HEAD")
        self.git("clean", "-f", "-d")
        self.git("pull", "origin", self.branch, remote=True)

    def prepare(self) -> str:
        """Clone when the checkout is missing, pull otherwise.

        Returns the name of the operation performed.
        """

        operation = "pull" if self.root.is_dir() else "clone"
        LOGGER.debug("Preparing %s", self.root)
        if operation == "pull":
            self.pull()
        else:
            self.clone()
        return operation

    def configure(self, name: str, email: str) -> None:
        """Set the committer identity used for audit commits."""

        self._ensure_checkout()
        LOGGER.debug("Configuring %s with name=%r email=%r", self.root, name, email)
        self.git("config", "user.name", name)
        self.git("config", "user.email", email)

    # ------------------------------------------------------------------ commit
    def add(self, relative_path: str) -> None:
        """Stage one path (including a deletion) relative to the working copy."""

        self._ensure_checkout()
        self.git("add", "--all", "--", relative_path)

    def commit(self, message: str) -> bool:
        """Create a commit from the index.

        Returns ``False`` when git reports there was nothing to commit, which
        happens when another run already produced an identical tree.
        """

        self._ensure_checkout()
        result = self.git("commit", "-m", message, check=False)
        if result.returncode != 0:
            output = f"{result.stdout}\n{result.stderr}"
            if "nothing to commit" in output.lower() or "no changes added to commit" in output.lower():
                LOGGER.info("No changes to git repository")
                return False
            _log_failure(result, ["commit", "-m", message])
            raise GitCommandError(["commit", "-m", message], result.returncode, result.stdout, result.stderr)
        return True

    def push(self) -> None:
        """Push the configured branch to ``origin``."""

        self._ensure_checkout()
        LOGGER.debug("Pushing to %s from %s", self.remote_url, self.root)
        self.git("push", "origin", self.branch, remote=True)

    def head(self) -> Optional[str]:
        result = self.git("rev-parse", "--verify", "HEAD", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def list_tracked_paths(self) -> List[Path]:
        """Return tracked paths relative to the working copy root."""

        result = self.git("ls-files", "-z")
        return [Path(entry) for entry in result.stdout.split("\0") if entry]


__all__ = [
    "GitCommandError",
    "GitError",
    "GitRepository",
    "run_git",
    "ssh_identity",
]
