"""Tool integrations used by the audit mirror."""

from .vcs import GitCommandError, GitError, GitRepository, run_git, ssh_identity

__all__ = [
    "GitCommandError",
    "GitError",
    "GitRepository",
    "run_git",
    "ssh_identity",
]
