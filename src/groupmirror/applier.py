"""Write one change-set into the working copy and publish it as a commit."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Mapping

from .models import ChangeValue, Deletion
from .tools.vcs import GitRepository

LOGGER = logging.getLogger(__name__)

SYNC_PREFIX = "[sync commit] "


class ChangeLabel(str, Enum):
    """Which of the two per-run commits a change-set belongs to."""

    SYNC = "sync"
    VALID = "valid"


class TransactionApplier:
    """Apply change-sets to a :class:`GitRepository` one commit at a time."""

    def __init__(self, repo: GitRepository) -> None:
        self.repo = repo

    def apply(
        self,
        changes: Mapping[str, ChangeValue],
        label: ChangeLabel,
        message: str,
    ) -> bool:
        """Write ``changes``, then commit and push them.

        Returns ``True`` when a commit was pushed.  Nothing is committed when
        no entry changed the filesystem, and a commit that git finds empty is
        not an error.
        """

        label = ChangeLabel(label)
        staged = 0
        for filename, content in changes.items():
            target = self.repo.root / filename
            if isinstance(content, Deletion):
                # Another run may already have removed it.
                if not target.exists():
                    LOGGER.debug("Skipping delete of %s: already absent", filename)
                    continue
                target.unlink()
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(content.encode("utf-8"))
            self.repo.add(filename)
            staged += 1

        if not staged:
            return False

        if label is ChangeLabel.SYNC:
            message = f"{SYNC_PREFIX}{message}"
        LOGGER.debug("Committing %d %s change(s)", staged, label.value)
        if not self.repo.commit(message):
            return False
        self.repo.push()
        return True


__all__ = ["ChangeLabel", "SYNC_PREFIX", "TransactionApplier"]
