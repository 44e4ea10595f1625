"""Run driver that records a run's outcome in the git mirror.

Typical use by an orchestrator::

    auditor = GitRepoAuditor(config, desired_state)
    auditor.setup()
    ...  # apply actions against the live directory
    auditor.commit(actions=actions, successful_actions=done, provider_exception=None)
"""

from __future__ import annotations

import logging
from typing import AbstractSet, Iterable, Mapping, Optional

from .applier import ChangeLabel, TransactionApplier
from .config import AuditorConfig
from .models import Action, Entity, Reconciliation, membership_actions
from .reconcile import Reconciler
from .tools.vcs import GitRepository

LOGGER = logging.getLogger(__name__)


class AuditorError(RuntimeError):
    """Raised when the auditor is used out of order."""


class GitRepoAuditor:
    """Keep the mirror repository in step with the directory it audits."""

    def __init__(
        self,
        config: AuditorConfig,
        desired_state: Mapping[str, Entity],
        *,
        repo: Optional[GitRepository] = None,
    ) -> None:
        self.config = config
        self.desired_state = desired_state
        self._repo = repo
        self._prepared = False

    @property
    def repo(self) -> GitRepository:
        if self._repo is None:
            self._repo = GitRepository(
                self.config.checkout_directory,
                self.config.remote_url,
                ssh_key=self.config.private_key,
                branch=self.config.branch,
            )
        return self._repo

    def setup(self) -> None:
        """Clone or pull the working copy and set the committer identity."""

        checkout = self.config.checkout_directory
        self.repo.prepare()
        self.repo.configure(self.config.git_name, self.config.git_email)
        self._prepared = True
        LOGGER.debug("Directory %s prepared", checkout)

    def reconciler(self) -> Reconciler:
        return Reconciler(
            self.config.checkout_directory,
            self.desired_state,
            serializer=self.config.serializer(),
            codec=self.config.codec(),
            sentinel=self.config.sentinel,
        )

    def plan(
        self,
        actions: Iterable[Action],
        successful_actions: AbstractSet[str],
    ) -> Reconciliation:
        """Compute the change-sets without touching the working copy."""

        return self.reconciler().reconcile(membership_actions(actions), successful_actions)

    def commit(
        self,
        *,
        actions: Iterable[Action],
        successful_actions: AbstractSet[str],
        provider_exception: Optional[BaseException],
        commit_message: Optional[str] = None,
    ) -> Reconciliation:
        """Commit sync corrections and then this run's valid changes.

        Sync changes are withheld when ``provider_exception`` is set, since the
        state they were derived from may itself be the product of a broken run.
        """

        if not self._prepared:
            raise AuditorError("Must run setup method before running commit method")

        message = commit_message or self.config.commit_message
        changes = self.plan(actions, successful_actions)
        applier = TransactionApplier(self.repo)

        if changes.sync:
            if provider_exception is not None:
                LOGGER.warning(
                    "Not committing %d unrecognized change(s) due to provider exception",
                    len(changes.sync),
                )
            else:
                LOGGER.warning("Sync changes required: count=%d", len(changes.sync))
                applier.apply(changes.sync, ChangeLabel.SYNC, message)

        if changes.valid:
            LOGGER.debug("Committing %d change(s) to git repository", len(changes.valid))
            applier.apply(changes.valid, ChangeLabel.VALID, message)
        elif not changes.sync:
            LOGGER.debug("No changes to git repository")
        return changes


__all__ = ["AuditorError", "GitRepoAuditor"]
