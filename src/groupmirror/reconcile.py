"""Classify every entity into no-op, sync correction, or audited change.

The engine compares three views of each entity: the desired state handed
over by the orchestrator, the action attempted against the live directory
(and whether it succeeded), and the file currently in the mirror.  It never
writes to disk; the result is a pair of change-sets that the applier commits
separately so the history keeps "what was really there" apart from "what this
run changed".
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import AbstractSet, Dict, Iterable, List, Mapping, Optional

from .codec import PathCodec
from .models import DELETE, Action, ChangeKind, Entity, Reconciliation
from .serializer import ContentSerializer

LOGGER = logging.getLogger(__name__)

DEFAULT_SENTINEL = "README.md"


class Reconciler:
    """Compute sync and valid change-sets for one run against a working copy."""

    def __init__(
        self,
        checkout: Path | str,
        desired_state: Mapping[str, Entity],
        *,
        serializer: Optional[ContentSerializer] = None,
        codec: Optional[PathCodec] = None,
        sentinel: str = DEFAULT_SENTINEL,
    ) -> None:
        self.checkout = Path(checkout)
        self.desired_state = desired_state
        self.serializer = serializer or ContentSerializer()
        self.codec = codec or PathCodec()
        self.sentinel = sentinel

    # ----------------------------------------------------------------- helpers
    def _current(self, filename: str) -> Optional[bytes]:
        target = self.checkout / filename
        if not target.is_file():
            return None
        return target.read_bytes()

    def _text(self, entity: Entity) -> str:
        return self.serializer.render(entity)

    def _prior_text(self, action: Action) -> str:
        if action.existing is None:
            raise ValueError(f"{action.kind.value} action for {action.key} has no prior state")
        return self._text(action.existing)

    @staticmethod
    def _same(current: Optional[bytes], expected: str) -> bool:
        return current is not None and current == expected.encode("utf-8")

    # -------------------------------------------------------------------- API
    def reconcile(
        self,
        actions: Iterable[Action],
        successful: AbstractSet[str],
    ) -> Reconciliation:
        """Return the change-sets for ``actions`` given the ``successful`` keys.

        ``actions`` should already be limited to membership changes (see
        :func:`groupmirror.models.membership_actions`).
        """

        action_index: Dict[str, Action] = {action.key: action for action in actions}
        result = Reconciliation()
        self._update_files(action_index, successful, result)
        self._delete_files(action_index, result)
        return result

    def _update_files(
        self,
        action_index: Mapping[str, Action],
        successful: AbstractSet[str],
        result: Reconciliation,
    ) -> None:
        keys: List[str] = list(self.desired_state)
        keys.extend(key for key in action_index if key not in self.desired_state)

        for key in keys:
            filename = self.codec.path_for(key)
            action = action_index.get(key)
            succeeded = key in successful

            if action is None:
                self._handle_no_action(filename, self.desired_state[key], result)
            elif action.kind is ChangeKind.DELETE:
                self._handle_delete(filename, action, succeeded, result)
            elif key not in self.desired_state:
                LOGGER.warning(
                    "Skip change (%s %s): entity has no desired state", action.kind.value, filename
                )
            elif action.kind is ChangeKind.ADD:
                self._handle_add(filename, self.desired_state[key], succeeded, result)
            else:
                self._handle_update(filename, action, self.desired_state[key], succeeded, result)

    def _mirror_files(self) -> List[str]:
        """Return mirror file paths, skipping dot-prefixed entries and the sentinel."""

        if not self.checkout.is_dir():
            return []
        filenames: List[str] = []
        for dirpath, dirnames, files in os.walk(self.checkout):
            dirnames[:] = sorted(name for name in dirnames if not name.startswith("."))
            relative_dir = Path(dirpath).relative_to(self.checkout)
            for name in sorted(files):
                if name.startswith("."):
                    continue
                filename = (relative_dir / name).as_posix()
                if filename != self.sentinel:
                    filenames.append(filename)
        return filenames

    def _delete_files(self, action_index: Mapping[str, Action], result: Reconciliation) -> None:
        """Queue removal of mirror files nobody asked for.

        Files tied to an action are decided in :meth:`_update_files`; this pass
        only removes drift.
        """

        for filename in self._mirror_files():
            key = self.codec.key_for(filename)
            if key in self.desired_state or key in action_index:
                continue
            LOGGER.warning("Sync change (delete %s) required", filename)
            result.sync[filename] = DELETE

    # --------------------------------------------------------------- handlers
    def _handle_no_action(self, filename: str, entity: Entity, result: Reconciliation) -> None:
        expected = self._text(entity)
        current = self._current(filename)

        if current is not None:
            if not self._same(current, expected):
                LOGGER.warning("Sync change (update %s) required", filename)
                result.sync[filename] = expected
        elif not entity.members:
            # Never written and nothing to record yet.
            pass
        else:
            LOGGER.warning("Sync change (create %s) required", filename)
            result.sync[filename] = expected

    def _handle_add(
        self,
        filename: str,
        entity: Entity,
        succeeded: bool,
        result: Reconciliation,
    ) -> None:
        expected = self._text(entity)

        if self._current(filename) is not None:
            if succeeded:
                # Should not exist before an add: remove it so the valid commit re-creates it.
                LOGGER.warning("Sync change (delete %s) required", filename)
                result.sync[filename] = DELETE
            else:
                LOGGER.warning("Skip sync change (delete %s) due to unsuccessful action", filename)

        if succeeded:
            LOGGER.debug("Valid change (create %s) queued", filename)
            result.valid[filename] = expected
        else:
            LOGGER.warning("Skip change (add %s) due to unsuccessful action", filename)

    def _handle_update(
        self,
        filename: str,
        action: Action,
        entity: Entity,
        succeeded: bool,
        result: Reconciliation,
    ) -> None:
        expected = self._text(entity)
        prior = self._prior_text(action)
        current = self._current(filename)

        if current is not None:
            if succeeded:
                if not self._same(current, prior):
                    LOGGER.warning("Sync change (update %s) required", filename)
                    result.sync[filename] = prior
                LOGGER.debug("Valid change (update %s) queued", filename)
                result.valid[filename] = expected
            elif self._same(current, prior):
                LOGGER.warning("Skip change (update %s) due to unsuccessful action", filename)
            else:
                LOGGER.warning("Skip sync change (update %s) due to unsuccessful action", filename)
        elif succeeded:
            LOGGER.warning("Sync change (create %s) required", filename)
            result.sync[filename] = prior
            LOGGER.debug("Valid change (update %s) queued", filename)
            result.valid[filename] = expected
        else:
            LOGGER.warning("Skip sync change (create %s) due to unsuccessful action", filename)

    def _handle_delete(
        self,
        filename: str,
        action: Action,
        succeeded: bool,
        result: Reconciliation,
    ) -> None:
        prior = self._prior_text(action)
        current = self._current(filename)

        if current is not None:
            if succeeded:
                if not self._same(current, prior):
                    LOGGER.warning("Sync change (update %s) required", filename)
                    result.sync[filename] = prior
                LOGGER.debug("Valid change (delete %s) queued", filename)
                result.valid[filename] = DELETE
            elif self._same(current, prior):
                LOGGER.warning("Skip change (delete %s) due to unsuccessful action", filename)
            else:
                LOGGER.warning("Skip sync change (update %s) due to unsuccessful action", filename)
        elif succeeded:
            LOGGER.warning("Sync change (create %s) required", filename)
            result.sync[filename] = prior
            LOGGER.debug("Valid change (delete %s) queued", filename)
            result.valid[filename] = DELETE
        else:
            LOGGER.warning("Skip sync change (create %s) due to unsuccessful action", filename)


__all__ = ["DEFAULT_SENTINEL", "Reconciler"]
