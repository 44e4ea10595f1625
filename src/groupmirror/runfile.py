"""Load a run description (desired state, actions, outcomes) from YAML.

Example::

    groups:
      cn=admins,ou=Groups,dc=example,dc=net:
        members: [alice, bob]
        metadata: {team_id: 4}
    actions:
      - key: cn=admins,ou=Groups,dc=example,dc=net
        kind: update
        existing: {members: [alice]}
    successful:
      - cn=admins,ou=Groups,dc=example,dc=net
    provider_exception: null
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import yaml

from .models import Action, ChangeKind, Group


class RunFileError(ValueError):
    """Raised when a run file cannot be parsed."""


@dataclass(slots=True)
class RunFile:
    groups: Dict[str, Group] = field(default_factory=dict)
    actions: List[Action] = field(default_factory=list)
    successful: Set[str] = field(default_factory=set)
    provider_exception: Optional[str] = None


def _group(payload: Any, where: str) -> Group:
    if payload is None:
        return Group.build()
    if not isinstance(payload, dict):
        raise RunFileError(f"{where} must be a mapping with 'members' and 'metadata'")
    members = payload.get("members") or []
    metadata = payload.get("metadata")
    if not isinstance(members, list):
        raise RunFileError(f"{where}.members must be a list")
    if metadata is not None and not isinstance(metadata, dict):
        raise RunFileError(f"{where}.metadata must be a mapping")
    return Group.build((str(member) for member in members), metadata)


def parse_run(data: Any) -> RunFile:
    if not isinstance(data, dict):
        raise RunFileError("Run file must be a mapping at the top level.")

    groups = {
        str(key): _group(payload, f"groups[{key}]")
        for key, payload in (data.get("groups") or {}).items()
    }

    actions: List[Action] = []
    for index, entry in enumerate(data.get("actions") or []):
        if not isinstance(entry, dict) or "key" not in entry or "kind" not in entry:
            raise RunFileError(f"actions[{index}] needs 'key' and 'kind'")
        try:
            kind = ChangeKind(entry["kind"])
        except ValueError as error:
            raise RunFileError(f"actions[{index}]: unknown kind {entry['kind']!r}") from error
        existing = _group(entry["existing"], f"actions[{index}].existing") if "existing" in entry else None
        updated = _group(entry["updated"], f"actions[{index}].updated") if "updated" in entry else None
        try:
            actions.append(Action(key=str(entry["key"]), kind=kind, existing=existing, updated=updated))
        except ValueError as error:
            raise RunFileError(f"actions[{index}]: {error}") from error

    exception = data.get("provider_exception")
    return RunFile(
        groups=groups,
        actions=actions,
        successful={str(key) for key in data.get("successful") or []},
        provider_exception=str(exception) if exception else None,
    )


def load_run(path: Path) -> RunFile:
    if not path.exists():
        raise RunFileError(f"Run file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise RunFileError(f"Failed to parse run file: {error}") from error
    return parse_run(data)


__all__ = ["RunFile", "RunFileError", "load_run", "parse_run"]
