"""Typed records exchanged between the orchestrator and the audit mirror."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import (
    AbstractSet,
    Any,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Union,
    runtime_checkable,
)


@runtime_checkable
class Entity(Protocol):
    """Capability the mirror needs from a group-like object.

    ``metadata`` returns ``None`` when the entity carries no metadata at all.
    """

    @property
    def members(self) -> AbstractSet[str]: ...

    @property
    def metadata(self) -> Optional[Mapping[str, Any]]: ...


@dataclass(frozen=True, slots=True)
class Group:
    """Plain in-memory entity used by the CLI run file and the tests."""

    members: FrozenSet[str] = frozenset()
    metadata: Optional[Mapping[str, Any]] = None

    @classmethod
    def build(
        cls,
        members: Iterable[str] = (),
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> "Group":
        return cls(
            members=frozenset(members),
            metadata=dict(metadata) if metadata is not None else None,
        )


class ChangeKind(str, Enum):
    """Kinds of change an orchestrator may attempt against the live directory."""

    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(slots=True)
class Action:
    """One attempted change for a single entity key.

    ``existing`` is the entity as it was before the change (required for
    ``update`` and ``delete``); ``updated`` is the intended state, used only to
    decide whether an update touches membership.
    """

    key: str
    kind: ChangeKind
    existing: Optional[Entity] = None
    updated: Optional[Entity] = None

    def __post_init__(self) -> None:
        self.kind = ChangeKind(self.kind)
        if self.kind is not ChangeKind.ADD and self.existing is None:
            raise ValueError(f"{self.kind.value} action for {self.key} requires the prior entity")


def _normalised(members: AbstractSet[str]) -> FrozenSet[str]:
    return frozenset(member.lower() for member in members)


def membership_actions(actions: Iterable[Action]) -> List[Action]:
    """Keep the actions that change who belongs to an entity.

    Adds and deletes always qualify.  Updates qualify unless both the prior and
    the updated entity are known and their member sets are equal.
    """

    selected: List[Action] = []
    for action in actions:
        if action.kind is ChangeKind.UPDATE and action.existing is not None and action.updated is not None:
            if _normalised(action.existing.members) == _normalised(action.updated.members):
                continue
        selected.append(action)
    return selected


class Deletion(Enum):
    """Marker stored in a change-set for a file that must be removed."""

    DELETE = "delete"


DELETE = Deletion.DELETE

ChangeValue = Union[str, Deletion]
ChangeSet = Dict[str, ChangeValue]


@dataclass(slots=True)
class Reconciliation:
    """The two change-sets computed for one run."""

    sync: ChangeSet = field(default_factory=dict)
    valid: ChangeSet = field(default_factory=dict)

    @property
    def empty(self) -> bool:
        return not self.sync and not self.valid


__all__ = [
    "Action",
    "ChangeKind",
    "ChangeSet",
    "ChangeValue",
    "DELETE",
    "Deletion",
    "Entity",
    "Group",
    "Reconciliation",
    "membership_actions",
]
