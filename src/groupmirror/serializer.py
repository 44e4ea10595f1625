"""Canonical text rendering of an entity for the mirror."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Tuple

from .models import Entity

NO_MEMBERS = "# No members\n"
KEY_PLACEHOLDER = "%KEY%"


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True, slots=True)
class ContentSerializer:
    """Render members then metadata as sorted, newline-terminated lines.

    ``member_format`` optionally expands each member through a template such
    as ``uid=%KEY%,ou=People,dc=example,dc=net`` before lower-casing.
    """

    member_format: Optional[str] = None
    ignored_metadata: Tuple[str, ...] = ("_filename",)

    def members_text(self, entity: Entity) -> str:
        members = entity.members
        if not members:
            return NO_MEMBERS
        if self.member_format:
            rendered = {self.member_format.replace(KEY_PLACEHOLDER, member).lower() for member in members}
        else:
            rendered = {member.lower() for member in members}
        return "\n".join(sorted(rendered)) + "\n"

    def metadata_text(self, entity: Entity) -> str:
        metadata = entity.metadata
        if not metadata:
            return ""
        lines = [
            f"metadata_{key}={_format_value(value)}"
            for key, value in metadata.items()
            if key not in self.ignored_metadata
        ]
        if not lines:
            return ""
        return "\n".join(sorted(lines)) + "\n"

    def render(self, entity: Entity) -> str:
        return self.members_text(entity) + self.metadata_text(entity)


__all__ = ["ContentSerializer", "KEY_PLACEHOLDER", "NO_MEMBERS"]
