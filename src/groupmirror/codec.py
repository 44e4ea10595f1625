"""Mapping between hierarchical entity keys and mirror file paths.

A key such as ``cn=admins,ou=Groups,dc=example,dc=net`` is stored at
``dc=net/dc=example/ou=Groups/cn=admins``: components are reversed so the
least specific one becomes the top-level directory and the leaf becomes the
file name.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import List

_ESCAPES = {"%25": "%", "%2F": "/", "%2E": "."}
_ESCAPE_RE = re.compile("|".join(_ESCAPES))


class PathCodecError(ValueError):
    """Raised when a key or path cannot be mapped under the active strategy."""


class EscapeStrategy(str, Enum):
    """How key components containing path-hostile characters are handled.

    ``none`` rejects such components outright.  ``percent`` rewrites ``%``,
    the path separator and a leading dot as ``%XX`` escapes in the file path.
    """

    NONE = "none"
    PERCENT = "percent"


def split_key(key: str, separator: str = ",") -> List[str]:
    """Split ``key`` on ``separator`` while honouring backslash escapes."""

    components: List[str] = []
    current: List[str] = []
    escaped = False
    for char in key:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            current.append(char)
            escaped = True
        elif char == separator:
            components.append("".join(current))
            current = []
        else:
            current.append(char)
    components.append("".join(current))
    return components


@dataclass(frozen=True, slots=True)
class PathCodec:
    """Bidirectional key/path codec."""

    separator: str = ","
    escaping: EscapeStrategy = EscapeStrategy.NONE

    def __post_init__(self) -> None:
        object.__setattr__(self, "escaping", EscapeStrategy(self.escaping))

    def _encode_component(self, component: str, key: str) -> str:
        if not component:
            raise PathCodecError(f"Empty component in key {key!r}")
        if self.escaping is EscapeStrategy.PERCENT:
            encoded = component.replace("%", "%25").replace("/", "%2F")
            if encoded.startswith("."):
                encoded = "%2E" + encoded[1:]
            return encoded
        if "/" in component or component in {".", ".."} or component.startswith("."):
            raise PathCodecError(
                f"Component {component!r} of key {key!r} cannot be used as a path segment"
            )
        return component

    def _decode_segment(self, segment: str, path: str) -> str:
        if not segment:
            raise PathCodecError(f"Empty segment in path {path!r}")
        if self.escaping is EscapeStrategy.PERCENT:
            return _ESCAPE_RE.sub(lambda match: _ESCAPES[match.group(0)], segment)
        return segment

    def path_for(self, key: str) -> str:
        """Return the relative mirror path for ``key``."""

        components = split_key(key, self.separator)
        segments = [self._encode_component(component, key) for component in reversed(components)]
        return "/".join(segments)

    def key_for(self, path: str) -> str:
        """Return the entity key stored at relative ``path``."""

        segments = [self._decode_segment(segment, path) for segment in path.split("/")]
        return self.separator.join(reversed(segments))


__all__ = ["EscapeStrategy", "PathCodec", "PathCodecError", "split_key"]
