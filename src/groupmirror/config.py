"""Configuration for the git mirror auditor."""

from __future__ import annotations

import base64
import binascii
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .codec import EscapeStrategy, PathCodec
from .serializer import ContentSerializer

DEFAULT_REMOTE_BASE = "git@github.com:"
_REPO_RE = re.compile(r"\A([^/]+)/([^/]+)\Z")


def _unwrap(value: str) -> str:
    """Drop the line wrapping ``base64`` adds to long output."""
    return "".join(value.split())


class ConfigError(ValueError):
    """Raised when the auditor configuration is missing or malformed."""


class AuditorConfig(BaseModel):
    """Validated auditor settings."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    checkout_directory: Path
    commit_message: str
    git_name: str
    git_email: str
    repo: str
    sshkey: Optional[str] = None
    remote_base: str = DEFAULT_REMOTE_BASE
    branch: str = "master"
    person_dn_format: Optional[str] = None
    sentinel: str = "README.md"
    ignored_metadata: List[str] = Field(default_factory=lambda: ["_filename"])
    path_escaping: EscapeStrategy = EscapeStrategy.NONE

    @field_validator("repo")
    @classmethod
    def _check_repo(cls, value: str) -> str:
        if not _REPO_RE.match(value):
            raise ValueError("'repo' must be of the form 'organization/reponame'")
        return value

    @field_validator("sshkey")
    @classmethod
    def _check_sshkey(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            base64.b64decode(_unwrap(value), validate=True)
        except (binascii.Error, ValueError) as error:
            raise ValueError(f"'sshkey' could not be base64 decoded: {error}") from error
        return value

    @field_validator("commit_message", "git_name", "git_email", "branch")
    @classmethod
    def _check_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @property
    def remote_url(self) -> str:
        return f"{self.remote_base}{self.repo}.git"

    @property
    def private_key(self) -> Optional[str]:
        if self.sshkey is None:
            return None
        return base64.b64decode(_unwrap(self.sshkey)).decode("utf-8")

    def serializer(self) -> ContentSerializer:
        return ContentSerializer(
            member_format=self.person_dn_format,
            ignored_metadata=tuple(self.ignored_metadata),
        )

    def codec(self) -> PathCodec:
        return PathCodec(escaping=self.path_escaping)


def build_config(data: Mapping[str, Any]) -> AuditorConfig:
    """Validate a raw mapping, raising :class:`ConfigError` on any problem."""

    try:
        return AuditorConfig.model_validate(dict(data))
    except ValidationError as error:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in issue['loc']) or 'config'}: {issue['msg']}"
            for issue in error.errors()
        )
        raise ConfigError(f"Invalid auditor configuration: {problems}") from error


def load_config(config_path: Path) -> AuditorConfig:
    """Load and validate the auditor configuration from a YAML file.

    The settings may sit at the top level or under an ``auditor`` key.
    """

    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config: {error}") from error
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.")

    section: Dict[str, Any] = data.get("auditor", data)
    if not isinstance(section, dict):
        raise ConfigError("'auditor' section must be a mapping.")
    return build_config(section)


__all__ = ["AuditorConfig", "ConfigError", "DEFAULT_REMOTE_BASE", "build_config", "load_config"]
