"""Audit mirror that records group membership changes in a git repository."""

from .applier import ChangeLabel, TransactionApplier
from .auditor import AuditorError, GitRepoAuditor
from .codec import EscapeStrategy, PathCodec, PathCodecError
from .config import AuditorConfig, ConfigError, build_config, load_config
from .models import DELETE, Action, ChangeKind, ChangeSet, Entity, Group, Reconciliation, membership_actions
from .reconcile import Reconciler
from .serializer import ContentSerializer

__all__ = [
    "Action",
    "AuditorConfig",
    "AuditorError",
    "ChangeKind",
    "ChangeLabel",
    "ChangeSet",
    "ConfigError",
    "ContentSerializer",
    "DELETE",
    "Entity",
    "EscapeStrategy",
    "GitRepoAuditor",
    "Group",
    "PathCodec",
    "PathCodecError",
    "Reconciler",
    "Reconciliation",
    "TransactionApplier",
    "build_config",
    "load_config",
    "membership_actions",
]
