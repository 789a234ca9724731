"""Core data structures for KubeRev."""

from kuberev.models.config import KubeRevConfig
from kuberev.models.events import EventType, RecordedEvent
from kuberev.models.revision import (
    ConditionStatus,
    ManagementState,
    OperatorCondition,
    OperatorSpec,
    OperatorStatus,
    OwnerReference,
    ResourceKind,
    RevisionResource,
    RevisionState,
    StoredObject,
    SyncOutcome,
    SyncResult,
)

__all__ = [
    "ConditionStatus",
    "EventType",
    "KubeRevConfig",
    "ManagementState",
    "OperatorCondition",
    "OperatorSpec",
    "OperatorStatus",
    "OwnerReference",
    "RecordedEvent",
    "ResourceKind",
    "RevisionResource",
    "RevisionState",
    "StoredObject",
    "SyncOutcome",
    "SyncResult",
]
