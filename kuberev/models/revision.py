"""Revision data structures: tracked resources, stored objects, operator state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ResourceKind(StrEnum):
    """Kind of a tracked source object."""

    CONFIG_MAP = "configmap"
    SECRET = "secret"

    @property
    def plural(self) -> str:
        """Lower-case plural resource name, as used in API error text."""
        return f"{self.value}s"

    @property
    def api_kind(self) -> str:
        return "ConfigMap" if self is ResourceKind.CONFIG_MAP else "Secret"


class ConditionStatus(StrEnum):
    """Status of an operator condition."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class ManagementState(StrEnum):
    """Operational mode of the owning operator."""

    MANAGED = "Managed"
    UNMANAGED = "Unmanaged"
    REMOVED = "Removed"
    FORCE = "Force"


@dataclass(frozen=True)
class RevisionResource:
    """A ConfigMap or Secret that is copied into every revision.

    ``optional`` allows the source object to be absent entirely without it
    counting as drift or as an error.
    """

    name: str
    optional: bool = False


@dataclass(frozen=True)
class OwnerReference:
    """Back-reference from a snapshot object to its revision's status marker."""

    api_version: str
    kind: str
    name: str
    uid: str


@dataclass
class StoredObject:
    """A ConfigMap or Secret as seen by the controller.

    ``data`` holds text values for ConfigMaps and raw bytes for Secrets.
    ``binary_data`` holds ConfigMap ``binaryData`` as raw bytes. ``type`` is
    only meaningful for Secrets (e.g. ``Opaque``).
    """

    kind: ResourceKind
    namespace: str
    name: str
    data: dict[str, Any] = field(default_factory=dict)
    uid: str = ""
    resource_version: str = ""
    owner_references: list[OwnerReference] = field(default_factory=list)
    type: str = ""
    binary_data: dict[str, bytes] = field(default_factory=dict)


@dataclass
class OperatorCondition:
    """A single status condition on the operator resource."""

    type: str
    status: ConditionStatus | str
    reason: str = ""
    message: str = ""
    last_transition_time: str = ""


@dataclass
class OperatorSpec:
    management_state: str = ManagementState.MANAGED.value

    @property
    def is_managed(self) -> bool:
        """An empty management state is treated as Managed."""
        return self.management_state in ("", ManagementState.MANAGED)


@dataclass
class OperatorStatus:
    latest_available_revision: int = 0
    conditions: list[OperatorCondition] = field(default_factory=list)

    def condition(self, condition_type: str) -> OperatorCondition | None:
        for cond in self.conditions:
            if cond.type == condition_type:
                return cond
        return None


@dataclass
class RevisionState:
    """Authoritative revision state read from the operator resource.

    ``resource_version`` is the optimistic-concurrency token that every
    conditional write must present. ``raw`` keeps the full object so that
    status writes preserve fields this controller does not own.
    """

    spec: OperatorSpec
    status: OperatorStatus
    resource_version: str
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def latest_available_revision(self) -> int:
        return self.status.latest_available_revision


class SyncResult(StrEnum):
    """Outcome category of one reconciliation pass."""

    COMPLETED = "completed"
    RETRY_REQUESTED = "retry_requested"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncOutcome:
    """Result of one reconciliation pass.

    RETRY_REQUESTED is not a fault: it asks the dispatcher for another pass
    and never marks the controller degraded.
    """

    result: SyncResult
    reason: str = ""
    message: str = ""

    @classmethod
    def completed(cls) -> SyncOutcome:
        return cls(SyncResult.COMPLETED)

    @classmethod
    def retry_requested(cls, message: str = "") -> SyncOutcome:
        return cls(SyncResult.RETRY_REQUESTED, reason="RetryRequested", message=message)

    @classmethod
    def failed(cls, reason: str, message: str) -> SyncOutcome:
        return cls(SyncResult.FAILED, reason=reason, message=message)

    @property
    def is_completed(self) -> bool:
        return self.result is SyncResult.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.result is SyncResult.FAILED
