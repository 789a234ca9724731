"""Shared fixtures for KubeRev tests.

Provides in-memory doubles for the object store, the operator status client
and the event recorder so reconciliation can be exercised end to end
without a Kubernetes API server.
"""

from __future__ import annotations

import copy
import itertools
from collections.abc import Callable
from typing import Any

import pytest

from kuberev.events.recorder import EventRecorder
from kuberev.models.revision import (
    ManagementState,
    OperatorSpec,
    OperatorStatus,
    ResourceKind,
    RevisionResource,
    RevisionState,
    StoredObject,
)
from kuberev.revision.controller import RevisionController
from kuberev.revision.ratelimit import ItemExponentialRateLimiter
from kuberev.store.base import ObjectStore
from kuberev.store.errors import AlreadyExistsError, ConflictError, NotFoundError, StoreError
from kuberev.store.status import OperatorStatusClient

NAMESPACE = "openshift-kube-apiserver"


# ---------------------------------------------------------------------------
# Object store double
# ---------------------------------------------------------------------------


class FakeObjectStore(ObjectStore):
    """Dict-backed ObjectStore.

    ``failures`` maps ``(operation, kind, name)`` to an exception raised on
    that call; operation is ``get``, ``create`` or ``list`` (name ``""``).
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[ResourceKind, str, str], StoredObject] = {}
        self.failures: dict[tuple[str, ResourceKind, str], Exception] = {}
        self.created: list[str] = []
        self._uids = itertools.count(1)
        self._versions = itertools.count(100)

    # -- test helpers ---------------------------------------------------

    def put(
        self,
        kind: ResourceKind,
        name: str,
        data: dict[str, Any],
        namespace: str = NAMESPACE,
        type: str = "",
        binary_data: dict[str, bytes] | None = None,
    ) -> StoredObject:
        """Create or overwrite an object as an external actor would."""
        obj = StoredObject(
            kind=kind,
            namespace=namespace,
            name=name,
            data=dict(data),
            binary_data=dict(binary_data or {}),
            uid=f"uid-{next(self._uids)}",
            resource_version=str(next(self._versions)),
            type=type,
        )
        self.objects[(kind, namespace, name)] = obj
        return obj

    def delete(self, kind: ResourceKind, name: str, namespace: str = NAMESPACE) -> None:
        self.objects.pop((kind, namespace, name), None)

    def find(self, kind: ResourceKind, name: str, namespace: str = NAMESPACE) -> StoredObject | None:
        return self.objects.get((kind, namespace, name))

    def names(self, kind: ResourceKind, namespace: str = NAMESPACE) -> set[str]:
        return {name for (k, ns, name) in self.objects if k is kind and ns == namespace}

    # -- ObjectStore ----------------------------------------------------

    def _fail(self, op: str, kind: ResourceKind, name: str) -> None:
        exc = self.failures.get((op, kind, name))
        if exc is not None:
            raise exc

    def _get(self, kind: ResourceKind, namespace: str, name: str) -> StoredObject:
        self._fail("get", kind, name)
        try:
            return copy.deepcopy(self.objects[(kind, namespace, name)])
        except KeyError:
            raise NotFoundError(kind.plural, name) from None

    def _create(self, obj: StoredObject) -> StoredObject:
        self._fail("create", obj.kind, obj.name)
        key = (obj.kind, obj.namespace, obj.name)
        if key in self.objects:
            raise AlreadyExistsError(obj.kind.plural, obj.name)
        stored = copy.deepcopy(obj)
        stored.uid = f"uid-{next(self._uids)}"
        stored.resource_version = str(next(self._versions))
        self.objects[key] = stored
        self.created.append(obj.name)
        return copy.deepcopy(stored)

    async def get_config_map(self, namespace: str, name: str) -> StoredObject:
        return self._get(ResourceKind.CONFIG_MAP, namespace, name)

    async def list_config_maps(self, namespace: str) -> list[StoredObject]:
        self._fail("list", ResourceKind.CONFIG_MAP, "")
        return [
            copy.deepcopy(obj)
            for (kind, ns, _), obj in self.objects.items()
            if kind is ResourceKind.CONFIG_MAP and ns == namespace
        ]

    async def create_config_map(self, obj: StoredObject) -> StoredObject:
        return self._create(obj)

    async def get_secret(self, namespace: str, name: str) -> StoredObject:
        return self._get(ResourceKind.SECRET, namespace, name)

    async def create_secret(self, obj: StoredObject) -> StoredObject:
        return self._create(obj)


# ---------------------------------------------------------------------------
# Operator status double
# ---------------------------------------------------------------------------


class FakeStatusClient(OperatorStatusClient):
    """In-memory authoritative revision state with resource-version checks.

    ``conflicts_to_inject`` makes the next N writes fail with ConflictError
    as if another writer got there first. ``get_error`` / ``write_error``
    make reads or writes fail outright.
    """

    def __init__(self, latest: int = 0, management_state: str = ManagementState.MANAGED.value) -> None:
        self.spec = OperatorSpec(management_state=management_state)
        self.status = OperatorStatus(latest_available_revision=latest)
        self.resource_version = 1
        self.writes = 0
        self.conflicts_to_inject = 0
        self.get_error: Exception | None = None
        self.write_error: Exception | None = None
        self.revision_history: list[int] = [latest]

    def bump(self) -> None:
        """Simulate an unrelated concurrent writer."""
        self.resource_version += 1

    async def get_latest_revision_state(self) -> RevisionState:
        if self.get_error is not None:
            raise self.get_error
        return RevisionState(
            spec=copy.deepcopy(self.spec),
            status=copy.deepcopy(self.status),
            resource_version=str(self.resource_version),
        )

    async def _write_status(self, state: RevisionState, status: OperatorStatus) -> RevisionState:
        if self.write_error is not None:
            raise self.write_error
        if self.conflicts_to_inject > 0:
            self.conflicts_to_inject -= 1
            self.bump()
            raise ConflictError("the object has been modified; please apply your changes to the latest version")
        if state.resource_version != str(self.resource_version):
            raise ConflictError(f"resourceVersion {state.resource_version} is stale")
        self.status = copy.deepcopy(status)
        if status.latest_available_revision != self.revision_history[-1]:
            self.revision_history.append(status.latest_available_revision)
        self.resource_version += 1
        self.writes += 1
        return await self.get_latest_revision_state()


# ---------------------------------------------------------------------------
# Event recorder double
# ---------------------------------------------------------------------------


class CapturingRecorder(EventRecorder):
    """EventRecorder that keeps ``(type, reason, message)`` tuples in memory."""

    def __init__(self, events: list[tuple[str, str, str]] | None = None, component: str = "kuberev") -> None:
        super().__init__(sinks=[], component=component)
        self.events: list[tuple[str, str, str]] = events if events is not None else []

    def with_component_suffix(self, suffix: str) -> CapturingRecorder:
        return CapturingRecorder(self.events, component=f"{self.component}-{suffix}")

    def event(self, reason: str, message: str) -> None:
        self.events.append(("Normal", reason, message))

    def warning(self, reason: str, message: str) -> None:
        self.events.append(("Warning", reason, message))

    def reasons(self) -> list[str]:
        return [reason for _, reason, _ in self.events]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture()
def status_client() -> FakeStatusClient:
    return FakeStatusClient()


@pytest.fixture()
def recorder() -> CapturingRecorder:
    return CapturingRecorder()


@pytest.fixture()
def make_controller(
    store: FakeObjectStore,
    status_client: FakeStatusClient,
    recorder: CapturingRecorder,
) -> Callable[..., RevisionController]:
    """Factory for a RevisionController wired to the in-memory doubles."""

    def _make(
        config_maps: list[RevisionResource] | None = None,
        secrets: list[RevisionResource] | None = None,
        **kwargs: Any,
    ) -> RevisionController:
        kwargs.setdefault("rate_limiter", ItemExponentialRateLimiter(base_delay=0.001, max_delay=0.05))
        return RevisionController(
            target_namespace=NAMESPACE,
            config_maps=config_maps if config_maps is not None else [RevisionResource("manifest")],
            secrets=secrets or [],
            store=store,
            status_client=status_client,
            recorder=recorder,
            **kwargs,
        )

    return _make


def transient_error(name: str = "") -> StoreError:
    return StoreError(f'configmaps "{name}": 503 Service Unavailable')
