"""kubernetes-asyncio adapters for the object store and the operator status.

Transport errors are translated at this boundary: HTTP 404 becomes
NotFoundError, 409 becomes AlreadyExistsError on create and ConflictError on
status writes, everything else (including connection failures) StoreError.
Secret values and ConfigMap binaryData are base64 on the wire and raw bytes
inside KubeRev.
"""

from __future__ import annotations

import base64
import copy
from typing import Any

import aiohttp
import structlog
from kubernetes_asyncio.client import (  # type: ignore[import-untyped]
    ApiException,
    CoreV1Api,
    CustomObjectsApi,
    V1ConfigMap,
    V1ObjectMeta,
    V1OwnerReference,
    V1Secret,
)

from kuberev.models.config import OperatorResourceConfig
from kuberev.models.revision import (
    ConditionStatus,
    OperatorCondition,
    OperatorSpec,
    OperatorStatus,
    OwnerReference,
    ResourceKind,
    RevisionState,
    StoredObject,
)
from kuberev.store.base import ObjectStore
from kuberev.store.errors import AlreadyExistsError, ConflictError, NotFoundError, StoreError
from kuberev.store.status import OperatorStatusClient

_log = structlog.get_logger(component="store.kube")

_TRANSPORT_ERRORS = (aiohttp.ClientError, TimeoutError)


def _translate(
    exc: Exception,
    resource: str,
    name: str,
    *,
    conflict: type[StoreError] = AlreadyExistsError,
) -> StoreError:
    if isinstance(exc, ApiException):
        if exc.status == 404:
            return NotFoundError(resource, name)
        if exc.status == 409:
            if conflict is AlreadyExistsError:
                return AlreadyExistsError(resource, name)
            return ConflictError(f'operation cannot be fulfilled on {resource} "{name}": {exc.reason}')
        return StoreError(f'{resource} "{name}": {exc.status} {exc.reason}')
    return StoreError(f'{resource} "{name}": {type(exc).__name__}: {exc}')


def _owner_refs_from_k8s(refs: list[Any] | None) -> list[OwnerReference]:
    return [OwnerReference(api_version=r.api_version, kind=r.kind, name=r.name, uid=r.uid) for r in refs or []]


def _owner_refs_to_k8s(refs: list[OwnerReference]) -> list[V1OwnerReference] | None:
    if not refs:
        return None
    return [V1OwnerReference(api_version=r.api_version, kind=r.kind, name=r.name, uid=r.uid) for r in refs]


def _meta(obj: StoredObject) -> V1ObjectMeta:
    return V1ObjectMeta(
        name=obj.name,
        namespace=obj.namespace,
        owner_references=_owner_refs_to_k8s(obj.owner_references),
    )


def _encode_values(values: dict[str, bytes]) -> dict[str, str]:
    return {key: base64.b64encode(value).decode("ascii") for key, value in values.items()}


def _decode_values(values: dict[str, str] | None) -> dict[str, bytes]:
    return {key: base64.b64decode(value) for key, value in (values or {}).items()}


def config_map_from_k8s(cm: V1ConfigMap) -> StoredObject:
    meta = cm.metadata
    return StoredObject(
        kind=ResourceKind.CONFIG_MAP,
        namespace=meta.namespace or "",
        name=meta.name,
        data=dict(cm.data or {}),
        uid=meta.uid or "",
        resource_version=meta.resource_version or "",
        owner_references=_owner_refs_from_k8s(meta.owner_references),
        binary_data=_decode_values(cm.binary_data),
    )


def secret_from_k8s(secret: V1Secret) -> StoredObject:
    meta = secret.metadata
    return StoredObject(
        kind=ResourceKind.SECRET,
        namespace=meta.namespace or "",
        name=meta.name,
        data=_decode_values(secret.data),
        uid=meta.uid or "",
        resource_version=meta.resource_version or "",
        owner_references=_owner_refs_from_k8s(meta.owner_references),
        type=secret.type or "",
    )


class KubeObjectStore(ObjectStore):
    """ConfigMap and Secret access through ``CoreV1Api``."""

    def __init__(self, core_v1: CoreV1Api) -> None:
        self._v1 = core_v1

    async def get_config_map(self, namespace: str, name: str) -> StoredObject:
        try:
            cm = await self._v1.read_namespaced_config_map(name, namespace)
        except (ApiException, *_TRANSPORT_ERRORS) as exc:
            raise _translate(exc, ResourceKind.CONFIG_MAP.plural, name) from exc
        return config_map_from_k8s(cm)

    async def list_config_maps(self, namespace: str) -> list[StoredObject]:
        try:
            resp = await self._v1.list_namespaced_config_map(namespace)
        except (ApiException, *_TRANSPORT_ERRORS) as exc:
            raise _translate(exc, ResourceKind.CONFIG_MAP.plural, namespace) from exc
        return [config_map_from_k8s(cm) for cm in resp.items or []]

    async def create_config_map(self, obj: StoredObject) -> StoredObject:
        body = V1ConfigMap(
            api_version="v1",
            kind="ConfigMap",
            metadata=_meta(obj),
            data=dict(obj.data),
            binary_data=_encode_values(obj.binary_data) or None,
        )
        try:
            created = await self._v1.create_namespaced_config_map(obj.namespace, body)
        except (ApiException, *_TRANSPORT_ERRORS) as exc:
            raise _translate(exc, ResourceKind.CONFIG_MAP.plural, obj.name) from exc
        _log.debug("config_map_created", namespace=obj.namespace, name=obj.name)
        return config_map_from_k8s(created)

    async def get_secret(self, namespace: str, name: str) -> StoredObject:
        try:
            secret = await self._v1.read_namespaced_secret(name, namespace)
        except (ApiException, *_TRANSPORT_ERRORS) as exc:
            raise _translate(exc, ResourceKind.SECRET.plural, name) from exc
        return secret_from_k8s(secret)

    async def create_secret(self, obj: StoredObject) -> StoredObject:
        body = V1Secret(
            api_version="v1",
            kind="Secret",
            metadata=_meta(obj),
            data=_encode_values(obj.data),
            type=obj.type or None,
        )
        try:
            created = await self._v1.create_namespaced_secret(obj.namespace, body)
        except (ApiException, *_TRANSPORT_ERRORS) as exc:
            raise _translate(exc, ResourceKind.SECRET.plural, obj.name) from exc
        _log.debug("secret_created", namespace=obj.namespace, name=obj.name)
        return secret_from_k8s(created)


def _condition_status(value: Any) -> ConditionStatus | str:
    # Conditions owned by other controllers may carry any status string.
    if not value:
        return ConditionStatus.UNKNOWN
    try:
        return ConditionStatus(value)
    except ValueError:
        return str(value)


def revision_state_from_raw(raw: dict[str, Any]) -> RevisionState:
    """Build a RevisionState from an operator custom resource dict."""
    spec = raw.get("spec") or {}
    status = raw.get("status") or {}
    conditions = [
        OperatorCondition(
            type=str(c.get("type", "")),
            status=_condition_status(c.get("status")),
            reason=str(c.get("reason", "")),
            message=str(c.get("message", "")),
            last_transition_time=str(c.get("lastTransitionTime", "")),
        )
        for c in status.get("conditions") or []
    ]
    return RevisionState(
        spec=OperatorSpec(management_state=str(spec.get("managementState", ""))),
        status=OperatorStatus(
            latest_available_revision=int(status.get("latestAvailableRevision") or 0),
            conditions=conditions,
        ),
        resource_version=str((raw.get("metadata") or {}).get("resourceVersion", "")),
        raw=raw,
    )


def revision_state_to_raw(state: RevisionState, status: OperatorStatus) -> dict[str, Any]:
    """Merge ``status`` into a copy of ``state.raw``, keeping unowned fields."""
    body = copy.deepcopy(state.raw)
    body.setdefault("metadata", {})["resourceVersion"] = state.resource_version
    raw_status = body.setdefault("status", {}) or {}
    raw_status["latestAvailableRevision"] = status.latest_available_revision
    raw_status["conditions"] = [
        {
            "type": c.type,
            "status": str(c.status),
            "reason": c.reason,
            "message": c.message,
            "lastTransitionTime": c.last_transition_time,
        }
        for c in status.conditions
    ]
    body["status"] = raw_status
    return body


class KubeOperatorStatusClient(OperatorStatusClient):
    """Revision state stored on an operator custom resource's status subresource."""

    def __init__(self, custom_api: CustomObjectsApi, resource: OperatorResourceConfig) -> None:
        self._api = custom_api
        self._resource = resource

    async def get_latest_revision_state(self) -> RevisionState:
        r = self._resource
        try:
            if r.namespace:
                raw = await self._api.get_namespaced_custom_object(r.group, r.version, r.namespace, r.plural, r.name)
            else:
                raw = await self._api.get_cluster_custom_object(r.group, r.version, r.plural, r.name)
        except (ApiException, *_TRANSPORT_ERRORS) as exc:
            raise _translate(exc, r.plural, r.name) from exc
        return revision_state_from_raw(raw)

    async def _write_status(self, state: RevisionState, status: OperatorStatus) -> RevisionState:
        r = self._resource
        body = revision_state_to_raw(state, status)
        try:
            if r.namespace:
                raw = await self._api.replace_namespaced_custom_object_status(
                    r.group, r.version, r.namespace, r.plural, r.name, body
                )
            else:
                raw = await self._api.replace_cluster_custom_object_status(r.group, r.version, r.plural, r.name, body)
        except (ApiException, *_TRANSPORT_ERRORS) as exc:
            raise _translate(exc, r.plural, r.name, conflict=ConflictError) from exc
        _log.debug(
            "operator_status_written",
            resource=f"{r.plural}/{r.name}",
            latest_available_revision=status.latest_available_revision,
        )
        return revision_state_from_raw(raw)
