"""Revision snapshot creator.

Creates the status marker of a revision and copies every tracked source
into the revision's snapshot names, owned by that marker. Each step is
idempotent on its own, so re-running a partially created revision only
creates what is still missing. Nothing is rolled back on failure.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from kuberev.events.recorder import EventRecorder
from kuberev.models.revision import OwnerReference, ResourceKind, RevisionResource, StoredObject
from kuberev.revision.naming import name_for, status_marker_name
from kuberev.store.base import ObjectStore
from kuberev.store.errors import AlreadyExistsError, NotFoundError

_log = structlog.get_logger(component="revision.creator")

STATUS_IN_PROGRESS = "InProgress"


class RevisionCreator:
    """Mints the object set of a single revision."""

    def __init__(
        self,
        store: ObjectStore,
        target_namespace: str,
        config_maps: Sequence[RevisionResource],
        secrets: Sequence[RevisionResource],
        recorder: EventRecorder,
    ) -> None:
        self._store = store
        self._namespace = target_namespace
        self._config_maps = list(config_maps)
        self._secrets = list(secrets)
        self._recorder = recorder

    async def create_revision(self, revision: int) -> None:
        """Create (or complete) revision ``revision``.

        Raises:
            NotFoundError: a non-optional source is missing; remaining copies are skipped.
            StoreError:    any other store failure, uninterpreted.
        """
        marker = await self._ensure_status_marker(revision)
        owner = OwnerReference(api_version="v1", kind="ConfigMap", name=marker.name, uid=marker.uid)

        for resource in self._config_maps:
            await self._copy(ResourceKind.CONFIG_MAP, resource, revision, owner)
        for resource in self._secrets:
            await self._copy(ResourceKind.SECRET, resource, revision, owner)

        _log.info(
            "revision_content_created",
            namespace=self._namespace,
            revision=revision,
            config_maps=len(self._config_maps),
            secrets=len(self._secrets),
        )

    async def _ensure_status_marker(self, revision: int) -> StoredObject:
        marker = StoredObject(
            kind=ResourceKind.CONFIG_MAP,
            namespace=self._namespace,
            name=status_marker_name(revision),
            data={"status": STATUS_IN_PROGRESS, "revision": str(revision)},
        )
        try:
            created = await self._store.create_config_map(marker)
        except AlreadyExistsError:
            return await self._store.get_config_map(self._namespace, marker.name)
        self._recorder.event(
            "ConfigMapCreated",
            f"Created ConfigMap/{marker.name} -n {self._namespace} because it was missing",
        )
        return created

    async def _copy(
        self,
        kind: ResourceKind,
        resource: RevisionResource,
        revision: int,
        owner: OwnerReference,
    ) -> None:
        try:
            source = await self._store.get(kind, self._namespace, resource.name)
        except NotFoundError:
            if resource.optional:
                _log.debug("optional_source_missing", kind=kind.value, name=resource.name, revision=revision)
                return
            raise

        snapshot = StoredObject(
            kind=kind,
            namespace=self._namespace,
            name=name_for(resource.name, revision),
            data=dict(source.data),
            owner_references=[owner],
            binary_data=dict(source.binary_data),
            type=source.type,
        )
        try:
            await self._store.create(snapshot)
        except AlreadyExistsError:
            _log.debug("snapshot_already_exists", kind=kind.value, name=snapshot.name, revision=revision)
            return
        self._recorder.event(
            f"{kind.api_kind}Created",
            f"Created {kind.api_kind}/{snapshot.name} -n {self._namespace} because it was missing",
        )
