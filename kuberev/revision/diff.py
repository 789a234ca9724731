"""Content diff engine.

Compares every tracked source object against its snapshot at a given
revision and reports whether that revision still matches the live content.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import structlog

from kuberev.models.revision import ResourceKind, RevisionResource
from kuberev.revision.naming import name_for
from kuberev.store.base import ObjectStore
from kuberev.store.errors import NotFoundError, StoreError

_log = structlog.get_logger(component="revision.diff")


class _MandatoryMissing(Exception):
    """A non-optional object is absent; carries the not-found text."""


def describe_changes(existing: dict[str, Any], required: dict[str, Any]) -> dict[str, list[str]]:
    """Summarise key-level differences between two payloads. Values are never included."""
    return {
        "added": sorted(set(required) - set(existing)),
        "removed": sorted(set(existing) - set(required)),
        "changed": sorted(k for k in set(existing) & set(required) if existing[k] != required[k]),
    }


class ContentDiffEngine:
    """Decides whether a revision's snapshots equal the live sources.

    Args:
        store:            Object store holding sources and snapshots.
        target_namespace: Namespace of both sources and snapshots.
        config_maps:      Tracked ConfigMaps, in declaration order.
        secrets:          Tracked Secrets, in declaration order.
    """

    def __init__(
        self,
        store: ObjectStore,
        target_namespace: str,
        config_maps: Sequence[RevisionResource],
        secrets: Sequence[RevisionResource],
    ) -> None:
        self._store = store
        self._namespace = target_namespace
        self._config_maps = list(config_maps)
        self._secrets = list(secrets)

    async def is_current(self, revision: int) -> tuple[bool, str]:
        """Return ``(True, "")`` if revision matches every source.

        Otherwise ``(False, reason)``. A missing non-optional object stops the
        check and its not-found text is the reason; content changes are
        collected across all resources and joined with commas.
        """
        config_changes: list[str] = []
        secret_changes: list[str] = []
        try:
            for resource in self._config_maps:
                if await self._has_changed(ResourceKind.CONFIG_MAP, resource, revision):
                    config_changes.append(f"configmap/{resource.name} has changed")
            for resource in self._secrets:
                if await self._has_changed(ResourceKind.SECRET, resource, revision):
                    secret_changes.append(f"secret/{resource.name} has changed")
        except _MandatoryMissing as exc:
            return False, str(exc)

        if secret_changes or config_changes:
            return False, ",".join(secret_changes + config_changes)
        return True, ""

    async def _has_changed(self, kind: ResourceKind, resource: RevisionResource, revision: int) -> bool:
        required = await self._read_data(kind, resource, resource.name)
        existing = await self._read_data(kind, resource, name_for(resource.name, revision))
        if existing == required:
            return False
        _log.debug(
            "revision_content_changed",
            kind=kind.value,
            name=resource.name,
            revision=revision,
            **describe_changes(existing, required),
        )
        return True

    async def _read_data(self, kind: ResourceKind, resource: RevisionResource, name: str) -> dict[str, Any]:
        try:
            obj = await self._store.get(kind, self._namespace, name)
        except NotFoundError as exc:
            if not resource.optional:
                raise _MandatoryMissing(str(exc)) from exc
            return {}
        except StoreError as exc:
            # Compared as empty; a real change is picked up on a later pass.
            _log.warning("revision_read_failed", kind=kind.value, name=name, error=str(exc))
            return {}
        return obj.data
