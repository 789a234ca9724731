"""Recover the latest revision number from status markers.

Used when the operator status reports ``latestAvailableRevision == 0`` to
tell a genuine first run apart from a status that was reset while revision
history still exists in the target namespace.
"""

from __future__ import annotations

import structlog

from kuberev.revision.naming import STATUS_MARKER_PREFIX
from kuberev.store.base import ObjectStore

_log = structlog.get_logger(component="revision.recovery")


async def recover_latest_revision(store: ObjectStore, namespace: str) -> int:
    """Return the highest revision recorded by a status marker, or 0.

    Markers whose ``revision`` value is missing or is not a plain run of
    ASCII digits are skipped. List failures propagate.
    """
    latest = 0
    for cm in await store.list_config_maps(namespace):
        if not cm.name.startswith(f"{STATUS_MARKER_PREFIX}-"):
            continue
        value = cm.data.get("revision")
        if value is None:
            continue
        if not (isinstance(value, str) and value.isascii() and value.isdigit()):
            _log.warning("status_marker_unparseable", namespace=namespace, name=cm.name, revision=value)
            continue
        latest = max(latest, int(value))
    return latest
