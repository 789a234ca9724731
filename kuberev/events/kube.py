"""Kubernetes Event sink.

Records each controller event as a ``v1.Event`` in the target namespace,
attached to the operator resource.
"""

from __future__ import annotations

import aiohttp
import structlog
from kubernetes_asyncio.client import (  # type: ignore[import-untyped]
    ApiException,
    CoreV1Api,
    CoreV1Event,
    V1EventSource,
    V1ObjectMeta,
    V1ObjectReference,
)

from kuberev.events.recorder import EventSink
from kuberev.models.config import OperatorResourceConfig
from kuberev.models.events import RecordedEvent

_log = structlog.get_logger(component="events.kube")


class KubeEventSink(EventSink):
    """Creates core/v1 Events through ``CoreV1Api``."""

    def __init__(self, core_v1: CoreV1Api, namespace: str, involved: OperatorResourceConfig) -> None:
        self._v1 = core_v1
        self._namespace = namespace
        self._involved = involved

    @property
    def sink_name(self) -> str:
        return "kube"

    async def record(self, event: RecordedEvent) -> bool:
        try:
            await self._v1.create_namespaced_event(self._namespace, self._build_event(event))
        except ApiException as exc:
            _log.warning("kube_event_rejected", status=exc.status, reason=event.reason, error=exc.reason)
            return False
        except (aiohttp.ClientError, TimeoutError) as exc:
            _log.warning("kube_event_transport_error", reason=event.reason, error=str(exc))
            return False
        return True

    def _build_event(self, event: RecordedEvent) -> CoreV1Event:
        involved = self._involved
        return CoreV1Event(
            metadata=V1ObjectMeta(
                name=f"{involved.name}.{event.event_id.replace('-', '')[:16]}",
                namespace=self._namespace,
            ),
            involved_object=V1ObjectReference(
                api_version=involved.api_version,
                kind=involved.kind,
                name=involved.name,
                namespace=involved.namespace or None,
            ),
            reason=event.reason,
            message=event.message,
            type=event.type.value,
            source=V1EventSource(component=event.component),
            reporting_component=event.component,
            first_timestamp=event.occurred_at,
            last_timestamp=event.occurred_at,
            count=1,
        )
