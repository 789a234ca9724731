"""List-then-watch collector for one Kubernetes collection.

ResourceWatcher lists the collection once (reporting every item as ADDED and
marking itself synced), then follows a watch stream from the listed
resourceVersion. Stream errors reconnect with exponential back-off; an
expired resourceVersion (410 Gone) triggers an immediate relist.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from kubernetes_asyncio import watch  # type: ignore[import-untyped]
from kubernetes_asyncio.client import ApiException, CoreV1Api, CustomObjectsApi  # type: ignore[import-untyped]

from kuberev.models.config import OperatorResourceConfig
from kuberev.observability.metrics import watch_restarts_total

_log = structlog.get_logger(component="collector.watcher")

_WATCH_TIMEOUT_SECONDS = 300
_BACKOFF_BASE_SECONDS = 1.0
_BACKOFF_MAX_SECONDS = 30.0

EventHandler = Callable[[str, Any], None]
ListFn = Callable[..., Awaitable[Any]]


def _items_and_version(resp: Any) -> tuple[list[Any], str]:
    """Extract items and resourceVersion from a typed list or a custom-object dict."""
    if isinstance(resp, dict):
        return list(resp.get("items") or []), str((resp.get("metadata") or {}).get("resourceVersion", ""))
    return list(resp.items or []), str(resp.metadata.resource_version or "")


class ResourceWatcher:
    """Watches one collection and forwards every change to its handlers.

    Args:
        resource:    Name used in logs and metrics (e.g. ``configmaps``).
        list_fn:     kubernetes-asyncio list function, also used for watching.
        list_args:   Positional arguments for ``list_fn`` (namespace, group, ...).
        list_kwargs: Keyword arguments for ``list_fn`` (selectors).
    """

    def __init__(
        self,
        resource: str,
        list_fn: ListFn,
        *list_args: Any,
        backoff_base: float = _BACKOFF_BASE_SECONDS,
        backoff_max: float = _BACKOFF_MAX_SECONDS,
        **list_kwargs: Any,
    ) -> None:
        self._resource = resource
        self._list_fn = list_fn
        self._list_args = list_args
        self._list_kwargs = list_kwargs
        self._backoff_base = backoff_base
        self._backoff_max = backoff_max
        self._handlers: list[EventHandler] = []
        self._synced = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def resource(self) -> str:
        return self._resource

    @property
    def synced(self) -> bool:
        return self._synced.is_set()

    def add_handler(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    async def wait_synced(self) -> None:
        await self._synced.wait()

    async def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name=f"watch-{self._resource}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    async def _run(self) -> None:
        failures = 0
        while True:
            try:
                resource_version = await self._list()
                failures = 0
                await self._watch(resource_version)
                # Server closed the stream at its timeout; resume with a relist.
                continue
            except asyncio.CancelledError:
                raise
            except ApiException as exc:
                if exc.status == 410:
                    _log.info("watch_expired_relisting", resource=self._resource)
                    watch_restarts_total.labels(resource=self._resource).inc()
                    continue
                _log.warning("watch_api_error", resource=self._resource, status=exc.status, error=exc.reason)
            except Exception as exc:  # noqa: BLE001
                _log.warning("watch_error", resource=self._resource, error=str(exc))

            failures += 1
            watch_restarts_total.labels(resource=self._resource).inc()
            await asyncio.sleep(self._backoff(failures))

    def _backoff(self, failures: int) -> float:
        return min(self._backoff_base * (2 ** (failures - 1)), self._backoff_max)

    async def _list(self) -> str:
        resp = await self._list_fn(*self._list_args, **self._list_kwargs)
        items, resource_version = _items_and_version(resp)
        for item in items:
            self._notify("ADDED", item)
        if not self._synced.is_set():
            _log.info("watch_cache_synced", resource=self._resource, items=len(items))
            self._synced.set()
        return resource_version

    async def _watch(self, resource_version: str) -> None:
        w = watch.Watch()
        async with w.stream(
            self._list_fn,
            *self._list_args,
            resource_version=resource_version,
            timeout_seconds=_WATCH_TIMEOUT_SECONDS,
            **self._list_kwargs,
        ) as stream:
            async for event in stream:
                event_type = event.get("type", "")
                if event_type == "ERROR":
                    raw = event.get("raw_object") or {}
                    raise ApiException(status=raw.get("code", 500), reason=raw.get("message", "watch error"))
                self._notify(event_type, event.get("object"))

    def _notify(self, event_type: str, obj: Any) -> None:
        for handler in self._handlers:
            try:
                handler(event_type, obj)
            except Exception as exc:  # noqa: BLE001
                _log.error("watch_handler_error", resource=self._resource, event_type=event_type, error=str(exc))


def build_watchers(
    core_v1: CoreV1Api,
    custom_api: CustomObjectsApi,
    namespace: str,
    operator: OperatorResourceConfig,
) -> list[ResourceWatcher]:
    """Watchers for every collection that can change a revision decision."""
    field_selector = f"metadata.name={operator.name}"
    if operator.namespace:
        operator_watcher = ResourceWatcher(
            operator.plural,
            custom_api.list_namespaced_custom_object,
            operator.group,
            operator.version,
            operator.namespace,
            operator.plural,
            field_selector=field_selector,
        )
    else:
        operator_watcher = ResourceWatcher(
            operator.plural,
            custom_api.list_cluster_custom_object,
            operator.group,
            operator.version,
            operator.plural,
            field_selector=field_selector,
        )
    return [
        operator_watcher,
        ResourceWatcher("configmaps", core_v1.list_namespaced_config_map, namespace),
        ResourceWatcher("secrets", core_v1.list_namespaced_secret, namespace),
    ]
