"""Application bootstrap for KubeRev.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → stores → events
              → controller → watchers → REST

Shutdown stops components in reverse startup order. The controller is
stopped before the watchers so that an in-flight pass runs to completion.
Each component's stop error is caught and logged independently so that one
failure does not prevent the rest from shutting down cleanly.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from kuberev.config import load_config
from kuberev.models.config import KubeRevConfig
from kuberev.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class KubeRevApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    ``stop()`` is safe to call on an app that was never started or is
    already stopped.
    """

    def __init__(self) -> None:
        self.config: KubeRevConfig | None = None

        self._api_client: object | None = None
        self._core_v1: object | None = None
        self._custom_api: object | None = None
        self._store: object | None = None
        self._status_client: object | None = None
        self._recorder: object | None = None
        self._controller: object | None = None
        self._watchers: list[object] = []
        self._rest_server: object | None = None

        self._controller_task: asyncio.Task[None] | None = None
        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        try:
            self.config = load_config()
        except ValueError as exc:
            raise _ComponentError("config", exc) from exc

        setup_logging(self.config.log.level, self.config.log.format)
        self._log = get_logger("app")
        self._log.info(
            "kuberev starting",
            version=_kuberev_version(),
            namespace=self.config.controller.target_namespace,
        )

        await self._start_k8s_client()
        await self._start_stores()
        await self._start_events()
        await self._start_controller()
        await self._start_watchers()
        await self._start_rest()

        self._running = True
        self._log.info("kuberev started", port=self.config.api.port)

    async def _start_k8s_client(self) -> None:
        """Initialise the kubernetes-asyncio client from in-cluster config or kubeconfig."""
        assert self._log is not None
        self._log.debug("starting k8s client")
        try:
            import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            try:
                k8s_config.load_incluster_config()
                self._log.info("k8s client configured from in-cluster service account")
            except k8s_config.ConfigException:
                await k8s_config.load_kube_config()
                self._log.info("k8s client configured from kubeconfig")

            api_client = k8s_client.ApiClient()
            self._api_client = api_client
            self._core_v1 = k8s_client.CoreV1Api(api_client)
            self._custom_api = k8s_client.CustomObjectsApi(api_client)
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _start_stores(self) -> None:
        assert self._log is not None
        assert self.config is not None
        try:
            from kuberev.store.kube import KubeObjectStore, KubeOperatorStatusClient

            self._store = KubeObjectStore(self._core_v1)
            self._status_client = KubeOperatorStatusClient(self._custom_api, self.config.operator)
            self._log.info(
                "stores started",
                operator=f"{self.config.operator.plural}.{self.config.operator.group}/{self.config.operator.name}",
            )
        except Exception as exc:
            raise _ComponentError("stores", exc) from exc

    async def _start_events(self) -> None:
        """Build the event recorder. Non-fatal: falls back to log-only events."""
        assert self._log is not None
        assert self.config is not None
        from kuberev.events import EventRecorder, build_event_recorder

        try:
            self._recorder = build_event_recorder(
                config=self.config.events,
                core_v1=self._core_v1,
                namespace=self.config.controller.target_namespace,
                involved=self.config.operator,
            )
        except Exception as exc:
            self._log.warning("event sinks failed to start; events will only be logged", error=str(exc))
            self._recorder = EventRecorder()

    async def _start_controller(self) -> None:
        """Create the revision controller and its watchers, then launch the run loop."""
        assert self._log is not None
        assert self.config is not None
        try:
            from kuberev.collector import build_watchers
            from kuberev.revision import RevisionController
            from kuberev.revision.ratelimit import default_controller_rate_limiter

            cfg = self.config.controller
            self._watchers = list(
                build_watchers(self._core_v1, self._custom_api, cfg.target_namespace, self.config.operator)
            )
            controller = RevisionController(
                target_namespace=cfg.target_namespace,
                config_maps=cfg.config_maps,
                secrets=cfg.secrets,
                store=self._store,  # type: ignore[arg-type]
                status_client=self._status_client,  # type: ignore[arg-type]
                recorder=self._recorder,  # type: ignore[arg-type]
                watch_sources=self._watchers,  # type: ignore[arg-type]
                rate_limiter=default_controller_rate_limiter(cfg.backoff_base_seconds, cfg.backoff_max_seconds),
            )
            self._controller_task = asyncio.create_task(controller.run(cfg.workers), name="revision-controller")
            self._controller = controller
            self._log.info("revision controller started")
        except Exception as exc:
            raise _ComponentError("controller", exc) from exc

    async def _start_watchers(self) -> None:
        assert self._log is not None
        try:
            for watcher in self._watchers:
                await watcher.start()  # type: ignore[attr-defined]
            self._log.info("watchers started", count=len(self._watchers))
        except Exception as exc:
            raise _ComponentError("watchers", exc) from exc

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        try:
            import uvicorn

            from kuberev.api import create_app

            fastapi_app = create_app(controller=self._controller, watchers=self._watchers, config=self.config)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("kuberev shutting down")
        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True  # type: ignore[attr-defined]
        for task in reversed(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()

        await self._stop_component("controller", self._controller)
        if self._controller_task is not None:
            await asyncio.gather(self._controller_task, return_exceptions=True)
            self._controller_task = None
        for watcher in reversed(self._watchers):
            await self._stop_component("watcher", watcher)
        await self._stop_component("events", self._recorder)
        await self._stop_k8s_client()

        log.info("kuberev stopped")

    async def _stop_component(self, name: str, component: object | None) -> None:
        """Call stop() on a component if it has that method, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, "stop", None)
        if stop_fn is None:
            return
        try:
            result = stop_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))

    async def _stop_k8s_client(self) -> None:
        """Close the kubernetes-asyncio ApiClient connection pool."""
        if self._api_client is None:
            return
        log = self._log or get_logger("app")
        try:
            await self._api_client.close()  # type: ignore[attr-defined]
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))
        self._api_client = None


def _kuberev_version() -> str:
    from kuberev import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = KubeRevApp()
    loop = asyncio.get_running_loop()
    shutdown = asyncio.Event()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.set)

    try:
        await app.start()
        await shutdown.wait()
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        raise SystemExit(1) from exc
    finally:
        await app.stop()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())
