"""HTTP routes: health, readiness, controller status, Prometheus metrics."""

from __future__ import annotations

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from kuberev.api.schemas import (
    HealthResponse,
    LastSyncModel,
    ReadinessResponse,
    StatusResponse,
    TrackedResourceModel,
)

router = APIRouter()


@router.get("/healthz", response_model=HealthResponse)
async def healthz() -> HealthResponse:
    from kuberev import __version__

    return HealthResponse(status="ok", version=__version__)


@router.get("/readyz", response_model=ReadinessResponse)
async def readyz(request: Request) -> JSONResponse:
    """503 until every watch cache has synced."""
    watchers = request.app.state.watchers or []
    watches = {w.resource: w.synced for w in watchers}
    ready = all(watches.values())
    body = ReadinessResponse(ready=ready, watches=watches)
    return JSONResponse(status_code=200 if ready else 503, content=body.model_dump())


@router.get("/api/v1/status", response_model=StatusResponse)
async def status(request: Request) -> StatusResponse:
    controller = request.app.state.controller
    tracked = [TrackedResourceModel(kind="configmap", name=r.name, optional=r.optional) for r in controller.config_maps]
    tracked += [TrackedResourceModel(kind="secret", name=r.name, optional=r.optional) for r in controller.secrets]

    last_sync = None
    if controller.last_outcome is not None and controller.last_sync_at is not None:
        last_sync = LastSyncModel(
            outcome=controller.last_outcome.result.value,
            reason=controller.last_outcome.reason,
            message=controller.last_outcome.message,
            finished_at=controller.last_sync_at.isoformat(),
        )

    dispatcher = controller.dispatcher
    return StatusResponse(
        namespace=controller.target_namespace,
        latest_available_revision=controller.latest_observed_revision,
        tracked_resources=tracked,
        last_sync=last_sync,
        sync_pending=dispatcher.pending,
        retry_scheduled=dispatcher.retry_scheduled,
        requeues=dispatcher.num_requeues(),
    )


@router.get("/metrics")
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
