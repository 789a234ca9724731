"""FastAPI application factory for KubeRev.

Usage::

    from kuberev.api.app import create_app

    app = create_app(controller=controller, watchers=watchers, config=config)

The factory is used by both the production bootstrap (``kuberev.app``) and
unit tests.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from kuberev.api.routes import router
from kuberev.api.schemas import ErrorResponse

_log = structlog.get_logger(component="api.app")


def create_app(
    controller: Any,
    watchers: list[Any] | None = None,
    config: Any = None,
) -> FastAPI:
    """Create and configure the KubeRev FastAPI application.

    Args:
        controller: RevisionController whose state is reported.
        watchers:   ResourceWatchers consulted by ``/readyz``.
        config:     KubeRevConfig, kept on ``app.state`` for handlers.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from kuberev import __version__

    app = FastAPI(
        title="KubeRev",
        summary="Revision snapshot controller for ConfigMaps and Secrets",
        version=__version__,
        docs_url="/api/v1/docs",
        redoc_url=None,
        openapi_url="/api/v1/openapi.json",
    )

    app.state.controller = controller
    app.state.watchers = watchers or []
    app.state.config = config

    app.include_router(router)

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                detail="An unexpected error occurred.",
            ).model_dump(),
        )

    return app
