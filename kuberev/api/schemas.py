"""Pydantic response models for the KubeRev REST API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str
    detail: str = ""


class HealthResponse(BaseModel):
    status: str
    version: str


class ReadinessResponse(BaseModel):
    ready: bool
    watches: dict[str, bool] = Field(default_factory=dict)


class TrackedResourceModel(BaseModel):
    kind: str
    name: str
    optional: bool


class LastSyncModel(BaseModel):
    outcome: str
    reason: str = ""
    message: str = ""
    finished_at: str


class StatusResponse(BaseModel):
    """Snapshot of controller state as of the most recent pass."""

    namespace: str
    latest_available_revision: int
    tracked_resources: list[TrackedResourceModel]
    last_sync: LastSyncModel | None = None
    sync_pending: bool
    retry_scheduled: bool
    requeues: int
