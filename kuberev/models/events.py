"""Recorded controller event structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from uuid import uuid4


class EventType(StrEnum):
    """Kubernetes event type."""

    NORMAL = "Normal"
    WARNING = "Warning"


@dataclass(frozen=True)
class RecordedEvent:
    """An audit event emitted by the controller.

    Produced by EventRecorder, consumed by every configured sink.
    Immutable: sinks must not mutate a RecordedEvent.
    """

    type: EventType
    reason: str
    message: str
    component: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    event_id: str = field(default_factory=lambda: str(uuid4()))
