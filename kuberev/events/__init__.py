"""Event recording for KubeRev.

Exports:
    EventSink         -- Abstract base for all sink implementations.
    EventRecorder     -- Logs events and fans them out to every sink without
                         blocking the reconciliation pass.
    KubeEventSink     -- core/v1 Event sink.
    WebhookEventSink  -- Generic JSON POST webhook sink.
    build_event_recorder -- Factory used by the application bootstrap.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

import structlog

from kuberev.events.kube import KubeEventSink
from kuberev.events.recorder import EventRecorder, EventSink
from kuberev.events.webhook import WebhookEventSink

if TYPE_CHECKING:
    from kuberev.models.config import EventsConfig, OperatorResourceConfig

_log = structlog.get_logger(component="events")

__all__ = [
    "EventRecorder",
    "EventSink",
    "KubeEventSink",
    "WebhookEventSink",
    "build_event_recorder",
]


def build_event_recorder(
    config: EventsConfig,
    core_v1: Any,
    namespace: str,
    involved: OperatorResourceConfig,
) -> EventRecorder:
    """Build an EventRecorder from configuration.

    Kubernetes Events:
        enabled unless KUBEREV_EVENTS_KUBE_ENABLED=false; written to the
        target namespace and attached to the operator resource.

    Webhook:
        KUBEREV_EVENTS_WEBHOOK_SECRET_REF (env var name) ->
        env var value is the webhook URL.
    """
    sinks: list[EventSink] = []

    if config.kube_enabled and core_v1 is not None:
        sinks.append(KubeEventSink(core_v1, namespace=namespace, involved=involved))
        _log.info("kube_event_sink_enabled", namespace=namespace)

    webhook_ref = config.webhook_secret_ref
    if webhook_ref:
        webhook_url = os.environ.get(webhook_ref, "")
        if webhook_url:
            try:
                sinks.append(WebhookEventSink(url=webhook_url))
                _log.info("webhook_event_sink_enabled")
            except ValueError as exc:
                _log.warning("webhook_event_sink_disabled", reason=str(exc))
        else:
            _log.debug("webhook_event_sink_skipped", reason="secret ref env var is empty")

    if not sinks:
        _log.info("no_event_sinks_configured")

    return EventRecorder(sinks=sinks)
