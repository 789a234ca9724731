"""Generic JSON webhook event sink.

Posts RecordedEvent data as a JSON body to any configured HTTP endpoint, for
audit pipelines that do not read Kubernetes Events.
"""

from __future__ import annotations

import httpx
import structlog

from kuberev.events.recorder import EventSink
from kuberev.models.events import RecordedEvent

_log = structlog.get_logger(component="events.webhook")


class WebhookEventSink(EventSink):
    """Delivers events by POSTing a JSON payload to a configurable URL.

    Args:
        url:     Full endpoint URL (must be HTTPS in production).
        headers: Optional extra headers (e.g. Authorization).
        timeout: HTTP request timeout in seconds. Defaults to 10.
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> None:
        if not url:
            raise ValueError("Webhook url must not be empty")
        self._url = url
        self._headers = headers or {}
        self._timeout = timeout

    @property
    def sink_name(self) -> str:
        return "webhook"

    async def record(self, event: RecordedEvent) -> bool:
        """POST *event* as JSON. Returns True on a 2xx response."""
        request_headers = {
            "Content-Type": "application/json",
            **self._headers,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._url, json=self._build_payload(event), headers=request_headers)
        except httpx.TimeoutException:
            _log.warning("webhook_request_timeout", event_id=event.event_id, url=self._url)
            return False
        except httpx.HTTPError as exc:
            _log.warning("webhook_http_error", error=str(exc), event_id=event.event_id)
            return False

        if response.is_success:
            return True
        _log.warning(
            "webhook_non_2xx_response",
            status_code=response.status_code,
            body=response.text[:200],
            event_id=event.event_id,
        )
        return False

    def _build_payload(self, event: RecordedEvent) -> dict[str, object]:
        return {
            "event_id": event.event_id,
            "type": event.type.value,
            "reason": event.reason,
            "message": event.message,
            "component": event.component,
            "occurred_at": event.occurred_at.isoformat(),
        }
