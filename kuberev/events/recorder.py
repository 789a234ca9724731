"""Event recorder and sink fan-out for KubeRev.

EventSink     -- ABC every sink must implement.
EventRecorder -- Logs each event and fans it out to all registered sinks;
                 failures in one sink never block others or the
                 reconciliation pass that emitted the event.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

import structlog

from kuberev.models.events import EventType, RecordedEvent
from kuberev.observability.metrics import events_total

_log = structlog.get_logger(component="events.recorder")


class EventSink(ABC):
    """Abstract base class for all event sinks.

    Every concrete sink must implement ``record``, which should not raise;
    return ``False`` instead.
    """

    @property
    @abstractmethod
    def sink_name(self) -> str:
        """Identifier used in metrics and logs."""

    @abstractmethod
    async def record(self, event: RecordedEvent) -> bool:
        """Deliver *event* to this sink.

        Returns:
            True  -- event accepted.
            False -- delivery failed (already logged inside implementation).
        """


class EventRecorder:
    """Fire-and-forget event recorder.

    * Never raises and never blocks the caller: ``event`` and ``warning``
      log synchronously and schedule sink delivery as a background task.
    * Outside a running event loop only the log line is written.
    """

    def __init__(
        self,
        sinks: list[EventSink] | None = None,
        component: str = "kuberev",
        *,
        pending: set[asyncio.Future[None]] | None = None,
    ) -> None:
        self._sinks = list(sinks or [])
        self._component = component
        self._pending: set[asyncio.Future[None]] = pending if pending is not None else set()

    @property
    def component(self) -> str:
        return self._component

    def with_component_suffix(self, suffix: str) -> EventRecorder:
        """Return a recorder under ``<component>-<suffix>`` sharing sinks and in-flight deliveries.

        Flushing or stopping either recorder waits for deliveries started by both.
        """
        return EventRecorder(self._sinks, component=f"{self._component}-{suffix}", pending=self._pending)

    def event(self, reason: str, message: str) -> None:
        self._emit(EventType.NORMAL, reason, message)

    def warning(self, reason: str, message: str) -> None:
        self._emit(EventType.WARNING, reason, message)

    async def flush(self) -> None:
        """Wait for all in-flight sink deliveries."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def stop(self) -> None:
        await self.flush()

    def _emit(self, event_type: EventType, reason: str, message: str) -> None:
        event = RecordedEvent(type=event_type, reason=reason, message=message, component=self._component)
        log = _log.warning if event_type is EventType.WARNING else _log.info
        log("controller_event", reason=reason, message=message, event_component=self._component)

        if not self._sinks:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        future = asyncio.ensure_future(self._fan_out(event))
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)

    async def _fan_out(self, event: RecordedEvent) -> None:
        await asyncio.gather(*(self._send_one(sink, event) for sink in self._sinks), return_exceptions=True)

    async def _send_one(self, sink: EventSink, event: RecordedEvent) -> None:
        try:
            success = await sink.record(event)
        except Exception as exc:  # noqa: BLE001
            _log.error("event_sink_unexpected_error", sink=sink.sink_name, event_id=event.event_id, error=str(exc))
            success = False

        events_total.labels(sink=sink.sink_name, success="true" if success else "false").inc()
        if not success:
            _log.warning("event_delivery_failed", sink=sink.sink_name, event_id=event.event_id, reason=event.reason)
