"""Single-slot sync dispatcher.

Every trigger (watch event, retry timer) sets the same pending flag, so a
burst of changes coalesces into at most one waiting pass. A trigger that
arrives while a pass is running leaves the flag set and causes exactly one
more pass afterwards. One worker only: passes never overlap.

Outcomes:
    COMPLETED        -- backoff for the key is forgotten.
    RETRY_REQUESTED  -- re-enqueued after a rate-limited delay.
    FAILED           -- re-enqueued after a rate-limited delay.

Retries are unbounded; the controller is an eventually-consistent loop, not a
task with a failure ceiling.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

from kuberev.models.revision import SyncOutcome, SyncResult
from kuberev.observability.metrics import sync_duration_seconds, sync_passes_total, sync_retries_scheduled_total
from kuberev.revision.ratelimit import RateLimiter, default_controller_rate_limiter

_log = structlog.get_logger(component="revision.dispatcher")

WORK_QUEUE_KEY = "key"

SyncFn = Callable[[], Awaitable[SyncOutcome]]


class SyncDispatcher:
    """Coalesces triggers into serialized calls of ``sync_fn``.

    Args:
        sync_fn:      Coroutine function running one reconciliation pass.
        rate_limiter: Delay policy for retries. Defaults to the controller limiter.
        name:         Name used in logs.
    """

    def __init__(
        self,
        sync_fn: SyncFn,
        rate_limiter: RateLimiter | None = None,
        name: str = "RevisionController",
    ) -> None:
        self._sync_fn = sync_fn
        self._rate_limiter = rate_limiter or default_controller_rate_limiter()
        self._name = name
        self._pending = asyncio.Event()
        self._retry_handle: asyncio.TimerHandle | None = None
        self._stopping = False
        self._running = False

    @property
    def pending(self) -> bool:
        return self._pending.is_set() and not self._stopping

    @property
    def running(self) -> bool:
        return self._running

    @property
    def retry_scheduled(self) -> bool:
        return self._retry_handle is not None

    def num_requeues(self) -> int:
        return self._rate_limiter.num_requeues(WORK_QUEUE_KEY)

    def enqueue(self) -> None:
        """Request a pass. Safe to call from any callback on the event loop."""
        if self._stopping:
            return
        self._pending.set()

    def add_rate_limited(self) -> float:
        """Schedule a delayed enqueue and return the delay in seconds."""
        delay = self._rate_limiter.when(WORK_QUEUE_KEY)
        self._cancel_retry()
        self._retry_handle = asyncio.get_running_loop().call_later(delay, self._fire_retry)
        return delay

    def forget(self) -> None:
        """Reset backoff and drop any scheduled retry."""
        self._rate_limiter.forget(WORK_QUEUE_KEY)
        self._cancel_retry()

    async def run(self) -> None:
        """Process passes until ``stop()`` is called.

        Shutdown is observed between passes; a running pass completes first.
        """
        if self._running:
            raise RuntimeError(f"{self._name} dispatcher is already running")
        self._running = True
        _log.info("dispatcher_started", controller=self._name)
        try:
            while True:
                await self._pending.wait()
                if self._stopping:
                    break
                self._pending.clear()
                await self.process_next()
        finally:
            self._running = False
            self._cancel_retry()
            _log.info("dispatcher_stopped", controller=self._name)

    def stop(self) -> None:
        self._stopping = True
        self._cancel_retry()
        self._pending.set()

    async def process_next(self) -> SyncOutcome:
        """Run one pass and apply the retry policy to its outcome."""
        started = time.monotonic()
        try:
            outcome = await self._sync_fn()
        except Exception as exc:  # noqa: BLE001
            _log.error(
                "sync_unhandled_exception",
                controller=self._name,
                key=WORK_QUEUE_KEY,
                error=str(exc),
                exc_info=True,
            )
            outcome = SyncOutcome.failed("UnhandledError", str(exc))

        sync_duration_seconds.observe(time.monotonic() - started)
        sync_passes_total.labels(outcome=outcome.result.value).inc()

        if outcome.is_completed:
            self.forget()
            return outcome

        delay = self.add_rate_limited()
        sync_retries_scheduled_total.inc()
        log = _log.info if outcome.result is SyncResult.RETRY_REQUESTED else _log.warning
        log(
            "sync_requeued",
            controller=self._name,
            key=WORK_QUEUE_KEY,
            outcome=outcome.result.value,
            reason=outcome.reason,
            message=outcome.message,
            delay_seconds=round(delay, 3),
            requeues=self.num_requeues(),
        )
        return outcome

    def _fire_retry(self) -> None:
        self._retry_handle = None
        self.enqueue()

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None
