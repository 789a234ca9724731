"""Revision controller: the reconciliation pass and its run loop.

Each pass reads everything it needs from the stores; nothing is carried over
in memory between passes except what the status API reports. A pass:

1. reads the authoritative revision state; unmanaged operators are skipped;
2. if latestAvailableRevision is 0, recovers the number from status markers
   and, when history exists, writes it back and requests another pass;
3. checks the latest revision against the live sources and, on drift,
   creates the next revision and advances the counter conditionally;
4. reports the RevisionControllerDegraded condition (unless a retry was
   requested).
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any, Protocol

import structlog

from kuberev.events.recorder import EventRecorder
from kuberev.models.revision import (
    ConditionStatus,
    OperatorCondition,
    RevisionResource,
    RevisionState,
    SyncOutcome,
    SyncResult,
)
from kuberev.observability.metrics import latest_available_revision, revisions_created_total
from kuberev.revision.creator import RevisionCreator
from kuberev.revision.diff import ContentDiffEngine
from kuberev.revision.dispatcher import SyncDispatcher
from kuberev.revision.ratelimit import RateLimiter
from kuberev.revision.recovery import recover_latest_revision
from kuberev.store.base import ObjectStore
from kuberev.store.errors import ConflictError, StoreError
from kuberev.store.status import OperatorStatusClient, update_condition_fn

_log = structlog.get_logger(component="revision.controller")

CONDITION_TYPE = "RevisionControllerDegraded"


class WatchSource(Protocol):
    """A watched collection that reports changes and cache warmth."""

    def add_handler(self, handler: Any) -> None: ...

    async def wait_synced(self) -> None: ...


class RevisionController:
    """Keeps numbered snapshots of the tracked ConfigMaps and Secrets.

    Args:
        target_namespace: Namespace of sources, snapshots and status markers.
        config_maps:      Tracked ConfigMaps; the first is the primary payload.
        secrets:          Tracked Secrets.
        store:            ConfigMap/Secret access.
        status_client:    Authoritative revision state.
        recorder:         Event sink; events carry the ``revision-controller`` suffix.
        watch_sources:    Collections whose changes trigger a pass.
        rate_limiter:     Retry delay policy for the dispatcher.
    """

    def __init__(
        self,
        target_namespace: str,
        config_maps: Sequence[RevisionResource],
        secrets: Sequence[RevisionResource],
        store: ObjectStore,
        status_client: OperatorStatusClient,
        recorder: EventRecorder,
        watch_sources: Sequence[WatchSource] = (),
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self._namespace = target_namespace
        self._config_maps = list(config_maps)
        self._secrets = list(secrets)
        self._store = store
        self._status_client = status_client
        self._recorder = recorder.with_component_suffix("revision-controller")
        self._diff = ContentDiffEngine(store, target_namespace, self._config_maps, self._secrets)
        self._creator = RevisionCreator(store, target_namespace, self._config_maps, self._secrets, self._recorder)
        self._dispatcher = SyncDispatcher(self.sync, rate_limiter=rate_limiter)
        self._watch_sources = list(watch_sources)
        for source in self._watch_sources:
            source.add_handler(self._on_event)

        self._stop_requested = asyncio.Event()
        self._done = asyncio.Event()
        self._started = False

        self.last_outcome: SyncOutcome | None = None
        self.last_sync_at: datetime | None = None
        self.latest_observed_revision = 0

    @property
    def target_namespace(self) -> str:
        return self._namespace

    @property
    def config_maps(self) -> list[RevisionResource]:
        return list(self._config_maps)

    @property
    def secrets(self) -> list[RevisionResource]:
        return list(self._secrets)

    @property
    def dispatcher(self) -> SyncDispatcher:
        return self._dispatcher

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def run(self, workers: int = 1) -> None:
        """Wait for watch caches, then process passes until ``stop()``.

        Only one worker is ever started: all triggers share one key.
        """
        if workers > 1:
            _log.info("extra_workers_ignored", requested=workers, started=1)
        self._started = True
        self._done.clear()
        _log.info(
            "revision_controller_starting",
            namespace=self._namespace,
            config_maps=[r.name for r in self._config_maps],
            secrets=[r.name for r in self._secrets],
        )
        try:
            if not await self.wait_for_cache_sync():
                return
            self._dispatcher.enqueue()
            await self._dispatcher.run()
        finally:
            self._done.set()
            _log.info("revision_controller_stopped", namespace=self._namespace)

    async def wait_for_cache_sync(self) -> bool:
        """Block until every watch source has synced. False if stopped first."""
        if not self._watch_sources:
            return not self._stop_requested.is_set()
        synced = asyncio.ensure_future(asyncio.gather(*(s.wait_synced() for s in self._watch_sources)))
        stopped = asyncio.ensure_future(self._stop_requested.wait())
        try:
            await asyncio.wait({synced, stopped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for fut in (synced, stopped):
                if not fut.done():
                    fut.cancel()
        if self._stop_requested.is_set() or not synced.done() or synced.cancelled():
            _log.info("cache_sync_aborted", namespace=self._namespace)
            return False
        _log.info("caches_synced", sources=len(self._watch_sources))
        return True

    async def stop(self) -> None:
        """Request shutdown and wait for any in-flight pass to finish."""
        self._stop_requested.set()
        self._dispatcher.stop()
        if self._started:
            await self._done.wait()

    def _on_event(self, event_type: str, obj: Any) -> None:
        self._dispatcher.enqueue()

    # ------------------------------------------------------------------
    # Reconciliation pass
    # ------------------------------------------------------------------

    async def sync(self) -> SyncOutcome:
        """Run one reconciliation pass."""
        outcome = await self._sync()
        self.last_outcome = outcome
        self.last_sync_at = datetime.now(tz=UTC)
        return outcome

    async def _sync(self) -> SyncOutcome:
        try:
            state = await self._status_client.get_latest_revision_state()
        except StoreError as exc:
            return SyncOutcome.failed("Error", str(exc))

        self._observe_revision(state.latest_available_revision)
        if not state.spec.is_managed:
            _log.debug("operator_not_managed", management_state=state.spec.management_state)
            return SyncOutcome.completed()

        if state.latest_available_revision == 0:
            outcome = await self._recover(state)
            if outcome is not None:
                if outcome.result is SyncResult.RETRY_REQUESTED:
                    return outcome
                return await self._report_condition(outcome)

        outcome = await self._create_revision_if_needed(state)
        if outcome.result is SyncResult.RETRY_REQUESTED:
            return outcome
        return await self._report_condition(outcome)

    async def _recover(self, state: RevisionState) -> SyncOutcome | None:
        """Restore a lost counter from status markers. None if there is no history."""
        try:
            recovered = await recover_latest_revision(self._store, self._namespace)
        except StoreError as exc:
            return SyncOutcome.failed("Error", str(exc))
        if recovered == 0:
            return None

        _log.info("latest_revision_recovered", namespace=self._namespace, revision=recovered)
        try:
            await self._status_client.update_latest_revision_status(state, recovered)
        except ConflictError as exc:
            return SyncOutcome.retry_requested(f"conflict recording recovered revision {recovered}: {exc}")
        except StoreError as exc:
            return SyncOutcome.failed("Error", str(exc))
        self._observe_revision(recovered)
        return SyncOutcome.retry_requested(f"recovered latest revision {recovered}")

    async def _create_revision_if_needed(self, state: RevisionState) -> SyncOutcome:
        latest = state.latest_available_revision
        current, reason = await self._diff.is_current(latest)
        if current:
            return SyncOutcome.completed()

        next_revision = latest + 1
        self._recorder.event("RevisionTriggered", f'new revision {next_revision} triggered by "{reason}"')
        try:
            await self._creator.create_revision(next_revision)
        except StoreError as exc:
            self._recorder.warning("RevisionCreateFailed", f"Failed to create revision {next_revision}: {exc}")
            return SyncOutcome.failed("ContentCreationError", str(exc))

        cond = OperatorCondition(type=CONDITION_TYPE, status=ConditionStatus.FALSE)
        try:
            _, updated = await self._status_client.update_latest_revision_status(
                state, next_revision, update_condition_fn(cond)
            )
        except ConflictError as exc:
            _log.info("latest_revision_update_conflict", revision=next_revision, error=str(exc))
            return SyncOutcome.retry_requested(f"conflict advancing to revision {next_revision}")
        except StoreError as exc:
            return SyncOutcome.failed("Error", str(exc))

        if updated:
            revisions_created_total.inc()
            self._observe_revision(next_revision)
            self._recorder.event("RevisionCreate", f"Revision {next_revision} created because {reason}")
        return SyncOutcome.completed()

    async def _report_condition(self, outcome: SyncOutcome) -> SyncOutcome:
        """Write RevisionControllerDegraded; the pass's own error wins over a write failure."""
        if outcome.is_failed:
            cond = OperatorCondition(
                type=CONDITION_TYPE,
                status=ConditionStatus.TRUE,
                reason=outcome.reason,
                message=outcome.message,
            )
        else:
            cond = OperatorCondition(type=CONDITION_TYPE, status=ConditionStatus.FALSE)

        try:
            await self._status_client.update_status(update_condition_fn(cond))
        except StoreError as exc:
            if outcome.is_failed:
                _log.warning("degraded_condition_update_failed", error=str(exc), original_error=outcome.message)
                return outcome
            return SyncOutcome.failed("StatusUpdateError", str(exc))
        return outcome

    def _observe_revision(self, revision: int) -> None:
        self.latest_observed_revision = revision
        latest_available_revision.set(revision)
