"""Operator status client: the authoritative revision state.

The state lives on an external resource with optimistic-concurrency
semantics. Two write paths are offered:

``update_latest_revision_status``
    Conditional on the resource version the caller read. A stale version
    raises ConflictError and the caller decides what to do.

``update_status``
    Re-reads and retries on conflict. Used for condition bookkeeping where
    the latest state always wins.

Both skip the write entirely when the update functions leave the status
unchanged.
"""

from __future__ import annotations

import asyncio
import copy
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from kuberev.models.revision import OperatorCondition, OperatorStatus, RevisionState
from kuberev.store.errors import ConflictError

_log = structlog.get_logger(component="store.status")

_CONFLICT_RETRY_STEPS = 5
_CONFLICT_RETRY_DELAY_SECONDS = 0.01

UpdateStatusFn = Callable[[OperatorStatus], None]


def _now() -> str:
    return datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def set_condition(conditions: list[OperatorCondition], new: OperatorCondition) -> None:
    """Insert or update ``new`` in ``conditions`` by type.

    ``last_transition_time`` only moves when the status value flips.
    """
    for existing in conditions:
        if existing.type != new.type:
            continue
        if existing.status != new.status:
            existing.status = new.status
            existing.last_transition_time = _now()
        existing.reason = new.reason
        existing.message = new.message
        return
    added = copy.copy(new)
    if not added.last_transition_time:
        added.last_transition_time = _now()
    conditions.append(added)


def update_condition_fn(cond: OperatorCondition) -> UpdateStatusFn:
    """Return an update function that sets ``cond`` on the status."""

    def _update(status: OperatorStatus) -> None:
        set_condition(status.conditions, cond)

    return _update


class OperatorStatusClient(ABC):
    """Read and write the authoritative revision state."""

    @abstractmethod
    async def get_latest_revision_state(self) -> RevisionState:
        """Return spec, status, latest revision and resource version."""

    @abstractmethod
    async def _write_status(self, state: RevisionState, status: OperatorStatus) -> RevisionState:
        """Persist ``status`` conditionally on ``state.resource_version``.

        Raises ConflictError if the stored version has moved on.
        """

    async def update_latest_revision_status(
        self,
        state: RevisionState,
        latest_available_revision: int,
        *update_fns: UpdateStatusFn,
    ) -> tuple[OperatorStatus, bool]:
        """Set latestAvailableRevision and apply ``update_fns`` against ``state``.

        Returns the resulting status and whether a write happened.

        Raises:
            ValueError: if the new revision is lower than the one in ``state``.
            ConflictError: if the resource changed since ``state`` was read.
        """
        if latest_available_revision < state.latest_available_revision:
            raise ValueError(
                f"refusing to move latestAvailableRevision back from "
                f"{state.latest_available_revision} to {latest_available_revision}"
            )
        status = copy.deepcopy(state.status)
        status.latest_available_revision = latest_available_revision
        for fn in update_fns:
            fn(status)
        if status == state.status:
            return state.status, False
        await self._write_status(state, status)
        return status, True

    async def update_status(self, *update_fns: UpdateStatusFn) -> tuple[OperatorStatus, bool]:
        """Apply ``update_fns`` to a fresh read, retrying on conflict."""
        attempt = 0
        while True:
            attempt += 1
            state = await self.get_latest_revision_state()
            status = copy.deepcopy(state.status)
            for fn in update_fns:
                fn(status)
            if status == state.status:
                return state.status, False
            try:
                await self._write_status(state, status)
            except ConflictError as exc:
                if attempt >= _CONFLICT_RETRY_STEPS:
                    raise
                _log.debug("status_update_conflict", attempt=attempt, error=str(exc))
                await asyncio.sleep(_CONFLICT_RETRY_DELAY_SECONDS)
                continue
            return status, True
