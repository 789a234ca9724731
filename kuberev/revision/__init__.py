"""Revision snapshot logic.

Submodules:
    naming      -- ``<name>-<revision>`` naming scheme and status marker names.
    diff        -- ContentDiffEngine: is a revision still equal to the live sources?
    recovery    -- recover_latest_revision: highest revision from status markers.
    creator     -- RevisionCreator: idempotent creation of a revision's object set.
    ratelimit   -- exponential + token-bucket retry delays.
    dispatcher  -- SyncDispatcher: single-slot, single-worker, rate-limited retries.
    controller  -- RevisionController: the reconciliation pass and run loop.
"""

from kuberev.revision.controller import CONDITION_TYPE, RevisionController
from kuberev.revision.creator import RevisionCreator
from kuberev.revision.diff import ContentDiffEngine
from kuberev.revision.dispatcher import WORK_QUEUE_KEY, SyncDispatcher
from kuberev.revision.naming import name_for, status_marker_name
from kuberev.revision.recovery import recover_latest_revision

__all__ = [
    "CONDITION_TYPE",
    "WORK_QUEUE_KEY",
    "ContentDiffEngine",
    "RevisionController",
    "RevisionCreator",
    "SyncDispatcher",
    "name_for",
    "recover_latest_revision",
    "status_marker_name",
]
