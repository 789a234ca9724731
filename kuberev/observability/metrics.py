"""Prometheus metrics for the revision controller.

All collectors are registered on the default registry and exposed by the
REST API at ``/metrics``.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

sync_passes_total = Counter(
    "kuberev_sync_passes_total",
    "Reconciliation passes by outcome.",
    ["outcome"],
)

sync_duration_seconds = Histogram(
    "kuberev_sync_duration_seconds",
    "Wall-clock duration of a reconciliation pass.",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

revisions_created_total = Counter(
    "kuberev_revisions_created_total",
    "Revisions minted and recorded as latestAvailableRevision.",
)

latest_available_revision = Gauge(
    "kuberev_latest_available_revision",
    "Most recent latestAvailableRevision observed or written by the controller.",
)

sync_retries_scheduled_total = Counter(
    "kuberev_sync_retries_scheduled_total",
    "Rate-limited re-enqueues scheduled after a failed or retry-requested pass.",
)

events_total = Counter(
    "kuberev_events_total",
    "Controller events delivered to sinks.",
    ["sink", "success"],
)

watch_restarts_total = Counter(
    "kuberev_watch_restarts_total",
    "Watch streams restarted after an error or expiry.",
    ["resource"],
)
