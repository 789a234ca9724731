"""Collector package for KubeRev.

Provides Kubernetes watch-stream collectors whose change notifications
trigger revision reconciliation passes.

Submodules
----------
watcher -- ResourceWatcher: list-then-watch, exponential back-off reconnect,
           relist on 410 Gone, cache-synced signal; build_watchers for the
           operator resource, ConfigMaps and Secrets of the target namespace.
"""

from kuberev.collector.watcher import ResourceWatcher, build_watchers

__all__ = ["ResourceWatcher", "build_watchers"]
