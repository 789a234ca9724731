"""REST API for KubeRev: health, readiness, status and metrics."""

from kuberev.api.app import create_app

__all__ = ["create_app"]
