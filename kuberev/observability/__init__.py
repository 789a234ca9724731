"""Logging and Prometheus metrics for KubeRev."""
