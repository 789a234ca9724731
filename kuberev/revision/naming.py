"""Revision naming scheme."""

from __future__ import annotations

STATUS_MARKER_PREFIX = "revision-status"


def name_for(name: str, revision: int) -> str:
    """Return the snapshot name of ``name`` at ``revision`` (``<name>-<revision>``)."""
    return f"{name}-{revision}"


def status_marker_name(revision: int) -> str:
    return name_for(STATUS_MARKER_PREFIX, revision)
