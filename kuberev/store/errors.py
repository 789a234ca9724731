"""Object-store error taxonomy.

Adapters translate their transport errors into these types so that the
revision logic can tell "not found" apart from every other failure.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base class for object-store and status-store failures."""


class NotFoundError(StoreError):
    """The named object does not exist."""

    def __init__(self, resource: str, name: str) -> None:
        super().__init__(f'{resource} "{name}" not found')
        self.resource = resource
        self.name = name


class AlreadyExistsError(StoreError):
    """A create was attempted for a name that is already taken."""

    def __init__(self, resource: str, name: str) -> None:
        super().__init__(f'{resource} "{name}" already exists')
        self.resource = resource
        self.name = name


class ConflictError(StoreError):
    """A conditional write presented a stale resource version."""
