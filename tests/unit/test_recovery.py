"""Tests for recover_latest_revision()."""

from __future__ import annotations

import pytest

from kuberev.models.revision import ResourceKind
from kuberev.revision.recovery import recover_latest_revision
from kuberev.store.errors import StoreError
from tests.conftest import NAMESPACE, FakeObjectStore

CM = ResourceKind.CONFIG_MAP


class TestRecoverLatestRevision:
    async def test_empty_namespace_returns_zero(self, store: FakeObjectStore) -> None:
        assert await recover_latest_revision(store, NAMESPACE) == 0

    async def test_returns_highest_marker(self, store: FakeObjectStore) -> None:
        for rev in (1, 2, 10, 3):
            store.put(CM, f"revision-status-{rev}", {"status": "InProgress", "revision": str(rev)})

        assert await recover_latest_revision(store, NAMESPACE) == 10

    async def test_ignores_other_configmaps(self, store: FakeObjectStore) -> None:
        store.put(CM, "revision-status-2", {"revision": "2"})
        store.put(CM, "manifest-99", {"revision": "99"})
        store.put(CM, "revision-statusx", {"revision": "50"})

        assert await recover_latest_revision(store, NAMESPACE) == 2

    @pytest.mark.parametrize("value", ["1_000", " 7 ", "+3", "-2", "٣", "", "7.0"])
    async def test_loosely_formatted_revision_is_skipped(self, store: FakeObjectStore, value: str) -> None:
        store.put(CM, "revision-status-9", {"revision": value})
        store.put(CM, "revision-status-2", {"revision": "2"})

        assert await recover_latest_revision(store, NAMESPACE) == 2

    async def test_ignores_other_namespaces(self, store: FakeObjectStore) -> None:
        store.put(CM, "revision-status-7", {"revision": "7"}, namespace="other")

        assert await recover_latest_revision(store, NAMESPACE) == 0

    async def test_marker_without_revision_key_is_skipped(self, store: FakeObjectStore) -> None:
        store.put(CM, "revision-status-3", {"status": "InProgress"})
        store.put(CM, "revision-status-1", {"revision": "1"})

        assert await recover_latest_revision(store, NAMESPACE) == 1

    async def test_unparseable_revision_is_skipped(self, store: FakeObjectStore) -> None:
        store.put(CM, "revision-status-4", {"revision": "four"})
        store.put(CM, "revision-status-2", {"revision": "2"})

        assert await recover_latest_revision(store, NAMESPACE) == 2

    async def test_list_failure_propagates(self, store: FakeObjectStore) -> None:
        store.failures[("list", CM, "")] = StoreError("forbidden")

        with pytest.raises(StoreError, match="forbidden"):
            await recover_latest_revision(store, NAMESPACE)
