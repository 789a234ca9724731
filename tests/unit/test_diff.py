"""Tests for ContentDiffEngine.is_current().

Covers equality, per-resource change reasons, not-found handling for
mandatory and optional resources, and the transient-read-as-empty behaviour.
"""

from __future__ import annotations

import asyncio

from hypothesis import given, settings
from hypothesis import strategies as st

from kuberev.models.revision import ResourceKind, RevisionResource
from kuberev.revision.diff import ContentDiffEngine, describe_changes
from kuberev.store.errors import StoreError
from tests.conftest import NAMESPACE, FakeObjectStore

CM = ResourceKind.CONFIG_MAP
SECRET = ResourceKind.SECRET


def _engine(
    store: FakeObjectStore,
    config_maps: list[RevisionResource] | None = None,
    secrets: list[RevisionResource] | None = None,
) -> ContentDiffEngine:
    return ContentDiffEngine(store, NAMESPACE, config_maps or [], secrets or [])


def _seed(store: FakeObjectStore, kind: ResourceKind, name: str, data: dict, revision: int = 1) -> None:
    store.put(kind, name, data)
    store.put(kind, f"{name}-{revision}", data)


# ---------------------------------------------------------------------------
# Hypothesis strategies
# ---------------------------------------------------------------------------

_names = st.from_regex(r"[a-z][a-z0-9]{0,10}", fullmatch=True)
_text_payloads = st.dictionaries(st.text(min_size=1, max_size=8), st.text(max_size=16), max_size=5)
_binary_payloads = st.dictionaries(st.text(min_size=1, max_size=8), st.binary(max_size=16), max_size=5)


class TestCurrentRevision:
    @settings(max_examples=50, deadline=None)
    @given(
        cms=st.dictionaries(_names, _text_payloads, max_size=4),
        secrets=st.dictionaries(_names.map(lambda n: f"s{n}"), _binary_payloads, max_size=4),
    )
    def test_equal_content_is_current(self, cms: dict, secrets: dict) -> None:
        """Whenever every snapshot equals its source, the revision is current."""
        store = FakeObjectStore()
        for name, data in cms.items():
            _seed(store, CM, name, data)
        for name, data in secrets.items():
            _seed(store, SECRET, name, data)
        engine = _engine(
            store,
            [RevisionResource(n) for n in cms],
            [RevisionResource(n) for n in secrets],
        )

        assert asyncio.run(engine.is_current(1)) == (True, "")

    async def test_key_order_is_irrelevant(self, store: FakeObjectStore) -> None:
        store.put(CM, "manifest", {"a": "1", "b": "2"})
        store.put(CM, "manifest-1", {"b": "2", "a": "1"})

        assert await _engine(store, [RevisionResource("manifest")]).is_current(1) == (True, "")

    async def test_no_tracked_resources_is_current(self, store: FakeObjectStore) -> None:
        assert await _engine(store).is_current(3) == (True, "")


class TestChangedContent:
    @settings(max_examples=30, deadline=None)
    @given(
        names=st.lists(_names, min_size=1, max_size=4, unique=True),
        data=st.data(),
    )
    def test_single_change_reports_exactly_that_resource(self, names: list[str], data: st.DataObject) -> None:
        store = FakeObjectStore()
        for name in names:
            _seed(store, CM, name, {"key": "v1"})
        changed = data.draw(st.sampled_from(names))
        store.put(CM, changed, {"key": "v2"})

        current, reason = asyncio.run(_engine(store, [RevisionResource(n) for n in names]).is_current(1))

        assert current is False
        assert reason == f"configmap/{changed} has changed"

    async def test_secret_change(self, store: FakeObjectStore) -> None:
        _seed(store, SECRET, "serving-cert", {"tls.key": b"old"})
        store.put(SECRET, "serving-cert", {"tls.key": b"new"})

        current, reason = await _engine(store, secrets=[RevisionResource("serving-cert")]).is_current(1)

        assert current is False
        assert reason == "secret/serving-cert has changed"

    async def test_all_changes_reported_secrets_first(self, store: FakeObjectStore) -> None:
        _seed(store, CM, "manifest", {"a": "1"})
        _seed(store, CM, "config", {"b": "1"})
        _seed(store, SECRET, "cert", {"c": b"1"})
        store.put(CM, "manifest", {"a": "2"})
        store.put(CM, "config", {"b": "2"})
        store.put(SECRET, "cert", {"c": b"2"})

        engine = _engine(
            store,
            [RevisionResource("manifest"), RevisionResource("config")],
            [RevisionResource("cert")],
        )
        current, reason = await engine.is_current(1)

        assert current is False
        assert reason == "secret/cert has changed,configmap/manifest has changed,configmap/config has changed"

    async def test_added_key_is_a_change(self, store: FakeObjectStore) -> None:
        _seed(store, CM, "manifest", {"a": "1"})
        store.put(CM, "manifest", {"a": "1", "b": "2"})

        current, _ = await _engine(store, [RevisionResource("manifest")]).is_current(1)

        assert current is False


class TestMissingObjects:
    async def test_mandatory_source_missing_reports_not_found(self, store: FakeObjectStore) -> None:
        current, reason = await _engine(store, [RevisionResource("manifest")]).is_current(1)

        assert current is False
        assert reason == 'configmaps "manifest" not found'

    async def test_mandatory_snapshot_missing_reports_not_found(self, store: FakeObjectStore) -> None:
        store.put(CM, "manifest", {"a": "1"})

        current, reason = await _engine(store, [RevisionResource("manifest")]).is_current(0)

        assert current is False
        assert reason == 'configmaps "manifest-0" not found'

    async def test_not_found_stops_before_later_resources(self, store: FakeObjectStore) -> None:
        _seed(store, CM, "config", {"a": "1"})
        store.put(CM, "config", {"a": "changed"})

        engine = _engine(store, [RevisionResource("manifest"), RevisionResource("config")])
        current, reason = await engine.is_current(1)

        assert current is False
        assert "has changed" not in reason

    async def test_optional_absent_on_both_sides_is_current(self, store: FakeObjectStore) -> None:
        _seed(store, CM, "manifest", {"a": "1"})

        engine = _engine(store, [RevisionResource("manifest")], [RevisionResource("cert", optional=True)])

        assert await engine.is_current(1) == (True, "")

    async def test_optional_source_removed_is_drift(self, store: FakeObjectStore) -> None:
        store.put(SECRET, "cert-1", {"tls.crt": b"x"})

        current, reason = await _engine(store, secrets=[RevisionResource("cert", optional=True)]).is_current(1)

        assert current is False
        assert reason == "secret/cert has changed"

    async def test_optional_source_appeared_is_drift(self, store: FakeObjectStore) -> None:
        store.put(SECRET, "cert", {"tls.crt": b"x"})

        current, reason = await _engine(store, secrets=[RevisionResource("cert", optional=True)]).is_current(1)

        assert current is False
        assert reason == "secret/cert has changed"

    async def test_optional_empty_payload_equals_absent(self, store: FakeObjectStore) -> None:
        store.put(CM, "extra", {})

        assert await _engine(store, [RevisionResource("extra", optional=True)]).is_current(1) == (True, "")


class TestTransientReadErrors:
    """A non-not-found read failure is compared as an empty payload."""

    async def test_failed_source_read_with_empty_snapshot_masks_drift(self, store: FakeObjectStore) -> None:
        store.put(CM, "manifest", {"a": "1"})
        store.put(CM, "manifest-1", {})
        store.failures[("get", CM, "manifest")] = StoreError("503 Service Unavailable")

        assert await _engine(store, [RevisionResource("manifest")]).is_current(1) == (True, "")

    async def test_failed_source_read_against_populated_snapshot_is_drift(self, store: FakeObjectStore) -> None:
        _seed(store, CM, "manifest", {"a": "1"})
        store.failures[("get", CM, "manifest")] = StoreError("503 Service Unavailable")

        current, reason = await _engine(store, [RevisionResource("manifest")]).is_current(1)

        assert current is False
        assert reason == "configmap/manifest has changed"

    async def test_failed_reads_on_both_sides_compare_equal(self, store: FakeObjectStore) -> None:
        _seed(store, SECRET, "cert", {"k": b"v"})
        store.failures[("get", SECRET, "cert")] = StoreError("timeout")
        store.failures[("get", SECRET, "cert-1")] = StoreError("timeout")

        assert await _engine(store, secrets=[RevisionResource("cert")]).is_current(1) == (True, "")


class TestDescribeChanges:
    def test_key_level_summary(self) -> None:
        summary = describe_changes({"a": "1", "b": "2", "c": "3"}, {"a": "1", "b": "9", "d": "4"})

        assert summary == {"added": ["d"], "removed": ["c"], "changed": ["b"]}
