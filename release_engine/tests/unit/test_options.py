"""Unit tests for release_engine.query.options -- the raw/validated/completed pipeline."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from conftest import FakeStore

from release_engine.config import Environment
from release_engine.errors import (
    ComponentExtractionError,
    ConfigurationError,
    NoDeploymentsFoundError,
    QueryCancelledError,
    StorageBackendError,
)
from release_engine.models.query import TimeWindow
from release_engine.query.options import (
    LastReleaseQuery,
    RawLastOptions,
    RawListOptions,
    ReleaseQuery,
    ValidatedListOptions,
)

SINCE = datetime(2025, 11, 1, tzinfo=UTC)
UNTIL = datetime(2025, 11, 10, 12, 0, tzinfo=UTC)
DAY = timedelta(days=1)


def _raw(**overrides: object) -> RawListOptions:
    values: dict[str, object] = {"environment": "int", "since": SINCE, "until": UNTIL}
    values.update(overrides)
    return RawListOptions(**values)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestRawListOptionsValidation:
    def test_defaults(self):
        raw = RawListOptions()
        assert raw.storage_account_url == "https://aroreleases.blob.core.windows.net/"
        assert raw.storage_container == "releases"
        assert raw.environment == "prod"
        assert raw.service_group_base == "Microsoft.Azure.ARO.HCP"
        assert raw.limit == 0
        assert raw.since is not None and raw.until is not None
        assert abs((raw.until - raw.since) - timedelta(days=7)) < timedelta(seconds=5)

    def test_valid(self):
        validated = _raw(pipeline_revision="p", limit=5).validated()
        assert isinstance(validated, ValidatedListOptions)
        assert validated.environment is Environment.INT
        assert validated.window == TimeWindow(since=SINCE, until=UNTIL)
        assert validated.pipeline_revision == "p"
        assert validated.limit == 5

    @pytest.mark.parametrize(
        ("field", "message"),
        [
            ("storage_account_url", "--account-name"),
            ("storage_container", "--container"),
            ("environment", "--environment"),
            ("service_group_base", "--service-group-base"),
        ],
    )
    def test_required_strings(self, field: str, message: str):
        with pytest.raises(ConfigurationError, match=message):
            _raw(**{field: ""}).validated()

    def test_missing_since(self):
        with pytest.raises(ConfigurationError, match="--since"):
            _raw(since=None).validated()

    def test_missing_until(self):
        with pytest.raises(ConfigurationError, match="--until"):
            _raw(until=None).validated()

    def test_unknown_environment(self):
        with pytest.raises(ConfigurationError, match="invalid environment: dev"):
            _raw(environment="dev").validated()

    def test_inverted_window(self):
        with pytest.raises(ConfigurationError, match="since must be before until"):
            _raw(since=UNTIL, until=SINCE).validated()

    def test_negative_limit(self):
        with pytest.raises(ConfigurationError, match="limit"):
            _raw(limit=-1).validated()

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("storage_container", "rel'eases"),
            ("service_group_base", "Microsoft\"ARO"),
            ("pipeline_revision", "p'q"),
            ("source_revision", "x'y"),
        ],
    )
    def test_quotes_rejected_before_io(self, field: str, value: str):
        with pytest.raises(ConfigurationError, match="quotes are not allowed"):
            _raw(**{field: value}).validated()

    def test_naive_and_aware_times_normalised(self):
        naive_since = datetime(2025, 11, 1)
        aware_until = datetime(2025, 11, 10, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        validated = _raw(since=naive_since, until=aware_until).validated()
        assert validated.window.since == SINCE
        assert validated.window.until == UNTIL
        assert validated.window.until.utcoffset() == timedelta(0)

    def test_validated_is_frozen(self):
        validated = _raw().validated()
        with pytest.raises(ValueError):
            validated.limit = 3  # type: ignore[misc]


class TestRawLastOptionsValidation:
    def test_defaults(self):
        raw = RawLastOptions(list_options=_raw())
        assert raw.step == timedelta(days=7)
        assert raw.max_lookback == timedelta(days=84)

    def test_valid(self):
        validated = RawLastOptions(list_options=_raw(), step=DAY, max_lookback=3 * DAY).validated()
        assert validated.step == DAY
        assert validated.list_options.environment is Environment.INT

    def test_invalid_list_options(self):
        with pytest.raises(ConfigurationError, match="invalid environment"):
            RawLastOptions(list_options=_raw(environment="nope")).validated()

    def test_invalid_bounds(self):
        with pytest.raises(ConfigurationError, match="greater than or equal to step"):
            RawLastOptions(list_options=_raw(), step=3 * DAY, max_lookback=DAY).validated()


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------


class TestComplete:
    def test_injected_store(self, store: FakeStore):
        query = _raw().validated().complete(store)
        assert isinstance(query, ReleaseQuery)
        assert query.window == TimeWindow(since=SINCE, until=UNTIL)

    def test_default_store_is_azure(self):
        validated = _raw(storage_account_url="https://example.blob.core.windows.net/").validated()
        with patch("release_engine.storage.azure_store.AzureBlobStore.from_account_url") as factory:
            query = validated.complete()
        factory.assert_called_once_with("https://example.blob.core.windows.net/")
        assert isinstance(query, ReleaseQuery)

    def test_last_complete(self, store: FakeStore):
        validated = RawLastOptions(list_options=_raw(), step=DAY, max_lookback=3 * DAY).validated()
        query = validated.complete(store)
        assert isinstance(query, LastReleaseQuery)
        assert query.query.window.until == UNTIL


# ---------------------------------------------------------------------------
# ReleaseQuery
# ---------------------------------------------------------------------------


class TestListReleaseDeployments:
    def test_lists_in_window_most_recent_first(self, store: FakeStore):
        store.add_release("r1/release.yaml", "2025-11-02T10:00:00Z")
        store.add_release("r2/release.yaml", "2025-11-05T10:00:00Z")
        store.add_release("old/release.yaml", "2025-10-01T10:00:00Z")
        store.add_release("future/release.yaml", "2025-11-11T10:00:00Z")

        deployments = _raw().validated().complete(store).list_release_deployments()

        assert [d.metadata.timestamp for d in deployments] == ["2025-11-05T10:00:00Z", "2025-11-02T10:00:00Z"]

    def test_filter_uses_options(self, store: FakeStore):
        query = _raw(storage_container="releases", source_revision="abc").validated().complete(store)
        query.list_release_deployments()
        expression, _ = store.filter_calls[0]
        assert expression.startswith("@container='releases' AND \"environment\"='int'")
        assert expression.endswith("\"upstreamRevision\"='abc'")

    def test_limit(self, store: FakeStore):
        for day in range(2, 7):
            store.add_release(f"r{day}/release.yaml", f"2025-11-{day:02d}T10:00:00Z")

        deployments = _raw(limit=2).validated().complete(store).list_release_deployments()

        assert [d.metadata.timestamp for d in deployments] == ["2025-11-06T10:00:00Z", "2025-11-05T10:00:00Z"]
        assert len(store.download_calls) == 2

    def test_no_candidates_no_downloads(self, store: FakeStore):
        assert _raw().validated().complete(store).list_release_deployments() == []
        assert store.download_calls == []

    def test_explicit_window_overrides_configured(self, store: FakeStore):
        store.add_release("r/release.yaml", "2025-10-01T10:00:00Z")
        query = _raw().validated().complete(store)
        window = TimeWindow(since=datetime(2025, 9, 30, tzinfo=UTC), until=datetime(2025, 10, 2, tzinfo=UTC))

        assert len(query.list_release_deployments(window)) == 1
        assert query.window == TimeWindow(since=SINCE, until=UNTIL)

    def test_components(self, store: FakeStore):
        store.add_release("r/release.yaml", "2025-11-05T10:00:00Z", regions=["uksouth"])
        store.add_blob("r/uksouth/config.yaml", "svc:\n  digest: sha256:cafe\n")

        deployments = _raw(include_components=True).validated().complete(store).list_release_deployments()

        assert deployments[0].components == {"svc": "cafe"}

    def test_components_failure_fails_listing(self, store: FakeStore):
        store.add_release("r/release.yaml", "2025-11-05T10:00:00Z", regions=["uksouth"])
        store.add_blob("r/uksouth/config.yaml", "")

        with pytest.raises(ComponentExtractionError):
            _raw(include_components=True).validated().complete(store).list_release_deployments()

    def test_backend_error(self, store: FakeStore):
        store.filter_error = StorageBackendError("throttled")
        with pytest.raises(StorageBackendError, match="throttled"):
            _raw().validated().complete(store).list_release_deployments()

    def test_cancellation(self, store: FakeStore):
        event = threading.Event()
        event.set()
        with pytest.raises(QueryCancelledError):
            _raw().validated().complete(store).list_release_deployments(cancel_event=event)


# ---------------------------------------------------------------------------
# LastReleaseQuery
# ---------------------------------------------------------------------------


class TestLastReleaseDeployment:
    def _query(self, store: FakeStore, max_lookback: timedelta = 3 * DAY) -> LastReleaseQuery:
        return RawLastOptions(list_options=_raw(), step=DAY, max_lookback=max_lookback).validated().complete(store)

    def test_found_in_second_window(self, store: FakeStore):
        store.add_release("r/release.yaml", "2025-11-09T08:00:00Z")
        query = self._query(store)

        deployment = query.last_release_deployment()

        assert deployment.metadata.timestamp == "2025-11-09T08:00:00Z"
        assert len(store.filter_calls) == 2
        assert "\"timestamp\">='2025-11-08T12:00:00Z'" in store.filter_calls[1][0]
        assert "\"timestamp\"<'2025-11-09T12:00:00Z'" in store.filter_calls[1][0]

    def test_configured_window_unchanged(self, store: FakeStore):
        store.add_release("r/release.yaml", "2025-11-08T08:00:00Z")
        query = self._query(store)

        query.last_release_deployment()

        assert query.query.window == TimeWindow(since=SINCE, until=UNTIL)

    def test_configured_window_unchanged_after_exhaustion(self, store: FakeStore):
        query = self._query(store)

        with pytest.raises(NoDeploymentsFoundError):
            query.last_release_deployment()

        assert query.query.window == TimeWindow(since=SINCE, until=UNTIL)
        assert query.query.options.window == TimeWindow(since=SINCE, until=UNTIL)

    def test_returns_most_recent_in_window(self, store: FakeStore):
        store.add_release("a/release.yaml", "2025-11-10T01:00:00Z")
        store.add_release("b/release.yaml", "2025-11-10T09:00:00Z")

        assert self._query(store).last_release_deployment().metadata.timestamp == "2025-11-10T09:00:00Z"

    def test_exhausted(self, store: FakeStore):
        store.add_release("r/release.yaml", "2025-11-01T08:00:00Z")

        with pytest.raises(NoDeploymentsFoundError):
            self._query(store).last_release_deployment()
        assert len(store.filter_calls) == 3

    def test_backend_error_stops_search(self, store: FakeStore):
        store.filter_error = StorageBackendError("down")
        with pytest.raises(StorageBackendError):
            self._query(store).last_release_deployment()
        assert len(store.filter_calls) == 1
