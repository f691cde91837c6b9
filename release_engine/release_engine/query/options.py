"""Query option pipeline: raw -> validated -> completed.

Each stage is its own type, so a query can only be executed after its
options were validated and completed::

    query = RawListOptions(environment="int").validated().complete()
    deployments = query.list_release_deployments()

Validation never performs I/O.  Completion opens the storage backend (the
Azure store, unless one is injected) and returns an executable query.
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field

from release_engine.config import (
    DEFAULT_SEARCH_MAX_LOOKBACK,
    DEFAULT_SEARCH_STEP,
    DEFAULT_SERVICE_GROUP_BASE,
    DEFAULT_STORAGE_ACCOUNT_URL,
    DEFAULT_STORAGE_CONTAINER,
    Environment,
)
from release_engine.errors import ConfigurationError
from release_engine.models.query import TimeWindow
from release_engine.models.release import ReleaseDeployment
from release_engine.query.fetcher import fetch_candidates
from release_engine.query.filters import build_release_filter, validate_filter_value
from release_engine.query.resolver import resolve_deployments
from release_engine.query.search import search_backward, validate_search_bounds
from release_engine.storage.base import ReleaseStore

DEFAULT_LOOKBACK = timedelta(days=7)


def _default_since() -> datetime:
    return datetime.now(UTC) - DEFAULT_LOOKBACK


def _now() -> datetime:
    return datetime.now(UTC)


def _as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC and express aware ones in UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------


class RawListOptions(BaseModel):
    """Unvalidated options for listing release deployments."""

    storage_account_url: str = DEFAULT_STORAGE_ACCOUNT_URL
    storage_container: str = DEFAULT_STORAGE_CONTAINER
    environment: str = Environment.PROD.value
    since: datetime | None = Field(default_factory=_default_since)
    until: datetime | None = Field(default_factory=_now)
    service_group_base: str = DEFAULT_SERVICE_GROUP_BASE
    pipeline_revision: str = ""
    source_revision: str = ""
    include_components: bool = False
    limit: int = 0

    def validated(self) -> ValidatedListOptions:
        """Check the options without touching the network.

        Raises
        ------
        ConfigurationError
            If a required option is empty, a filter value contains a quote,
            the environment is unknown, the window is inverted, or the limit
            is negative.
        """
        for flag, name, value in (
            ("account-name", "storage account", self.storage_account_url),
            ("container", "storage container", self.storage_container),
            ("environment", "environment", self.environment),
            ("service-group-base", "service group base", self.service_group_base),
        ):
            if not value:
                raise ConfigurationError(f"the {name} must be provided with --{flag}")
            validate_filter_value(value, name)
        for name, value in (
            ("pipeline revision", self.pipeline_revision),
            ("source revision", self.source_revision),
        ):
            validate_filter_value(value, name)
        if self.since is None:
            raise ConfigurationError("the since time must be provided with --since")
        if self.until is None:
            raise ConfigurationError("the until time must be provided with --until")

        try:
            environment = Environment(self.environment)
        except ValueError as exc:
            raise ConfigurationError(f"invalid environment: {self.environment}") from exc

        try:
            window = TimeWindow(since=_as_utc(self.since), until=_as_utc(self.until))
        except ValueError as exc:
            raise ConfigurationError("since must be before until") from exc

        if self.limit < 0:
            raise ConfigurationError("limit must not be negative")

        return ValidatedListOptions(
            storage_account_url=self.storage_account_url,
            storage_container=self.storage_container,
            environment=environment,
            window=window,
            service_group_base=self.service_group_base,
            pipeline_revision=self.pipeline_revision,
            source_revision=self.source_revision,
            include_components=self.include_components,
            limit=self.limit,
        )


class ValidatedListOptions(BaseModel):
    """List options that passed :meth:`RawListOptions.validated`."""

    model_config = ConfigDict(frozen=True)

    storage_account_url: str
    storage_container: str
    environment: Environment
    window: TimeWindow
    service_group_base: str
    pipeline_revision: str
    source_revision: str
    include_components: bool
    limit: int

    def complete(self, store: ReleaseStore | None = None) -> ReleaseQuery:
        """Attach a storage backend and return an executable query.

        Without *store*, an Azure store for ``storage_account_url`` is opened
        using the default Azure credential chain.

        Raises
        ------
        StorageBackendError
            If the Azure client cannot be created.
        """
        if store is None:
            from release_engine.storage.azure_store import AzureBlobStore

            store = AzureBlobStore.from_account_url(self.storage_account_url)
        return ReleaseQuery(self, store)


class ReleaseQuery:
    """An executable release listing query."""

    def __init__(self, options: ValidatedListOptions, store: ReleaseStore) -> None:
        self._options = options
        self._store = store

    @property
    def options(self) -> ValidatedListOptions:
        return self._options

    @property
    def window(self) -> TimeWindow:
        return self._options.window

    def build_filter(self, window: TimeWindow | None = None) -> str:
        opts = self._options
        return build_release_filter(
            opts.storage_container,
            opts.environment.value,
            opts.service_group_base,
            window if window is not None else opts.window,
            pipeline_revision=opts.pipeline_revision,
            source_revision=opts.source_revision,
        )

    def list_release_deployments(
        self,
        window: TimeWindow | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> list[ReleaseDeployment]:
        """List deployments in *window* (default: the configured window).

        Returns
        -------
        list[ReleaseDeployment]
            Most recent first, at most ``limit`` entries when a limit is set.

        Raises
        ------
        StorageBackendError
            On any listing or download failure.
        ComponentExtractionError
            If components were requested and could not be extracted.
        QueryCancelledError
            If *cancel_event* is set before a backend call.
        """
        opts = self._options
        candidates = fetch_candidates(
            self._store,
            self.build_filter(window),
            limit=opts.limit,
            cancel_event=cancel_event,
        )
        if not candidates:
            return []
        return resolve_deployments(
            self._store,
            opts.storage_container,
            candidates,
            include_components=opts.include_components,
            cancel_event=cancel_event,
        )


# ---------------------------------------------------------------------------
# last
# ---------------------------------------------------------------------------


class RawLastOptions(BaseModel):
    """Unvalidated options for the backward search."""

    list_options: RawListOptions = Field(default_factory=RawListOptions)
    step: timedelta = DEFAULT_SEARCH_STEP
    max_lookback: timedelta = DEFAULT_SEARCH_MAX_LOOKBACK

    def validated(self) -> ValidatedLastOptions:
        """Validate the list options and the search bounds.

        Raises
        ------
        ConfigurationError
            If the list options are invalid or the search bounds are not
            positive and consistent.
        """
        list_options = self.list_options.validated()
        validate_search_bounds(self.step, self.max_lookback)
        return ValidatedLastOptions(
            list_options=list_options,
            step=self.step,
            max_lookback=self.max_lookback,
        )


class ValidatedLastOptions(BaseModel):
    """Search options that passed :meth:`RawLastOptions.validated`."""

    model_config = ConfigDict(frozen=True)

    list_options: ValidatedListOptions
    step: timedelta
    max_lookback: timedelta

    def complete(self, store: ReleaseStore | None = None) -> LastReleaseQuery:
        return LastReleaseQuery(self.list_options.complete(store), self.step, self.max_lookback)


class LastReleaseQuery:
    """An executable backward search for the most recent deployment."""

    def __init__(self, query: ReleaseQuery, step: timedelta, max_lookback: timedelta) -> None:
        self._query = query
        self._step = step
        self._max_lookback = max_lookback

    @property
    def query(self) -> ReleaseQuery:
        return self._query

    def last_release_deployment(
        self,
        *,
        cancel_event: threading.Event | None = None,
    ) -> ReleaseDeployment:
        """Search backwards from the configured ``until`` for the latest deployment.

        Raises
        ------
        NoDeploymentsFoundError
            If nothing matches within ``max_lookback``.
        """
        return search_backward(
            lambda window: self._query.list_release_deployments(window, cancel_event=cancel_event),
            step=self._step,
            max_lookback=self._max_lookback,
            anchor=self._query.window.until,
        )
