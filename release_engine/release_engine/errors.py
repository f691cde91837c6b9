"""Exception hierarchy for release queries.

Callers that need to tell "nothing was deployed in the lookback window" apart
from "something broke" should catch :class:`NoDeploymentsFoundError`
separately: it is not a :class:`ReleaseQueryError`.
"""

from __future__ import annotations


class ReleaseQueryError(Exception):
    """Base class for failures while querying release deployments."""


class ConfigurationError(ReleaseQueryError):
    """Raised when query options are missing or inconsistent."""


class StorageBackendError(ReleaseQueryError):
    """Raised when listing or downloading from the storage backend fails."""


class ReleaseDecodeError(ReleaseQueryError):
    """Raised when a release manifest cannot be decoded."""


class ComponentExtractionError(ReleaseQueryError):
    """Raised when a components manifest is empty or structurally invalid."""


class QueryCancelledError(ReleaseQueryError):
    """Raised when the caller cancels a query between backend calls."""


class NoDeploymentsFoundError(LookupError):
    """Raised when a backward search exhausts its lookback budget."""
