"""Release listing and backward search pipeline."""

from __future__ import annotations

from release_engine.query.components import extract_components, kebab_case
from release_engine.query.fetcher import RELEASE_FILE_NAME, fetch_candidates
from release_engine.query.filters import (
    FilterOperator,
    FilterPredicate,
    build_filter_expression,
    build_release_filter,
    release_predicates,
    validate_filter_value,
)
from release_engine.query.options import (
    LastReleaseQuery,
    RawLastOptions,
    RawListOptions,
    ReleaseQuery,
    ValidatedLastOptions,
    ValidatedListOptions,
)
from release_engine.query.resolver import (
    COMPONENTS_FILE_NAME,
    components_path_for,
    download_and_parse_components,
    download_and_parse_release,
    resolve_deployments,
)
from release_engine.query.search import search_backward, validate_search_bounds

__all__ = [
    "COMPONENTS_FILE_NAME",
    "FilterOperator",
    "FilterPredicate",
    "LastReleaseQuery",
    "RELEASE_FILE_NAME",
    "RawLastOptions",
    "RawListOptions",
    "ReleaseQuery",
    "ValidatedLastOptions",
    "ValidatedListOptions",
    "build_filter_expression",
    "build_release_filter",
    "components_path_for",
    "download_and_parse_components",
    "download_and_parse_release",
    "extract_components",
    "fetch_candidates",
    "kebab_case",
    "release_predicates",
    "resolve_deployments",
    "search_backward",
    "validate_filter_value",
    "validate_search_bounds",
]
