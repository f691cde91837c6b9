"""Server-side tag filter construction.

The storage backend evaluates expressions of the form::

    @container='releases' AND "environment"='int' AND "timestamp">='2025-10-16T00:00:00Z' ...

Clause order is fixed so that identical inputs always yield a byte-identical
expression.
"""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import BaseModel, ConfigDict

from release_engine.errors import ConfigurationError
from release_engine.models.query import TimeWindow
from release_engine.timeparse import format_rfc3339

logger = logging.getLogger(__name__)

_CLAUSE_SEPARATOR = " AND "
_FORBIDDEN_VALUE_CHARS = ("'", '"')


class FilterOperator(str, Enum):
    """Comparison operators supported by the tag filter grammar."""

    EQ = "="
    GE = ">="
    LT = "<"


class FilterPredicate(BaseModel):
    """A single ``"key"<op>'value'`` clause, included only when enabled."""

    model_config = ConfigDict(frozen=True)

    key: str
    operator: FilterOperator
    value: str
    enabled: bool = True

    def render(self) -> str:
        return f"\"{self.key}\"{self.operator.value}'{self.value}'"


def validate_filter_value(value: str, name: str = "filter value") -> None:
    """Reject values that would break out of their quoted clause.

    Raises
    ------
    ConfigurationError
        If *value* contains a quote character.
    """
    if any(char in value for char in _FORBIDDEN_VALUE_CHARS):
        raise ConfigurationError(f"invalid {name} (quotes are not allowed): {value!r}")


def build_filter_expression(container: str, predicates: list[FilterPredicate]) -> str:
    """Join the container clause and every enabled predicate with ``AND``."""
    validate_filter_value(container, "container")
    clauses = [f"@container='{container}'"]
    for predicate in predicates:
        if not predicate.enabled:
            continue
        validate_filter_value(predicate.value, predicate.key)
        clauses.append(predicate.render())
    return _CLAUSE_SEPARATOR.join(clauses)


def release_predicates(
    environment: str,
    service_group_base: str,
    window: TimeWindow,
    pipeline_revision: str = "",
    source_revision: str = "",
) -> list[FilterPredicate]:
    """Return the release-listing predicates in their canonical order.

    The ``serviceGroup >= ''`` clause always matches; it is present only so
    that the backend echoes the ``serviceGroup`` tag in its results.
    """
    return [
        FilterPredicate(key="environment", operator=FilterOperator.EQ, value=environment),
        FilterPredicate(key="serviceGroupBase", operator=FilterOperator.EQ, value=service_group_base),
        FilterPredicate(key="timestamp", operator=FilterOperator.GE, value=format_rfc3339(window.since)),
        FilterPredicate(key="timestamp", operator=FilterOperator.LT, value=format_rfc3339(window.until)),
        FilterPredicate(key="serviceGroup", operator=FilterOperator.GE, value=""),
        FilterPredicate(
            key="revision",
            operator=FilterOperator.EQ,
            value=pipeline_revision,
            enabled=pipeline_revision != "",
        ),
        FilterPredicate(
            key="upstreamRevision",
            operator=FilterOperator.EQ,
            value=source_revision,
            enabled=source_revision != "",
        ),
    ]


def build_release_filter(
    container: str,
    environment: str,
    service_group_base: str,
    window: TimeWindow,
    pipeline_revision: str = "",
    source_revision: str = "",
) -> str:
    """Build the tag filter expression for one release listing query."""
    expression = build_filter_expression(
        container,
        release_predicates(
            environment,
            service_group_base,
            window,
            pipeline_revision=pipeline_revision,
            source_revision=source_revision,
        ),
    )
    logger.debug("Built release filter: %s", expression)
    return expression
