"""Backward step-wise search for the most recent deployment.

Starting at an anchor instant, the search queries one window of width
``step`` at a time, moving further back each iteration::

    iteration 0:  [anchor - 1*step, anchor)
    iteration 1:  [anchor - 2*step, anchor - 1*step)
    ...

until a window yields at least one deployment or the offset reaches
``max_lookback``.  Every iteration gets its own :class:`TimeWindow`; the
caller's configuration is never mutated.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from release_engine.errors import ConfigurationError, NoDeploymentsFoundError
from release_engine.models.query import TimeWindow
from release_engine.models.release import ReleaseDeployment

logger = logging.getLogger(__name__)


def validate_search_bounds(step: timedelta, max_lookback: timedelta) -> None:
    """Check the step and lookback budget before any query runs.

    Raises
    ------
    ConfigurationError
        If either duration is not positive, or the lookback is shorter than
        one step.
    """
    if step <= timedelta(0):
        raise ConfigurationError("step must be greater than zero")
    if max_lookback <= timedelta(0):
        raise ConfigurationError("max-lookback must be greater than zero")
    if max_lookback < step:
        raise ConfigurationError("max-lookback must be greater than or equal to step")


def search_backward(
    run_window: Callable[[TimeWindow], list[ReleaseDeployment]],
    *,
    step: timedelta,
    max_lookback: timedelta,
    anchor: datetime | None = None,
) -> ReleaseDeployment:
    """Return the most recent deployment found walking back from *anchor*.

    Parameters
    ----------
    run_window:
        Runs the full fetch-and-resolve pipeline for one window and returns
        its deployments, most recent first.
    step:
        Width of each window and distance between consecutive windows.
    max_lookback:
        Total span the search may cover before giving up.
    anchor:
        End of the first window.  Defaults to now.

    Raises
    ------
    ConfigurationError
        If the search bounds are invalid.
    NoDeploymentsFoundError
        If no window within the lookback yields a deployment.
    """
    validate_search_bounds(step, max_lookback)
    end = anchor if anchor is not None else datetime.now(UTC)

    offset = timedelta(0)
    iteration = 0
    while offset < max_lookback:
        window_until = end - offset
        window = TimeWindow(since=window_until - step, until=window_until)
        iteration += 1
        logger.debug("Backward search iteration %d: [%s, %s)", iteration, window.since, window.until)

        deployments = run_window(window)
        if deployments:
            return deployments[0]
        offset += step

    raise NoDeploymentsFoundError(f"no deployments found in lookback window of {max_lookback} before {end}")
