"""Cooperative cancellation checks between backend calls."""

from __future__ import annotations

import threading

from release_engine.errors import QueryCancelledError


def raise_if_cancelled(cancel_event: threading.Event | None, operation: str) -> None:
    """Raise :class:`QueryCancelledError` if *cancel_event* has been set."""
    if cancel_event is not None and cancel_event.is_set():
        raise QueryCancelledError(f"query cancelled before {operation}")
