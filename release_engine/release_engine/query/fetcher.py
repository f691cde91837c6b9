"""Paginated collection of candidate release artifacts.

Pages are requested one at a time, passing the backend's continuation marker
forward until it stops returning one.  Entries that are not release
manifests, or whose ``timestamp`` tag is missing or malformed, are skipped
with a warning.  Any backend error aborts the whole fetch.
"""

from __future__ import annotations

import logging
import threading

from release_engine.models.query import CandidateArtifact
from release_engine.query.cancellation import raise_if_cancelled
from release_engine.storage.base import BlobEntry, ReleaseStore
from release_engine.timeparse import TimeParseError, parse_rfc3339

logger = logging.getLogger(__name__)

RELEASE_FILE_NAME = "release.yaml"
TIMESTAMP_TAG = "timestamp"


def _to_candidate(entry: BlobEntry) -> CandidateArtifact | None:
    """Map a raw listing entry to a candidate, or ``None`` to skip it."""
    raw_timestamp = entry.tags.get(TIMESTAMP_TAG)
    if raw_timestamp is None:
        logger.warning("Skipping blob %s: missing %s tag", entry.name, TIMESTAMP_TAG)
        return None

    try:
        timestamp = parse_rfc3339(raw_timestamp)
    except TimeParseError as exc:
        logger.warning("Skipping blob %s: %s", entry.name, exc)
        return None

    return CandidateArtifact(
        container_name=entry.container_name,
        path=entry.name,
        tags=dict(entry.tags),
        timestamp=timestamp,
    )


def fetch_candidates(
    store: ReleaseStore,
    filter_expression: str,
    *,
    limit: int = 0,
    cancel_event: threading.Event | None = None,
) -> list[CandidateArtifact]:
    """Collect every release manifest matching *filter_expression*.

    Parameters
    ----------
    store:
        Backend to list from.
    filter_expression:
        Server-side tag filter (see :mod:`release_engine.query.filters`).
    limit:
        When positive, keep only this many of the most recent candidates.
    cancel_event:
        Checked before each page request.

    Returns
    -------
    list[CandidateArtifact]
        Candidates sorted by timestamp, most recent first.

    Raises
    ------
    StorageBackendError
        If any page request fails.  No partial result is returned.
    """
    candidates: list[CandidateArtifact] = []
    marker: str | None = None
    page_count = 0

    while True:
        raise_if_cancelled(cancel_event, "listing blobs")
        page = store.filter_blobs(filter_expression, marker)
        page_count += 1

        for entry in page.entries:
            if not entry.name.endswith("/" + RELEASE_FILE_NAME):
                continue
            candidate = _to_candidate(entry)
            if candidate is not None:
                candidates.append(candidate)

        if not page.next_marker:
            break
        marker = page.next_marker

    logger.debug("Collected %d candidate(s) across %d page(s)", len(candidates), page_count)

    candidates.sort(key=lambda c: c.timestamp, reverse=True)
    if limit > 0:
        candidates = candidates[:limit]
    return candidates
