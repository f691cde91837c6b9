"""Shared fixtures for release_engine unit tests.

:class:`FakeStore` is an in-memory :class:`ReleaseStore`.  It evaluates the
``timestamp`` bounds of a filter expression against each blob's tags, so
queries over different windows see different blobs, and it pages results
with string offsets as continuation markers.
"""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from release_engine.errors import StorageBackendError
from release_engine.storage.base import BlobEntry, FilterPage

TESTDATA_DIR = Path(__file__).parent / "testdata"

_TIMESTAMP_BOUND_RE = re.compile(r"\"timestamp\"(>=|<)'([^']*)'")


class FakeStore:
    """In-memory release store for tests."""

    def __init__(self, container: str = "releases", page_size: int = 0) -> None:
        self.container = container
        self.page_size = page_size
        self.blobs: dict[str, bytes] = {}
        self.tags: dict[str, dict[str, str]] = {}
        self.failing_paths: set[str] = set()
        self.filter_error: Exception | None = None
        self.filter_calls: list[tuple[str, str | None]] = []
        self.download_calls: list[tuple[str, str]] = []

    # -- setup helpers ------------------------------------------------------

    def add_blob(self, path: str, content: bytes | str, tags: dict[str, str] | None = None) -> None:
        self.blobs[path] = content.encode() if isinstance(content, str) else content
        if tags is not None:
            self.tags[path] = dict(tags)

    def add_release(
        self,
        path: str,
        timestamp: str,
        *,
        content: bytes | str | None = None,
        environment: str = "int",
        regions: list[str] | None = None,
    ) -> None:
        """Add a tagged ``release.yaml`` whose manifest matches its tags."""
        if content is None:
            content = release_yaml(timestamp=timestamp, environment=environment, regions=regions)
        self.add_blob(path, content, tags={"timestamp": timestamp, "environment": environment})

    # -- ReleaseStore -------------------------------------------------------

    def filter_blobs(self, filter_expression: str, marker: str | None = None) -> FilterPage:
        self.filter_calls.append((filter_expression, marker))
        if self.filter_error is not None:
            raise self.filter_error

        bounds = dict(_TIMESTAMP_BOUND_RE.findall(filter_expression))
        matches = [
            BlobEntry(container_name=self.container, name=path, tags=tags)
            for path, tags in sorted(self.tags.items())
            if _within(tags.get("timestamp"), bounds.get(">="), bounds.get("<"))
        ]

        if self.page_size <= 0:
            return FilterPage(entries=matches)
        start = int(marker) if marker else 0
        end = start + self.page_size
        next_marker = str(end) if end < len(matches) else None
        return FilterPage(entries=matches[start:end], next_marker=next_marker)

    def download(self, container: str, path: str) -> bytes:
        self.download_calls.append((container, path))
        if path in self.failing_paths or container != self.container or path not in self.blobs:
            raise StorageBackendError(f"failed to download blob {container}/{path}")
        return self.blobs[path]


def _within(timestamp: str | None, lower: str | None, upper: str | None) -> bool:
    # Blobs without a timestamp tag are returned so that callers can skip them.
    if timestamp is None:
        return True
    if lower is not None and timestamp < lower:
        return False
    return not (upper is not None and timestamp >= upper)


def release_yaml(
    *,
    timestamp: str = "2025-11-05T10:00:00Z",
    environment: str = "int",
    regions: list[str] | None = None,
    source_revision: str = "abc123",
    pipeline_revision: str = "def456",
) -> str:
    """Render a minimal release manifest in the legacy field layout."""
    lines = [
        "branch: main",
        f"timestamp: {timestamp}",
        "pullRequestId: 42",
        f"upstreamRevision: {source_revision}",
        f"revision: {pipeline_revision}",
        "cloud: public",
        f"environment: {environment}",
        "serviceGroupBase: Microsoft.Azure.ARO.HCP",
        "serviceGroup: Microsoft.Azure.ARO.HCP.Global",
    ]
    if regions:
        lines.append("regionConfigs:")
        lines.extend(f"  - {region}" for region in regions)
    return "\n".join(lines) + "\n"


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def testdata() -> Path:
    return TESTDATA_DIR
