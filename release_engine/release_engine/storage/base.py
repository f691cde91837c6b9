"""Storage backend protocol for release artifacts.

The query pipeline depends only on :class:`ReleaseStore`; the Azure-backed
implementation lives in :mod:`release_engine.storage.azure_store` and tests
substitute an in-memory store.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field


class BlobEntry(BaseModel):
    """One raw entry returned by a tag-filtered listing."""

    container_name: str
    name: str
    tags: dict[str, str] = Field(default_factory=dict)


class FilterPage(BaseModel):
    """A single page of a tag-filtered listing."""

    entries: list[BlobEntry] = Field(default_factory=list)
    next_marker: str | None = Field(
        default=None,
        description="Continuation marker for the next page; empty or None when exhausted.",
    )


@runtime_checkable
class ReleaseStore(Protocol):
    """Read-only access to tagged release blobs."""

    def filter_blobs(self, filter_expression: str, marker: str | None = None) -> FilterPage:
        """Return one page of blobs matching *filter_expression*.

        Args:
            filter_expression: Server-evaluated tag filter.
            marker: Continuation marker from the previous page, or ``None``
                for the first page.

        Raises:
            StorageBackendError: If the listing request fails.
        """
        ...

    def download(self, container: str, path: str) -> bytes:
        """Return the full content of the blob at *path* in *container*.

        Raises:
            StorageBackendError: If the download fails.
        """
        ...
