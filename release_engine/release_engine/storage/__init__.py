"""Storage backends for release artifacts."""

from __future__ import annotations

from release_engine.storage.azure_store import AzureBlobStore, account_url_for
from release_engine.storage.base import BlobEntry, FilterPage, ReleaseStore

__all__ = [
    "AzureBlobStore",
    "BlobEntry",
    "FilterPage",
    "ReleaseStore",
    "account_url_for",
]
