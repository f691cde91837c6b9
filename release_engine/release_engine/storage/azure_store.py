"""Azure Blob Storage implementation of :class:`ReleaseStore`.

Listing uses the service-level *Find Blobs by Tags* operation, which evaluates
the filter expression server-side and returns each match together with the
tags named in the expression.  Credentials come from
:class:`azure.identity.DefaultAzureCredential`.  SDK exceptions are wrapped
in :class:`StorageBackendError`; nothing is retried here.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from azure.core.exceptions import AzureError
from azure.identity import DefaultAzureCredential
from azure.storage.blob import BlobServiceClient

from release_engine.errors import StorageBackendError
from release_engine.storage.base import BlobEntry, FilterPage

if TYPE_CHECKING:
    from azure.core.credentials import TokenCredential

logger = logging.getLogger(__name__)

_BLOB_ENDPOINT_TEMPLATE = "https://{account}.blob.core.windows.net/"


def account_url_for(account_name: str) -> str:
    """Return the blob endpoint URL for a storage account name."""
    return _BLOB_ENDPOINT_TEMPLATE.format(account=account_name)


class AzureBlobStore:
    """Release store backed by an Azure storage account."""

    def __init__(self, service_client: BlobServiceClient) -> None:
        self._client = service_client

    @classmethod
    def from_account_url(
        cls,
        account_url: str,
        credential: TokenCredential | None = None,
    ) -> AzureBlobStore:
        """Create a store for *account_url*.

        When *credential* is omitted a :class:`DefaultAzureCredential` is
        created, which resolves environment, workload identity, managed
        identity, and Azure CLI credentials in turn.
        """
        try:
            if credential is None:
                credential = DefaultAzureCredential()
            client = BlobServiceClient(account_url=account_url, credential=credential)
        except (AzureError, ValueError) as exc:
            raise StorageBackendError(f"failed to create service client for {account_url}: {exc}") from exc
        return cls(client)

    def filter_blobs(self, filter_expression: str, marker: str | None = None) -> FilterPage:
        try:
            pages = self._client.find_blobs_by_tags(filter_expression).by_page(continuation_token=marker)
            page = next(pages, None)
            entries: list[BlobEntry] = []
            if page is not None:
                for blob in page:
                    entries.append(
                        BlobEntry(
                            container_name=blob.container_name or "",
                            name=blob.name,
                            tags=dict(blob.tags or {}),
                        )
                    )
            next_marker = pages.continuation_token
        except AzureError as exc:
            raise StorageBackendError(f"failed to filter blobs: {exc}") from exc

        logger.debug("Filter page returned %d blob(s), next marker: %r", len(entries), next_marker)
        return FilterPage(entries=entries, next_marker=next_marker or None)

    def download(self, container: str, path: str) -> bytes:
        try:
            blob_client = self._client.get_blob_client(container=container, blob=path)
            content: bytes = blob_client.download_blob().readall()
        except AzureError as exc:
            raise StorageBackendError(f"failed to download blob {container}/{path}: {exc}") from exc
        return content
