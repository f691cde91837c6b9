"""Download and decode candidate releases into deployment records.

Error handling is asymmetric:

* a release manifest that cannot be decoded is logged and skipped, so the
  caller still receives every other deployment;
* a components manifest that cannot be fetched or extracted aborts the whole
  call.

Download failures are backend errors and always propagate.
"""

from __future__ import annotations

import logging
import posixpath
import threading

from release_engine.errors import ComponentExtractionError, ReleaseDecodeError
from release_engine.models.query import CandidateArtifact
from release_engine.models.release import Components, ReleaseDeployment, decode_release
from release_engine.query.cancellation import raise_if_cancelled
from release_engine.query.components import extract_components
from release_engine.storage.base import ReleaseStore

logger = logging.getLogger(__name__)

COMPONENTS_FILE_NAME = "config.yaml"


def components_path_for(release_path: str, region: str) -> str:
    """Return the components manifest path that sits beside *release_path*."""
    return "/".join([posixpath.dirname(release_path) or ".", region, COMPONENTS_FILE_NAME])


def download_and_parse_components(
    store: ReleaseStore,
    container: str,
    release_path: str,
    region: str,
    *,
    cancel_event: threading.Event | None = None,
) -> Components:
    """Fetch and extract the components manifest for *region*.

    Raises
    ------
    StorageBackendError
        If the manifest cannot be downloaded.
    ComponentExtractionError
        If the manifest is empty or malformed.
    """
    path = components_path_for(release_path, region)
    raise_if_cancelled(cancel_event, f"downloading {path}")
    content = store.download(container, path)
    try:
        return extract_components(content)
    except ComponentExtractionError as exc:
        raise ComponentExtractionError(f"failed to extract components from {path}: {exc}") from exc


def download_and_parse_release(
    store: ReleaseStore,
    container: str,
    release_path: str,
    *,
    include_components: bool = False,
    cancel_event: threading.Event | None = None,
) -> ReleaseDeployment:
    """Fetch one release manifest and, optionally, its components.

    Raises
    ------
    ReleaseDecodeError
        If the release manifest cannot be decoded.
    StorageBackendError
        If any download fails.
    ComponentExtractionError
        If component extraction was requested and failed.
    """
    raise_if_cancelled(cancel_event, f"downloading {release_path}")
    content = store.download(container, release_path)
    deployment = decode_release(content)

    regions = deployment.target.region_configs
    if include_components and regions:
        # Only the first region's manifest is read, even when a target lists
        # several regions.
        deployment.components = download_and_parse_components(
            store,
            container,
            release_path,
            regions[0],
            cancel_event=cancel_event,
        )

    return deployment


def resolve_deployments(
    store: ReleaseStore,
    container: str,
    candidates: list[CandidateArtifact],
    *,
    include_components: bool = False,
    cancel_event: threading.Event | None = None,
) -> list[ReleaseDeployment]:
    """Resolve *candidates* in ranked order, skipping undecodable releases."""
    deployments: list[ReleaseDeployment] = []
    for candidate in candidates:
        try:
            deployment = download_and_parse_release(
                store,
                container,
                candidate.path,
                include_components=include_components,
                cancel_event=cancel_event,
            )
        except ReleaseDecodeError as exc:
            logger.warning("Skipping release %s: %s", candidate.path, exc)
            continue
        deployments.append(deployment)
    return deployments
