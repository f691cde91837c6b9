"""Release deployment models and release manifest decoding.

A *release manifest* (``release.yaml``) describes one deployment event.  The
file layout predates the current model: the identity of a release is stored
as ``upstreamRevision`` (the source revision) and ``revision`` (the pipeline
revision).  :func:`decode_release` maps both the legacy and the canonical
field names onto :class:`ReleaseId`.
"""

from __future__ import annotations

from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from release_engine.errors import ReleaseDecodeError

Components = dict[str, str]


class _CamelModel(BaseModel):
    """Base model that serialises with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReleaseId(_CamelModel):
    """First-class identifier of a release."""

    source_revision: str = Field(default="", description="Revision of the source repository.")
    pipeline_revision: str = Field(default="", description="Revision of the pipeline definition.")

    def __str__(self) -> str:
        return f"{self.source_revision}-{self.pipeline_revision}"


class ReleaseMetadata(_CamelModel):
    """How and when a release was created."""

    release_id: ReleaseId = Field(default_factory=ReleaseId)
    branch: str = ""
    timestamp: str = Field(default="", description="Creation time as an RFC 3339 string.")
    pull_request_id: int = 0
    service_group: str = ""
    service_group_base: str = ""


class DeploymentTarget(_CamelModel):
    """Where a release is being deployed."""

    cloud: str = ""
    environment: str = ""
    region_configs: list[str] = Field(default_factory=list)


class ReleaseDeployment(_CamelModel):
    """A release deployed to a specific target.

    ``components`` is always a dict; it stays empty unless component
    extraction was requested and succeeded.
    """

    metadata: ReleaseMetadata = Field(default_factory=ReleaseMetadata)
    target: DeploymentTarget = Field(default_factory=DeploymentTarget)
    components: Components = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Manifest decoding
# ---------------------------------------------------------------------------


class _ReleaseFile(BaseModel):
    """On-disk layout of ``release.yaml``."""

    model_config = ConfigDict(extra="ignore")

    branch: str = ""
    timestamp: str = ""
    pull_request_id: int = Field(default=0, alias="pullRequestId")
    source_revision: str = Field(
        default="",
        validation_alias=AliasChoices("sourceRevision", "upstreamRevision"),
    )
    pipeline_revision: str = Field(
        default="",
        validation_alias=AliasChoices("pipelineRevision", "revision"),
    )
    cloud: str = ""
    environment: str = ""
    region_configs: list[str] | None = Field(default=None, alias="regionConfigs")
    service_group_base: str = Field(default="", alias="serviceGroupBase")
    service_group: str = Field(default="", alias="serviceGroup")

    @field_validator("pull_request_id", mode="before")
    @classmethod
    def _null_pull_request(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator(
        "branch",
        "timestamp",
        "source_revision",
        "pipeline_revision",
        "cloud",
        "environment",
        "service_group_base",
        "service_group",
        mode="before",
    )
    @classmethod
    def _null_string(cls, v: Any) -> Any:
        return "" if v is None else v


_LITERAL_TAGS = frozenset(
    {
        "tag:yaml.org,2002:bool",
        "tag:yaml.org,2002:int",
        "tag:yaml.org,2002:float",
        "tag:yaml.org,2002:timestamp",
    }
)


class _LiteralScalarLoader(yaml.SafeLoader):  # type: ignore[misc]
    """Safe loader that keeps numbers, booleans and timestamps as their source text."""


_LiteralScalarLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in _LITERAL_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def decode_release(content: bytes | str) -> ReleaseDeployment:
    """Decode a ``release.yaml`` document into a :class:`ReleaseDeployment`.

    Raises
    ------
    ReleaseDecodeError
        If the document is not valid YAML, is not a mapping, or holds values
        of the wrong shape.
    """
    try:
        data = yaml.load(content, Loader=_LiteralScalarLoader)  # noqa: S506
    except yaml.YAMLError as exc:
        raise ReleaseDecodeError(f"failed to parse release YAML: {exc}") from exc

    if not isinstance(data, dict):
        raise ReleaseDecodeError(f"release document must be a mapping, got {type(data).__name__}")

    try:
        release_file = _ReleaseFile.model_validate(data)
    except ValidationError as exc:
        raise ReleaseDecodeError(f"invalid release document: {exc}") from exc

    return ReleaseDeployment(
        metadata=ReleaseMetadata(
            release_id=ReleaseId(
                source_revision=release_file.source_revision,
                pipeline_revision=release_file.pipeline_revision,
            ),
            branch=release_file.branch,
            timestamp=release_file.timestamp,
            pull_request_id=release_file.pull_request_id,
            service_group=release_file.service_group,
            service_group_base=release_file.service_group_base,
        ),
        target=DeploymentTarget(
            cloud=release_file.cloud,
            environment=release_file.environment,
            region_configs=release_file.region_configs or [],
        ),
        components={},
    )
