"""Domain models for release deployment queries."""

from release_engine.models.query import CandidateArtifact, TimeWindow
from release_engine.models.release import (
    Components,
    DeploymentTarget,
    ReleaseDeployment,
    ReleaseId,
    ReleaseMetadata,
    decode_release,
)

__all__ = [
    "CandidateArtifact",
    "Components",
    "DeploymentTarget",
    "ReleaseDeployment",
    "ReleaseId",
    "ReleaseMetadata",
    "TimeWindow",
    "decode_release",
]
