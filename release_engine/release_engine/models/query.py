"""Value objects shared by the query pipeline."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TimeWindow(BaseModel):
    """A half-open time range: inclusive of *since*, exclusive of *until*."""

    model_config = ConfigDict(frozen=True)

    since: datetime = Field(..., description="Inclusive lower bound.")
    until: datetime = Field(..., description="Exclusive upper bound.")

    @model_validator(mode="after")
    def validate_since_before_until(self) -> TimeWindow:
        """Ensure *since* does not come after *until*."""
        if self.since > self.until:
            raise ValueError(f"TimeWindow since ({self.since}) must be <= until ({self.until}).")
        return self


class CandidateArtifact(BaseModel):
    """A listed release blob that matched the filter, before download."""

    container_name: str
    path: str
    tags: dict[str, str] = Field(default_factory=dict)
    timestamp: datetime
