"""Interview deployment configuration models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, model_validator

from interview_engine.models import InterviewType


class OutputRouteType(str, Enum):
    """Supported output route types."""

    EVENT_STREAM = "event_stream"
    WEBHOOK = "webhook"


class TurnSpec(BaseModel):
    """Turn-taking timing."""

    pause_window_seconds: float = Field(default=3.0, gt=0)
    chunk_size: int = Field(default=5, ge=1)

    model_config = {"extra": "forbid"}


class TimeoutSpec(BaseModel):
    """Bounded waits on collaborators and preprocessing."""

    collaborator_seconds: float = Field(default=30.0, gt=0)
    narration_seconds: float = Field(default=20.0, gt=0)
    playback_seconds: float = Field(default=120.0, gt=0)
    chunk_wait_seconds: float = Field(default=1.0, gt=0)
    chunk_wait_attempts: int = Field(default=60, ge=1)

    model_config = {"extra": "forbid"}


class AgentSpec(BaseModel):
    """LLM parameterization controls."""

    model: str | None = None
    reasoning_effort: str | None = None

    model_config = {"extra": "forbid"}


class OutputRouteSpec(BaseModel):
    """Single route declaration in the interview spec."""

    id: str = Field(..., min_length=1)
    type: OutputRouteType
    enabled: bool = True
    url: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    timeout_seconds: float = 5.0

    @model_validator(mode="after")
    def validate_route(self) -> "OutputRouteSpec":
        if self.type == OutputRouteType.WEBHOOK and self.enabled and not self.url:
            raise ValueError("outputs.routes[].url is required for enabled webhook routes")
        return self

    model_config = {"extra": "forbid"}


class OutputsSpec(BaseModel):
    """Output routing configuration."""

    routes: tuple[OutputRouteSpec, ...] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_route_ids(self) -> "OutputsSpec":
        ids = [route.id for route in self.routes]
        if len(ids) != len(set(ids)):
            raise ValueError("outputs.routes must have unique ids")
        return self

    model_config = {"extra": "forbid"}


class InterviewSpec(BaseModel):
    """Canonical configuration for one interview deployment."""

    interview_id: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1)
    interview_type: InterviewType
    duration_minutes: float | None = Field(default=None, gt=0)
    consent_required: bool = True
    depth_enabled: bool = True
    proctoring_enabled: bool = False
    turn: TurnSpec = Field(default_factory=TurnSpec)
    timeouts: TimeoutSpec = Field(default_factory=TimeoutSpec)
    agent: AgentSpec = Field(default_factory=AgentSpec)
    outputs: OutputsSpec

    @model_validator(mode="after")
    def validate_depth_tier(self) -> "InterviewSpec":
        if self.depth_enabled and self.interview_type != InterviewType.TECHNICAL:
            raise ValueError("depth_enabled is only supported for technical interviews")
        return self

    model_config = {"extra": "forbid"}
