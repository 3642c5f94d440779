"""Interview deployment platform package: spec loading and output routes."""

from interview_platform.spec_loader import (
    PLATFORM_NAME,
    SPECS_DIR,
    bundled_specs,
    load_interview_spec,
)
from interview_platform.spec_models import (
    AgentSpec,
    InterviewSpec,
    OutputRouteSpec,
    OutputRouteType,
    OutputsSpec,
    TimeoutSpec,
    TurnSpec,
)

__all__ = [
    "load_interview_spec",
    "PLATFORM_NAME",
    "SPECS_DIR",
    "bundled_specs",
    "AgentSpec",
    "InterviewSpec",
    "OutputRouteSpec",
    "OutputRouteType",
    "OutputsSpec",
    "TimeoutSpec",
    "TurnSpec",
]
