"""
Interview Engine HTTP Service

Hosts interview sessions behind a small HTTP API. The browser client plays
questions (pre-rendered audio or live narration), streams speech-to-text
fragments back, and forwards webcam proctoring observations; the engine does
pause detection, evaluation, routing and question selection.

Endpoints:
    POST /sessions                    - Create and prepare a session (consent)
    POST /sessions/{id}/begin         - Candidate is ready; ask the first question
    POST /sessions/{id}/transcript    - Receive an interim/final transcript fragment
    POST /sessions/{id}/mute          - Toggle microphone mute (suspends auto-submit)
    POST /sessions/{id}/submit        - Submit the current answer manually
    POST /sessions/{id}/proctoring    - Receive a proctoring observation
    POST /sessions/{id}/end           - End the session (candidate left)
    GET  /sessions/{id}               - Session status
    GET  /sessions/{id}/events        - Engine events for the session
    GET  /health                      - Health check

Internal binding: configured by SERVICE_HOST/SERVICE_PORT (default 0.0.0.0:8780)
"""

from __future__ import annotations

import logging
import os
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, AsyncIterator, Callable, Optional, TypedDict

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from interview_engine import (
    ConsentRequiredError,
    InterviewLlmAgent,
    InterviewSession,
    JsonSessionStore,
    OpenAiNarrator,
    ProctoringMonitor,
    Question,
    QuestionCategory,
    SessionEventPublisher,
    Screen,
    SessionOutcome,
    SessionRecord,
    SessionSettings,
    SessionStartError,
    SessionStateError,
    get_publisher,
)
from interview_engine.models import utc_timestamp
from interview_engine.session import CompletionCallback
from interview_platform import PLATFORM_NAME, InterviewSpec, load_interview_spec
from interview_platform.routes import RouteOrchestrator, build_route_orchestrator
from variants import VariantPlugin, load_variant


logger = logging.getLogger(__name__)

SERVICE_NAME = "Interview Engine Service"
SERVICE_VERSION = "1.0.0"
DEFAULT_FINISHED_SESSION_LIMIT = 50


# =============================================================================
# Configuration
# =============================================================================

@dataclass(frozen=True)
class ServiceConfig:
    """Runtime config for the HTTP service."""

    interview_spec_path: str
    host: str
    port: int
    output_dir: Path


def load_service_config() -> ServiceConfig:
    """Load runtime config from environment with strict validation."""
    spec_path = (os.environ.get("INTERVIEW_SPEC_PATH") or "").strip()
    if not spec_path:
        raise RuntimeError(
            "INTERVIEW_SPEC_PATH is required. Provide an interview spec path at runtime."
        )

    host = (os.environ.get("SERVICE_HOST", "0.0.0.0") or "").strip()
    if not host:
        raise RuntimeError("SERVICE_HOST resolved to empty value.")

    port_raw = (os.environ.get("SERVICE_PORT", "8780") or "").strip()
    try:
        port = int(port_raw)
    except ValueError as exc:
        raise RuntimeError(f"SERVICE_PORT must be an integer. Got: {port_raw}") from exc
    if port < 1 or port > 65535:
        raise RuntimeError(f"SERVICE_PORT must be in range 1-65535. Got: {port}.")

    output_override = os.environ.get("SESSION_OUTPUT_DIR")
    output_dir = (
        Path(output_override).expanduser()
        if output_override
        else Path(__file__).parent / "output"
    )

    return ServiceConfig(
        interview_spec_path=spec_path,
        host=host,
        port=port,
        output_dir=output_dir,
    )


def settings_from_spec(spec: InterviewSpec) -> SessionSettings:
    return SessionSettings(
        pause_window_seconds=spec.turn.pause_window_seconds,
        chunk_size=spec.turn.chunk_size,
        duration_minutes=spec.duration_minutes,
        consent_required=spec.consent_required,
        collaborator_timeout=spec.timeouts.collaborator_seconds,
        narration_timeout=spec.timeouts.narration_seconds,
        playback_timeout=spec.timeouts.playback_seconds,
        chunk_wait_seconds=spec.timeouts.chunk_wait_seconds,
        chunk_wait_attempts=spec.timeouts.chunk_wait_attempts,
    )


# =============================================================================
# Request Models
# =============================================================================

class QuestionIn(BaseModel):
    """Caller-supplied main question."""

    id: Optional[str] = None
    text: str = Field(..., min_length=1)
    category: QuestionCategory = QuestionCategory.TECHNICAL
    ideal_answer: Optional[str] = None
    topic_id: Optional[str] = None


class SessionCreateRequest(BaseModel):
    candidate_name: str = Field(default="Candidate", min_length=1)
    consent: bool = Field(..., description="Candidate consent to record and evaluate")
    questions: Optional[list[QuestionIn]] = Field(
        default=None,
        description="Explicit main questions; generated when omitted",
    )
    use_sample_questions: bool = Field(default=False)
    context: dict[str, Any] = Field(default_factory=dict, description="Role / resume context")


class TranscriptRequest(BaseModel):
    text: str
    is_final: bool = True


class MuteRequest(BaseModel):
    muted: bool


class ProctoringRequest(BaseModel):
    mood: Optional[str] = None
    gesture: Optional[str] = None
    objects: list[str] = Field(default_factory=list)
    violations: list[str] = Field(default_factory=list)


class EndRequest(BaseModel):
    outcome: SessionOutcome = SessionOutcome.CANDIDATE_LEFT


# =============================================================================
# Response Models
# =============================================================================

class BaseResponse(BaseModel):
    ok: bool = Field(..., description="Whether the operation succeeded")
    message: str | None = Field(default=None, description="Optional status message")


class ErrorResponse(BaseModel):
    ok: bool = Field(default=False)
    error: str = Field(..., description="Error description")
    error_code: str | None = Field(default=None, description="Machine-readable error code")


class SessionStatusResponse(BaseResponse):
    session: dict[str, Any]


class SessionCreateResponse(SessionStatusResponse):
    session_id: str
    question_count: int


class SubmitResponse(SessionStatusResponse):
    submitted: bool


class ProctoringResponse(SessionStatusResponse):
    violation_count: int


class EventsResponse(BaseModel):
    session_id: str
    events: list[dict[str, Any]]


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    timestamp: str
    platform: str
    interview_id: str
    interview_type: str
    active_sessions: int


# =============================================================================
# Application State
# =============================================================================

class AppStats(TypedDict):
    sessions_started: int
    sessions_completed: int
    route_dispatch_total: int
    route_dispatch_failures: int


SessionFactory = Callable[
    [str, InterviewSpec, SessionCreateRequest, "AppState", CompletionCallback],
    InterviewSession,
]


class AppState(TypedDict):
    """Type-safe application state managed by lifespan."""

    spec: InterviewSpec
    variant: VariantPlugin
    sessions: dict[str, InterviewSession]
    route_orchestrator: RouteOrchestrator
    publisher: SessionEventPublisher
    output_dir: Path
    stats: AppStats
    session_factory: SessionFactory
    finished_sessions: list[str]
    finished_session_limit: int


# =============================================================================
# Custom Exceptions
# =============================================================================

class InterviewServiceError(Exception):
    """Base exception for interview service errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


class SessionNotFoundError(InterviewServiceError):
    def __init__(self, session_id: str) -> None:
        super().__init__(
            message=f"Session '{session_id}' not found.",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="SESSION_NOT_FOUND",
        )


class InvalidSessionStateError(InterviewServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="INVALID_SESSION_STATE",
        )


class ConsentMissingError(InterviewServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="CONSENT_REQUIRED",
        )


class QuestionsUnavailableError(InterviewServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="QUESTIONS_UNAVAILABLE",
        )


# =============================================================================
# Dependencies
# =============================================================================

def get_app_state(request: Request) -> AppState:
    """
    Dependency to retrieve application state from request.

    Raises:
        RuntimeError: If state is not properly initialized.
    """
    state = getattr(request, "state", None)
    if state is None:
        raise RuntimeError("Application state not initialized")
    return AppState(
        spec=state.spec,
        variant=state.variant,
        sessions=state.sessions,
        route_orchestrator=state.route_orchestrator,
        publisher=state.publisher,
        output_dir=state.output_dir,
        stats=state.stats,
        session_factory=state.session_factory,
    )


AppStateDep = Annotated[AppState, Depends(get_app_state)]


def _get_session(state: AppState, session_id: str) -> InterviewSession:
    session = state["sessions"].get(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return session


# =============================================================================
# Session construction
# =============================================================================

def build_default_session(
    session_id: str,
    spec: InterviewSpec,
    request: SessionCreateRequest,
    state: AppState,
    on_complete: CompletionCallback,
) -> InterviewSession:
    """Wire a session with the LLM agent, OpenAI narration and a JSON store."""
    record = SessionRecord(
        session_id=session_id,
        interview_id=spec.interview_id,
        interview_type=spec.interview_type,
        candidate_name=request.candidate_name,
    )
    store = JsonSessionStore(record, state["output_dir"])
    agent = InterviewLlmAgent(
        spec.interview_type,
        model=spec.agent.model,
        reasoning_effort=spec.agent.reasoning_effort,
    )
    narrator = OpenAiNarrator(state["output_dir"] / "audio" / session_id)
    return InterviewSession(
        session_id,
        spec.interview_type,
        store=store,
        evaluator=agent,
        followup_generator=agent,
        question_generator=agent,
        depth_generator=agent if spec.depth_enabled else None,
        narrator=narrator,
        proctoring=ProctoringMonitor(enabled=spec.proctoring_enabled),
        depth_enabled=spec.depth_enabled,
        settings=settings_from_spec(spec),
        publisher=state["publisher"],
        on_complete=on_complete,
    )


def _questions_from_request(request: SessionCreateRequest, variant: VariantPlugin) -> Optional[list[Question]]:
    if request.questions:
        return [
            Question(
                id=q.id or f"q_{index}",
                text=q.text,
                category=q.category,
                ideal_answer=q.ideal_answer,
                topic_id=q.topic_id,
            )
            for index, q in enumerate(request.questions, start=1)
        ]
    if request.use_sample_questions:
        return variant.sample_main_questions()
    return None


async def _dispatch_summary(state: AppState, session: InterviewSession) -> None:
    """Send a finished session's summary to every configured route."""
    payload = session.store.summary()
    results = await state["route_orchestrator"].dispatch_all(payload)
    state["stats"]["sessions_completed"] += 1
    state["stats"]["route_dispatch_total"] += len(results)
    state["stats"]["route_dispatch_failures"] += sum(1 for r in results if not r.ok)
    await _retire_finished(state, session.session_id)


async def _retire_finished(state: AppState, session_id: str) -> None:
    """Keep only the most recently finished sessions (and their events) around."""
    finished = state["finished_sessions"]
    if session_id not in finished:
        finished.append(session_id)
    while len(finished) > state["finished_session_limit"]:
        stale = finished.pop(0)
        state["sessions"].pop(stale, None)
        await state["publisher"].forget_session(stale)
        logger.info("Dropped finished session %s", stale)


# =============================================================================
# Exception Handlers
# =============================================================================

async def interview_service_error_handler(
    request: Request, exc: InterviewServiceError
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            ok=False,
            error=exc.message,
            error_code=exc.error_code,
        ).model_dump(),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without leaking internals."""
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            ok=False,
            error="Internal server error",
            error_code="INTERNAL_ERROR",
        ).model_dump(),
    )


# =============================================================================
# App factory
# =============================================================================

def create_app(
    spec: InterviewSpec | None = None,
    *,
    session_factory: SessionFactory | None = None,
    publisher: SessionEventPublisher | None = None,
    output_dir: Path | None = None,
    finished_session_limit: int = DEFAULT_FINISHED_SESSION_LIMIT,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        spec: Interview spec; loaded from INTERVIEW_SPEC_PATH when None.
        session_factory: Builds InterviewSession objects (tests inject fakes).
        publisher: Event publisher; defaults to the global one.
        output_dir: Session record directory; defaults to SESSION_OUTPUT_DIR or ./output.
        finished_session_limit: Completed sessions kept queryable before the
            oldest are dropped.

    Returns:
        Configured FastAPI app.
    """
    if spec is None:
        spec, spec_path = load_interview_spec()
        logger.info("Interview spec path: %s", spec_path)
    active_spec = spec
    variant = load_variant(active_spec.interview_type.value)
    event_publisher = publisher or get_publisher()
    routes = build_route_orchestrator(active_spec, publisher=event_publisher)
    resolved_output_dir = output_dir or Path(
        os.environ.get("SESSION_OUTPUT_DIR") or Path(__file__).parent / "output"
    ).expanduser()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[dict[str, Any]]:
        logger.info("Starting %s", SERVICE_NAME)
        logger.info(
            "Runtime: platform=%s interview=%s type=%s depth=%s proctoring=%s",
            PLATFORM_NAME,
            active_spec.interview_id,
            active_spec.interview_type.value,
            active_spec.depth_enabled,
            active_spec.proctoring_enabled,
        )
        resolved_output_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Session output directory: %s", resolved_output_dir)
        logger.info("Enabled output routes: %d", routes.route_count)

        sessions: dict[str, InterviewSession] = {}
        state = {
            "spec": active_spec,
            "variant": variant,
            "sessions": sessions,
            "route_orchestrator": routes,
            "publisher": event_publisher,
            "output_dir": resolved_output_dir,
            "stats": AppStats(
                sessions_started=0,
                sessions_completed=0,
                route_dispatch_total=0,
                route_dispatch_failures=0,
            ),
            "session_factory": session_factory or build_default_session,
            "finished_sessions": [],
            "finished_session_limit": finished_session_limit,
        }

        yield state

        logger.info("Shutting down; closing %d sessions", len(sessions))
        for session in list(sessions.values()):
            await session.terminate(SessionOutcome.CANDIDATE_LEFT)

    app = FastAPI(
        title=f"{SERVICE_NAME} ({active_spec.interview_id})",
        version=SERVICE_VERSION,
        description="Runs automated voice interviews with priority question queues",
        lifespan=lifespan,
    )
    app.add_exception_handler(InterviewServiceError, interview_service_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # =========================================================================
    # Endpoints
    # =========================================================================

    @app.post("/sessions", response_model=SessionCreateResponse)
    async def create_session(
        request: SessionCreateRequest,
        state: AppStateDep,
    ) -> SessionCreateResponse:
        """Create a session, load its questions and preprocess the first chunk."""
        session_id = f"sess_{uuid.uuid4().hex[:12]}"
        async def _on_complete(finished: InterviewSession) -> None:
            await _dispatch_summary(state, finished)

        session = state["session_factory"](
            session_id, state["spec"], request, state, _on_complete
        )

        questions = _questions_from_request(request, state["variant"])
        context = state["variant"].build_question_context(
            {"candidate_name": request.candidate_name, **request.context}
        )
        try:
            await session.start(request.consent, questions=questions, context=context)
        except ConsentRequiredError as exc:
            raise ConsentMissingError(str(exc)) from exc
        except SessionStartError as exc:
            raise QuestionsUnavailableError(str(exc)) from exc

        state["sessions"][session_id] = session
        state["stats"]["sessions_started"] += 1
        logger.info("Created session %s for %s", session_id, request.candidate_name)
        return SessionCreateResponse(
            ok=True,
            message="Session ready",
            session_id=session_id,
            question_count=session.orchestrator.stats().q1_size,
            session=session.status(),
        )

    @app.post("/sessions/{session_id}/begin", response_model=SessionStatusResponse)
    async def begin_session(session_id: str, state: AppStateDep) -> SessionStatusResponse:
        session = _get_session(state, session_id)
        try:
            await session.begin()
        except SessionStateError as exc:
            raise InvalidSessionStateError(str(exc)) from exc
        return SessionStatusResponse(ok=True, message="Interview started", session=session.status())

    @app.post("/sessions/{session_id}/transcript", response_model=SessionStatusResponse)
    async def receive_transcript(
        session_id: str,
        request: TranscriptRequest,
        state: AppStateDep,
    ) -> SessionStatusResponse:
        session = _get_session(state, session_id)
        session.on_transcript(request.text, is_final=request.is_final)
        return SessionStatusResponse(ok=True, session=session.status())

    @app.post("/sessions/{session_id}/mute", response_model=SessionStatusResponse)
    async def set_mute(
        session_id: str,
        request: MuteRequest,
        state: AppStateDep,
    ) -> SessionStatusResponse:
        session = _get_session(state, session_id)
        session.set_muted(request.muted)
        return SessionStatusResponse(
            ok=True,
            message="Muted" if request.muted else "Unmuted",
            session=session.status(),
        )

    @app.post("/sessions/{session_id}/submit", response_model=SubmitResponse)
    async def submit_answer(session_id: str, state: AppStateDep) -> SubmitResponse:
        session = _get_session(state, session_id)
        submitted = await session.submit()
        return SubmitResponse(
            ok=True,
            message=None if submitted else "Nothing to submit",
            submitted=submitted,
            session=session.status(),
        )

    @app.post("/sessions/{session_id}/proctoring", response_model=ProctoringResponse)
    async def receive_proctoring(
        session_id: str,
        request: ProctoringRequest,
        state: AppStateDep,
    ) -> ProctoringResponse:
        session = _get_session(state, session_id)
        count = await session.report_proctoring(
            mood=request.mood,
            gesture=request.gesture,
            objects=request.objects,
            violations=request.violations,
        )
        return ProctoringResponse(ok=True, violation_count=count, session=session.status())

    @app.post("/sessions/{session_id}/end", response_model=SessionStatusResponse)
    async def end_session(
        session_id: str,
        request: EndRequest,
        state: AppStateDep,
    ) -> SessionStatusResponse:
        session = _get_session(state, session_id)
        await session.terminate(request.outcome)
        return SessionStatusResponse(ok=True, message="Session ended", session=session.status())

    @app.get("/sessions/{session_id}", response_model=SessionStatusResponse)
    async def get_session(session_id: str, state: AppStateDep) -> SessionStatusResponse:
        session = _get_session(state, session_id)
        return SessionStatusResponse(ok=True, session=session.status())

    @app.get("/sessions/{session_id}/events", response_model=EventsResponse)
    async def get_events(session_id: str, state: AppStateDep) -> EventsResponse:
        _get_session(state, session_id)
        history = await state["publisher"].get_history(session_id)
        return EventsResponse(
            session_id=session_id,
            events=[event.to_dict() for event in history],
        )

    @app.get("/health", response_model=HealthResponse)
    async def health(state: AppStateDep) -> HealthResponse:
        active = sum(1 for s in state["sessions"].values() if s.screen != Screen.COMPLETE)
        return HealthResponse(
            status="healthy",
            service=SERVICE_NAME,
            version=SERVICE_VERSION,
            timestamp=utc_timestamp(),
            platform=PLATFORM_NAME,
            interview_id=state["spec"].interview_id,
            interview_type=state["spec"].interview_type.value,
            active_sessions=active,
        )

    return app


__all__ = [
    "InterviewServiceError",
    "ServiceConfig",
    "create_app",
    "load_service_config",
    "settings_from_spec",
]
