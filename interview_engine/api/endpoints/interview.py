"""
Linear interview API endpoints

Handles template-based interview sessions:
- Managing templates
- Starting or resuming sessions
- Serving questions and accepting answers
- Completing and abandoning
- Integrity events and results
"""

from fastapi import APIRouter, Header, HTTPException
from pydantic import BaseModel

from interview_engine.api.dependencies import get_linear_orchestrator
from interview_engine.api.errors import to_http_exception
from interview_engine.core.errors import InterviewEngineError
from interview_engine.core.linear_orchestrator import (
    LinearSessionResult,
    NextQuestion,
    SubmitResult,
)
from interview_engine.models.interview import (
    IntegrityEventType,
    InterviewTemplate,
    LinearSession,
)

router = APIRouter()


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class TemplateSummary(BaseModel):
    """Template listing entry (no questions)."""
    id: str
    name: str
    role: str
    difficulty: str
    question_count: int
    time_limit_minutes: int
    passing_score_percent: int


class StartRequest(BaseModel):
    """Request model for starting an interview."""
    template_id: str


class SubmitAnswerRequest(BaseModel):
    """Request model for submitting an answer."""
    question_id: str
    submitted_text: str | None = None
    selected_option_ids: list[str] = []
    programming_language: str | None = None
    time_taken_seconds: int | None = None


class IntegrityEventRequest(BaseModel):
    """Integrity signal reported by the client."""
    event_type: IntegrityEventType


# ============================================================================
# TEMPLATES
# ============================================================================

@router.get("/templates", response_model=list[TemplateSummary])
async def list_templates() -> list[TemplateSummary]:
    """List available interview templates."""
    templates = await get_linear_orchestrator().list_templates()
    return [
        TemplateSummary(
            id=t.id,
            name=t.name,
            role=t.role,
            difficulty=t.difficulty,
            question_count=len(t.questions),
            time_limit_minutes=t.time_limit_minutes,
            passing_score_percent=t.passing_score_percent,
        )
        for t in templates
    ]


@router.post("/templates", response_model=TemplateSummary)
async def create_template(template: InterviewTemplate) -> TemplateSummary:
    """Register an interview template."""
    if not template.questions:
        raise HTTPException(status_code=400, detail="Template needs at least one question")

    template = await get_linear_orchestrator().create_template(template)
    return TemplateSummary(
        id=template.id,
        name=template.name,
        role=template.role,
        difficulty=template.difficulty,
        question_count=len(template.questions),
        time_limit_minutes=template.time_limit_minutes,
        passing_score_percent=template.passing_score_percent,
    )


# ============================================================================
# SESSIONS
# ============================================================================

@router.post("/start", response_model=LinearSession)
async def start_interview(
    request: StartRequest,
    candidate_id: str = Header(..., alias="X-Candidate-Id"),
) -> LinearSession:
    """
    Start an interview on a template.

    An in-progress session on the same template is resumed instead.
    """
    try:
        return await get_linear_orchestrator().start_session(candidate_id, request.template_id)
    except InterviewEngineError as e:
        raise to_http_exception(e)


@router.get("/sessions", response_model=list[LinearSession])
async def list_sessions(
    candidate_id: str = Header(..., alias="X-Candidate-Id"),
) -> list[LinearSession]:
    """List the candidate's interview sessions, newest first."""
    return await get_linear_orchestrator().list_sessions(candidate_id)


@router.get("/{session_id}/next", response_model=NextQuestion)
async def get_next_question(
    session_id: str,
    candidate_id: str = Header(..., alias="X-Candidate-Id"),
) -> NextQuestion:
    """Get the next question to answer."""
    try:
        return await get_linear_orchestrator().get_next_question(session_id, candidate_id)
    except InterviewEngineError as e:
        raise to_http_exception(e)


@router.post("/{session_id}/answer", response_model=SubmitResult)
async def submit_answer(
    session_id: str,
    request: SubmitAnswerRequest,
    candidate_id: str = Header(..., alias="X-Candidate-Id"),
) -> SubmitResult:
    """
    Submit an answer.

    Returns immediately; the answer is graded in the background.
    """
    try:
        return await get_linear_orchestrator().submit_answer(
            session_id=session_id,
            candidate_id=candidate_id,
            question_id=request.question_id,
            submitted_text=request.submitted_text,
            selected_option_ids=request.selected_option_ids,
            programming_language=request.programming_language,
            time_taken_seconds=request.time_taken_seconds,
        )
    except InterviewEngineError as e:
        raise to_http_exception(e)


@router.post("/{session_id}/complete", response_model=LinearSession)
async def complete_interview(
    session_id: str,
    candidate_id: str = Header(..., alias="X-Candidate-Id"),
) -> LinearSession:
    """Finish the interview and request the report."""
    try:
        return await get_linear_orchestrator().complete_session(session_id, candidate_id)
    except InterviewEngineError as e:
        raise to_http_exception(e)


@router.post("/{session_id}/abandon", response_model=LinearSession)
async def abandon_interview(
    session_id: str,
    candidate_id: str = Header(..., alias="X-Candidate-Id"),
) -> LinearSession:
    try:
        return await get_linear_orchestrator().abandon_session(session_id, candidate_id)
    except InterviewEngineError as e:
        raise to_http_exception(e)


@router.post("/{session_id}/integrity", response_model=LinearSession)
async def record_integrity_event(
    session_id: str,
    request: IntegrityEventRequest,
    candidate_id: str = Header(..., alias="X-Candidate-Id"),
) -> LinearSession:
    """Record a client-side integrity signal."""
    try:
        return await get_linear_orchestrator().record_integrity_event(
            session_id, candidate_id, request.event_type
        )
    except InterviewEngineError as e:
        raise to_http_exception(e)


@router.get("/{session_id}/result", response_model=LinearSessionResult)
async def get_result(
    session_id: str,
    candidate_id: str = Header(..., alias="X-Candidate-Id"),
) -> LinearSessionResult:
    """Get the session with its graded answers and score summary."""
    try:
        return await get_linear_orchestrator().get_session_result(session_id, candidate_id)
    except InterviewEngineError as e:
        raise to_http_exception(e)
