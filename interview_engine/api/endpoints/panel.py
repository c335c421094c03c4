"""
Panel interview API endpoints

Handles the panel interview lifecycle:
- Creating sessions
- Fetching the current question
- Submitting answers and follow-up answers
- Skipping questions and abandoning
- Retrieving the final report
"""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Header
from pydantic import BaseModel, Field

from interview_engine.api.dependencies import get_panel_orchestrator
from interview_engine.api.errors import to_http_exception
from interview_engine.core.errors import InterviewEngineError
from interview_engine.models.panel import PanelPhase, PanelResponse, PanelStatus

router = APIRouter()


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class CreatePanelRequest(BaseModel):
    """Request model for creating a panel interview."""
    track: str = Field(..., min_length=1)
    experience_years: str = Field(..., min_length=1)
    target_role: str = Field(..., min_length=1)
    difficulty: Literal["Normal", "Hard"] = "Normal"
    candidate_email: str | None = None
    candidate_name: str | None = None


class PanelAnswerRequest(BaseModel):
    """Request model for answering the current question or its follow-up."""
    question_id: str
    answer: str
    language: str | None = None
    is_follow_up: bool = False


class PanelSessionSummary(BaseModel):
    """One row of the candidate's panel interview history."""
    id: str
    track: str
    target_role: str
    difficulty: str
    phase: PanelPhase
    status: PanelStatus
    created_at: datetime
    completed_at: datetime | None = None
    overall_score: float | None = None


# ============================================================================
# REST ENDPOINTS
# ============================================================================

@router.post("/sessions", response_model=PanelResponse)
async def create_panel_interview(
    request: CreatePanelRequest,
    candidate_id: str = Header(..., alias="X-Candidate-Id"),
) -> PanelResponse:
    """
    Create a new panel interview.

    The session starts in the warmup phase; fetch the current question to
    get the first one.
    """
    orchestrator = get_panel_orchestrator()
    session = await orchestrator.create_session(
        candidate_id=candidate_id,
        track=request.track,
        experience_years=request.experience_years,
        target_role=request.target_role,
        difficulty=request.difficulty,
        candidate_email=request.candidate_email,
        candidate_name=request.candidate_name,
    )
    return orchestrator.build_response(session)


@router.get("/sessions", response_model=list[PanelSessionSummary])
async def list_panel_interviews(
    candidate_id: str = Header(..., alias="X-Candidate-Id"),
) -> list[PanelSessionSummary]:
    """List the candidate's panel interviews, newest first."""
    sessions = await get_panel_orchestrator().list_sessions(candidate_id)
    return [
        PanelSessionSummary(
            id=s.id,
            track=s.track,
            target_role=s.target_role,
            difficulty=s.difficulty,
            phase=s.phase,
            status=s.status,
            created_at=s.created_at,
            completed_at=s.completed_at,
            overall_score=s.final_report.overall_score if s.final_report else None,
        )
        for s in sessions
    ]


@router.get("/sessions/{session_id}/question", response_model=PanelResponse)
async def get_current_question(
    session_id: str,
    candidate_id: str = Header(..., alias="X-Candidate-Id"),
) -> PanelResponse:
    """Get the current question, generating it if it has not been asked yet."""
    try:
        return await get_panel_orchestrator().get_current_question(session_id, candidate_id)
    except InterviewEngineError as e:
        raise to_http_exception(e)


@router.post("/sessions/{session_id}/answer", response_model=PanelResponse)
async def submit_panel_answer(
    session_id: str,
    request: PanelAnswerRequest,
    candidate_id: str = Header(..., alias="X-Candidate-Id"),
) -> PanelResponse:
    """
    Submit an answer.

    The response carries the evaluation and either a follow-up on the same
    question, the next question, or the final report.
    """
    try:
        return await get_panel_orchestrator().submit_answer(
            session_id=session_id,
            candidate_id=candidate_id,
            question_id=request.question_id,
            answer=request.answer,
            language=request.language,
            is_follow_up=request.is_follow_up,
        )
    except InterviewEngineError as e:
        raise to_http_exception(e)


@router.post("/sessions/{session_id}/skip", response_model=PanelResponse)
async def skip_panel_question(
    session_id: str,
    candidate_id: str = Header(..., alias="X-Candidate-Id"),
) -> PanelResponse:
    """Skip the current question (scored zero)."""
    try:
        return await get_panel_orchestrator().skip_question(session_id, candidate_id)
    except InterviewEngineError as e:
        raise to_http_exception(e)


@router.post("/sessions/{session_id}/abandon", response_model=PanelResponse)
async def abandon_panel_interview(
    session_id: str,
    candidate_id: str = Header(..., alias="X-Candidate-Id"),
) -> PanelResponse:
    """End the interview early and get a partial report."""
    try:
        return await get_panel_orchestrator().abandon_interview(session_id, candidate_id)
    except InterviewEngineError as e:
        raise to_http_exception(e)


@router.get("/sessions/{session_id}/report", response_model=PanelResponse)
async def get_panel_report(
    session_id: str,
    candidate_id: str = Header(..., alias="X-Candidate-Id"),
) -> PanelResponse:
    """Get the final report of a finished interview."""
    try:
        return await get_panel_orchestrator().get_report(session_id, candidate_id)
    except InterviewEngineError as e:
        raise to_http_exception(e)
