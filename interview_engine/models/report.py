"""
Report models for the interview engine.

Score summaries are computed by the core; narrative fields of the panel
report come from the report oracle (or a fallback).
"""

from datetime import datetime

from pydantic import BaseModel, Field


class SectionScore(BaseModel):
    """Aggregated score of one section (question type or panel phase)."""

    section: str
    score: float
    max_score: float
    percentage: float
    question_count: int = 0


class ScoreSummary(BaseModel):
    """Read-only aggregate handed to the report collaborator."""

    total_score: float
    max_score: float
    percentage: float
    passed: bool
    pass_threshold: float
    sections: list[SectionScore] = Field(default_factory=list)


class CandidateProfile(BaseModel):
    """Who the panel interviewed."""

    track: str
    experience_years: str
    role: str
    difficulty: str


class QuestionBreakdown(BaseModel):
    """Per-question line of the panel report."""

    question_text: str
    phase: str
    asked_by: str
    score: float
    max_score: float = 10
    feedback: str = ""
    where_you_went_wrong: str | None = None


class PanelFinalReport(BaseModel):
    """Final (or partial) report of a panel interview."""

    candidate_profile: CandidateProfile
    overall_score: int = Field(..., ge=0, le=100)
    section_scores: list[SectionScore] = Field(default_factory=list)
    question_breakdown: list[QuestionBreakdown] = Field(default_factory=list)

    # Narrative
    strengths: list[str] = Field(default_factory=list)
    weak_areas: list[str] = Field(default_factory=list)
    mistakes_summary: list[str] = Field(default_factory=list)
    interview_tips: list[str] = Field(default_factory=list)
    focus_areas: list[str] = Field(default_factory=list)
    improvement_plan: str = ""

    passed: bool

    # Completion
    is_partial: bool = False
    questions_asked: int = 0
    questions_answered: int = 0
    questions_skipped: int = 0
    generated_at: datetime = Field(default_factory=datetime.utcnow)


class LinearReportRequest(BaseModel):
    """Message sent to the report collaborator when a linear session ends."""

    session_id: str
    candidate_id: str
    template_id: str
    summary: ScoreSummary
    duration_seconds: int | None = None
    is_integrity_flagged: bool = False
