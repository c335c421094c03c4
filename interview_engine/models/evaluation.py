"""
Answer and evaluation models for the interview engine.

Defines candidate answers and the structured grading result written to
them by the evaluation pipeline.
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field


class AnswerStatus(str, Enum):
    """Answer lifecycle states."""

    PENDING = "pending"
    EVALUATING = "evaluating"
    EVALUATED = "evaluated"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in (AnswerStatus.EVALUATED, AnswerStatus.SKIPPED, AnswerStatus.TIMED_OUT)


class RubricScore(BaseModel):
    """Score awarded for one rubric criterion."""

    criterion: str
    score: float = Field(..., ge=0)
    max_points: float = Field(..., gt=0)
    feedback: str = ""


class EvaluationResult(BaseModel):
    """Structured detail attached to an evaluated answer."""

    passed: bool | None = None

    # Code execution
    test_cases_passed: int | None = None
    test_cases_total: int | None = None
    execution_time_ms: int | None = None
    memory_used_mb: int | None = None
    compile_error: str | None = None
    runtime_error: str | None = None

    # Rubric scoring
    rubric_scores: list[RubricScore] = Field(default_factory=list)

    # Narrative
    feedback: str = ""


class GradeOutcome(BaseModel):
    """What every grading adapter returns."""

    score: float = Field(..., ge=0)
    passed: bool
    result: EvaluationResult


class Answer(BaseModel):
    """One candidate response to one question within one session."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    session_id: str
    question_id: str

    # Submission
    submitted_text: str | None = None
    selected_option_ids: list[str] = Field(default_factory=list)
    programming_language: str | None = None
    time_taken_seconds: int | None = None

    # Grading
    status: AnswerStatus = AnswerStatus.PENDING
    score: float | None = None
    max_score: float = 1.0
    evaluation_result: EvaluationResult | None = None

    # Timing
    created_at: datetime = Field(default_factory=datetime.utcnow)
    evaluated_at: datetime | None = None
