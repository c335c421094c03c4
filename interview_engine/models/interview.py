"""
Linear interview template and session models.
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from interview_engine.models.question import Question


class SessionStatus(str, Enum):
    """Linear session states."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    FLAGGED = "flagged"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.ABANDONED)


class IntegrityEventType(str, Enum):
    """Integrity signals reported by the client. Only counted here."""

    TAB_SWITCH = "tab_switch"
    WINDOW_BLUR = "window_blur"
    COPY_PASTE = "copy_paste"
    DEVTOOLS_OPEN = "devtools_open"
    TIME_ANOMALY = "time_anomaly"
    RAPID_ANSWER = "rapid_answer"
    INACTIVITY = "inactivity"
    SCREENSHOT_ATTEMPT = "screenshot_attempt"


class InterviewTemplate(BaseModel):
    """A fixed, ordered set of questions."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    role: str
    difficulty: str = "mid"
    questions: list[Question] = Field(default_factory=list)
    time_limit_minutes: int = Field(default=60, gt=0)
    passing_score_percent: int = Field(default=70, ge=0, le=100)

    def ordered_questions(self) -> list[Question]:
        """Questions in template order (stable on equal order_index)."""
        return sorted(self.questions, key=lambda q: q.order_index)

    def get_question(self, question_id: str) -> Question | None:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None


class LinearSession(BaseModel):
    """One candidate's attempt at a fixed question template."""

    # Identification
    id: str = Field(default_factory=lambda: str(uuid4()))
    candidate_id: str
    template_id: str

    # State
    status: SessionStatus = SessionStatus.SCHEDULED
    current_question_index: int = Field(default=0, ge=0)
    # Adaptive state: question ids in the order they were served
    served_question_ids: list[str] = Field(default_factory=list)

    # Timing
    time_limit_minutes: int = 60
    created_at: datetime = Field(default_factory=datetime.utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_seconds: int | None = None

    # Rolling score (written by the evaluation pipeline)
    total_score: float | None = None
    max_possible_score: float | None = None
    percentage_score: float | None = None

    # Integrity counters
    tab_switch_count: int = 0
    copy_paste_count: int = 0
    integrity_event_count: int = 0
    is_integrity_flagged: bool = False

    def time_remaining_seconds(self, now: datetime | None = None) -> float:
        """Seconds left in the time budget."""
        if not self.started_at:
            return self.time_limit_minutes * 60
        now = now or datetime.utcnow()
        elapsed = (now - self.started_at).total_seconds()
        return max(0.0, self.time_limit_minutes * 60 - elapsed)
