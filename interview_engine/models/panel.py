"""
Panel interview session models.

Sessions are only ever changed through the typed patches defined at the
bottom of this module. Each applied patch is appended to the session's
audit log.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, Field

from interview_engine.models.report import PanelFinalReport


class PanelPhase(str, Enum):
    """Ordered phases of a panel interview."""

    SETUP = "setup"
    WARMUP = "warmup"
    CORE = "core"
    CODING = "coding"
    QUERY = "query"
    REPORT = "report"

    @property
    def order(self) -> int:
        return PHASE_ORDER.index(self)

    def next(self) -> "PanelPhase":
        """The phase after this one. REPORT is its own successor."""
        idx = self.order + 1
        return PHASE_ORDER[idx] if idx < len(PHASE_ORDER) else PanelPhase.REPORT


PHASE_ORDER: list[PanelPhase] = [
    PanelPhase.SETUP,
    PanelPhase.WARMUP,
    PanelPhase.CORE,
    PanelPhase.CODING,
    PanelPhase.QUERY,
    PanelPhase.REPORT,
]


class PanelStatus(str, Enum):
    """Panel session lifecycle."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class Panelist(BaseModel):
    """A panelist persona."""

    name: str
    role: str


PANELISTS: list[Panelist] = [
    Panelist(name="Panelist A", role="Technical Lead"),
    Panelist(name="Panelist B", role="Coding Evaluator"),
    Panelist(name="Panelist C", role="SQL/Query Evaluator"),
]


def panelist_for(phase: PanelPhase) -> Panelist:
    """Coding is run by B, query by C, everything else by A."""
    if phase == PanelPhase.CODING:
        return PANELISTS[1]
    if phase == PanelPhase.QUERY:
        return PANELISTS[2]
    return PANELISTS[0]


SKIPPED_ANSWER = "[SKIPPED]"


class EditorTestCase(BaseModel):
    input: str = ""
    output: str = ""


class EditorConfig(BaseModel):
    """Code editor setup for coding-phase questions."""

    enabled: bool = True
    language_options: list[str] = Field(default_factory=lambda: ["javascript", "python", "java"])
    starter_code: str = ""
    test_cases: list[EditorTestCase] = Field(default_factory=list)


class PanelQuestion(BaseModel):
    """A generated panel question."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    phase: PanelPhase
    asked_by: str
    type: Literal["technical", "coding", "query"]
    question_text: str
    constraints: str | None = None
    expected_answer_format: Literal["text", "code", "sql"]
    editor: EditorConfig | None = None
    schema_info: str | None = None
    is_fallback: bool = False


class PanelAnswer(BaseModel):
    """A graded panel answer, optionally with its follow-up exchange."""

    question_id: str
    answer: str
    language: str | None = None
    score: float = Field(..., ge=0, le=10)
    feedback: str = ""
    follow_up_question: str | None = None
    follow_up_answer: str | None = None
    follow_up_score: float | None = Field(default=None, ge=0, le=10)

    @property
    def is_skipped(self) -> bool:
        return self.answer == SKIPPED_ANSWER

    @property
    def effective_score(self) -> float:
        """Base score, or the base/follow-up average when a follow-up was asked."""
        if self.follow_up_question:
            return (self.score + (self.follow_up_score or 0)) / 2
        return self.score


class PanelEvaluation(BaseModel):
    """Result of grading one panel answer or follow-up."""

    score: float = Field(..., ge=0, le=10)
    feedback: str = ""
    follow_up_question: str | None = None


class PatchRecord(BaseModel):
    """Audit entry for one applied patch."""

    op: str
    detail: str
    applied_at: datetime = Field(default_factory=datetime.utcnow)


class PanelSession(BaseModel):
    """One candidate's attempt at a dynamically generated panel interview."""

    # Identification
    id: str = Field(default_factory=lambda: str(uuid4()))
    candidate_id: str
    candidate_email: str | None = None
    candidate_name: str | None = None

    # Profile
    track: str = ""
    experience_years: str = ""
    target_role: str = ""
    difficulty: Literal["Normal", "Hard"] = "Normal"

    # State
    phase: PanelPhase = PanelPhase.SETUP
    status: PanelStatus = PanelStatus.ACTIVE
    question_index: int = Field(default=0, ge=0)
    questions: list[PanelQuestion] = Field(default_factory=list)
    answers: list[PanelAnswer] = Field(default_factory=list)
    pending_follow_up_for: str | None = None
    final_report: PanelFinalReport | None = None

    # Timing
    created_at: datetime = Field(default_factory=datetime.utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    audit_log: list[PatchRecord] = Field(default_factory=list)

    def questions_for_phase(self, phase: PanelPhase) -> list[PanelQuestion]:
        return [q for q in self.questions if q.phase == phase]

    def get_question(self, question_id: str) -> PanelQuestion | None:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def get_answer(self, question_id: str) -> PanelAnswer | None:
        for answer in self.answers:
            if answer.question_id == question_id:
                return answer
        return None

    def current_question(self) -> PanelQuestion | None:
        """The already generated question at the current in-phase index."""
        phase_questions = self.questions_for_phase(self.phase)
        if self.question_index < len(phase_questions):
            return phase_questions[self.question_index]
        return None

    def answers_for_phase(self, phase: PanelPhase) -> list[PanelAnswer]:
        phase_ids = {q.id for q in self.questions_for_phase(phase)}
        return [a for a in self.answers if a.question_id in phase_ids]


# =============================================================================
# UPDATE PATCHES
# =============================================================================

class QuestionAppended(BaseModel):
    op: Literal["question_appended"] = "question_appended"
    question: PanelQuestion

    def apply(self, session: PanelSession) -> None:
        if session.get_question(self.question.id):
            raise ValueError(f"Question {self.question.id} already in session")
        session.questions.append(self.question)

    def summary(self) -> str:
        return f"{self.question.phase.value}:{self.question.id}"


class AnswerRecorded(BaseModel):
    op: Literal["answer_recorded"] = "answer_recorded"
    answer: PanelAnswer

    def apply(self, session: PanelSession) -> None:
        if session.get_answer(self.answer.question_id):
            raise ValueError(f"Question {self.answer.question_id} already answered")
        session.answers.append(self.answer)

    def summary(self) -> str:
        return f"{self.answer.question_id} score={self.answer.score}"


class FollowUpMerged(BaseModel):
    op: Literal["follow_up_merged"] = "follow_up_merged"
    question_id: str
    follow_up_answer: str
    follow_up_score: float = Field(..., ge=0, le=10)

    def apply(self, session: PanelSession) -> None:
        answer = session.get_answer(self.question_id)
        if answer is None:
            raise ValueError(f"No answer recorded for {self.question_id}")
        answer.follow_up_answer = self.follow_up_answer
        answer.follow_up_score = self.follow_up_score

    def summary(self) -> str:
        return f"{self.question_id} follow_up_score={self.follow_up_score}"


class PendingFollowUpSet(BaseModel):
    op: Literal["pending_follow_up_set"] = "pending_follow_up_set"
    question_id: str

    def apply(self, session: PanelSession) -> None:
        if session.pending_follow_up_for is not None:
            raise ValueError("A follow-up is already pending")
        session.pending_follow_up_for = self.question_id

    def summary(self) -> str:
        return self.question_id


class PendingFollowUpCleared(BaseModel):
    op: Literal["pending_follow_up_cleared"] = "pending_follow_up_cleared"

    def apply(self, session: PanelSession) -> None:
        session.pending_follow_up_for = None

    def summary(self) -> str:
        return ""


class PhaseAdvanced(BaseModel):
    op: Literal["phase_advanced"] = "phase_advanced"
    phase: PanelPhase
    question_index: int = Field(..., ge=0)

    def apply(self, session: PanelSession) -> None:
        if self.phase.order < session.phase.order:
            raise ValueError(f"Phase cannot regress from {session.phase.value} to {self.phase.value}")
        if self.phase == session.phase and self.question_index < session.question_index:
            raise ValueError("Question index cannot decrease within a phase")
        if self.phase != session.phase and self.question_index != 0:
            raise ValueError("Question index must reset on phase change")
        session.phase = self.phase
        session.question_index = self.question_index

    def summary(self) -> str:
        return f"{self.phase.value}[{self.question_index}]"


class StatusTerminalized(BaseModel):
    op: Literal["status_terminalized"] = "status_terminalized"
    status: Literal[PanelStatus.COMPLETED, PanelStatus.ABANDONED]
    completed_at: datetime = Field(default_factory=datetime.utcnow)

    def apply(self, session: PanelSession) -> None:
        if session.status != PanelStatus.ACTIVE:
            raise ValueError(f"Session already {session.status.value}")
        session.status = self.status
        session.completed_at = self.completed_at

    def summary(self) -> str:
        return self.status.value


class ReportAttached(BaseModel):
    op: Literal["report_attached"] = "report_attached"
    report: PanelFinalReport

    def apply(self, session: PanelSession) -> None:
        session.final_report = self.report

    def summary(self) -> str:
        partial = " partial" if self.report.is_partial else ""
        return f"overall={self.report.overall_score}{partial}"


PanelPatch = Annotated[
    Union[
        QuestionAppended,
        AnswerRecorded,
        FollowUpMerged,
        PendingFollowUpSet,
        PendingFollowUpCleared,
        PhaseAdvanced,
        StatusTerminalized,
        ReportAttached,
    ],
    Field(discriminator="op"),
]


def apply_patches(session: PanelSession, patches: list[PanelPatch]) -> PanelSession:
    """Apply patches in order and record each in the audit log."""
    for patch in patches:
        patch.apply(session)
        session.audit_log.append(PatchRecord(op=patch.op, detail=patch.summary()))
    return session


# =============================================================================
# RESPONSE VIEWS
# =============================================================================

class PanelSessionView(BaseModel):
    id: str
    track: str
    experience_years: str
    role: str
    difficulty: str
    phase: PanelPhase
    question_index: int
    status: PanelStatus


class CurrentQuestionView(BaseModel):
    """The question to show, with its follow-up text while one is pending."""

    id: str
    asked_by: str
    type: str
    question_text: str
    constraints: str | None = None
    expected_answer_format: str
    editor: EditorConfig | None = None
    schema_info: str | None = None
    pending_follow_up: str | None = None


class PanelResponse(BaseModel):
    """What every panel operation returns."""

    session: PanelSessionView
    panel: list[Panelist] = Field(default_factory=lambda: list(PANELISTS))
    current_question: CurrentQuestionView | None = None
    evaluation: PanelEvaluation | None = None
    final_report: PanelFinalReport | None = None
