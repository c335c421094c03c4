"""
Data models and schemas for the interview engine

Contains Pydantic models for:
- Questions and grading payloads
- Answers and evaluation results
- Linear templates and sessions
- Panel sessions and their update patches
- Score summaries and reports
"""

from interview_engine.models.question import (
    CodePayload,
    Question,
    QuestionDifficulty,
    QuestionType,
    RubricPayload,
    SelectorPayload,
)
from interview_engine.models.evaluation import (
    Answer,
    AnswerStatus,
    EvaluationResult,
    GradeOutcome,
)
from interview_engine.models.interview import (
    IntegrityEventType,
    InterviewTemplate,
    LinearSession,
    SessionStatus,
)
from interview_engine.models.panel import (
    PanelAnswer,
    PanelPhase,
    PanelQuestion,
    PanelResponse,
    PanelSession,
    PanelStatus,
)
from interview_engine.models.report import (
    LinearReportRequest,
    PanelFinalReport,
    ScoreSummary,
    SectionScore,
)

__all__ = [
    # Question
    "Question",
    "QuestionType",
    "QuestionDifficulty",
    "SelectorPayload",
    "CodePayload",
    "RubricPayload",
    # Evaluation
    "Answer",
    "AnswerStatus",
    "EvaluationResult",
    "GradeOutcome",
    # Linear interviews
    "InterviewTemplate",
    "LinearSession",
    "SessionStatus",
    "IntegrityEventType",
    # Panel interviews
    "PanelSession",
    "PanelPhase",
    "PanelStatus",
    "PanelQuestion",
    "PanelAnswer",
    "PanelResponse",
    # Report
    "ScoreSummary",
    "SectionScore",
    "PanelFinalReport",
    "LinearReportRequest",
]
