"""
Core business logic modules for the interview engine

Contains:
- Grading adapters: selector, sandboxed code, LLM rubric
- Question sequencer: adaptive ordering for linear interviews
- Evaluation pipeline: background grading with retries
- Panel orchestrator: phase state machine for panel interviews
- Linear orchestrator: template-based session lifecycle
"""

from interview_engine.core.evaluation_pipeline import EvaluationPipeline
from interview_engine.core.graders import AnswerGrader
from interview_engine.core.linear_orchestrator import LinearOrchestrator
from interview_engine.core.panel_ai import PanelAI
from interview_engine.core.panel_orchestrator import PanelOrchestrator
from interview_engine.core.sequencer import QuestionSequencer

__all__ = [
    "AnswerGrader",
    "QuestionSequencer",
    "EvaluationPipeline",
    "PanelAI",
    "PanelOrchestrator",
    "LinearOrchestrator",
]
