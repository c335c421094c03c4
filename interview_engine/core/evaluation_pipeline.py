"""
Evaluation pipeline for linear interviews.

Handles one ``EvaluationJob``: load the answer and its question, grade it
with the matching adapter, write the outcome and recompute the session's
rolling score. Safe to re-run for the same answer.
"""

import logging
from datetime import datetime

from interview_engine.core.aggregation import round_half_up
from interview_engine.core.graders import AnswerGrader
from interview_engine.core.job_queue import EvaluationJob
from interview_engine.core.store import InterviewStore
from interview_engine.models.evaluation import Answer, AnswerStatus, EvaluationResult, GradeOutcome

logger = logging.getLogger(__name__)


FAILED_EVALUATION_NOTE = "Evaluation failed - score pending manual review"


class EvaluationPipeline:
    """
    Grades queued answers.

    Store failures propagate (``TransientStoreError`` is retried by the
    queue). Anything the grader raises is caught and the answer is
    finalized with score 0 and a manual review note.
    """

    def __init__(self, store: InterviewStore, grader: AnswerGrader):
        self.store = store
        self.grader = grader

    async def run(self, job: EvaluationJob) -> None:
        answer = await self.store.get_answer(job.answer_id)
        if answer is None:
            logger.warning(f"Answer {job.answer_id} not found, dropping evaluation job")
            return

        if answer.status == AnswerStatus.EVALUATED:
            logger.info(f"Answer {answer.id} already evaluated, recomputing session score only")
            await self.recompute_session_score(answer.session_id)
            return

        question = await self.store.get_question(answer.question_id)
        if question is None:
            logger.error(f"Question {answer.question_id} for answer {answer.id} not found")
            await self._finalize(answer, _failed_outcome())
            await self.recompute_session_score(answer.session_id)
            return

        logger.info(f"Evaluating answer {answer.id} [{question.type.value}]")
        answer.status = AnswerStatus.EVALUATING
        await self.store.save_answer(answer)

        try:
            outcome = await self.grader.grade(question, answer)
        except Exception as e:
            logger.exception(f"Grading failed for answer {answer.id}: {e!r}")
            outcome = _failed_outcome()

        await self._finalize(answer, outcome)
        logger.info(f"Answer {answer.id} evaluated: {answer.score}/{answer.max_score}")

        await self.recompute_session_score(answer.session_id)

    async def force_finalize(self, job: EvaluationJob, error: BaseException | None = None) -> None:
        """Mark an answer evaluated with score 0 after retries ran out."""
        answer = await self.store.get_answer(job.answer_id)
        if answer is None or answer.status == AnswerStatus.EVALUATED:
            return
        logger.warning(f"Force-finalizing answer {answer.id} after failure: {error!r}")
        await self._finalize(answer, _failed_outcome())
        await self.recompute_session_score(answer.session_id)

    async def recompute_session_score(self, session_id: str) -> None:
        """Recompute total, max and percentage from every evaluated answer."""
        evaluated = await self.store.list_answers(session_id, status=AnswerStatus.EVALUATED)
        total = sum(a.score or 0 for a in evaluated)
        max_total = sum(a.max_score or 1 for a in evaluated)
        pct = round_half_up(total / max_total * 100, 1) if max_total > 0 else 0.0

        updated = await self.store.update_linear_session(
            session_id,
            {
                "total_score": round_half_up(total, 2),
                "max_possible_score": max_total,
                "percentage_score": pct,
            },
        )
        if updated is None:
            logger.warning(f"Session {session_id} not found while updating score")

    async def _finalize(self, answer: Answer, outcome: GradeOutcome) -> None:
        answer.score = min(outcome.score, answer.max_score)
        answer.evaluation_result = outcome.result
        answer.status = AnswerStatus.EVALUATED
        answer.evaluated_at = datetime.utcnow()
        await self.store.save_answer(answer)


def _failed_outcome() -> GradeOutcome:
    return GradeOutcome(
        score=0.0,
        passed=False,
        result=EvaluationResult(passed=False, feedback=FAILED_EVALUATION_NOTE),
    )
