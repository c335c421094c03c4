"""
Linear Orchestrator - fixed-template interviews with adaptive ordering.

Candidates work through a template's questions one at a time. Answers are
stored as pending and graded asynchronously by the evaluation pipeline via
the injected job queue. Completing a session hands a score summary to the
report collaborator through the notifier.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from interview_engine.config.settings import Settings, get_settings
from interview_engine.core.aggregation import ScoredEntry, aggregate_scores
from interview_engine.core.errors import (
    AnswerAlreadySubmittedError,
    NoMoreQuestionsError,
    QuestionNotInSessionError,
    SessionAccessError,
    SessionNotActiveError,
    SessionNotFoundError,
    TemplateNotFoundError,
    TimeLimitExceededError,
)
from interview_engine.core.job_queue import EvaluationJob, JobQueue
from interview_engine.core.notifier import LinearReportMessage, Notifier
from interview_engine.core.sequencer import QuestionSequencer
from interview_engine.core.store import InterviewStore
from interview_engine.models.evaluation import Answer, AnswerStatus
from interview_engine.models.interview import (
    IntegrityEventType,
    InterviewTemplate,
    LinearSession,
    SessionStatus,
)
from interview_engine.models.question import Question
from interview_engine.models.report import LinearReportRequest, ScoreSummary

logger = logging.getLogger(__name__)


class NextQuestion(BaseModel):
    """The question to show, stripped of answer keys."""

    question: Question
    index: int
    total: int
    time_remaining_seconds: int


class SubmitResult(BaseModel):
    answer_id: str
    next_available: bool


class LinearSessionResult(BaseModel):
    """Session with its answers and the current score summary."""

    session: LinearSession
    answers: list[Answer] = Field(default_factory=list)
    summary: ScoreSummary


class LinearOrchestrator:
    """
    Manages linear interview sessions.

    Requests for one session are serialized; grading happens off the request
    path on the job queue.
    """

    def __init__(
        self,
        store: InterviewStore,
        queue: JobQueue,
        sequencer: QuestionSequencer | None = None,
        notifier: Notifier | None = None,
        settings: Settings | None = None,
    ):
        self.store = store
        self.queue = queue
        self.settings = settings or get_settings()
        self.sequencer = sequencer or QuestionSequencer(
            high_threshold=self.settings.adaptive_high_threshold,
            low_threshold=self.settings.adaptive_low_threshold,
            recent_window=self.settings.adaptive_recent_window,
        )
        self.notifier = notifier
        self._locks: dict[str, asyncio.Lock] = {}

    # =========================================================================
    # TEMPLATES
    # =========================================================================

    async def create_template(self, template: InterviewTemplate) -> InterviewTemplate:
        questions = [
            q if q.template_id == template.id else q.model_copy(update={"template_id": template.id})
            for q in template.questions
        ]
        template = template.model_copy(update={"questions": questions})
        await self.store.save_template(template)
        logger.info(f"Saved template {template.id} ({len(questions)} questions)")
        return template

    async def list_templates(self) -> list[InterviewTemplate]:
        return await self.store.list_templates()

    async def get_template(self, template_id: str) -> InterviewTemplate:
        template = await self.store.get_template(template_id)
        if template is None:
            raise TemplateNotFoundError(f"Template {template_id} not found")
        return template

    # =========================================================================
    # SESSION LIFECYCLE
    # =========================================================================

    async def start_session(self, candidate_id: str, template_id: str) -> LinearSession:
        """Start a session, or resume the candidate's in-progress one."""
        template = await self.get_template(template_id)

        existing = await self.store.find_in_progress_session(candidate_id, template.id)
        if existing:
            logger.info(f"Resuming session {existing.id} for candidate {candidate_id}")
            return existing

        session = LinearSession(
            candidate_id=candidate_id,
            template_id=template.id,
            status=SessionStatus.IN_PROGRESS,
            time_limit_minutes=template.time_limit_minutes,
            started_at=datetime.utcnow(),
        )
        await self.store.save_linear_session(session)
        logger.info(f"Started session {session.id} on template {template.id}")
        return session

    async def get_next_question(self, session_id: str, candidate_id: str) -> NextQuestion:
        """
        Serve the question at the current index.

        Raises:
            NoMoreQuestionsError: When every question has been served and answered
        """
        async with self._session_lock(session_id):
            session = await self._load(session_id, candidate_id)
            await self._assert_active(session)

            template = await self.get_template(session.template_id)
            questions = template.ordered_questions()
            answers = await self.store.list_answers(session.id)

            question = self.sequencer.next_question(questions, session, answers)
            if question is None:
                raise NoMoreQuestionsError("No more questions. Submit to complete.")

            if question.id not in session.served_question_ids:
                session = await self.store.update_linear_session(
                    session.id,
                    {"served_question_ids": session.served_question_ids + [question.id]},
                )

            return NextQuestion(
                question=question.sanitized(),
                index=session.current_question_index,
                total=len(questions),
                time_remaining_seconds=int(session.time_remaining_seconds()),
            )

    async def submit_answer(
        self,
        session_id: str,
        candidate_id: str,
        question_id: str,
        submitted_text: str | None = None,
        selected_option_ids: list[str] | None = None,
        programming_language: str | None = None,
        time_taken_seconds: int | None = None,
    ) -> SubmitResult:
        """Store a pending answer, advance the index and enqueue grading."""
        async with self._session_lock(session_id):
            session = await self._load(session_id, candidate_id)
            await self._assert_active(session)

            template = await self.get_template(session.template_id)
            question = template.get_question(question_id)
            if question is None:
                raise QuestionNotInSessionError(f"Question {question_id} is not part of this interview")

            answers = await self.store.list_answers(session.id)
            if any(a.question_id == question_id for a in answers):
                raise AnswerAlreadySubmittedError(f"Question {question_id} already answered")

            answer = Answer(
                session_id=session.id,
                question_id=question_id,
                submitted_text=submitted_text,
                selected_option_ids=selected_option_ids or [],
                programming_language=programming_language,
                time_taken_seconds=time_taken_seconds,
                max_score=question.max_score,
                status=AnswerStatus.PENDING,
            )
            await self.store.save_answer(answer)

            total = len(template.questions)
            served = session.served_question_ids
            if question_id not in served:
                served = served + [question_id]
            next_index = min(session.current_question_index + 1, total)
            await self.store.update_linear_session(
                session.id,
                {"current_question_index": next_index, "served_question_ids": served},
            )

            await self.queue.enqueue(EvaluationJob(
                answer_id=answer.id,
                session_id=session.id,
                question_type=question.type.value,
            ))
            logger.info(f"Session {session.id}: answer {answer.id} queued for evaluation")

            return SubmitResult(answer_id=answer.id, next_available=next_index < total)

    async def complete_session(self, session_id: str, candidate_id: str) -> LinearSession:
        """Close the session and request its report. Completing twice is a no-op."""
        async with self._session_lock(session_id):
            session = await self._load(session_id, candidate_id)
            if session.status == SessionStatus.COMPLETED:
                self._release_lock(session.id)
                return session
            if session.status == SessionStatus.ABANDONED:
                self._release_lock(session.id)
                raise SessionNotActiveError(f"Session is {session.status.value}, cannot complete")

            return await self._close(session, SessionStatus.COMPLETED)

    async def abandon_session(self, session_id: str, candidate_id: str) -> LinearSession:
        async with self._session_lock(session_id):
            session = await self._load(session_id, candidate_id)
            if session.status.is_terminal:
                self._release_lock(session.id)
                raise SessionNotActiveError(f"Session is {session.status.value}, cannot abandon")
            return await self._close(session, SessionStatus.ABANDONED)

    async def record_integrity_event(
        self,
        session_id: str,
        candidate_id: str,
        event_type: IntegrityEventType,
    ) -> LinearSession:
        """Count an integrity signal and flag the session past the threshold."""
        async with self._session_lock(session_id):
            session = await self._load(session_id, candidate_id)
            if session.status != SessionStatus.IN_PROGRESS:
                if session.status.is_terminal:
                    self._release_lock(session.id)
                raise SessionNotActiveError(f"Session is {session.status.value}")

            changes: dict[str, Any] = {"integrity_event_count": session.integrity_event_count + 1}
            if event_type == IntegrityEventType.TAB_SWITCH:
                changes["tab_switch_count"] = session.tab_switch_count + 1
            elif event_type == IntegrityEventType.COPY_PASTE:
                changes["copy_paste_count"] = session.copy_paste_count + 1

            if (
                not session.is_integrity_flagged
                and changes["integrity_event_count"] >= self.settings.integrity_flag_threshold
            ):
                changes["is_integrity_flagged"] = True
                logger.warning(f"Session {session.id} flagged after {changes['integrity_event_count']} integrity events")

            return await self.store.update_linear_session(session.id, changes)

    # =========================================================================
    # RESULTS
    # =========================================================================

    async def get_session_result(self, session_id: str, candidate_id: str) -> LinearSessionResult:
        session = await self._load(session_id, candidate_id)
        answers = await self.store.list_answers(session.id)
        summary = await self.build_summary(session)
        return LinearSessionResult(session=session, answers=answers, summary=summary)

    async def list_sessions(self, candidate_id: str) -> list[LinearSession]:
        return await self.store.list_linear_sessions(candidate_id)

    async def build_summary(self, session: LinearSession) -> ScoreSummary:
        """Evaluated answers grouped by question type against the template pass mark."""
        template = await self.store.get_template(session.template_id)
        pass_threshold = (
            template.passing_score_percent if template else self.settings.default_passing_percent
        )

        entries = []
        for answer in await self.store.list_answers(session.id, status=AnswerStatus.EVALUATED):
            question = await self.store.get_question(answer.question_id)
            section = question.type.value if question else "unknown"
            entries.append(ScoredEntry(section=section, score=answer.score or 0, max_score=answer.max_score))

        return aggregate_scores(entries, pass_threshold)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _session_lock(self, session_id: str) -> asyncio.Lock:
        return self._locks.setdefault(session_id, asyncio.Lock())

    def _release_lock(self, session_id: str) -> None:
        self._locks.pop(session_id, None)

    async def _load(self, session_id: str, candidate_id: str) -> LinearSession:
        session = await self.store.get_linear_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        if session.candidate_id != candidate_id:
            raise SessionAccessError(f"Session {session_id} belongs to another candidate")
        return session

    async def _assert_active(self, session: LinearSession) -> None:
        if session.status != SessionStatus.IN_PROGRESS:
            if session.status.is_terminal:
                self._release_lock(session.id)
            raise SessionNotActiveError(f"Session is {session.status.value}, cannot proceed")
        if session.time_remaining_seconds() <= 0:
            logger.info(f"Session {session.id} ran out of time, completing")
            await self._close(session, SessionStatus.COMPLETED)
            raise TimeLimitExceededError("Time limit exceeded. Session closed.")

    async def _close(self, session: LinearSession, status: SessionStatus) -> LinearSession:
        now = datetime.utcnow()
        duration = int((now - session.started_at).total_seconds()) if session.started_at else 0
        updated = await self.store.update_linear_session(
            session.id,
            {"status": status, "completed_at": now, "duration_seconds": duration},
        )
        logger.info(f"Session {session.id} {status.value} after {duration}s")
        self._release_lock(session.id)

        if status == SessionStatus.COMPLETED:
            await self._request_report(updated)
        return updated

    async def _request_report(self, session: LinearSession) -> None:
        if self.notifier is None:
            return
        summary = await self.build_summary(session)
        self.notifier.publish(LinearReportMessage(request=LinearReportRequest(
            session_id=session.id,
            candidate_id=session.candidate_id,
            template_id=session.template_id,
            summary=summary,
            duration_seconds=session.duration_seconds,
            is_integrity_flagged=session.is_integrity_flagged,
        )))
