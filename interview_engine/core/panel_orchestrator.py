"""
Panel Orchestrator - State machine for panel interviews.

Phases run strictly forward:

    SETUP → WARMUP → CORE → CODING → QUERY → REPORT

Each phase asks a target number of questions. The core phase target is
re-derived from the running core average once enough core answers exist.
A low score with a proposed follow-up holds the session on the question
until the follow-up is answered. Candidates may skip a question or abandon
the interview at any time; abandoning produces a partial report.

Every mutation goes through typed patches (see ``models.panel``) and
requests are serialized per session.
"""

import asyncio
import logging
from datetime import datetime

from interview_engine.config.settings import Settings, get_settings
from interview_engine.core.errors import (
    AnswerAlreadySubmittedError,
    FollowUpPendingError,
    NoCurrentQuestionError,
    NoPendingFollowUpError,
    QuestionNotInSessionError,
    ReportNotReadyError,
    SessionAccessError,
    SessionCompleteError,
    SessionNotActiveError,
    SessionNotFoundError,
)
from interview_engine.core.notifier import Notifier, PanelReportEmail
from interview_engine.core.panel_ai import PanelAI, skipped_answer
from interview_engine.core.store import InterviewStore
from interview_engine.models.panel import (
    AnswerRecorded,
    CurrentQuestionView,
    FollowUpMerged,
    PanelAnswer,
    PanelEvaluation,
    PanelPatch,
    PanelPhase,
    PanelQuestion,
    PanelResponse,
    PanelSession,
    PanelSessionView,
    PanelStatus,
    PendingFollowUpCleared,
    PendingFollowUpSet,
    PhaseAdvanced,
    QuestionAppended,
    ReportAttached,
    StatusTerminalized,
    apply_patches,
)

logger = logging.getLogger(__name__)


class PanelOrchestrator:
    """
    Drives panel sessions through their phases.

    Collaborators are injected: the store, the panel AI service (question
    generation, grading, report) and the outbound notifier.
    """

    def __init__(
        self,
        store: InterviewStore,
        panel_ai: PanelAI,
        notifier: Notifier | None = None,
        settings: Settings | None = None,
    ):
        self.store = store
        self.panel_ai = panel_ai
        self.notifier = notifier
        self.settings = settings or get_settings()

        # One lock per session; abandon marks the session before waiting on it
        self._locks: dict[str, asyncio.Lock] = {}
        self._abandoning: set[str] = set()

    # =========================================================================
    # SESSION MANAGEMENT
    # =========================================================================

    async def create_session(
        self,
        candidate_id: str,
        track: str,
        experience_years: str,
        target_role: str,
        difficulty: str = "Normal",
        candidate_email: str | None = None,
        candidate_name: str | None = None,
    ) -> PanelSession:
        """Create a session positioned at the first warmup question."""
        session = PanelSession(
            candidate_id=candidate_id,
            candidate_email=candidate_email,
            candidate_name=candidate_name,
            track=track,
            experience_years=experience_years,
            target_role=target_role,
            difficulty=difficulty,
            started_at=datetime.utcnow(),
        )
        apply_patches(session, [PhaseAdvanced(phase=PanelPhase.WARMUP, question_index=0)])
        await self.store.save_panel_session(session)

        logger.info(f"Created panel session {session.id} ({track}, {difficulty})")
        return session

    async def list_sessions(self, candidate_id: str) -> list[PanelSession]:
        """Candidate's panel sessions, newest first."""
        return await self.store.list_panel_sessions(candidate_id)

    async def get_report(self, session_id: str, candidate_id: str) -> PanelResponse:
        session = await self._load(session_id, candidate_id)
        if session.phase != PanelPhase.REPORT:
            raise ReportNotReadyError("Interview not yet completed.")
        return self.build_response(session)

    # =========================================================================
    # INTERVIEW FLOW
    # =========================================================================

    async def get_current_question(self, session_id: str, candidate_id: str) -> PanelResponse:
        """Return the current question, generating it on first request."""
        async with self._session_lock(session_id):
            session = await self._load(session_id, candidate_id)
            self._ensure_in_progress(session)

            question = await self._acquire_question(session)
            return self.build_response(session, question)

    async def submit_answer(
        self,
        session_id: str,
        candidate_id: str,
        question_id: str,
        answer: str,
        language: str | None = None,
        is_follow_up: bool = False,
    ) -> PanelResponse:
        """
        Grade an answer (or a follow-up answer) and move the session on.

        A low score with a proposed follow-up holds the session on the same
        question. Otherwise the session advances and the next question is
        returned, or the final report once the session reaches REPORT.
        """
        async with self._session_lock(session_id):
            session = await self._load(session_id, candidate_id)
            self._ensure_in_progress(session)

            question = session.get_question(question_id)
            if question is None:
                raise QuestionNotInSessionError("Question not found in session.")

            if is_follow_up:
                return await self._submit_follow_up(session, question, answer)

            if session.pending_follow_up_for is not None:
                raise FollowUpPendingError("Answer the pending follow-up question first.")
            if session.get_answer(question_id) is not None:
                raise AnswerAlreadySubmittedError("Question already answered.")

            evaluation = await self.panel_ai.evaluate_answer(session, question, answer, language)
            needs_follow_up = (
                bool(evaluation.follow_up_question)
                and evaluation.score < self.settings.followup_score_threshold
            )

            record = PanelAnswer(
                question_id=question_id,
                answer=answer,
                language=language,
                score=evaluation.score,
                feedback=evaluation.feedback,
                follow_up_question=evaluation.follow_up_question if needs_follow_up else None,
            )

            if needs_follow_up:
                self._check_not_abandoning(session)
                apply_patches(session, [
                    AnswerRecorded(answer=record),
                    PendingFollowUpSet(question_id=question_id),
                ])
                await self.store.save_panel_session(session)
                logger.info(f"Session {session.id}: follow-up issued for question {question_id}")
                return self.build_response(session, question, evaluation)

            self._check_not_abandoning(session)
            apply_patches(session, [AnswerRecorded(answer=record)])
            return await self._advance_and_respond(session, evaluation)

    async def _submit_follow_up(
        self,
        session: PanelSession,
        question: PanelQuestion,
        answer: str,
    ) -> PanelResponse:
        if session.pending_follow_up_for != question.id:
            raise NoPendingFollowUpError("No pending follow-up for this question.")
        original = session.get_answer(question.id)
        if original is None:
            raise NoPendingFollowUpError("No pending follow-up for this question.")

        evaluation = await self.panel_ai.evaluate_follow_up(
            session, question, original.follow_up_question or "", answer
        )

        self._check_not_abandoning(session)
        apply_patches(session, [
            FollowUpMerged(
                question_id=question.id,
                follow_up_answer=answer,
                follow_up_score=evaluation.score,
            ),
            PendingFollowUpCleared(),
        ])
        return await self._advance_and_respond(session, evaluation)

    async def skip_question(self, session_id: str, candidate_id: str) -> PanelResponse:
        """
        Skip the current question with a zero score.

        If the current question was already answered (a follow-up was
        pending) the skip only clears the follow-up and advances.
        """
        async with self._session_lock(session_id):
            session = await self._load(session_id, candidate_id)
            if session.status != PanelStatus.ACTIVE:
                self._release_lock(session.id)
                raise SessionNotActiveError("Interview is not active.")
            if session.phase == PanelPhase.REPORT:
                self._release_lock(session.id)
                raise SessionCompleteError("Interview is already complete.")

            current = session.current_question()
            if current is None:
                raise NoCurrentQuestionError("No current question to skip.")

            patches: list[PanelPatch] = []
            if session.get_answer(current.id) is None:
                patches.append(AnswerRecorded(answer=skipped_answer(current.id)))
            if session.pending_follow_up_for is not None:
                patches.append(PendingFollowUpCleared())

            self._check_not_abandoning(session)
            apply_patches(session, patches)
            logger.info(f"Session {session.id}: skipped question {current.id}")
            return await self._advance_and_respond(session, None)

    async def abandon_interview(self, session_id: str, candidate_id: str) -> PanelResponse:
        """
        End the interview early with a partial report.

        Takes precedence over requests already in flight: they see the
        abandoning mark after their oracle call and discard their results.
        """
        session = await self._load(session_id, candidate_id)
        if session.status != PanelStatus.ACTIVE or session_id in self._abandoning:
            raise SessionNotActiveError("Interview is not active.")

        self._abandoning.add(session_id)
        try:
            async with self._session_lock(session_id):
                session = await self._load(session_id, candidate_id)
                if session.status != PanelStatus.ACTIVE:
                    self._release_lock(session_id)
                    raise SessionNotActiveError("Interview is not active.")

                report = await self.panel_ai.generate_final_report(session, is_partial=True)

                patches: list[PanelPatch] = []
                if session.pending_follow_up_for is not None:
                    patches.append(PendingFollowUpCleared())
                patches += [
                    PhaseAdvanced(phase=PanelPhase.REPORT, question_index=0),
                    StatusTerminalized(status=PanelStatus.ABANDONED),
                    ReportAttached(report=report),
                ]
                apply_patches(session, patches)
                await self.store.save_panel_session(session)

                logger.info(
                    f"Session {session.id} abandoned: {report.questions_answered} answered, "
                    f"{report.questions_skipped} skipped, overall {report.overall_score}"
                )
                self._release_lock(session.id)
                self._send_report_email(session, abandoned=True)
                return self.build_response(session)
        finally:
            self._abandoning.discard(session_id)

    # =========================================================================
    # ADVANCEMENT
    # =========================================================================

    def phase_target(self, session: PanelSession) -> int:
        """
        Number of questions the current phase asks.

        The core target counts the answer just recorded, so the third core
        answer can already shorten or extend the phase.
        """
        s = self.settings
        targets = {
            PanelPhase.WARMUP: s.warmup_question_count,
            PanelPhase.CORE: s.core_question_count,
            PanelPhase.CODING: s.coding_question_count,
            PanelPhase.QUERY: s.query_question_count,
        }
        target = targets.get(session.phase, 1)

        if session.phase == PanelPhase.CORE:
            core_answers = session.answers_for_phase(PanelPhase.CORE)
            if len(core_answers) >= s.core_adapt_min_answers:
                average = sum(a.score for a in core_answers) / len(core_answers)
                if average >= s.core_strong_average:
                    target = s.core_strong_count
                elif average < s.core_weak_average:
                    target = s.core_weak_count

        return target

    def next_position(self, session: PanelSession) -> tuple[PanelPhase, int]:
        """Phase and in-phase index after the current question."""
        next_index = session.question_index + 1
        # The target may drop below the reached index; moving on self-corrects
        if next_index < self.phase_target(session):
            return session.phase, next_index
        return session.phase.next(), 0

    async def _advance_and_respond(
        self,
        session: PanelSession,
        evaluation: PanelEvaluation | None,
    ) -> PanelResponse:
        """Advance, finish or fetch the next question, then persist once."""
        previous_phase = session.phase
        phase, index = self.next_position(session)
        apply_patches(session, [PhaseAdvanced(phase=phase, question_index=index)])

        if phase != previous_phase:
            logger.info(f"Session {session.id}: {previous_phase.value} → {phase.value}")

        if phase == PanelPhase.REPORT:
            report = await self.panel_ai.generate_final_report(session)
            self._check_not_abandoning(session)
            apply_patches(session, [
                StatusTerminalized(status=PanelStatus.COMPLETED),
                ReportAttached(report=report),
            ])
            await self.store.save_panel_session(session)

            self._release_lock(session.id)
            logger.info(f"Session {session.id} completed: overall {report.overall_score}")
            self._send_report_email(session, abandoned=False)
            return self.build_response(session, evaluation=evaluation)

        await self.store.save_panel_session(session)
        question = await self._acquire_question(session)
        return self.build_response(session, question, evaluation)

    async def _acquire_question(self, session: PanelSession) -> PanelQuestion:
        """Reuse the question at the current index or generate and append one."""
        question = session.current_question()
        if question is not None:
            return question

        question = await self.panel_ai.generate_question(session)
        self._check_not_abandoning(session)
        apply_patches(session, [QuestionAppended(question=question)])
        await self.store.save_panel_session(session)
        logger.info(
            f"Session {session.id}: {question.asked_by} asks {session.phase.value} "
            f"question {session.question_index + 1}"
        )
        return question

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _session_lock(self, session_id: str) -> asyncio.Lock:
        return self._locks.setdefault(session_id, asyncio.Lock())

    def _release_lock(self, session_id: str) -> None:
        """Forget the lock of a terminal session. Holders keep their reference."""
        self._locks.pop(session_id, None)

    async def _load(self, session_id: str, candidate_id: str) -> PanelSession:
        session = await self.store.get_panel_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Panel session {session_id} not found")
        if session.candidate_id != candidate_id:
            raise SessionAccessError(f"Panel session {session_id} belongs to another candidate")
        return session

    def _ensure_in_progress(self, session: PanelSession) -> None:
        if session.phase == PanelPhase.REPORT:
            self._release_lock(session.id)
            raise SessionCompleteError("Interview is complete. View your report.")
        if session.status != PanelStatus.ACTIVE:
            self._release_lock(session.id)
            raise SessionNotActiveError("Interview is not active.")
        if session.id in self._abandoning:
            raise SessionNotActiveError("Interview is not active.")

    def _check_not_abandoning(self, session: PanelSession) -> None:
        """Discard in-flight work for a session that is being abandoned."""
        if session.id in self._abandoning:
            logger.info(f"Session {session.id} abandoned mid-request, discarding result")
            raise SessionNotActiveError("Interview was abandoned.")

    def _send_report_email(self, session: PanelSession, abandoned: bool) -> None:
        report = session.final_report
        if self.notifier is None or report is None:
            return
        if not session.candidate_email:
            logger.info(f"No email on file for session {session.id}, skipping report email")
            return
        self.notifier.publish(PanelReportEmail(
            to=session.candidate_email,
            candidate_name=session.candidate_name or session.candidate_id,
            session_id=session.id,
            report=report,
            abandoned=abandoned,
            questions_asked=report.questions_asked,
            questions_answered=report.questions_answered,
            questions_skipped=report.questions_skipped,
        ))

    def build_response(
        self,
        session: PanelSession,
        question: PanelQuestion | None = None,
        evaluation: PanelEvaluation | None = None,
    ) -> PanelResponse:
        """Candidate-facing view of the session after an operation."""
        pending = session.pending_follow_up_for

        current = None
        if question is not None:
            follow_up = None
            if pending == question.id:
                answered = session.get_answer(question.id)
                follow_up = answered.follow_up_question if answered else None
            current = CurrentQuestionView(
                id=question.id,
                asked_by=question.asked_by,
                type=question.type,
                question_text=question.question_text,
                constraints=question.constraints,
                expected_answer_format=question.expected_answer_format,
                editor=question.editor,
                schema_info=question.schema_info,
                pending_follow_up=follow_up,
            )

        if evaluation is not None and not pending:
            evaluation = evaluation.model_copy(update={"follow_up_question": None})

        return PanelResponse(
            session=PanelSessionView(
                id=session.id,
                track=session.track,
                experience_years=session.experience_years,
                role=session.target_role,
                difficulty=session.difficulty,
                phase=session.phase,
                question_index=session.question_index,
                status=session.status,
            ),
            current_question=current,
            evaluation=evaluation,
            final_report=session.final_report if session.phase == PanelPhase.REPORT else None,
        )
