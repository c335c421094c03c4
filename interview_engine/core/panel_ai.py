"""
Panel AI service.

Wraps the three panel oracles (question generation, answer evaluation,
final report) behind methods that never fail: any oracle error is logged
and replaced by a deterministic fallback.
"""

import logging
import re
from typing import Any

from pydantic import ValidationError

from interview_engine.config.settings import Settings, get_settings
from interview_engine.core.aggregation import ScoredEntry, aggregate_scores
from interview_engine.core.errors import OracleUnavailableError
from interview_engine.core.graders import JSONOracle
from interview_engine.models.panel import (
    EditorConfig,
    EditorTestCase,
    PanelAnswer,
    PanelEvaluation,
    PanelPhase,
    PanelQuestion,
    PanelSession,
    SKIPPED_ANSWER,
    panelist_for,
)
from interview_engine.models.report import (
    CandidateProfile,
    PanelFinalReport,
    QuestionBreakdown,
    ScoreSummary,
)
from interview_engine.prompts.panel import PanelPrompts, pick_subtopic

logger = logging.getLogger(__name__)


FALLBACK_EVALUATION_FEEDBACK = "Evaluation could not be completed. Score estimated."
FALLBACK_FOLLOW_UP_FEEDBACK = "Follow-up evaluation unavailable."
FALLBACK_SCORE = 5.0

QUESTION_TYPES = {
    PanelPhase.CODING: ("coding", "code"),
    PanelPhase.QUERY: ("query", "sql"),
}


def normalize_question_text(text: str) -> str:
    """Lowercase, collapse whitespace and drop trailing punctuation."""
    return re.sub(r"\s+", " ", text.lower()).strip(" .?!")


def _clamp_score(value: Any, default: float = FALLBACK_SCORE) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return default
    return min(10.0, max(0.0, score))


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v]


def panel_score_summary(session: PanelSession, pass_threshold: float) -> ScoreSummary:
    """
    Per-phase and overall scores from the recorded answers.

    Each answer counts 10 points; a follow-up averages into its base score.
    Phases without answers do not appear.
    """
    entries = []
    for answer in session.answers:
        question = session.get_question(answer.question_id)
        section = question.phase.value if question else "unknown"
        entries.append(ScoredEntry(section=section, score=answer.effective_score, max_score=10))
    return aggregate_scores(entries, pass_threshold, digits=0, score_digits=1)


class PanelAI:
    """
    Question generation, grading and reporting for panel interviews.

    The oracle is optional; without one every call returns its fallback.
    """

    def __init__(
        self,
        oracle: JSONOracle | None = None,
        settings: Settings | None = None,
        prompts: PanelPrompts | None = None,
    ):
        self.oracle = oracle
        self.settings = settings or get_settings()
        self.prompts = prompts or PanelPrompts()

    # =========================================================================
    # QUESTION GENERATION
    # =========================================================================

    async def generate_question(self, session: PanelSession) -> PanelQuestion:
        """
        Generate the next question for the session's current phase.

        The sub-topic is pinned by the session-wide question number. A
        generated question whose normalized text repeats an earlier one is
        replaced by the templated fallback.
        """
        phase = session.phase
        question_number = len(session.questions) + 1
        subtopic = pick_subtopic(phase, question_number)
        panelist = panelist_for(phase)

        if self.oracle is None:
            return self.fallback_question(phase, session.track, question_number)

        previous_qa = []
        for answer in session.answers:
            asked = session.get_question(answer.question_id)
            if asked:
                previous_qa.append((asked.question_text, answer.answer, answer.score))
        already_asked = [q.question_text for q in session.questions]

        system_prompt = self.prompts.generate_question_system_prompt(
            panelist=panelist,
            phase=phase,
            track=session.track,
            experience_years=session.experience_years,
            target_role=session.target_role,
            difficulty=session.difficulty,
            question_number=question_number,
            previous_qa=previous_qa,
            already_asked=already_asked,
            subtopic=subtopic,
        )
        user_prompt = self.prompts.generate_question_user_prompt(
            phase=phase,
            track=session.track,
            experience_years=session.experience_years,
            target_role=session.target_role,
            difficulty=session.difficulty,
            subtopic=subtopic,
        )

        try:
            raw = await self.oracle.complete_json(
                user_prompt,
                system_prompt=system_prompt,
                max_tokens=1200,
                temperature=0.9,
                trace_name="panel_generate_question",
                trace_metadata={"session_id": session.id, "phase": phase.value},
            )
        except OracleUnavailableError as e:
            logger.warning(f"Question generation failed for session {session.id}: {e}")
            return self.fallback_question(phase, session.track, question_number)

        if not isinstance(raw, dict) or not str(raw.get("questionText") or "").strip():
            logger.warning(f"Question oracle returned no question text for session {session.id}")
            return self.fallback_question(phase, session.track, question_number)

        question_text = str(raw["questionText"]).strip()
        asked_before = {normalize_question_text(q) for q in already_asked}
        if normalize_question_text(question_text) in asked_before:
            logger.info(f"Generated question repeats an earlier one in session {session.id}, using fallback")
            return self.fallback_question(phase, session.track, question_number)

        question_type, answer_format = QUESTION_TYPES.get(phase, ("technical", "text"))
        editor = self._parse_editor(raw.get("editor"))
        if phase == PanelPhase.CODING and editor is None:
            editor = EditorConfig()

        return PanelQuestion(
            phase=phase,
            asked_by=panelist.name,
            type=question_type,
            question_text=question_text,
            constraints=str(raw["constraints"]) if raw.get("constraints") else None,
            expected_answer_format=answer_format,
            editor=editor if phase == PanelPhase.CODING else None,
            schema_info=str(raw["schemaInfo"]) if raw.get("schemaInfo") else None,
        )

    def _parse_editor(self, raw: Any) -> EditorConfig | None:
        if not isinstance(raw, dict):
            return None
        cases = [
            EditorTestCase(input=str(tc.get("input", "")), output=str(tc.get("output", "")))
            for tc in raw.get("testCases") or []
            if isinstance(tc, dict)
        ]
        languages = [str(lang) for lang in raw.get("languageOptions") or [] if lang]
        config = EditorConfig(
            enabled=bool(raw.get("enabled", True)),
            starter_code=str(raw.get("starterCode") or ""),
            test_cases=cases,
        )
        if languages:
            config.language_options = languages
        return config

    def fallback_question(self, phase: PanelPhase, track: str, question_number: int) -> PanelQuestion:
        """Templated question for the phase and pinned sub-topic."""
        subtopic = pick_subtopic(phase, question_number)
        texts = {
            PanelPhase.WARMUP: (
                f"Tell me about a time you worked with {track} and specifically had to deal with "
                f"{subtopic}. What was the situation and how did you handle it?"
            ),
            PanelPhase.CORE: (
                f"In your {track} experience, how have you approached {subtopic}? "
                f"Give me a concrete example from a real project."
            ),
            PanelPhase.CODING: (
                f"Write a solution that demonstrates your understanding of {subtopic} using {track}. "
                f"Describe your approach before coding."
            ),
            PanelPhase.QUERY: (
                f"Write a SQL query that demonstrates {subtopic}. "
                f"Use a realistic business table structure of your choice."
            ),
        }
        question_type, answer_format = QUESTION_TYPES.get(phase, ("technical", "text"))
        return PanelQuestion(
            phase=phase,
            asked_by=panelist_for(phase).name,
            type=question_type,
            question_text=texts.get(
                phase,
                f"Question {question_number}: Describe how you've used {subtopic} in your {track} work.",
            ),
            constraints=f"Focus specifically on {subtopic}",
            expected_answer_format=answer_format,
            editor=EditorConfig() if phase == PanelPhase.CODING else None,
            is_fallback=True,
        )

    # =========================================================================
    # EVALUATION
    # =========================================================================

    async def evaluate_answer(
        self,
        session: PanelSession,
        question: PanelQuestion,
        answer: str,
        language: str | None = None,
    ) -> PanelEvaluation:
        """Score an answer 0-10 and optionally propose a follow-up."""
        if self.oracle is None:
            return PanelEvaluation(score=FALLBACK_SCORE, feedback=FALLBACK_EVALUATION_FEEDBACK)

        prompt = self.prompts.generate_evaluation_prompt(
            asked_by=question.asked_by,
            question_text=question.question_text,
            constraints=question.constraints,
            schema_info=question.schema_info,
            answer=answer,
            language=language,
            track=session.track,
            experience_years=session.experience_years,
            difficulty=session.difficulty,
        )
        try:
            parsed = await self.oracle.complete_json(
                prompt,
                max_tokens=400,
                temperature=0.3,
                trace_name="panel_evaluate_answer",
                trace_metadata={"session_id": session.id, "question_id": question.id},
            )
            if not isinstance(parsed, dict):
                raise OracleUnavailableError("evaluation response is not an object")
        except OracleUnavailableError as e:
            logger.warning(f"Answer evaluation failed for question {question.id}, estimating: {e}")
            return PanelEvaluation(score=FALLBACK_SCORE, feedback=FALLBACK_EVALUATION_FEEDBACK)

        follow_up = parsed.get("followUpQuestion")
        return PanelEvaluation(
            score=_clamp_score(parsed.get("score")),
            feedback=str(parsed.get("feedback") or "Answer received."),
            follow_up_question=str(follow_up).strip() if follow_up else None,
        )

    async def evaluate_follow_up(
        self,
        session: PanelSession,
        question: PanelQuestion,
        follow_up_question: str,
        follow_up_answer: str,
    ) -> PanelEvaluation:
        """Score a follow-up answer 0-10."""
        if self.oracle is None:
            return PanelEvaluation(score=FALLBACK_SCORE, feedback=FALLBACK_FOLLOW_UP_FEEDBACK)

        prompt = self.prompts.generate_follow_up_prompt(
            original_question=question.question_text,
            follow_up_question=follow_up_question,
            follow_up_answer=follow_up_answer,
            track=session.track,
        )
        try:
            parsed = await self.oracle.complete_json(
                prompt,
                max_tokens=200,
                temperature=0.3,
                trace_name="panel_evaluate_follow_up",
                trace_metadata={"session_id": session.id, "question_id": question.id},
            )
            if not isinstance(parsed, dict):
                raise OracleUnavailableError("follow-up response is not an object")
        except OracleUnavailableError as e:
            logger.warning(f"Follow-up evaluation failed for question {question.id}, estimating: {e}")
            return PanelEvaluation(score=FALLBACK_SCORE, feedback=FALLBACK_FOLLOW_UP_FEEDBACK)

        return PanelEvaluation(
            score=_clamp_score(parsed.get("score")),
            feedback=str(parsed.get("feedback") or ""),
        )

    # =========================================================================
    # FINAL REPORT
    # =========================================================================

    async def generate_final_report(
        self,
        session: PanelSession,
        is_partial: bool = False,
    ) -> PanelFinalReport:
        """
        Build the final (or partial) report for the session's answers.

        Scores are always computed locally. The oracle only supplies the
        narrative; without it the report carries a generic narrative.
        """
        summary = panel_score_summary(session, self.settings.panel_pass_threshold)
        overall = int(summary.percentage)
        answers = session.answers
        skipped = sum(1 for a in answers if a.is_skipped)

        report = PanelFinalReport(
            candidate_profile=CandidateProfile(
                track=session.track,
                experience_years=session.experience_years,
                role=session.target_role,
                difficulty=session.difficulty,
            ),
            overall_score=overall,
            section_scores=summary.sections,
            question_breakdown=self._computed_breakdown(session),
            passed=overall >= self.settings.panel_pass_threshold,
            is_partial=is_partial,
            questions_asked=len(session.questions),
            questions_answered=len(answers) - skipped,
            questions_skipped=skipped,
        )

        narrative = await self._report_narrative(session, report)
        if narrative is None:
            return self._with_fallback_narrative(session, report)
        return narrative

    def _computed_breakdown(self, session: PanelSession) -> list[QuestionBreakdown]:
        breakdown = []
        for answer in session.answers:
            question = session.get_question(answer.question_id)
            breakdown.append(QuestionBreakdown(
                question_text=question.question_text if question else "",
                phase=question.phase.value if question else "",
                asked_by=question.asked_by if question else "",
                score=answer.score,
                max_score=10,
                feedback=answer.feedback,
            ))
        return breakdown

    def _qa_summary(self, session: PanelSession) -> str:
        blocks = []
        for i, answer in enumerate(session.answers, start=1):
            question = session.get_question(answer.question_id)
            block = (
                f"[Q{i}] Phase: {question.phase.value if question else '?'} | "
                f"Asked by: {question.asked_by if question else '?'}\n"
                f"Question: {question.question_text if question else '?'}\n"
                f"Answer: {answer.answer or '[skipped]'}\n"
                f"Score: {answer.score:g}/10\n"
                f"Feedback: {answer.feedback}"
            )
            if answer.follow_up_question:
                block += (
                    f"\nFollow-up: {answer.follow_up_question}"
                    f"\nFollow-up Answer: {answer.follow_up_answer or '[not answered]'}"
                    f"\nFollow-up Score: {answer.follow_up_score or 0:g}/10"
                )
            blocks.append(block)
        return "\n\n---\n\n".join(blocks)

    async def _report_narrative(
        self,
        session: PanelSession,
        report: PanelFinalReport,
    ) -> PanelFinalReport | None:
        if self.oracle is None:
            return None

        partial_note = ""
        if report.is_partial:
            partial_note = (
                "\nNOTE: This is a PARTIAL interview report. The candidate exited early.\n"
                f"Total questions asked: {report.questions_asked}, "
                f"Answered: {report.questions_answered}, Skipped: {report.questions_skipped}.\n"
                "Score is calculated only from answered/skipped questions. "
                "Be explicit about the incomplete nature in the improvement plan.\n"
            )

        prompt = self.prompts.generate_report_prompt(
            track=session.track,
            experience_years=session.experience_years,
            target_role=session.target_role,
            difficulty=session.difficulty,
            qa_summary=self._qa_summary(session),
            overall_score=report.overall_score,
            partial_note=partial_note,
        )
        try:
            parsed = await self.oracle.complete_json(
                prompt,
                max_tokens=2500,
                temperature=0.4,
                trace_name="panel_final_report",
                trace_metadata={"session_id": session.id, "partial": report.is_partial},
            )
            if not isinstance(parsed, dict):
                raise OracleUnavailableError("report response is not an object")
        except OracleUnavailableError as e:
            logger.error(f"Final report generation failed for session {session.id}: {e}")
            return None

        updates: dict[str, Any] = {
            "strengths": _str_list(parsed.get("strengths")),
            "weak_areas": _str_list(parsed.get("weakAreas")),
            "mistakes_summary": _str_list(parsed.get("mistakesSummary")),
            "interview_tips": _str_list(parsed.get("interviewTips")),
            "focus_areas": _str_list(parsed.get("focusAreas")),
            "improvement_plan": str(parsed.get("improvementPlan") or ""),
        }

        raw_breakdown = parsed.get("questionBreakdown")
        if isinstance(raw_breakdown, list) and raw_breakdown:
            try:
                updates["question_breakdown"] = [
                    QuestionBreakdown(
                        question_text=str(item.get("questionText") or ""),
                        phase=str(item.get("phase") or ""),
                        asked_by=str(item.get("askedBy") or ""),
                        score=_clamp_score(item.get("score"), default=0.0),
                        max_score=10,
                        feedback=str(item.get("feedback") or ""),
                        where_you_went_wrong=item.get("whereYouWentWrong") or None,
                    )
                    for item in raw_breakdown
                ]
            except (AttributeError, ValidationError) as e:
                logger.warning(f"Ignoring malformed question breakdown for session {session.id}: {e}")

        return report.model_copy(update=updates)

    def _with_fallback_narrative(self, session: PanelSession, report: PanelFinalReport) -> PanelFinalReport:
        track = session.track or "the track"
        return report.model_copy(update={
            "strengths": ["Attempted the interview questions"],
            "weak_areas": ["Report generation unavailable, please review individual scores"],
            "mistakes_summary": [],
            "interview_tips": [f"Practice more on {track}"],
            "focus_areas": [f"{track} fundamentals"],
            "improvement_plan": (
                f"Focus on strengthening {track} concepts for a {session.target_role or 'target'} role."
            ),
        })


def skipped_answer(question_id: str) -> PanelAnswer:
    """Synthetic zero-score answer recorded for a skipped question."""
    return PanelAnswer(
        question_id=question_id,
        answer=SKIPPED_ANSWER,
        score=0,
        feedback="Candidate skipped this question.",
    )
