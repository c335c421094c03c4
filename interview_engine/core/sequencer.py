"""
Adaptive question sequencer for linear interviews.

Decides which template question a candidate sees at a given index. Once
at least two questions have been answered, the remaining unserved
questions are reordered by difficulty from the rolling average of the
most recently evaluated answers:

    avg >= high threshold  -> hardest first
    avg <  low threshold   -> easiest first
    otherwise              -> template order

Questions already served keep their position, so serving is idempotent
and nothing is ever served twice.
"""

import logging
from datetime import datetime

from interview_engine.models.evaluation import Answer, AnswerStatus
from interview_engine.models.interview import LinearSession
from interview_engine.models.question import Question

logger = logging.getLogger(__name__)


class QuestionSequencer:
    """Pure next-question selection over a template's questions."""

    def __init__(
        self,
        high_threshold: float = 75.0,
        low_threshold: float = 40.0,
        recent_window: int = 3,
        min_answered: int = 2,
    ):
        self.high_threshold = high_threshold
        self.low_threshold = low_threshold
        self.recent_window = recent_window
        self.min_answered = min_answered

    def recent_average(self, answers: list[Answer]) -> float | None:
        """
        Mean normalized score (0-100) of the most recently evaluated answers.

        Returns None when nothing has been evaluated yet.
        """
        evaluated = [a for a in answers if a.status == AnswerStatus.EVALUATED]
        if not evaluated:
            return None

        evaluated.sort(key=lambda a: a.evaluated_at or a.created_at or datetime.min, reverse=True)
        recent = evaluated[: self.recent_window]
        normalized = [((a.score or 0) / (a.max_score or 1)) * 100 for a in recent]
        return sum(normalized) / len(normalized)

    def plan(
        self,
        questions: list[Question],
        session: LinearSession,
        answers: list[Answer],
    ) -> list[Question]:
        """
        Full serving order for the session at its current index.

        Args:
            questions: Template questions in template order
            session: The linear session (served ids and current index)
            answers: All answers recorded for the session

        Returns:
            Served questions in serving order followed by the remaining ones
        """
        by_id = {q.id: q for q in questions}
        served = [by_id[qid] for qid in session.served_question_ids if qid in by_id]

        done = set(session.served_question_ids) | {a.question_id for a in answers}
        remaining = [q for q in questions if q.id not in done]

        if session.current_question_index < self.min_answered:
            return served + remaining

        average = self.recent_average(answers)
        if average is None:
            return served + remaining

        # sorted() is stable, so template order holds within a tier
        if average >= self.high_threshold:
            logger.debug(f"Session {session.id} avg {average:.1f}: promoting harder questions")
            remaining = sorted(remaining, key=lambda q: -q.difficulty.rank)
        elif average < self.low_threshold:
            logger.debug(f"Session {session.id} avg {average:.1f}: demoting to easier questions")
            remaining = sorted(remaining, key=lambda q: q.difficulty.rank)

        return served + remaining

    def next_question(
        self,
        questions: list[Question],
        session: LinearSession,
        answers: list[Answer],
    ) -> Question | None:
        """
        The first unanswered question in serving order, or None when exhausted.

        A served question that is still unanswered is returned again, so asking
        twice gives the same question. Answered questions are never returned,
        even when they were submitted ahead of the serving order.
        """
        answered = {a.question_id for a in answers}
        for question in self.plan(questions, session, answers):
            if question.id not in answered:
                return question
        return None
