"""
Session storage for the interview engine.

``InterviewStore`` is the contract the core relies on. ``InMemoryStore``
keeps everything in process (swap for a database-backed store in
production). Records are copied on every read and write so callers never
share mutable state with the store.
"""

from typing import Any, Protocol

from interview_engine.models.evaluation import Answer, AnswerStatus
from interview_engine.models.interview import InterviewTemplate, LinearSession, SessionStatus
from interview_engine.models.panel import PanelSession
from interview_engine.models.question import Question


class InterviewStore(Protocol):
    """Persistence capability used by the core."""

    async def save_template(self, template: InterviewTemplate) -> None: ...
    async def get_template(self, template_id: str) -> InterviewTemplate | None: ...
    async def list_templates(self) -> list[InterviewTemplate]: ...
    async def get_question(self, question_id: str) -> Question | None: ...

    async def save_linear_session(self, session: LinearSession) -> None: ...
    async def get_linear_session(self, session_id: str) -> LinearSession | None: ...
    async def update_linear_session(
        self, session_id: str, changes: dict[str, Any]
    ) -> LinearSession | None: ...
    async def find_in_progress_session(
        self, candidate_id: str, template_id: str
    ) -> LinearSession | None: ...
    async def list_linear_sessions(self, candidate_id: str) -> list[LinearSession]: ...

    async def save_answer(self, answer: Answer) -> None: ...
    async def get_answer(self, answer_id: str) -> Answer | None: ...
    async def list_answers(
        self, session_id: str, status: AnswerStatus | None = None
    ) -> list[Answer]: ...

    async def save_panel_session(self, session: PanelSession) -> None: ...
    async def get_panel_session(self, session_id: str) -> PanelSession | None: ...
    async def list_panel_sessions(self, candidate_id: str) -> list[PanelSession]: ...


class InMemoryStore:
    """Dictionary-backed ``InterviewStore``."""

    def __init__(self):
        self._templates: dict[str, InterviewTemplate] = {}
        self._questions: dict[str, Question] = {}
        self._linear_sessions: dict[str, LinearSession] = {}
        self._answers: dict[str, Answer] = {}
        self._panel_sessions: dict[str, PanelSession] = {}

    # =========================================================================
    # TEMPLATES & QUESTIONS
    # =========================================================================

    async def save_template(self, template: InterviewTemplate) -> None:
        self._templates[template.id] = template.model_copy(deep=True)
        for question in template.questions:
            self._questions[question.id] = question

    async def get_template(self, template_id: str) -> InterviewTemplate | None:
        template = self._templates.get(template_id)
        return template.model_copy(deep=True) if template else None

    async def list_templates(self) -> list[InterviewTemplate]:
        return [t.model_copy(deep=True) for t in self._templates.values()]

    async def get_question(self, question_id: str) -> Question | None:
        # Questions are frozen, no copy needed
        return self._questions.get(question_id)

    # =========================================================================
    # LINEAR SESSIONS
    # =========================================================================

    async def save_linear_session(self, session: LinearSession) -> None:
        self._linear_sessions[session.id] = session.model_copy(deep=True)

    async def get_linear_session(self, session_id: str) -> LinearSession | None:
        session = self._linear_sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def update_linear_session(
        self, session_id: str, changes: dict[str, Any]
    ) -> LinearSession | None:
        """Apply a partial update to the stored session and return a copy."""
        session = self._linear_sessions.get(session_id)
        if session is None:
            return None
        updated = LinearSession.model_validate({**session.model_dump(), **changes})
        self._linear_sessions[session_id] = updated
        return updated.model_copy(deep=True)

    async def find_in_progress_session(
        self, candidate_id: str, template_id: str
    ) -> LinearSession | None:
        for session in self._linear_sessions.values():
            if (
                session.candidate_id == candidate_id
                and session.template_id == template_id
                and session.status == SessionStatus.IN_PROGRESS
            ):
                return session.model_copy(deep=True)
        return None

    async def list_linear_sessions(self, candidate_id: str) -> list[LinearSession]:
        sessions = [
            s.model_copy(deep=True)
            for s in self._linear_sessions.values()
            if s.candidate_id == candidate_id
        ]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    # =========================================================================
    # ANSWERS
    # =========================================================================

    async def save_answer(self, answer: Answer) -> None:
        self._answers[answer.id] = answer.model_copy(deep=True)

    async def get_answer(self, answer_id: str) -> Answer | None:
        answer = self._answers.get(answer_id)
        return answer.model_copy(deep=True) if answer else None

    async def list_answers(
        self, session_id: str, status: AnswerStatus | None = None
    ) -> list[Answer]:
        answers = [
            a.model_copy(deep=True)
            for a in self._answers.values()
            if a.session_id == session_id and (status is None or a.status == status)
        ]
        return sorted(answers, key=lambda a: a.created_at)

    # =========================================================================
    # PANEL SESSIONS
    # =========================================================================

    async def save_panel_session(self, session: PanelSession) -> None:
        self._panel_sessions[session.id] = session.model_copy(deep=True)

    async def get_panel_session(self, session_id: str) -> PanelSession | None:
        session = self._panel_sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def list_panel_sessions(self, candidate_id: str) -> list[PanelSession]:
        sessions = [
            s.model_copy(deep=True)
            for s in self._panel_sessions.values()
            if s.candidate_id == candidate_id
        ]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)
