"""
Exceptions raised by the interview engine.

Grading-quality outcomes (wrong answer, compile error) are data, not
errors. Oracle failures are raised by the clients only and are always
turned into fallbacks before they reach a caller.
"""


class InterviewEngineError(Exception):
    """Base class for all engine errors."""
    pass


# =============================================================================
# TRANSIENT EXTERNAL FAILURES
# =============================================================================

class OracleUnavailableError(InterviewEngineError):
    """The LLM oracle was unreachable, timed out, or returned unusable output."""
    pass


class SandboxUnavailableError(InterviewEngineError):
    """The code execution sandbox was unreachable or timed out."""
    pass


# =============================================================================
# RETRYABLE INFRASTRUCTURE FAILURES
# =============================================================================

class TransientStoreError(InterviewEngineError):
    """A store operation failed in a way that may succeed on retry."""
    pass


# =============================================================================
# INVALID CALLER STATE
# =============================================================================

class InvalidSessionStateError(InterviewEngineError):
    """Base for requests that are invalid for the session's current state."""
    pass


class SessionNotFoundError(InvalidSessionStateError):
    pass


class TemplateNotFoundError(InvalidSessionStateError):
    pass


class SessionAccessError(InvalidSessionStateError):
    """The session belongs to a different candidate."""
    pass


class SessionNotActiveError(InvalidSessionStateError):
    pass


class SessionCompleteError(InvalidSessionStateError):
    """The interview already reached its report."""
    pass


class QuestionNotInSessionError(InvalidSessionStateError):
    pass


class AnswerAlreadySubmittedError(InvalidSessionStateError):
    pass


class NoPendingFollowUpError(InvalidSessionStateError):
    """A follow-up answer was submitted but none is pending for that question."""
    pass


class FollowUpPendingError(InvalidSessionStateError):
    """A regular answer was submitted while a follow-up is still owed."""
    pass


class NoCurrentQuestionError(InvalidSessionStateError):
    pass


class NoMoreQuestionsError(InvalidSessionStateError):
    pass


class ReportNotReadyError(InvalidSessionStateError):
    pass


class TimeLimitExceededError(InvalidSessionStateError):
    pass
