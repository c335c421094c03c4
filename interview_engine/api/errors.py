"""
Translation of engine errors into HTTP errors.
"""

from fastapi import HTTPException

from interview_engine.core.errors import (
    InterviewEngineError,
    InvalidSessionStateError,
    SessionAccessError,
    SessionNotFoundError,
    TemplateNotFoundError,
    TimeLimitExceededError,
)


def to_http_exception(error: InterviewEngineError) -> HTTPException:
    """Map an engine error to the status code the client should see."""
    if isinstance(error, (SessionNotFoundError, TemplateNotFoundError)):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, SessionAccessError):
        return HTTPException(status_code=403, detail="Session belongs to another candidate")
    if isinstance(error, TimeLimitExceededError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, InvalidSessionStateError):
        return HTTPException(status_code=400, detail=str(error))
    return HTTPException(status_code=503, detail=str(error))
