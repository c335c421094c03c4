"""
API layer for the interview engine

Contains FastAPI routers for:
- Panel interviews
- Linear (template) interviews
"""

from interview_engine.api.router import api_router

__all__ = ["api_router"]
