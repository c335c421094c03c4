"""
Main API router for the interview engine

Aggregates all API routes and provides the main application router.
"""

from fastapi import APIRouter

from interview_engine.api.endpoints import interview, panel

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(
    panel.router,
    prefix="/panel",
    tags=["Panel"]
)

api_router.include_router(
    interview.router,
    prefix="/interviews",
    tags=["Interviews"]
)
