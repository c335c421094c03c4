"""
API endpoint modules for the interview engine
"""

from interview_engine.api.endpoints import interview, panel

__all__ = ["interview", "panel"]
