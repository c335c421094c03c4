"""
Prompt templates for the LLM oracle
"""

from interview_engine.prompts.evaluator import EvaluatorPrompts
from interview_engine.prompts.panel import PanelPrompts

__all__ = ["EvaluatorPrompts", "PanelPrompts"]
