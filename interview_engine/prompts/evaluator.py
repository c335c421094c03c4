"""
Rubric Evaluator Prompt Templates

Prompts sent to the LLM scoring oracle when grading free-text answers
(behavioral and system design questions) against a rubric.
"""

from interview_engine.models.question import RubricCriterion


class EvaluatorPrompts:
    """
    Prompt templates for rubric-based scoring.

    Key principles:
    - Score strictly against the named criteria
    - Award partial credit where justified
    - Never exceed a criterion's maximum
    """

    SYSTEM_CONTEXT = """You are a senior technical interviewer. You evaluate candidate answers objectively against a scoring rubric and respond only with JSON."""

    def format_rubric(self, criteria: tuple[RubricCriterion, ...]) -> str:
        """Render rubric criteria as a numbered list."""
        lines = []
        for i, c in enumerate(criteria, start=1):
            line = f"{i}. **{c.criterion}** (max {c.max_points:g} pts): {c.description}"
            if c.keywords:
                line += f" [Keywords: {', '.join(c.keywords)}]"
            lines.append(line)
        return "\n".join(lines)

    def generate_rubric_prompt(
        self,
        question_text: str,
        answer_text: str,
        criteria: tuple[RubricCriterion, ...],
    ) -> str:
        """Generate prompt for scoring an answer against rubric criteria."""

        return f"""Evaluate the candidate's answer strictly against the rubric below.

=== QUESTION ===
{question_text}

=== RUBRIC ===
{self.format_rubric(criteria)}

=== CANDIDATE'S ANSWER ===
{answer_text}

=== YOUR TASK ===
Respond ONLY with valid JSON of this shape, nothing else:

{{
    "scores": [
        {{
            "criterion": "criterion name exactly as given",
            "score": <number>,
            "maxPoints": <number>,
            "feedback": "one sentence of constructive feedback"
        }}
    ]
}}

Be objective. Award partial credit where justified. Do not award more than maxPoints per criterion."""

    def generate_generic_prompt(self, question_text: str, answer_text: str) -> str:
        """Generate prompt for generic 0-10 scoring when no rubric is defined."""

        return f"""Score this interview answer on a scale of 0-10 for clarity, correctness and depth.

=== QUESTION ===
{question_text}

=== CANDIDATE'S ANSWER ===
{answer_text}

Respond as JSON:
{{"criterion": "Overall", "score": <number>, "maxPoints": 10, "feedback": "string"}}"""
