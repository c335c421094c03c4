"""
Grading adapters for linear interview answers.

One adapter per payload kind:
- Selector: exact set match on chosen options
- Code: sandboxed execution against ordered test cases
- Rubric: LLM scoring against named criteria

Adapters never raise for expected failure modes (wrong answer, compile
error, oracle outage). Those come back as a scored ``GradeOutcome``.
"""

import logging
from typing import Any, Protocol

from interview_engine.core.aggregation import round_half_up
from interview_engine.core.errors import OracleUnavailableError, SandboxUnavailableError
from interview_engine.core.sandbox import DEFAULT_LANGUAGE, ExecutionResult
from interview_engine.models.evaluation import Answer, EvaluationResult, GradeOutcome, RubricScore
from interview_engine.models.question import (
    CodePayload,
    Question,
    RubricCriterion,
    RubricPayload,
    SelectorPayload,
)
from interview_engine.prompts.evaluator import EvaluatorPrompts

logger = logging.getLogger(__name__)


RUBRIC_PASS_RATIO = 0.7
RUBRIC_FALLBACK_FEEDBACK = "Automated evaluation unavailable. Score estimated."
GENERIC_CRITERION = RubricCriterion(
    criterion="Overall",
    description="Clarity, correctness and depth",
    max_points=10,
)
SANDBOX_UNAVAILABLE = "Sandbox unavailable or timed out"


class CodeRunner(Protocol):
    """What the code grader needs from a sandbox."""

    async def execute(
        self,
        source_code: str,
        language: str | None,
        stdin: str = "",
        timeout_ms: int | None = None,
        memory_limit_mb: int | None = None,
    ) -> ExecutionResult: ...


class JSONOracle(Protocol):
    """What the rubric grader needs from an LLM client."""

    async def complete_json(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.3,
        trace_name: str = "llm_call",
        trace_metadata: dict[str, Any] | None = None,
    ) -> Any: ...


# =============================================================================
# SELECTOR
# =============================================================================

def grade_selector(question: Question, payload: SelectorPayload, answer: Answer) -> GradeOutcome:
    """Full marks iff the selected set equals the correct set, otherwise 0."""
    selected = set(answer.selected_option_ids)
    correct = set(payload.correct_ids)
    passed = selected == correct

    if passed:
        feedback = "Correct answer selected."
    else:
        feedback = f"Incorrect. Correct answer(s): {', '.join(sorted(correct))}"

    return GradeOutcome(
        score=question.max_score if passed else 0.0,
        passed=passed,
        result=EvaluationResult(passed=passed, feedback=feedback),
    )


# =============================================================================
# CODE
# =============================================================================

async def grade_code(
    question: Question,
    payload: CodePayload,
    answer: Answer,
    runner: CodeRunner | None,
) -> GradeOutcome:
    """
    Run the submission against every test case in order.

    A compile error stops execution and scores 0. Runtime errors fail the
    case and execution continues. Output is compared trimmed.
    """
    code = answer.submitted_text or ""
    if not code.strip():
        return GradeOutcome(
            score=0.0,
            passed=False,
            result=EvaluationResult(passed=False, feedback="No code submitted"),
        )

    total = len(payload.test_cases)
    if total == 0:
        return GradeOutcome(
            score=0.0,
            passed=False,
            result=EvaluationResult(
                passed=False,
                test_cases_passed=0,
                test_cases_total=0,
                feedback="No test cases defined",
            ),
        )

    language = answer.programming_language or DEFAULT_LANGUAGE
    passed_count = 0
    execution_ms = 0
    peak_memory_kb = 0
    runtime_error: str | None = None

    for index, case in enumerate(payload.test_cases):
        if runner is None:
            return _sandbox_unavailable(total)
        try:
            run = await runner.execute(
                source_code=code,
                language=language,
                stdin=case.input,
                timeout_ms=payload.timeout_ms,
                memory_limit_mb=payload.memory_limit_mb,
            )
        except SandboxUnavailableError as e:
            logger.warning(f"Sandbox unavailable grading question {question.id}: {e}")
            return _sandbox_unavailable(total)

        if run.is_compile_error:
            diagnostic = run.compile_output or run.stderr or run.status_description
            logger.info(f"Compile error on case {index + 1}/{total} for question {question.id}")
            return GradeOutcome(
                score=0.0,
                passed=False,
                result=EvaluationResult(
                    passed=False,
                    test_cases_passed=0,
                    test_cases_total=total,
                    execution_time_ms=execution_ms,
                    compile_error=diagnostic,
                    feedback=f"Compilation error: {diagnostic}",
                ),
            )

        execution_ms += run.time_ms or 0
        peak_memory_kb = max(peak_memory_kb, run.memory_kb or 0)

        if run.is_runtime_error:
            runtime_error = run.stderr or run.status_description
            continue

        if run.stdout.strip() == case.expected_output.strip():
            passed_count += 1

    score = round_half_up(question.max_score * passed_count / total, 2)
    return GradeOutcome(
        score=score,
        passed=passed_count == total,
        result=EvaluationResult(
            passed=passed_count == total,
            test_cases_passed=passed_count,
            test_cases_total=total,
            execution_time_ms=execution_ms,
            memory_used_mb=round(peak_memory_kb / 1024) if peak_memory_kb else None,
            runtime_error=runtime_error,
            feedback=f"Passed {passed_count}/{total} test cases.",
        ),
    )


def _sandbox_unavailable(total: int) -> GradeOutcome:
    return GradeOutcome(
        score=0.0,
        passed=False,
        result=EvaluationResult(
            passed=False,
            test_cases_passed=0,
            test_cases_total=total,
            runtime_error=SANDBOX_UNAVAILABLE,
            feedback=SANDBOX_UNAVAILABLE,
        ),
    )


# =============================================================================
# RUBRIC
# =============================================================================

def _coerce_entries(parsed: Any) -> list[dict]:
    """Accept a bare array, an object wrapping it, or a single score object."""
    if isinstance(parsed, list):
        entries = parsed
    elif isinstance(parsed, dict):
        if isinstance(parsed.get("scores"), list):
            entries = parsed["scores"]
        elif isinstance(parsed.get("results"), list):
            entries = parsed["results"]
        elif "score" in parsed:
            entries = [parsed]
        else:
            entries = []
    else:
        entries = []
    return [e for e in entries if isinstance(e, dict)]


def _match_scores(
    criteria: tuple[RubricCriterion, ...],
    entries: list[dict],
) -> list[RubricScore]:
    """
    Line oracle entries up with the rubric and clamp each score.

    Entries are matched by criterion name, then by position when the counts
    agree. Criteria the oracle skipped get the estimated half score.
    """
    by_name = {str(e.get("criterion", "")).strip().lower(): e for e in entries}
    positional = len(entries) == len(criteria)

    scores = []
    for index, criterion in enumerate(criteria):
        entry = by_name.get(criterion.criterion.strip().lower())
        if entry is None and positional:
            entry = entries[index]

        try:
            raw = float(entry["score"]) if entry is not None else None
        except (KeyError, TypeError, ValueError):
            raw = None

        if raw is None:
            scores.append(_estimated_score(criterion))
            continue

        scores.append(RubricScore(
            criterion=criterion.criterion,
            score=min(criterion.max_points, max(0.0, raw)),
            max_points=criterion.max_points,
            feedback=str(entry.get("feedback") or ""),
        ))
    return scores


def _estimated_score(criterion: RubricCriterion, generic: bool = False) -> RubricScore:
    return RubricScore(
        criterion=criterion.criterion,
        score=criterion.max_points * 0.5,
        max_points=criterion.max_points,
        feedback="Score estimated." if generic else RUBRIC_FALLBACK_FEEDBACK,
    )


async def grade_rubric(
    question: Question,
    payload: RubricPayload,
    answer: Answer,
    oracle: JSONOracle | None,
    prompts: EvaluatorPrompts | None = None,
) -> GradeOutcome:
    """Score a free-text answer with the LLM oracle, falling back to 50%."""
    text = answer.submitted_text or ""
    if not text.strip():
        return GradeOutcome(
            score=0.0,
            passed=False,
            result=EvaluationResult(passed=False, feedback="No answer provided"),
        )

    prompts = prompts or EvaluatorPrompts()
    generic = not payload.criteria
    criteria = payload.criteria or (GENERIC_CRITERION,)

    if generic:
        prompt = prompts.generate_generic_prompt(question.content, text)
        max_tokens = 300
    else:
        prompt = prompts.generate_rubric_prompt(question.content, text, criteria)
        max_tokens = 1000

    rubric_scores: list[RubricScore]
    if oracle is None:
        rubric_scores = [_estimated_score(c, generic) for c in criteria]
    else:
        try:
            parsed = await oracle.complete_json(
                prompt,
                system_prompt=prompts.SYSTEM_CONTEXT,
                max_tokens=max_tokens,
                temperature=0.2,
                trace_name="rubric_grading",
                trace_metadata={"question_id": question.id, "generic": generic},
            )
            entries = _coerce_entries(parsed)
            if not entries:
                raise OracleUnavailableError("empty rubric response")
            rubric_scores = _match_scores(criteria, entries)
        except OracleUnavailableError as e:
            logger.warning(f"Rubric oracle unavailable for question {question.id}, estimating: {e}")
            rubric_scores = [_estimated_score(c, generic) for c in criteria]

    awarded = sum(r.score for r in rubric_scores)
    possible = sum(r.max_points for r in rubric_scores)
    score = round_half_up(question.max_score * awarded / possible, 2) if possible > 0 else 0.0
    passed = score >= question.max_score * RUBRIC_PASS_RATIO

    narrative = "\n".join(
        f"**{r.criterion}** ({r.score:g}/{r.max_points:g}): {r.feedback}" for r in rubric_scores
    )
    return GradeOutcome(
        score=score,
        passed=passed,
        result=EvaluationResult(passed=passed, rubric_scores=rubric_scores, feedback=narrative),
    )


# =============================================================================
# DISPATCH
# =============================================================================

class AnswerGrader:
    """
    Routes an answer to the adapter for its question's payload kind.

    Stateless apart from the injected sandbox and oracle clients, either of
    which may be absent (the adapter then reports the outage as a result).
    """

    def __init__(
        self,
        runner: CodeRunner | None = None,
        oracle: JSONOracle | None = None,
        prompts: EvaluatorPrompts | None = None,
    ):
        self.runner = runner
        self.oracle = oracle
        self.prompts = prompts or EvaluatorPrompts()

    async def grade(self, question: Question, answer: Answer) -> GradeOutcome:
        payload = question.payload
        if isinstance(payload, SelectorPayload):
            return grade_selector(question, payload, answer)
        if isinstance(payload, CodePayload):
            return await grade_code(question, payload, answer, self.runner)
        if isinstance(payload, RubricPayload):
            return await grade_rubric(question, payload, answer, self.oracle, self.prompts)
        raise TypeError(f"Unsupported payload kind: {type(payload).__name__}")
