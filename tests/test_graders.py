from itertools import chain, combinations

import pytest

from interview_engine.core.errors import OracleUnavailableError, SandboxUnavailableError
from interview_engine.core.graders import (
    RUBRIC_FALLBACK_FEEDBACK,
    SANDBOX_UNAVAILABLE,
    AnswerGrader,
    grade_code,
    grade_rubric,
    grade_selector,
)
from interview_engine.core.sandbox import ExecutionResult
from tests.helpers import (
    FakeRunner,
    ScriptedOracle,
    accepted,
    answer_for,
    code_question,
    rubric_question,
    selector_question,
)


# =============================================================================
# SELECTOR
# =============================================================================

def _subsets(items):
    return chain.from_iterable(combinations(items, n) for n in range(len(items) + 1))


def test_selector_full_marks_only_for_exact_set():
    question = selector_question({"b", "c"}, max_score=2.0)
    for subset in _subsets(("a", "b", "c", "d")):
        outcome = grade_selector(question, question.payload, answer_for(question, selected_option_ids=list(subset)))
        expected = set(subset) == {"b", "c"}
        assert outcome.passed is expected
        assert outcome.score == (2.0 if expected else 0.0)


def test_selector_partial_selection_scores_zero():
    question = selector_question({"b", "c"})
    outcome = grade_selector(question, question.payload, answer_for(question, selected_option_ids=["b"]))

    assert outcome.score == 0
    assert outcome.result.feedback == "Incorrect. Correct answer(s): b, c"


def test_selector_extra_selection_scores_zero():
    question = selector_question({"b"})
    outcome = grade_selector(question, question.payload, answer_for(question, selected_option_ids=["b", "c"]))
    assert outcome.score == 0
    assert not outcome.passed


def test_selector_duplicate_selection_is_a_set():
    question = selector_question({"a"})
    outcome = grade_selector(question, question.payload, answer_for(question, selected_option_ids=["a", "a"]))
    assert outcome.passed
    assert outcome.result.feedback == "Correct answer selected."


# =============================================================================
# CODE
# =============================================================================

async def test_code_all_cases_pass():
    question = code_question([("1", "2"), ("2", "4")])
    runner = FakeRunner({"1": accepted("2\n"), "2": accepted("  4 ")})

    outcome = await grade_code(question, question.payload, answer_for(question, submitted_text="print(x*2)"), runner)

    assert outcome.score == 10.0
    assert outcome.passed
    assert outcome.result.test_cases_passed == 2
    assert outcome.result.feedback == "Passed 2/2 test cases."
    assert runner.calls[0]["timeout_ms"] == 2000
    assert runner.calls[0]["memory_limit_mb"] == 64
    assert runner.calls[0]["language"] == "javascript"


async def test_code_partial_score_is_proportional():
    question = code_question([("1", "2"), ("2", "4"), ("3", "6")])
    runner = FakeRunner({"1": accepted("2"), "2": accepted("5"), "3": accepted("6")})

    outcome = await grade_code(question, question.payload, answer_for(question, submitted_text="code"), runner)

    assert outcome.score == 6.67
    assert not outcome.passed
    assert outcome.result.test_cases_passed == 2
    assert outcome.result.test_cases_total == 3


async def test_code_compile_error_stops_execution():
    question = code_question([("1", "2"), ("2", "4"), ("3", "6")])
    compile_error = ExecutionResult(status_id=6, status_description="Compilation Error", compile_output="SyntaxError")
    runner = FakeRunner({"1": accepted("3"), "2": compile_error, "3": accepted("6")})

    outcome = await grade_code(question, question.payload, answer_for(question, submitted_text="code"), runner)

    assert outcome.score == 0
    assert not outcome.passed
    assert outcome.result.test_cases_passed == 0
    assert outcome.result.compile_error == "SyntaxError"
    assert [c["stdin"] for c in runner.calls] == ["1", "2"]


async def test_code_runtime_error_fails_case_and_continues():
    question = code_question([("1", "2"), ("2", "4")])
    crashed = ExecutionResult(status_id=11, status_description="Runtime Error (NZEC)", stderr="boom")
    runner = FakeRunner({"1": crashed, "2": accepted("4")})

    outcome = await grade_code(question, question.payload, answer_for(question, submitted_text="code"), runner)

    assert outcome.score == 5.0
    assert outcome.result.runtime_error == "boom"
    assert len(runner.calls) == 2


async def test_code_empty_submission():
    question = code_question([("1", "2")])
    outcome = await grade_code(question, question.payload, answer_for(question, submitted_text="   "), FakeRunner({}))
    assert outcome.score == 0
    assert outcome.result.feedback == "No code submitted"


async def test_code_without_test_cases():
    question = code_question([])
    outcome = await grade_code(question, question.payload, answer_for(question, submitted_text="x"), FakeRunner({}))
    assert outcome.score == 0
    assert outcome.result.feedback == "No test cases defined"


async def test_code_sandbox_outage_is_a_result():
    question = code_question([("1", "2")])
    runner = FakeRunner({"1": SandboxUnavailableError("timeout")})

    outcome = await grade_code(question, question.payload, answer_for(question, submitted_text="x"), runner)

    assert outcome.score == 0
    assert outcome.result.runtime_error == SANDBOX_UNAVAILABLE


# =============================================================================
# RUBRIC
# =============================================================================

async def test_rubric_scores_match_by_name_and_clamp():
    question = rubric_question([("Clarity", 5), ("Depth", 5)])
    oracle = ScriptedOracle([{"scores": [
        {"criterion": "depth", "score": 9, "feedback": "deep"},
        {"criterion": "Clarity", "score": 3, "feedback": "ok"},
    ]}])

    outcome = await grade_rubric(question, question.payload, answer_for(question, submitted_text="answer"), oracle)

    scores = {r.criterion: r.score for r in outcome.result.rubric_scores}
    assert scores == {"Clarity": 3, "Depth": 5}
    assert outcome.score == 8.0
    assert outcome.passed
    assert oracle.calls[0]["temperature"] == 0.2
    assert oracle.calls[0]["max_tokens"] == 1000


async def test_rubric_oracle_failure_estimates_half():
    question = rubric_question([("Clarity", 4), ("Depth", 6)])
    oracle = ScriptedOracle([OracleUnavailableError("down")])

    outcome = await grade_rubric(question, question.payload, answer_for(question, submitted_text="answer"), oracle)

    assert outcome.score == 5.0
    assert not outcome.passed
    assert all(r.feedback == RUBRIC_FALLBACK_FEEDBACK for r in outcome.result.rubric_scores)


async def test_rubric_missing_criterion_is_estimated():
    question = rubric_question([("Clarity", 4), ("Depth", 6), ("Impact", 10)])
    oracle = ScriptedOracle([[{"criterion": "Clarity", "score": 4}]])

    outcome = await grade_rubric(question, question.payload, answer_for(question, submitted_text="answer"), oracle)

    scores = {r.criterion: r.score for r in outcome.result.rubric_scores}
    assert scores == {"Clarity": 4, "Depth": 3, "Impact": 5}


async def test_rubric_generic_scoring_without_criteria():
    question = rubric_question([], max_score=5.0)
    oracle = ScriptedOracle([{"criterion": "Overall", "score": 8, "feedback": "solid"}])

    outcome = await grade_rubric(question, question.payload, answer_for(question, submitted_text="answer"), oracle)

    assert outcome.score == 4.0
    assert outcome.result.rubric_scores[0].criterion == "Overall"
    assert oracle.calls[0]["max_tokens"] == 300


async def test_rubric_empty_answer_scores_zero_without_oracle_call():
    question = rubric_question([("Clarity", 4)])
    oracle = ScriptedOracle()

    outcome = await grade_rubric(question, question.payload, answer_for(question, submitted_text=""), oracle)

    assert outcome.score == 0
    assert oracle.calls == []


# =============================================================================
# DISPATCH
# =============================================================================

async def test_grader_dispatches_on_payload_kind():
    grader = AnswerGrader(runner=FakeRunner({"1": accepted("2")}), oracle=ScriptedOracle(default={"score": 10}))

    selector = selector_question({"a"})
    assert (await grader.grade(selector, answer_for(selector, selected_option_ids=["a"]))).passed

    code = code_question([("1", "2")])
    assert (await grader.grade(code, answer_for(code, submitted_text="x"))).score == 10.0

    rubric = rubric_question([])
    assert (await grader.grade(rubric, answer_for(rubric, submitted_text="x"))).score == 10.0


async def test_grader_without_oracle_estimates():
    grader = AnswerGrader()
    question = rubric_question([("Clarity", 10)])
    outcome = await grader.grade(question, answer_for(question, submitted_text="x"))
    assert outcome.score == 5.0


@pytest.mark.parametrize("max_score", [1.0, 3.0])
async def test_grader_without_sandbox_reports_outage(max_score):
    question = code_question([("1", "2")], max_score=max_score)
    outcome = await AnswerGrader().grade(question, answer_for(question, submitted_text="x"))
    assert outcome.score == 0
    assert outcome.result.feedback == SANDBOX_UNAVAILABLE
