"""
Fakes and builders shared by the test suite.
"""

from typing import Any, Callable

from interview_engine.core.errors import OracleUnavailableError, SandboxUnavailableError
from interview_engine.core.sandbox import ExecutionResult
from interview_engine.models.evaluation import Answer
from interview_engine.models.question import (
    CodePayload,
    CodeTestCase,
    Question,
    QuestionDifficulty,
    QuestionType,
    RubricCriterion,
    RubricPayload,
    SelectorOption,
    SelectorPayload,
)


class ScriptedOracle:
    """
    Stand-in for the LLM client.

    Replies are consumed in order. A reply that is an exception instance is
    raised; a callable is invoked with the prompt. Once the script runs out
    the default reply is used.
    """

    def __init__(self, replies: list[Any] | None = None, default: Any = None):
        self.replies = list(replies or [])
        self.default = default
        self.calls: list[dict[str, Any]] = []

    async def complete_json(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.3,
        trace_name: str = "llm_call",
        trace_metadata: dict[str, Any] | None = None,
    ) -> Any:
        self.calls.append({
            "prompt": prompt,
            "system_prompt": system_prompt,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "trace_name": trace_name,
        })
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(prompt)
        if reply is None:
            raise OracleUnavailableError("no scripted reply")
        return reply

    def calls_named(self, trace_name: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["trace_name"] == trace_name]


class RoutedOracle(ScriptedOracle):
    """Oracle whose replies are picked by trace name."""

    def __init__(self, routes: dict[str, Callable[[str], Any] | Any]):
        super().__init__()
        self.routes = routes

    async def complete_json(self, prompt: str, **kwargs) -> Any:
        trace_name = kwargs.get("trace_name", "llm_call")
        self.calls.append({"prompt": prompt, **kwargs})
        route = self.routes.get(trace_name)
        if route is None:
            raise OracleUnavailableError(f"no route for {trace_name}")
        reply = route(prompt) if callable(route) else route
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeRunner:
    """
    Sandbox stand-in keyed by stdin.

    ``results`` maps stdin to an ExecutionResult (or an exception to raise).
    """

    def __init__(self, results: dict[str, ExecutionResult | Exception]):
        self.results = results
        self.calls: list[dict[str, Any]] = []

    async def execute(
        self,
        source_code: str,
        language: str | None,
        stdin: str = "",
        timeout_ms: int | None = None,
        memory_limit_mb: int | None = None,
    ) -> ExecutionResult:
        self.calls.append({
            "source_code": source_code,
            "language": language,
            "stdin": stdin,
            "timeout_ms": timeout_ms,
            "memory_limit_mb": memory_limit_mb,
        })
        result = self.results.get(stdin)
        if result is None:
            raise SandboxUnavailableError(f"no result for {stdin!r}")
        if isinstance(result, Exception):
            raise result
        return result


class RecordingSender:
    """Notification sender that keeps everything it is given."""

    def __init__(self):
        self.sent = []

    async def send(self, message) -> None:
        self.sent.append(message)


def accepted(stdout: str, time_ms: int = 10, memory_kb: int = 2048) -> ExecutionResult:
    return ExecutionResult(stdout=stdout, status_id=3, status_description="Accepted", time_ms=time_ms, memory_kb=memory_kb)


def selector_question(
    correct: set[str],
    options: tuple[str, ...] = ("a", "b", "c", "d"),
    difficulty: QuestionDifficulty = QuestionDifficulty.MEDIUM,
    max_score: float = 1.0,
    order_index: int = 0,
    question_id: str | None = None,
) -> Question:
    fields = {"id": question_id} if question_id else {}
    return Question(
        **fields,
        type=QuestionType.MCQ,
        difficulty=difficulty,
        content="Pick the right options",
        payload=SelectorPayload(
            options=tuple(SelectorOption(id=o, text=o.upper()) for o in options),
            correct_ids=frozenset(correct),
        ),
        max_score=max_score,
        order_index=order_index,
    )


def code_question(
    cases: list[tuple[str, str]],
    max_score: float = 10.0,
    public: int = 1,
) -> Question:
    return Question(
        type=QuestionType.CODING,
        difficulty=QuestionDifficulty.MEDIUM,
        content="Echo the input doubled",
        payload=CodePayload(
            test_cases=tuple(
                CodeTestCase(input=i, expected_output=o, is_public=n < public)
                for n, (i, o) in enumerate(cases)
            ),
            timeout_ms=2000,
            memory_limit_mb=64,
        ),
        max_score=max_score,
    )


def rubric_question(
    criteria: list[tuple[str, float]] | None = None,
    max_score: float = 10.0,
) -> Question:
    return Question(
        type=QuestionType.BEHAVIORAL,
        difficulty=QuestionDifficulty.MEDIUM,
        content="Describe a production incident you handled",
        payload=RubricPayload(
            criteria=tuple(RubricCriterion(criterion=name, max_points=pts) for name, pts in criteria or [])
        ),
        max_score=max_score,
    )


def answer_for(question: Question, session_id: str = "s1", **fields) -> Answer:
    return Answer(session_id=session_id, question_id=question.id, max_score=question.max_score, **fields)
