"""
Question models for the interview engine.

A question carries a type-specific grading payload. The payload is a
closed tagged union keyed on ``kind``; graders dispatch on that tag.
"""

from enum import Enum
from typing import Annotated, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class QuestionType(str, Enum):
    """Types of assessment questions."""

    MCQ = "mcq"
    CODING = "coding"
    BEHAVIORAL = "behavioral"
    SYSTEM_DESIGN = "system_design"


class QuestionDifficulty(str, Enum):
    """Question difficulty tiers."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @property
    def rank(self) -> int:
        """Numeric rank, easiest first."""
        return {"easy": 0, "medium": 1, "hard": 2}[self.value]


class SelectorOption(BaseModel):
    """One selectable option of a multiple-choice question."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str


class SelectorPayload(BaseModel):
    """Options and the exact set of correct option ids."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["selector"] = "selector"
    options: tuple[SelectorOption, ...] = ()
    correct_ids: frozenset[str] = frozenset()


class CodeTestCase(BaseModel):
    """A single stdin/stdout test case."""

    model_config = ConfigDict(frozen=True)

    input: str = ""
    expected_output: str
    is_public: bool = False


class CodePayload(BaseModel):
    """Test cases and execution limits for a coding question."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["code"] = "code"
    allowed_languages: tuple[str, ...] = ("javascript", "python")
    starter_code: dict[str, str] = Field(default_factory=dict)
    test_cases: tuple[CodeTestCase, ...] = ()
    timeout_ms: int = Field(default=10000, gt=0)
    memory_limit_mb: int = Field(default=128, gt=0)


class RubricCriterion(BaseModel):
    """A named scoring criterion."""

    model_config = ConfigDict(frozen=True)

    criterion: str
    description: str = ""
    max_points: float = Field(..., gt=0)
    keywords: tuple[str, ...] = ()


class RubricPayload(BaseModel):
    """Rubric for free-text answers. No criteria means generic scoring."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["rubric"] = "rubric"
    criteria: tuple[RubricCriterion, ...] = ()


QuestionPayload = Annotated[
    SelectorPayload | CodePayload | RubricPayload,
    Field(discriminator="kind"),
]


class Question(BaseModel):
    """A single evaluable question. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    # Identification
    id: str = Field(default_factory=lambda: str(uuid4()))
    template_id: str | None = None

    # Content
    type: QuestionType
    difficulty: QuestionDifficulty = QuestionDifficulty.MEDIUM
    content: str = Field(..., description="The prompt shown to the candidate")
    payload: QuestionPayload

    # Scoring / ordering
    max_score: float = Field(default=1.0, gt=0)
    order_index: int = 0
    tags: tuple[str, ...] = ()

    def sanitized(self) -> "Question":
        """Copy of the question with answer keys removed for the candidate."""
        payload = self.payload
        if isinstance(payload, SelectorPayload):
            payload = payload.model_copy(update={"correct_ids": frozenset()})
        elif isinstance(payload, CodePayload):
            cases = tuple(
                tc if tc.is_public else tc.model_copy(update={"expected_output": "[hidden]"})
                for tc in payload.test_cases
            )
            payload = payload.model_copy(update={"test_cases": cases})
        return self.model_copy(update={"payload": payload})
