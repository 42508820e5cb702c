"""Pydantic schemas for tests and questions."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kidquiz.models.quiz import (
    DEFAULT_MAX_ATTEMPTS_BEFORE_STUDY,
    MAX_HINTS_PER_QUESTION,
    MAX_QUESTIONS_PER_TEST,
    TestStatus,
)

# ============================================================================
# Question Schemas
# ============================================================================


class QuestionIn(BaseModel):
    """Question payload; ``id`` set means update that question in place."""

    id: UUID | None = None
    question_text: str = Field(..., min_length=1, max_length=2000)
    correct_answer: str = Field(..., min_length=1, max_length=500)
    hints: list[str] = Field(default_factory=list, max_length=MAX_HINTS_PER_QUESTION)
    micro_learning: str = Field(default="", max_length=4000)
    order: int | None = Field(None, ge=0)
    max_attempts_before_study: int = Field(default=DEFAULT_MAX_ATTEMPTS_BEFORE_STUDY, ge=1, le=20)

    @field_validator("hints")
    @classmethod
    def drop_blank_hints(cls, v: list[str]) -> list[str]:
        return [h.strip() for h in v if h and h.strip()]

    @field_validator("correct_answer")
    @classmethod
    def answer_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("correct_answer must not be blank")
        return v.strip()


class QuestionOut(BaseModel):
    """Full question, answers included (authors and admins only)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    question_text: str
    correct_answer: str
    hints: list[str]
    micro_learning: str
    order: int
    max_attempts_before_study: int


class QuestionStudentOut(BaseModel):
    """Question as a student sees it while taking a test."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    question_text: str
    order: int
    hint_count: int
    has_micro_learning: bool


# ============================================================================
# Test Schemas
# ============================================================================


class TestCreate(BaseModel):
    __test__ = False

    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10)
    scheduled_date: datetime
    duration: int = Field(..., ge=1, le=600, description="Duration in minutes")
    questions: list[QuestionIn] = Field(..., min_length=1, max_length=MAX_QUESTIONS_PER_TEST)


class TestUpdate(BaseModel):
    """Partial update; ``questions`` replaces the whole question set."""

    __test__ = False

    title: str | None = Field(None, min_length=3, max_length=200)
    description: str | None = Field(None, min_length=10)
    scheduled_date: datetime | None = None
    duration: int | None = Field(None, ge=1, le=600)
    status: TestStatus | None = None
    questions: list[QuestionIn] | None = Field(None, min_length=1, max_length=MAX_QUESTIONS_PER_TEST)


class TestSummaryOut(BaseModel):
    __test__ = False

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str
    scheduled_date: datetime
    duration: int
    status: TestStatus
    question_count: int
    created_by: UUID
    created_at: datetime


class TestOut(TestSummaryOut):
    questions: list[QuestionOut]


class TestStudentOut(BaseModel):
    __test__ = False

    id: UUID
    title: str
    description: str
    duration: int
    status: TestStatus
    question_count: int
    questions: list[QuestionStudentOut]
