"""Pydantic schemas for question bank sets and their generation delegates."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from kidquiz.models.question_bank import (
    MAX_CONFIGURATIONS_PER_REQUEST,
    MAX_QUESTIONS_PER_SET,
    MAX_VARIANTS_PER_CONFIGURATION,
)


class VariantConfig(BaseModel):
    """One slice of a generation request: ``variant_count`` questions on these topics."""

    topics: list[str] = Field(..., min_length=1)
    concepts: list[str] = Field(..., min_length=1)
    difficulty: int = Field(..., ge=1, le=5)
    marks: int = Field(..., ge=1)
    variant_count: int = Field(..., ge=1, le=MAX_VARIANTS_PER_CONFIGURATION)

    @field_validator("topics", "concepts")
    @classmethod
    def drop_blank_entries(cls, v: list[str]) -> list[str]:
        cleaned = [s.strip() for s in v if s and s.strip()]
        if not cleaned:
            raise ValueError("at least one non-blank entry is required")
        return cleaned


class QualityEvaluation(BaseModel):
    is_correct: bool
    feedback: str
    suggested_improvement: str | None = None


class QuestionBankItem(BaseModel):
    id: str | None = None
    title: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    topic: str = Field(..., min_length=1)
    concept: str = Field(..., min_length=1)
    difficulty: int = Field(..., ge=1, le=5)
    marks: int = Field(..., ge=1)
    working: str | None = None
    difficulty_reason: str | None = None
    evaluation: QualityEvaluation | None = None


# ============================================================================
# Sets
# ============================================================================


class QuestionBankCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    lesson_id: UUID | None = None
    configurations: list[VariantConfig] = Field(default_factory=list, max_length=MAX_CONFIGURATIONS_PER_REQUEST)
    questions: list[QuestionBankItem] = Field(default_factory=list, max_length=MAX_QUESTIONS_PER_SET)


class QuestionBankUpdate(BaseModel):
    """Partial update; ``questions`` replaces the stored item list."""

    title: str | None = Field(None, min_length=3, max_length=200)
    lesson_id: UUID | None = None
    questions: list[QuestionBankItem] | None = Field(None, max_length=MAX_QUESTIONS_PER_SET)


class QuestionBankSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    lesson_id: UUID | None
    question_count: int
    created_by: UUID | None
    created_at: datetime
    updated_at: datetime


class QuestionBankOut(QuestionBankSummaryOut):
    questions: list[QuestionBankItem]
    configurations: list[VariantConfig]


# ============================================================================
# Delegates
# ============================================================================


class GenerateVariantsRequest(BaseModel):
    document_text: str = Field(default="")
    configurations: list[VariantConfig] = Field(..., min_length=1, max_length=MAX_CONFIGURATIONS_PER_REQUEST)

    @model_validator(mode="after")
    def cap_total_variants(self) -> "GenerateVariantsRequest":
        total = sum(c.variant_count for c in self.configurations)
        if total > MAX_VARIANTS_PER_CONFIGURATION * 3:
            raise ValueError(f"at most {MAX_VARIANTS_PER_CONFIGURATION * 3} variants per request")
        return self


class GenerateVariantsOut(BaseModel):
    questions: list[QuestionBankItem]


class EvaluateQuestionRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=4000)
    answer: str = Field(..., min_length=1, max_length=1000)
    working: str | None = Field(None, max_length=4000)
