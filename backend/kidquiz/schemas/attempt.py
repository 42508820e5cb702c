"""Pydantic schemas for test attempts."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from kidquiz.models.attempt import AttemptStatus
from kidquiz.models.quiz import MAX_HINTS_PER_QUESTION


class AnswerSubmit(BaseModel):
    question_id: UUID
    answer: str = Field(..., max_length=500)
    time_taken_seconds: int = Field(default=0, ge=0, le=86400)
    viewed_micro_learning: bool = False


class AnswerResult(BaseModel):
    question_id: UUID
    is_correct: bool
    score: int
    feedback: str
    attempts_count: int
    best_score: int
    # Student has struggled long enough that study material should be offered
    offer_study_material: bool


class HintRequest(BaseModel):
    question_id: UUID
    hint_index: int = Field(..., ge=0, lt=MAX_HINTS_PER_QUESTION)
    student_answer: str | None = Field(None, max_length=500)


class HintOut(BaseModel):
    question_id: UUID
    hint_index: int
    hint: str
    hints_used: int
    source: Literal["static", "generated", "fallback"]


class MicroLearningRequest(BaseModel):
    question_id: UUID
    student_question: str | None = Field(None, max_length=500)


class MicroLearningOut(BaseModel):
    question_id: UUID
    content: str
    source: Literal["static", "generated", "fallback"]


class DownloadRequest(BaseModel):
    question_id: UUID


class QuestionAttemptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    question_id: UUID
    student_answer: str | None
    is_correct: bool
    attempts_count: int
    hints_used: int
    hint_sequence: list[int]
    time_taken_seconds: int
    viewed_micro_learning: bool
    study_material_downloaded: bool
    ai_score: int | None
    ai_feedback: str | None
    answered_on_first_attempt: bool
    used_no_hints: bool
    showed_persistence: bool


class AttemptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    test_id: UUID
    student_id: UUID
    status: AttemptStatus
    started_at: datetime
    completed_at: datetime | None
    total_questions: int
    correct_answers: int
    hints_used: int
    time_taken_seconds: int | None
    score: int | None
    basic_score: int | None
    ai_score: int | None
    learning_engagement_rate: float | None
    first_attempt_success_rate: float | None
    hint_dependency_rate: float | None
    persistence_score: float | None
    confidence_indicator: float | None
    average_time_per_question: float | None
    mastery_achieved: bool
    questions_requiring_study: int
    needs_audit: bool


class AttemptDetailOut(AttemptOut):
    ai_score_breakdown: dict[str, Any] | None
    question_attempts: list[QuestionAttemptOut]
