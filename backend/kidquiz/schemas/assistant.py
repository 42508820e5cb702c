"""Pydantic schemas for the AI authoring assistant endpoints."""

from typing import Literal

from pydantic import BaseModel, Field

RegenerableField = Literal["title", "answer", "topics", "concepts", "difficulty", "marks", "working"]


class DocumentAnalysisRequest(BaseModel):
    """Already-extracted document text to analyze."""

    content: str = Field(..., min_length=10)
    clarification_answer: str | None = Field(None, max_length=2000)


class DocumentAnalysisOut(BaseModel):
    type: str
    greeting: str
    analysis: str
    topics: list[str] = Field(default_factory=list)
    suggested_question_count: int = Field(..., ge=0)
    clarification: str | None = None


class QuestionExtractionRequest(BaseModel):
    content: str = Field(..., min_length=10)
    count: int = Field(default=5, ge=1, le=50)
    topics: list[str] | None = None


class ExtractedQuestionOut(BaseModel):
    question_text: str
    correct_answer: str
    hints: list[str] = Field(default_factory=list, max_length=3)
    micro_learning: str = ""
    order: int


class QuestionExtractionOut(BaseModel):
    questions: list[ExtractedQuestionOut]


class CurrentQuestion(BaseModel):
    """Question draft as it currently stands in the authoring form."""

    title: str
    answer: str
    topics: list[str] = Field(default_factory=list)
    concepts: list[str] = Field(default_factory=list)
    difficulty: int | str | None = None
    marks: int | None = None
    working: str | None = None


class RegenerateQuestionRequest(BaseModel):
    document_text: str = Field(default="")
    current_question: CurrentQuestion
    # Fields the author edited by hand; the regenerated draft must keep them
    dirty_fields: list[RegenerableField] = Field(default_factory=list)


class RegenerateQuestionOut(BaseModel):
    question: CurrentQuestion
    preserved_fields: list[str]
