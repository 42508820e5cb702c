from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class LLMMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class LLMRequest(BaseModel):
    messages: list[LLMMessage]
    model: str

    temperature: float = 0.3
    max_output_tokens: int = 800

    # Delegate name ("grading", "hint", ...); used for logging and by the mock client
    task: str = "generic"
    metadata: dict[str, Any] = Field(default_factory=dict)


class LLMResponse(BaseModel):
    text: str
    raw: Optional[dict[str, Any]] = None

    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None
