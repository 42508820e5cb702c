from __future__ import annotations

from abc import ABC, abstractmethod

from kidquiz.llm.types import LLMRequest, LLMResponse


class LLMError(Exception):
    """Provider call failed in a way that is not an HTTP transport error."""


class LLMClient(ABC):
    @abstractmethod
    async def generate(self, req: LLMRequest) -> LLMResponse:
        raise NotImplementedError
