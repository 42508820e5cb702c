from __future__ import annotations

from kidquiz.llm.client import LLMClient
from kidquiz.llm.mock import MockLLMClient
from kidquiz.llm.openai import OpenAIClient


def get_llm_client(provider: str) -> LLMClient:
    p = (provider or "").strip().lower()
    if p in ("mock", "dev"):
        return MockLLMClient()
    if p in ("openai", "azure_openai"):
        # Azure OpenAI works through OPENAI_BASE_URL + key with the same client
        return OpenAIClient()
    raise ValueError(f"Unknown LLM provider: {provider!r}")
