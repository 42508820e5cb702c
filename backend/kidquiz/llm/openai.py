from __future__ import annotations

from typing import Any

import httpx

from kidquiz.core.config import settings
from kidquiz.llm.client import LLMClient, LLMError
from kidquiz.llm.types import LLMRequest, LLMResponse


class OpenAIClient(LLMClient):
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.OPENAI_API_KEY
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS
        self._transport = transport

    async def generate(self, req: LLMRequest) -> LLMResponse:
        if not self.api_key:
            raise LLMError("OPENAI_API_KEY is not set")

        url = f"{self.base_url}/chat/completions"
        payload: dict[str, Any] = {
            "model": req.model,
            "messages": [{"role": m.role, "content": m.content} for m in req.messages],
            "temperature": req.temperature,
            "max_tokens": req.max_output_tokens,
        }
        if req.metadata.get("json"):
            payload["response_format"] = {"type": "json_object"}

        headers = {"Authorization": f"Bearer {self.api_key}"}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            r = await client.post(url, json=payload, headers=headers)
            r.raise_for_status()
            data = r.json()

        choices = data.get("choices") or []
        text = ""
        if choices:
            text = (choices[0].get("message") or {}).get("content") or ""
        if not text:
            raise LLMError("Empty completion")

        usage = data.get("usage") or {}
        return LLMResponse(
            text=text,
            raw=data,
            input_tokens=usage.get("prompt_tokens"),
            output_tokens=usage.get("completion_tokens"),
            total_tokens=usage.get("total_tokens"),
        )
