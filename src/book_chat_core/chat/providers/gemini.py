from __future__ import annotations

from typing import Any

import httpx

from book_chat_core.chat.providers.base import (
    GroundedRequest,
    HttpChatProvider,
    ProviderReply,
    TokenUsage,
    as_int,
)
from book_chat_core.errors import ProviderMalformedResponse
from book_chat_core.models import MessageRole


class GeminiProvider(HttpChatProvider):
    def __init__(
        self,
        *,
        model: str,
        api_key: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        max_output_tokens: int = 8000,
        temperature: float = 0.3,
        timeout_s: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ):
        super().__init__(
            provider_id="gemini",
            model=model,
            base_url=base_url,
            timeout_s=timeout_s,
            transport=transport,
        )
        self.api_key = api_key
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature

    def _url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def _headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self.api_key}

    def _payload(self, request: GroundedRequest) -> dict[str, Any]:
        # Gemini calls the assistant role "model".
        contents = [
            {
                "role": "model" if m.role is MessageRole.ASSISTANT else "user",
                "parts": [{"text": m.content}],
            }
            for m in request.messages
        ]
        return {
            "systemInstruction": {"parts": [{"text": request.system_prompt}]},
            "contents": contents,
            "generationConfig": {
                "temperature": self.temperature,
                "topP": 0.8,
                "maxOutputTokens": self.max_output_tokens,
            },
        }

    def _parse(self, payload: dict[str, Any]) -> ProviderReply:
        candidates = payload.get("candidates") or []
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            raise ProviderMalformedResponse(self.provider_id, "response missing candidates")
        content = candidates[0].get("content") if isinstance(candidates[0].get("content"), dict) else {}
        parts = content.get("parts") if isinstance(content.get("parts"), list) else []
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str))
        if not text.strip():
            finish = candidates[0].get("finishReason")
            raise ProviderMalformedResponse(self.provider_id, f"empty candidate (finishReason={finish})")

        meta = payload.get("usageMetadata") if isinstance(payload.get("usageMetadata"), dict) else {}
        prompt_tokens = as_int(meta.get("promptTokenCount"))
        completion_tokens = as_int(meta.get("candidatesTokenCount"))
        return ProviderReply(
            text=text.strip(),
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=as_int(meta.get("totalTokenCount")) or prompt_tokens + completion_tokens,
            ),
            model=str(payload.get("modelVersion") or self.model),
        )
