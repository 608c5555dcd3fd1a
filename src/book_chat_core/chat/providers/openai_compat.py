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


class OpenAICompatibleProvider(HttpChatProvider):
    """
    Any `/chat/completions` backend speaking the OpenAI wire format (z.ai GLM by default).
    """

    def __init__(
        self,
        *,
        provider_id: str,
        model: str,
        base_url: str,
        api_key: str | None = None,
        max_tokens: int = 8000,
        temperature: float = 0.3,
        timeout_s: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ):
        super().__init__(
            provider_id=provider_id,
            model=model,
            base_url=base_url,
            timeout_s=timeout_s,
            transport=transport,
        )
        self.api_key = api_key
        self.max_tokens = max_tokens
        self.temperature = temperature

    def _url(self) -> str:
        return self.base_url + "/chat/completions"

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}"}

    def _payload(self, request: GroundedRequest) -> dict[str, Any]:
        messages: list[dict[str, str]] = [{"role": "system", "content": request.system_prompt}]
        messages.extend({"role": m.role.value, "content": m.content} for m in request.messages)
        return {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    def _parse(self, payload: dict[str, Any]) -> ProviderReply:
        choices = payload.get("choices") or []
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise ProviderMalformedResponse(self.provider_id, "response missing choices")
        msg = choices[0].get("message") if isinstance(choices[0].get("message"), dict) else {}
        content = msg.get("content")
        if not isinstance(content, str) or not content.strip():
            raise ProviderMalformedResponse(self.provider_id, "empty completion")

        usage = payload.get("usage") if isinstance(payload.get("usage"), dict) else {}
        prompt_tokens = as_int(usage.get("prompt_tokens"))
        completion_tokens = as_int(usage.get("completion_tokens"))
        return ProviderReply(
            text=content.strip(),
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=as_int(usage.get("total_tokens")) or prompt_tokens + completion_tokens,
            ),
            model=str(payload.get("model") or self.model),
        )
