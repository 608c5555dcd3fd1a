from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from book_chat_core.errors import (
    ProviderAuthError,
    ProviderError,
    ProviderMalformedResponse,
    ProviderRateLimited,
    ProviderRequestRejected,
    ProviderServerError,
    ProviderTimeout,
)
from book_chat_core.models import ChatTurn


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class GroundedRequest:
    """Provider-neutral request: system framing plus the chronological turns, ending with the new user message."""

    system_prompt: str
    messages: list[ChatTurn] = field(default_factory=list)


@dataclass(frozen=True)
class ProviderReply:
    text: str
    usage: TokenUsage
    model: str


class ChatProvider(ABC):
    provider_id: str
    model: str

    @abstractmethod
    def generate(self, request: GroundedRequest) -> ProviderReply:
        """Raises a `ProviderError` subclass on any failure."""


class HttpChatProvider(ChatProvider):
    """
    Shared plumbing for JSON-over-HTTP providers: one POST per call, transport errors and
    status codes mapped onto the provider error taxonomy.
    """

    def __init__(
        self,
        *,
        provider_id: str,
        model: str,
        base_url: str,
        timeout_s: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.provider_id = provider_id
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport

    @abstractmethod
    def _url(self) -> str: ...

    @abstractmethod
    def _headers(self) -> dict[str, str]: ...

    @abstractmethod
    def _payload(self, request: GroundedRequest) -> dict[str, Any]: ...

    @abstractmethod
    def _parse(self, payload: dict[str, Any]) -> ProviderReply: ...

    def generate(self, request: GroundedRequest) -> ProviderReply:
        try:
            with httpx.Client(timeout=self.timeout_s, transport=self._transport) as client:
                r = client.post(self._url(), headers=self._headers(), json=self._payload(request))
        except httpx.TimeoutException as e:
            raise ProviderTimeout(self.provider_id, f"timed out after {self.timeout_s}s") from e
        except httpx.TransportError as e:
            raise ProviderServerError(self.provider_id, f"transport error: {e}") from e

        raise_for_provider_status(self.provider_id, r)
        try:
            payload = r.json()
        except ValueError as e:
            raise ProviderMalformedResponse(self.provider_id, "response is not JSON") from e
        if not isinstance(payload, dict):
            raise ProviderMalformedResponse(self.provider_id, "response is not a JSON object")
        return self._parse(payload)


def raise_for_provider_status(provider_id: str, r: httpx.Response) -> None:
    code = r.status_code
    if code < 400:
        return
    detail = r.text[:200]
    if code == 429:
        raise ProviderRateLimited(provider_id, f"rate limited: {detail}", status_code=code)
    if code in (401, 403):
        raise ProviderAuthError(provider_id, f"authentication failed ({code})", status_code=code)
    if code in (400, 413, 422):
        raise ProviderRequestRejected(provider_id, f"request rejected ({code}): {detail}", status_code=code)
    if code >= 500 or code in (408, 409):
        raise ProviderServerError(provider_id, f"server error ({code}): {detail}", status_code=code)
    raise ProviderError(provider_id, f"unexpected status {code}: {detail}", status_code=code)


def as_int(value: object) -> int:
    return value if isinstance(value, int) else 0
