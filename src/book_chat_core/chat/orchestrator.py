from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from book_chat_core.chat.prompt import GroundedPromptBuilder
from book_chat_core.chat.providers.base import ChatProvider, GroundedRequest, TokenUsage
from book_chat_core.errors import (
    AllProvidersUnavailable,
    ContentNotReady,
    ProviderError,
    RequestRejected,
)
from book_chat_core.models import Book, ChatTurn, ExtractionStatus

logger = logging.getLogger(__name__)

METHOD_PRIMARY = "primary"
METHOD_PRIMARY_RETRY = "primary-retry"
METHOD_FALLBACK = "fallback"


@dataclass(frozen=True)
class ProviderResponse:
    text: str
    usage: TokenUsage
    provider_id: str
    model_id: str
    method: str


def _attempt_plan(providers: Sequence[ChatProvider]) -> list[tuple[ChatProvider, str]]:
    plan: list[tuple[ChatProvider, str]] = []
    for i, provider in enumerate(providers):
        if i == 0:
            plan.append((provider, METHOD_PRIMARY))
            plan.append((provider, METHOD_PRIMARY_RETRY))
        else:
            plan.append((provider, METHOD_FALLBACK))
    return plan


class ChatOrchestrator:
    """
    Grounds a chat turn on a book's extracted text and routes it through the configured
    providers: the primary, one retry of the primary for retryable failures, then each
    fallback in order with the same request. The retry waits `retry_backoff_s` first.
    """

    def __init__(
        self,
        providers: Sequence[ChatProvider],
        *,
        prompt_builder: GroundedPromptBuilder | None = None,
        retry_backoff_s: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if retry_backoff_s < 0:
            raise ValueError("retry_backoff_s must be >= 0")
        self._providers = list(providers)
        self._prompt_builder = prompt_builder or GroundedPromptBuilder()
        self._retry_backoff_s = retry_backoff_s
        self._sleep = sleep

    @property
    def providers(self) -> list[ChatProvider]:
        return list(self._providers)

    def prepare(self, book: Book, history: Sequence[ChatTurn], message: str) -> GroundedRequest:
        if book.extraction_status is not ExtractionStatus.COMPLETED:
            raise ContentNotReady(
                f"Book content is not ready for chat (extraction status: {book.extraction_status.value})",
                status=book.extraction_status.value,
            )
        return self._prompt_builder.build(book, history, message)

    def chat(self, book: Book, history: Sequence[ChatTurn], message: str) -> ProviderResponse:
        return self.dispatch(self.prepare(book, history, message))

    def dispatch(self, request: GroundedRequest) -> ProviderResponse:
        attempts: list[tuple[str, str, ProviderError]] = []
        skip: set[int] = set()
        for provider, method in _attempt_plan(self._providers):
            if id(provider) in skip:
                continue
            if method == METHOD_PRIMARY_RETRY and self._retry_backoff_s:
                self._sleep(self._retry_backoff_s)
            try:
                reply = provider.generate(request)
            except ProviderError as e:
                attempts.append((provider.provider_id, method, e))
                if e.request_shaped:
                    logger.warning("Provider %s rejected the request (%s); not falling back", provider.provider_id, e)
                    raise RequestRejected(str(e), cause=e) from e
                logger.warning("Chat provider %s failed on %s attempt: %s", provider.provider_id, method, e)
                if not e.retryable:
                    skip.add(id(provider))
                continue
            return ProviderResponse(
                text=reply.text,
                usage=reply.usage,
                provider_id=provider.provider_id,
                model_id=reply.model,
                method=method,
            )

        logger.error("All chat providers failed after %d attempt(s)", len(attempts))
        raise AllProvidersUnavailable(attempts)
