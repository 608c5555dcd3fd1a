from __future__ import annotations

import logging
from collections.abc import Callable

from book_chat_core.chat.providers.base import (
    ChatProvider,
    GroundedRequest,
    HttpChatProvider,
    ProviderReply,
    TokenUsage,
)
from book_chat_core.chat.providers.gemini import GeminiProvider
from book_chat_core.chat.providers.openai_compat import OpenAICompatibleProvider
from book_chat_core.config import Settings

logger = logging.getLogger(__name__)


def _zai(settings: Settings) -> ChatProvider | None:
    if settings.zai_api_key is None:
        return None
    return OpenAICompatibleProvider(
        provider_id="zai",
        model=settings.zai_model,
        base_url=settings.zai_base_url,
        api_key=settings.zai_api_key.get_secret_value(),
        max_tokens=settings.chat_max_output_tokens,
        temperature=settings.chat_temperature,
        timeout_s=settings.chat_provider_timeout_s,
    )


def _gemini(settings: Settings) -> ChatProvider | None:
    if settings.gemini_api_key is None:
        return None
    return GeminiProvider(
        model=settings.gemini_model,
        api_key=settings.gemini_api_key.get_secret_value(),
        base_url=settings.gemini_base_url,
        max_output_tokens=settings.chat_max_output_tokens,
        temperature=settings.chat_temperature,
        timeout_s=settings.chat_provider_timeout_s,
    )


PROVIDER_FACTORIES: dict[str, Callable[[Settings], ChatProvider | None]] = {
    "zai": _zai,
    "gemini": _gemini,
}


def build_providers(settings: Settings) -> list[ChatProvider]:
    """
    Providers in the configured static order; entries without credentials are skipped.
    """
    providers: list[ChatProvider] = []
    for name in settings.provider_order():
        provider = PROVIDER_FACTORIES[name](settings)
        if provider is None:
            logger.warning("Chat provider %s listed in CHAT_PROVIDER_ORDER but has no API key; skipping", name)
            continue
        providers.append(provider)
    return providers


__all__ = [
    "ChatProvider",
    "GeminiProvider",
    "GroundedRequest",
    "HttpChatProvider",
    "OpenAICompatibleProvider",
    "PROVIDER_FACTORIES",
    "ProviderReply",
    "TokenUsage",
    "build_providers",
]
