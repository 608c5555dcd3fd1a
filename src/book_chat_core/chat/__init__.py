from book_chat_core.chat.orchestrator import (
    METHOD_FALLBACK,
    METHOD_PRIMARY,
    METHOD_PRIMARY_RETRY,
    ChatOrchestrator,
    ProviderResponse,
)
from book_chat_core.chat.prefill import prefilled_question
from book_chat_core.chat.prompt import GroundedPromptBuilder
from book_chat_core.chat.service import ChatService, ChatTurnResult, MessageLog
from book_chat_core.chat.sessions import AppendResult, SessionManager

__all__ = [
    "AppendResult",
    "ChatOrchestrator",
    "ChatService",
    "ChatTurnResult",
    "GroundedPromptBuilder",
    "METHOD_FALLBACK",
    "METHOD_PRIMARY",
    "METHOD_PRIMARY_RETRY",
    "MessageLog",
    "ProviderResponse",
    "SessionManager",
    "prefilled_question",
]
