from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from book_chat_core.models import ChatMessage, MessageRole
from book_chat_core.util import new_session_id

logger = logging.getLogger(__name__)


class MessageStore(Protocol):
    def append_message(
        self,
        *,
        book_id: str,
        session_id: str,
        user_id: str,
        role: MessageRole,
        content: str,
    ) -> ChatMessage: ...

    def list_session_messages(self, *, book_id: str, session_id: str, user_id: str) -> list[ChatMessage]: ...


@dataclass(frozen=True)
class AppendResult:
    """Outcome of a best-effort log write; `message_index` is None when the write failed."""

    role: MessageRole
    message_index: int | None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.message_index is not None


class SessionManager:
    def __init__(self, store: MessageStore):
        self._store = store

    def resolve_session(self, book_id: str, user_id: str, provided_session_id: str | None = None) -> str:
        if provided_session_id:
            return provided_session_id
        session_id = new_session_id()
        logger.debug("New chat session %s for book %s user %s", session_id, book_id, user_id)
        return session_id

    def append(
        self,
        *,
        book_id: str,
        session_id: str,
        user_id: str,
        role: MessageRole,
        content: str,
    ) -> int:
        message = self._store.append_message(
            book_id=book_id,
            session_id=session_id,
            user_id=user_id,
            role=role,
            content=content,
        )
        return message.message_index

    def try_append(
        self,
        *,
        book_id: str,
        session_id: str,
        user_id: str,
        role: MessageRole,
        content: str,
    ) -> AppendResult:
        """
        `append` for the chat path: a failed write is logged and reported, never raised, so
        the user still gets the answer. The next append recomputes its index from the store.
        """
        try:
            index = self.append(
                book_id=book_id,
                session_id=session_id,
                user_id=user_id,
                role=role,
                content=content,
            )
        except Exception as e:  # noqa: BLE001
            logger.exception(
                "Failed to save %s message for book %s session %s",
                role.value,
                book_id,
                session_id,
            )
            return AppendResult(role=role, message_index=None, error=str(e) or e.__class__.__name__)
        return AppendResult(role=role, message_index=index)

    def history(self, *, book_id: str, session_id: str, user_id: str) -> list[ChatMessage]:
        return self._store.list_session_messages(book_id=book_id, session_id=session_id, user_id=user_id)
