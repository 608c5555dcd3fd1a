from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from book_chat_core.chat.orchestrator import ChatOrchestrator, ProviderResponse
from book_chat_core.chat.sessions import AppendResult, SessionManager
from book_chat_core.models import Book, Caller, ChatTurn, MessageRole


@dataclass(frozen=True)
class MessageLog:
    writes: list[AppendResult] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return all(w.ok for w in self.writes)


@dataclass(frozen=True)
class ChatTurnResult:
    """
    The user-facing answer and the audit-log outcome, kept apart: a failed log write never
    turns a successful answer into an error.
    """

    response: ProviderResponse
    session_id: str
    conversation_history: list[ChatTurn]
    log: MessageLog


class ChatService:
    def __init__(self, orchestrator: ChatOrchestrator, sessions: SessionManager):
        self._orchestrator = orchestrator
        self._sessions = sessions

    def converse(
        self,
        *,
        book: Book,
        caller: Caller,
        message: str,
        history: Sequence[ChatTurn] = (),
        session_id: str | None = None,
    ) -> ChatTurnResult:
        """
        One chat turn. Gates (type, access, file) are the caller's responsibility; the
        orchestrator validates the message and the extraction state before any log write.
        """
        message = message.strip()
        resolved = self._sessions.resolve_session(book.book_id, caller.user_id, session_id)

        # Validation and readiness errors must surface before anything is logged.
        request = self._orchestrator.prepare(book, history, message)

        user_write = self._sessions.try_append(
            book_id=book.book_id,
            session_id=resolved,
            user_id=caller.user_id,
            role=MessageRole.USER,
            content=message,
        )
        response = self._orchestrator.dispatch(request)
        assistant_write = self._sessions.try_append(
            book_id=book.book_id,
            session_id=resolved,
            user_id=caller.user_id,
            role=MessageRole.ASSISTANT,
            content=response.text,
        )

        turns = [ChatTurn(role=t.role, content=t.content) for t in history]
        turns.append(ChatTurn(role=MessageRole.USER, content=message))
        turns.append(ChatTurn(role=MessageRole.ASSISTANT, content=response.text))
        return ChatTurnResult(
            response=response,
            session_id=resolved,
            conversation_history=turns,
            log=MessageLog(writes=[user_write, assistant_write]),
        )
