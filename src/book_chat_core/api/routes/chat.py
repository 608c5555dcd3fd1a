"""Chat availability, chat turn and session history endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from book_chat_core.access import chat_availability, chat_type_gate
from book_chat_core.api.dependencies import get_book_repo, get_caller, get_chat_service, get_message_repo
from book_chat_core.api.errors import ApiError
from book_chat_core.api.schemas import (
    ChatAvailabilityOut,
    ChatRequest,
    ChatResponse,
    HistoryItem,
    SessionMessageOut,
    SessionMessagesOut,
    UsageOut,
)
from book_chat_core.chat.prefill import prefilled_question
from book_chat_core.chat.service import ChatService
from book_chat_core.errors import BookNotFound, InvalidMessage
from book_chat_core.models import Book, Caller, ChatTurn, MessageRole
from book_chat_core.repositories import BookRepository, ChatMessageRepository

logger = logging.getLogger(__name__)

chat_router = APIRouter(tags=["Chat"])


def _load_book(books: BookRepository, book_id: str) -> Book:
    book = books.get_book(book_id)
    if book is None:
        raise BookNotFound(book_id)
    return book


@chat_router.get("/books/{book_id}/chat", response_model=ChatAvailabilityOut)
def get_chat_availability(
    book_id: str,
    caller: Caller = Depends(get_caller),
    books: BookRepository = Depends(get_book_repo),
) -> ChatAvailabilityOut:
    availability = chat_availability(_load_book(books, book_id), caller)
    return ChatAvailabilityOut(
        available=availability.available,
        book_type=availability.book_type,
        has_file=availability.has_file,
        has_access=availability.has_access,
        reason=availability.reason,
    )


@chat_router.post("/books/{book_id}/chat", response_model=ChatResponse)
def post_chat(
    book_id: str,
    body: ChatRequest,
    caller: Caller = Depends(get_caller),
    books: BookRepository = Depends(get_book_repo),
    chat: ChatService = Depends(get_chat_service),
) -> ChatResponse:
    """
    One grounded chat turn. Gate failures map to 400 (type, file) or 403 (access); content
    that is not extracted yet maps to 409 so the client can trigger extraction and poll.
    """
    message = (body.message or "").strip()
    if not message and not body.generate_prefilled:
        raise InvalidMessage("Message must not be empty")

    book = _load_book(books, book_id)
    availability = chat_availability(book, caller)
    if not availability.available:
        code = 403 if chat_type_gate(book).allowed and availability.has_file else 400
        logger.info("Chat denied for user %s on book %s: %s", caller.user_id, book_id, availability.reason)
        raise ApiError(code, availability.reason)

    if not message:
        message = prefilled_question(book)

    history = [ChatTurn(role=MessageRole(h.role), content=h.content) for h in body.conversation_history]
    result = chat.converse(
        book=book,
        caller=caller,
        message=message,
        history=history,
        session_id=body.session_id,
    )
    if not result.log.complete:
        logger.warning(
            "Chat answered for book %s session %s but the message log is incomplete",
            book_id,
            result.session_id,
        )

    response = result.response
    return ChatResponse(
        response=response.text,
        conversation_history=[
            HistoryItem(role=t.role.value, content=t.content) for t in result.conversation_history
        ],
        session_id=result.session_id,
        usage=UsageOut(
            prompt_tokens=response.usage.prompt_tokens,
            completion_tokens=response.usage.completion_tokens,
            total_tokens=response.usage.total_tokens,
        ),
        provider=response.provider_id,
        model=response.model_id,
        method=response.method,
        messages_persisted=result.log.complete,
    )


@chat_router.get("/books/{book_id}/chat/sessions/{session_id}", response_model=SessionMessagesOut)
def get_session_messages(
    book_id: str,
    session_id: str,
    caller: Caller = Depends(get_caller),
    books: BookRepository = Depends(get_book_repo),
    messages: ChatMessageRepository = Depends(get_message_repo),
) -> SessionMessagesOut:
    _load_book(books, book_id)
    rows = messages.list_session_messages(book_id=book_id, session_id=session_id, user_id=caller.user_id)
    return SessionMessagesOut(
        book_id=book_id,
        session_id=session_id,
        messages=[
            SessionMessageOut(
                message_id=m.message_id,
                role=m.role.value,
                content=m.content,
                message_index=m.message_index,
                created_at=m.created_at,
            )
            for m in rows
        ],
    )
