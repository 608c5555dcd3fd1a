from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import psycopg
from fastapi import Depends, Header, Request

from book_chat_core.api.errors import ApiError
from book_chat_core.chat.service import ChatService
from book_chat_core.chat.sessions import SessionManager
from book_chat_core.config import Settings
from book_chat_core.db import PostgresConfig, connect
from book_chat_core.extraction import ExtractionService
from book_chat_core.models import Caller
from book_chat_core.repositories import BookRepository, CallerRepository, ChatMessageRepository

logger = logging.getLogger(__name__)


@contextmanager
def open_connection(settings: Settings) -> Iterator[psycopg.Connection]:
    cfg = PostgresConfig.from_settings(settings)
    with connect(cfg.build_dsn(), schema=cfg.schema) as conn:
        yield conn


@contextmanager
def open_book_store(settings: Settings) -> Iterator[BookRepository]:
    """Connection-scoped book repository for work that outlives a request (background tasks)."""
    with open_connection(settings) as conn:
        yield BookRepository(conn)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_conn(settings: Settings = Depends(get_settings)) -> Iterator[psycopg.Connection]:
    with open_connection(settings) as conn:
        yield conn


def get_book_repo(conn: psycopg.Connection = Depends(get_conn)) -> BookRepository:
    return BookRepository(conn)


def get_message_repo(conn: psycopg.Connection = Depends(get_conn)) -> ChatMessageRepository:
    return ChatMessageRepository(conn)


def get_caller_repo(
    conn: psycopg.Connection = Depends(get_conn),
    settings: Settings = Depends(get_settings),
) -> CallerRepository:
    return CallerRepository(conn, admin_roles=settings.admin_role_set())


def get_caller(
    x_user_id: str | None = Header(default=None),
    users: CallerRepository = Depends(get_caller_repo),
) -> Caller:
    """
    The authenticated caller. Authentication happens upstream; the gateway forwards the user
    id in `X-User-Id` and the role/premium flags are read from `users`.
    """
    if not x_user_id:
        raise ApiError(401, "Authentication required")
    caller = users.get_caller(x_user_id)
    if caller is None:
        raise ApiError(401, "Authentication required")
    return caller


def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_admin:
        logger.info("Admin endpoint denied for user %s (role %s)", caller.user_id, caller.role)
        raise ApiError(403, "Admin access required")
    return caller


def get_extraction_service(
    request: Request,
    books: BookRepository = Depends(get_book_repo),
) -> ExtractionService:
    state = request.app.state
    return ExtractionService(
        books,
        state.extractor,
        stale_after_s=state.settings.extraction_stale_after_s,
        publish=state.publish,
    )


def get_chat_service(
    request: Request,
    messages: ChatMessageRepository = Depends(get_message_repo),
) -> ChatService:
    return ChatService(request.app.state.orchestrator, SessionManager(messages))
