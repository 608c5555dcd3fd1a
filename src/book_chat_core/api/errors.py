from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from book_chat_core.errors import (
    AllProvidersUnavailable,
    BookNotFound,
    ChatError,
    ContentNotReady,
    MalformedContent,
)

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """An error response with a client-renderable reason: `{"error": reason, ...extra}`."""

    def __init__(self, status_code: int, error: str, **extra: Any):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.extra = extra


_CHAT_ERROR_STATUS: dict[type[ChatError], int] = {
    ContentNotReady: 409,
    MalformedContent: 409,
    AllProvidersUnavailable: 500,
}


def chat_error_status(exc: ChatError) -> int:
    for cls, status in _CHAT_ERROR_STATUS.items():
        if isinstance(exc, cls):
            return status
    return 400


def _body(error: str, **extra: Any) -> dict[str, Any]:
    return {"error": error, **{k: v for k, v in extra.items() if v is not None}}


async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=_body(exc.error, **exc.extra))


async def _book_not_found(request: Request, exc: BookNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content=_body("Book not found"))


async def _chat_error(request: Request, exc: ChatError) -> JSONResponse:
    status = chat_error_status(exc)
    if status >= 500:
        logger.error("Chat failed on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=status,
        content=_body(exc.message, kind=exc.kind, status=getattr(exc, "status", None)),
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error)
    app.add_exception_handler(BookNotFound, _book_not_found)
    app.add_exception_handler(ChatError, _chat_error)
