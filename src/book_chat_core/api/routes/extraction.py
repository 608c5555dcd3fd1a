"""Extraction status, trigger and invalidation endpoints for a single book."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from book_chat_core.access import can_access, chat_type_gate, file_gate
from book_chat_core.api.dependencies import (
    get_caller,
    get_extraction_service,
    require_admin,
)
from book_chat_core.api.errors import ApiError
from book_chat_core.api.schemas import ExtractContentOut, ExtractionStatusOut
from book_chat_core.extraction import ExtractionOutcome, ExtractionService
from book_chat_core.models import Book, Caller, ExtractionStatus

logger = logging.getLogger(__name__)

extraction_router = APIRouter(tags=["Extraction"])


def status_out(book: Book) -> ExtractionStatusOut:
    done = book.extraction_status is ExtractionStatus.COMPLETED
    return ExtractionStatusOut(
        has_content=done,
        status=book.extraction_status.value,
        word_count=book.word_count if done else None,
        page_count=book.page_count if done else None,
        version=book.content_version or None,
        extracted_at=book.extracted_at if done else None,
        error=book.extraction_error if book.extraction_status is ExtractionStatus.FAILED else None,
    )


def _outcome_response(outcome: ExtractionOutcome) -> JSONResponse:
    book = outcome.book
    status = outcome.status
    if status is ExtractionStatus.COMPLETED:
        body = ExtractContentOut(
            message="Content extracted successfully" if outcome.extracted_now else "Content already extracted",
            status=status.value,
            word_count=book.word_count,
            page_count=book.page_count,
            size=book.size_bytes,
            version=book.content_version,
        )
        code = 200
    elif status is ExtractionStatus.FAILED:
        body = ExtractContentOut(
            message="Content extraction failed",
            status=status.value,
            error=outcome.error or book.extraction_error,
        )
        code = 200
    else:
        # Another worker holds the claim (or it was just invalidated); the client polls.
        body = ExtractContentOut(message="Content extraction in progress", status=status.value)
        code = 202
    return JSONResponse(status_code=code, content=body.model_dump(by_alias=True, exclude_none=True))


@extraction_router.get("/books/{book_id}/extract-content", response_model=ExtractionStatusOut)
def get_extraction_status(
    book_id: str,
    caller: Caller = Depends(get_caller),
    service: ExtractionService = Depends(get_extraction_service),
) -> ExtractionStatusOut:
    return status_out(service.status(book_id))


@extraction_router.post("/books/{book_id}/extract-content")
def extract_content(
    book_id: str,
    expected_hash: str | None = Query(default=None, alias="expectedHash"),
    caller: Caller = Depends(get_caller),
    service: ExtractionService = Depends(get_extraction_service),
) -> JSONResponse:
    """
    Runs (or joins) the extraction for a book. Completed content is returned from the cache
    unless `expectedHash` no longer matches the stored fingerprint.
    """
    book = service.status(book_id)
    for gate in (chat_type_gate(book), file_gate(book)):
        if not gate.allowed:
            raise ApiError(400, gate.reason)
    access = can_access(book, caller)
    if not access.allowed:
        logger.info("Extraction denied for user %s on book %s: %s", caller.user_id, book_id, access.reason)
        raise ApiError(403, access.reason)

    outcome = service.ensure_extracted(book_id, expected_hash=expected_hash)
    return _outcome_response(outcome)


@extraction_router.delete("/books/{book_id}/extract-content", response_model=ExtractionStatusOut)
def invalidate_content(
    book_id: str,
    caller: Caller = Depends(require_admin),
    service: ExtractionService = Depends(get_extraction_service),
) -> ExtractionStatusOut:
    """Cache invalidation hook for when the catalog replaces a book's file."""
    return status_out(service.invalidate(book_id))
