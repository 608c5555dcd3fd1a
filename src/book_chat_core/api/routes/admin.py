"""Bulk extraction for administrators."""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractContextManager

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status

from book_chat_core.api.dependencies import get_book_repo, require_admin
from book_chat_core.api.schemas import BulkExtractionOut, ExtractionStatsOut
from book_chat_core.events import ContentExtractedEvent
from book_chat_core.extraction import ExtractionService, ExtractionStore, Extractor
from book_chat_core.models import Caller
from book_chat_core.repositories import BookRepository

logger = logging.getLogger(__name__)

admin_router = APIRouter(prefix="/admin", tags=["Admin"])


def run_bulk_extraction(
    open_store: Callable[[], AbstractContextManager[ExtractionStore]],
    extractor: Extractor,
    book_ids: list[str],
    *,
    stale_after_s: int,
    publish: Callable[[ContentExtractedEvent], None] | None = None,
) -> None:
    """
    Extracts each book in turn on its own connection. A failing book is recorded by the
    service and does not stop the batch.
    """
    completed = failed = 0
    with open_store() as store:
        service = ExtractionService(store, extractor, stale_after_s=stale_after_s, publish=publish)
        for book_id in book_ids:
            try:
                outcome = service.ensure_extracted(book_id)
            except Exception:  # noqa: BLE001
                logger.exception("Bulk extraction crashed on book %s", book_id)
                failed += 1
                continue
            if outcome.error:
                failed += 1
            else:
                completed += 1
    logger.info("Bulk extraction finished: %d ok, %d failed, %d total", completed, failed, len(book_ids))


@admin_router.get("/books/extract-all", response_model=ExtractionStatsOut)
def get_extraction_stats(
    caller: Caller = Depends(require_admin),
    books: BookRepository = Depends(get_book_repo),
) -> ExtractionStatsOut:
    stats = books.extraction_stats()
    return ExtractionStatsOut(
        total=stats.total,
        with_content=stats.completed,
        without_content=stats.total - stats.completed,
        processing=stats.processing,
        failed=stats.failed,
        completion_percentage=stats.completion_percentage,
    )


@admin_router.post(
    "/books/extract-all",
    response_model=BulkExtractionOut,
    status_code=status.HTTP_202_ACCEPTED,
)
def start_bulk_extraction(
    request: Request,
    background_tasks: BackgroundTasks,
    caller: Caller = Depends(require_admin),
    books: BookRepository = Depends(get_book_repo),
) -> BulkExtractionOut:
    book_ids = books.list_extraction_candidates()
    if book_ids:
        state = request.app.state
        background_tasks.add_task(
            run_bulk_extraction,
            state.open_book_store,
            state.extractor,
            book_ids,
            stale_after_s=state.settings.extraction_stale_after_s,
            publish=state.publish,
        )
    logger.info("Admin %s scheduled extraction for %d book(s)", caller.user_id, len(book_ids))
    return BulkExtractionOut(
        message=f"Extraction scheduled for {len(book_ids)} book(s)",
        scheduled=len(book_ids),
    )
