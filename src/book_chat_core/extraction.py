from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol
from uuid import UUID, uuid4

from book_chat_core.errors import BookNotFound, ExtractionError
from book_chat_core.events import ContentExtractedEvent
from book_chat_core.models import Book, ExtractedContent, ExtractionStatus

logger = logging.getLogger(__name__)


class ExtractionStore(Protocol):
    def get_book(self, book_id: str) -> Book | None: ...

    def claim_extraction(
        self,
        book_id: str,
        *,
        expected_status: ExtractionStatus,
        token: UUID,
        stale_after_s: int,
    ) -> bool: ...

    def complete_extraction(self, book_id: str, *, token: UUID, content: ExtractedContent) -> int | None: ...

    def fail_extraction(self, book_id: str, *, token: UUID, reason: str) -> bool: ...

    def invalidate_extraction(self, book_id: str) -> bool: ...


class Extractor(Protocol):
    def extract(self, book: Book) -> ExtractedContent: ...


@dataclass(frozen=True)
class ExtractionOutcome:
    book: Book
    # True only for the caller that actually ran the extractor in this call.
    extracted_now: bool = False
    error: str | None = None

    @property
    def status(self) -> ExtractionStatus:
        return self.book.extraction_status

    @property
    def version(self) -> int:
        return self.book.content_version


class ExtractionService:
    """
    Keeps a book's extracted text in step with its source file, extracting at most once per
    content version.

    The persisted `extraction_status` is the only coordination point: every transition is a
    conditional update, so a caller that loses the race simply reports the state the winner
    left behind and the client keeps polling.
    """

    def __init__(
        self,
        store: ExtractionStore,
        extractor: Extractor,
        *,
        stale_after_s: int = 900,
        publish: Callable[[ContentExtractedEvent], None] | None = None,
    ):
        self._store = store
        self._extractor = extractor
        self._stale_after_s = stale_after_s
        self._publish = publish

    def status(self, book_id: str) -> Book:
        book = self._store.get_book(book_id)
        if book is None:
            raise BookNotFound(book_id)
        return book

    def ensure_extracted(self, book_id: str, *, expected_hash: str | None = None) -> ExtractionOutcome:
        book = self.status(book_id)

        if book.extraction_status is ExtractionStatus.COMPLETED and (
            expected_hash is None or expected_hash == book.content_hash
        ):
            return ExtractionOutcome(book=book)

        token = uuid4()
        claimed = self._store.claim_extraction(
            book_id,
            expected_status=book.extraction_status,
            token=token,
            stale_after_s=self._stale_after_s,
        )
        if not claimed:
            current = self.status(book_id)
            logger.info(
                "Extraction for book %s not claimed; current status %s",
                book_id,
                current.extraction_status.value,
            )
            return ExtractionOutcome(book=current, error=current.extraction_error)

        logger.info("Claimed extraction for book %s (was %s)", book_id, book.extraction_status.value)
        return self._run_claimed(book, token)

    def invalidate(self, book_id: str) -> Book:
        if not self._store.invalidate_extraction(book_id):
            raise BookNotFound(book_id)
        logger.info("Extraction cache invalidated for book %s", book_id)
        return self.status(book_id)

    def _run_claimed(self, book: Book, token: UUID) -> ExtractionOutcome:
        try:
            content = self._extractor.extract(book)
        except ExtractionError as e:
            logger.warning("Extraction failed for book %s: %s", book.book_id, e.reason)
            self._store.fail_extraction(book.book_id, token=token, reason=e.reason)
            return ExtractionOutcome(book=self.status(book.book_id), error=e.reason)
        except Exception:
            logger.exception("Unexpected extraction error for book %s", book.book_id)
            self._store.fail_extraction(book.book_id, token=token, reason="internal error")
            raise

        version = self._store.complete_extraction(book.book_id, token=token, content=content)
        current = self.status(book.book_id)
        if version is None:
            logger.warning(
                "Extraction result for book %s discarded: claim superseded (status %s)",
                book.book_id,
                current.extraction_status.value,
            )
            return ExtractionOutcome(book=current)

        logger.info("Extraction completed for book %s: version %d", book.book_id, version)
        self._notify(current, content)
        return ExtractionOutcome(book=current, extracted_now=True)

    def _notify(self, book: Book, content: ExtractedContent) -> None:
        if self._publish is None:
            return
        event = ContentExtractedEvent(
            event_id=uuid4(),
            book_id=book.book_id,
            content_hash=content.hash,
            content_version=book.content_version,
            word_count=content.word_count,
            page_count=content.page_count,
            size_bytes=content.size_bytes,
            extracted_at=book.extracted_at or datetime.now(timezone.utc),
        )
        try:
            self._publish(event)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to publish extraction event for book %s", book.book_id)
