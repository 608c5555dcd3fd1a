"""In-memory stand-ins for the Postgres repositories and the AI providers."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

from book_chat_core.chat.providers.base import ChatProvider, GroundedRequest, ProviderReply, TokenUsage
from book_chat_core.models import (
    CHAT_BOOK_TYPES,
    Book,
    Caller,
    ChatMessage,
    ExtractedContent,
    ExtractionStatus,
    MessageRole,
)
from book_chat_core.repositories.books import ExtractionStats
from book_chat_core.util import count_words, sha256_text


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryBookStore:
    """Mirrors the conditional updates of `BookRepository` under a lock."""

    def __init__(self, books: list[Book] | None = None):
        self._lock = threading.Lock()
        self._books: dict[str, Book] = {}
        self._tokens: dict[str, UUID | None] = {}
        for book in books or []:
            self.put(book)

    def put(self, book: Book) -> None:
        with self._lock:
            self._books[book.book_id] = book
            self._tokens[book.book_id] = None

    def get_book(self, book_id: str) -> Book | None:
        with self._lock:
            return self._books.get(book_id)

    def claim_extraction(
        self,
        book_id: str,
        *,
        expected_status: ExtractionStatus,
        token: UUID,
        stale_after_s: int,
    ) -> bool:
        with self._lock:
            book = self._books.get(book_id)
            if book is None or book.extraction_status is not expected_status:
                return False
            if expected_status is ExtractionStatus.PROCESSING and book.extraction_started_at is not None:
                if book.extraction_started_at >= _now() - timedelta(seconds=stale_after_s):
                    return False
            self._books[book_id] = replace(
                book,
                extraction_status=ExtractionStatus.PROCESSING,
                extraction_started_at=_now(),
                extraction_error=None,
                extracted_text=None,
            )
            self._tokens[book_id] = token
            return True

    def complete_extraction(self, book_id: str, *, token: UUID, content: ExtractedContent) -> int | None:
        with self._lock:
            book = self._books.get(book_id)
            if book is None or book.extraction_status is not ExtractionStatus.PROCESSING:
                return None
            if self._tokens.get(book_id) != token:
                return None
            version = book.content_version + 1 if book.content_hash != content.hash else book.content_version
            self._books[book_id] = replace(
                book,
                extraction_status=ExtractionStatus.COMPLETED,
                extracted_text=content.text,
                content_hash=content.hash,
                content_version=version,
                word_count=content.word_count,
                page_count=content.page_count,
                size_bytes=content.size_bytes,
                extraction_error=None,
                extracted_at=_now(),
            )
            self._tokens[book_id] = None
            return version

    def fail_extraction(self, book_id: str, *, token: UUID, reason: str) -> bool:
        with self._lock:
            book = self._books.get(book_id)
            if book is None or book.extraction_status is not ExtractionStatus.PROCESSING:
                return False
            if self._tokens.get(book_id) != token:
                return False
            self._books[book_id] = replace(book, extraction_status=ExtractionStatus.FAILED, extraction_error=reason)
            self._tokens[book_id] = None
            return True

    def invalidate_extraction(self, book_id: str) -> bool:
        with self._lock:
            book = self._books.get(book_id)
            if book is None:
                return False
            self._books[book_id] = replace(
                book,
                extraction_status=ExtractionStatus.NONE,
                extracted_text=None,
                content_hash=None,
                extraction_error=None,
                extraction_started_at=None,
            )
            self._tokens[book_id] = None
            return True

    def _eligible(self) -> list[Book]:
        return [b for b in self._books.values() if b.book_type.upper() in CHAT_BOOK_TYPES and b.has_file]

    def list_extraction_candidates(self, *, limit: int = 500) -> list[str]:
        with self._lock:
            pending = (ExtractionStatus.NONE, ExtractionStatus.FAILED)
            return [b.book_id for b in self._eligible() if b.extraction_status in pending][:limit]

    def extraction_stats(self) -> ExtractionStats:
        with self._lock:
            books = self._eligible()

            def count(status: ExtractionStatus) -> int:
                return sum(1 for b in books if b.extraction_status is status)

            return ExtractionStats(
                total=len(books),
                completed=count(ExtractionStatus.COMPLETED),
                processing=count(ExtractionStatus.PROCESSING),
                failed=count(ExtractionStatus.FAILED),
                pending=count(ExtractionStatus.NONE),
            )


class InMemoryMessageStore:
    def __init__(self):
        self._lock = threading.Lock()
        self.rows: list[ChatMessage] = []
        self.fail_next = 0

    def append_message(
        self,
        *,
        book_id: str,
        session_id: str,
        user_id: str,
        role: MessageRole,
        content: str,
    ) -> ChatMessage:
        with self._lock:
            if self.fail_next:
                self.fail_next -= 1
                raise RuntimeError("message store unavailable")
            indices = [m.message_index for m in self.rows if m.book_id == book_id and m.session_id == session_id]
            message = ChatMessage(
                message_id=str(uuid4()),
                book_id=book_id,
                user_id=user_id,
                session_id=session_id,
                role=role,
                content=content,
                message_index=max(indices) + 1 if indices else 0,
                created_at=_now(),
            )
            self.rows.append(message)
            return message

    def list_session_messages(self, *, book_id: str, session_id: str, user_id: str) -> list[ChatMessage]:
        with self._lock:
            rows = [
                m
                for m in self.rows
                if m.book_id == book_id and m.session_id == session_id and m.user_id == user_id
            ]
        return sorted(rows, key=lambda m: m.message_index)


class InMemoryCallerStore:
    def __init__(self, callers: list[Caller] | None = None):
        self._callers = {c.user_id: c for c in callers or []}

    def get_caller(self, user_id: str) -> Caller | None:
        return self._callers.get(user_id)


class FakeProvider(ChatProvider):
    """Replays a script of replies and errors, one entry per call."""

    def __init__(self, provider_id: str, script: list[str | Exception] | None = None, *, model: str = "fake-model"):
        self.provider_id = provider_id
        self.model = model
        self.script = list(script or [])
        self.requests: list[GroundedRequest] = []

    def generate(self, request: GroundedRequest) -> ProviderReply:
        self.requests.append(request)
        item = self.script.pop(0) if self.script else f"{self.provider_id} answer"
        if isinstance(item, Exception):
            raise item
        return ProviderReply(
            text=item,
            usage=TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
            model=self.model,
        )


class FakeExtractor:
    def __init__(self, text: str = "Chapter one.\fChapter two.", *, error: Exception | None = None, gate=None):
        self.text = text
        self.error = error
        self.calls = 0
        self._gate = gate
        self._lock = threading.Lock()

    def extract(self, book: Book) -> ExtractedContent:
        with self._lock:
            self.calls += 1
        if self._gate is not None:
            self._gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return ExtractedContent(
            text=self.text,
            hash=sha256_text(self.text),
            word_count=count_words(self.text),
            page_count=self.text.count("\f") + 1,
            size_bytes=len(self.text.encode("utf-8")),
            extractor="fake",
        )


def make_book(book_id: str = "book-1", **overrides) -> Book:  # noqa: ANN003
    fields = {
        "book_id": book_id,
        "name": "The River",
        "book_type": "EBOOK",
        "file_url": f"s3://books/{book_id}.pdf",
        "is_public": True,
        "author_names": ("Rabindranath Tagore",),
        "category_names": ("Fiction",),
    }
    fields.update(overrides)
    return Book(**fields)


def completed_book(book_id: str = "book-1", text: str = "Chapter one.\fChapter two.", **overrides) -> Book:  # noqa: ANN003
    return make_book(
        book_id,
        extracted_text=text,
        content_hash=sha256_text(text),
        content_version=1,
        word_count=count_words(text),
        page_count=text.count("\f") + 1,
        size_bytes=len(text.encode("utf-8")),
        extraction_status=ExtractionStatus.COMPLETED,
        **overrides,
    )
