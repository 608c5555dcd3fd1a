from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

import psycopg

from book_chat_core.models import CHAT_BOOK_TYPES, Book, ExtractedContent, ExtractionStatus

_BOOK_COLUMNS = """
  id, name, type, file_url, direct_file_url, is_public, requires_premium,
  author_names, category_names,
  extracted_text, content_hash, content_version, word_count, page_count, size_bytes,
  extraction_status, extraction_error, extracted_at, extraction_started_at
"""


def _row_to_book(row: tuple) -> Book:
    return Book(
        book_id=row[0],
        name=row[1],
        book_type=row[2],
        file_url=row[3],
        direct_file_url=row[4],
        is_public=row[5],
        requires_premium=row[6],
        author_names=tuple(row[7] or ()),
        category_names=tuple(row[8] or ()),
        extracted_text=row[9],
        content_hash=row[10],
        content_version=row[11],
        word_count=row[12],
        page_count=row[13],
        size_bytes=row[14],
        extraction_status=ExtractionStatus(row[15]),
        extraction_error=row[16],
        extracted_at=row[17],
        extraction_started_at=row[18],
    )


@dataclass(frozen=True)
class ExtractionStats:
    total: int
    completed: int
    processing: int
    failed: int
    pending: int

    @property
    def completion_percentage(self) -> int:
        if self.total == 0:
            return 0
        return round(self.completed * 100 / self.total)


class BookRepository:
    """
    Reads book rows and owns every transition of their extraction fields. Transitions are
    conditional updates (compare-and-swap on status or claim token) so concurrent workers on
    any number of server instances cannot both run an extraction or overwrite each other.
    """

    def __init__(self, conn: psycopg.Connection):
        self._conn = conn

    def get_book(self, book_id: str) -> Book | None:
        row = self._conn.execute(
            f"select {_BOOK_COLUMNS} from books where id=%s",
            (book_id,),
        ).fetchone()
        self._conn.commit()
        if not row:
            return None
        return _row_to_book(row)

    def claim_extraction(
        self,
        book_id: str,
        *,
        expected_status: ExtractionStatus,
        token: UUID,
        stale_after_s: int,
    ) -> bool:
        """
        Moves the book to `processing` only if it is still in `expected_status`. A
        `processing` row can only be taken over once its lease is older than `stale_after_s`.
        """
        cur = self._conn.execute(
            """
            update books
            set extraction_status='processing',
                extraction_token=%(token)s::uuid,
                extraction_started_at=now(),
                extraction_error=null,
                extracted_text=null,
                updated_at=now()
            where id=%(book_id)s
              and extraction_status=%(expected)s
              and (
                %(expected)s::text <> 'processing'
                or extraction_started_at is null
                or extraction_started_at < now() - make_interval(secs => %(stale)s::double precision)
              )
            """,
            {
                "token": str(token),
                "book_id": book_id,
                "expected": expected_status.value,
                "stale": stale_after_s,
            },
        )
        self._conn.commit()
        return cur.rowcount == 1

    def complete_extraction(self, book_id: str, *, token: UUID, content: ExtractedContent) -> int | None:
        """
        Stores the result of a claimed extraction. The version only moves when the text hash
        differs from the stored one. Returns the new version, or None if the claim was lost.
        """
        row = self._conn.execute(
            """
            update books
            set extraction_status='completed',
                extracted_text=%(text)s,
                content_version=case
                  when content_hash is distinct from %(hash)s then content_version + 1
                  else content_version
                end,
                content_hash=%(hash)s,
                word_count=%(word_count)s,
                page_count=%(page_count)s,
                size_bytes=%(size_bytes)s,
                extraction_error=null,
                extraction_token=null,
                extracted_at=now(),
                updated_at=now()
            where id=%(book_id)s
              and extraction_status='processing'
              and extraction_token=%(token)s::uuid
            returning content_version
            """,
            {
                "text": content.text,
                "hash": content.hash,
                "word_count": content.word_count,
                "page_count": content.page_count,
                "size_bytes": content.size_bytes,
                "book_id": book_id,
                "token": str(token),
            },
        ).fetchone()
        self._conn.commit()
        return row[0] if row else None

    def fail_extraction(self, book_id: str, *, token: UUID, reason: str) -> bool:
        cur = self._conn.execute(
            """
            update books
            set extraction_status='failed',
                extraction_error=%s,
                extraction_token=null,
                updated_at=now()
            where id=%s
              and extraction_status='processing'
              and extraction_token=%s::uuid
            """,
            (reason, book_id, str(token)),
        )
        self._conn.commit()
        return cur.rowcount == 1

    def invalidate_extraction(self, book_id: str) -> bool:
        """
        File-replacement signal: forget the extracted text and its fingerprint. Any in-flight
        claim loses its token and its result is discarded.
        """
        cur = self._conn.execute(
            """
            update books
            set extraction_status='none',
                extracted_text=null,
                content_hash=null,
                extraction_error=null,
                extraction_token=null,
                extraction_started_at=null,
                updated_at=now()
            where id=%s
            """,
            (book_id,),
        )
        self._conn.commit()
        return cur.rowcount == 1

    def list_extraction_candidates(self, *, limit: int = 500) -> list[str]:
        rows = self._conn.execute(
            """
            select id
            from books
            where upper(type) = any(%s)
              and coalesce(file_url, direct_file_url) is not null
              and extraction_status in ('none', 'failed')
            order by updated_at asc
            limit %s
            """,
            (sorted(CHAT_BOOK_TYPES), limit),
        ).fetchall()
        self._conn.commit()
        return [r[0] for r in rows]

    def extraction_stats(self) -> ExtractionStats:
        row = self._conn.execute(
            """
            select
              count(*),
              count(*) filter (where extraction_status='completed'),
              count(*) filter (where extraction_status='processing'),
              count(*) filter (where extraction_status='failed'),
              count(*) filter (where extraction_status='none')
            from books
            where upper(type) = any(%s)
              and coalesce(file_url, direct_file_url) is not null
            """,
            (sorted(CHAT_BOOK_TYPES),),
        ).fetchone()
        self._conn.commit()
        return ExtractionStats(
            total=row[0],
            completed=row[1],
            processing=row[2],
            failed=row[3],
            pending=row[4],
        )
