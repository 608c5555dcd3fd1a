import psycopg
import pytest

from book_chat_core.migrations.runner import apply_migrations, discover_migrations


def test_migrations_are_discovered_in_order() -> None:
    versions = [m.version for m in discover_migrations()]
    assert versions == sorted(versions)
    assert "0001_book_chat" in versions


def test_migrations_are_idempotent(pg_dsn: str, pg_schema: str) -> None:
    applied = apply_migrations(pg_dsn, schema=pg_schema)
    assert applied == []


def test_extracted_text_requires_completed_status(conn) -> None:  # noqa: ANN001
    with pytest.raises(psycopg.errors.CheckViolation):
        conn.execute(
            "insert into books(id, name, type, extracted_text, extraction_status) values (%s, %s, %s, %s, %s)",
            ("bad-book", "Bad", "EBOOK", "text", "none"),
        )
    conn.rollback()
