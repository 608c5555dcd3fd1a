from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import psycopg

from book_chat_core.config import load_settings
from book_chat_core.db import PostgresConfig
from book_chat_core.logging_setup import setup_logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    version: str
    path: Path

    def sql(self) -> str:
        return self.path.read_text(encoding="utf-8")


def _migrations_dir() -> Path:
    return Path(__file__).resolve().parent / "sql"


def discover_migrations() -> list[Migration]:
    return [Migration(version=p.stem, path=p) for p in sorted(_migrations_dir().glob("*.sql"))]


def _prepare(conn: psycopg.Connection, schema: str) -> set[str]:
    conn.execute(f'create schema if not exists "{schema}"')
    conn.execute(f'set search_path to "{schema}"')
    conn.execute(
        """
        create table if not exists schema_migrations (
          version text primary key,
          applied_at timestamptz not null default now()
        )
        """
    )
    conn.commit()
    rows = conn.execute("select version from schema_migrations").fetchall()
    conn.commit()
    return {r[0] for r in rows}


def apply_migrations(
    dsn: str,
    *,
    schema: str = "public",
    migrations: Iterable[Migration] | None = None,
) -> list[str]:
    """
    Applies pending migrations into `schema`, each in its own transaction together with its
    `schema_migrations` row. Already-recorded versions are skipped, so re-running is a no-op.
    """
    if migrations is None:
        migrations = discover_migrations()

    applied: list[str] = []
    with psycopg.connect(dsn) as conn:
        conn.execute("set timezone to 'UTC'")
        done = _prepare(conn, schema)

        for mig in migrations:
            if mig.version in done:
                continue
            with conn.transaction():
                conn.execute(mig.sql())
                conn.execute("insert into schema_migrations(version) values (%s)", (mig.version,))
            logger.info("Applied migration %s to schema %s", mig.version, schema)
            applied.append(mig.version)

    return applied


def main() -> None:
    settings = load_settings()
    setup_logging(settings.log_level)
    cfg = PostgresConfig.from_settings(settings)
    applied = apply_migrations(cfg.build_dsn(), schema=cfg.schema)
    logger.info("Schema %s up to date (%d migration(s) applied)", cfg.schema, len(applied))


if __name__ == "__main__":
    main()
