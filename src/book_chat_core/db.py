from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import psycopg
from pydantic import SecretStr

from book_chat_core.config import Settings


@dataclass(frozen=True)
class PostgresConfig:
    dsn: str | None = None
    host: str | None = None
    port: int = 5432
    db: str | None = None
    user: str | None = None
    password: SecretStr | str | None = None
    schema: str = "public"

    @classmethod
    def from_settings(cls, settings: Settings) -> PostgresConfig:
        return cls(
            dsn=settings.pg_dsn,
            host=settings.postgres_host,
            port=settings.postgres_port,
            db=settings.postgres_db,
            user=settings.postgres_user,
            password=settings.postgres_password,
            schema=settings.pg_schema,
        )

    def build_dsn(self) -> str:
        if self.dsn:
            return self.dsn
        missing = [
            name
            for name, value in (
                ("POSTGRES_HOST", self.host),
                ("POSTGRES_DB", self.db),
                ("POSTGRES_USER", self.user),
                ("POSTGRES_PASSWORD", self.password),
            )
            if not value
        ]
        if missing:
            raise ValueError(f"Missing Postgres config: {', '.join(missing)} (or set PG_DSN)")
        password = (
            self.password.get_secret_value()
            if isinstance(self.password, SecretStr)
            else self.password
        )
        return f"postgresql://{self.user}:{password}@{self.host}:{self.port}/{self.db}"


@contextmanager
def connect(
    dsn: str,
    *,
    schema: str = "public",
    application_name: str = "book-chat-core",
) -> Iterator[psycopg.Connection]:
    options = f"-c search_path={schema} -c timezone=UTC"
    with psycopg.connect(dsn, options=options, application_name=application_name) as conn:
        yield conn
