from __future__ import annotations

import psycopg

from book_chat_core.models import Caller


class CallerRepository:
    """Read-only view of the externally owned users table."""

    def __init__(self, conn: psycopg.Connection, *, admin_roles: frozenset[str]):
        self._conn = conn
        self._admin_roles = admin_roles

    def get_caller(self, user_id: str) -> Caller | None:
        row = self._conn.execute(
            "select id, role, is_premium from users where id=%s",
            (user_id,),
        ).fetchone()
        self._conn.commit()
        if not row:
            return None
        return Caller(user_id=row[0], role=row[1], is_premium=row[2], admin_roles=self._admin_roles)
