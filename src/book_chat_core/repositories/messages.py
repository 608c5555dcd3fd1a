from __future__ import annotations

from uuid import uuid4

import psycopg

from book_chat_core.models import ChatMessage, MessageRole


class ChatMessageRepository:
    def __init__(self, conn: psycopg.Connection):
        self._conn = conn

    def append_message(
        self,
        *,
        book_id: str,
        session_id: str,
        user_id: str,
        role: MessageRole,
        content: str,
    ) -> ChatMessage:
        """
        Inserts the next message of a (book, session) log. The max index is read and the row
        inserted in one transaction, serialized per session by an advisory lock; the unique
        (book_id, session_id, message_index) constraint backs it up.
        """
        message_id = uuid4()
        try:
            self._conn.execute(
                "select pg_advisory_xact_lock(hashtextextended(%s, 0))",
                (f"{book_id}:{session_id}",),
            )
            row = self._conn.execute(
                """
                insert into book_chat_messages(
                  message_id, book_id, user_id, session_id, role, content, message_index
                )
                select
                  %s::uuid, %s, %s, %s, %s, %s,
                  coalesce(max(message_index) + 1, 0)
                from book_chat_messages
                where book_id=%s and session_id=%s
                returning message_index, created_at
                """,
                (
                    str(message_id),
                    book_id,
                    user_id,
                    session_id,
                    role.value,
                    content,
                    book_id,
                    session_id,
                ),
            ).fetchone()
            self._conn.commit()
        except psycopg.Error:
            self._conn.rollback()
            raise
        return ChatMessage(
            message_id=str(message_id),
            book_id=book_id,
            user_id=user_id,
            session_id=session_id,
            role=role,
            content=content,
            message_index=row[0],
            created_at=row[1],
        )

    def list_session_messages(self, *, book_id: str, session_id: str, user_id: str) -> list[ChatMessage]:
        rows = self._conn.execute(
            """
            select message_id::text, book_id, user_id, session_id, role, content,
                   message_index, created_at
            from book_chat_messages
            where book_id=%s and session_id=%s and user_id=%s
            order by message_index asc
            """,
            (book_id, session_id, user_id),
        ).fetchall()
        self._conn.commit()
        return [
            ChatMessage(
                message_id=r[0],
                book_id=r[1],
                user_id=r[2],
                session_id=r[3],
                role=MessageRole(r[4]),
                content=r[5],
                message_index=r[6],
                created_at=r[7],
            )
            for r in rows
        ]
