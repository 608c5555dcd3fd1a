from __future__ import annotations

import asyncio
from datetime import datetime
from uuid import UUID

from nats.aio.client import Client as NATS
from pydantic import BaseModel, Field


class ContentExtractedEvent(BaseModel):
    event_id: UUID
    event_type: str = Field(default="book.content.extracted")
    book_id: str
    content_hash: str
    content_version: int
    word_count: int
    page_count: int
    size_bytes: int
    extracted_at: datetime


def extraction_idempotency_key(event: ContentExtractedEvent) -> str:
    """
    Consumers dedupe on (book, text fingerprint); re-publishing the same content is a no-op.
    """
    return f"{event.book_id}:{event.content_hash}"


async def publish_event(nats_url: str, subject: str, event: ContentExtractedEvent) -> None:
    nc = NATS()
    await nc.connect(servers=[nats_url])
    try:
        await nc.publish(
            subject,
            event.model_dump_json().encode("utf-8"),
            headers={"Nats-Msg-Id": extraction_idempotency_key(event)},
        )
        await nc.flush(timeout=2)
    finally:
        await nc.close()


class NatsEventPublisher:
    def __init__(self, nats_url: str, subject: str):
        self._nats_url = nats_url
        self._subject = subject

    def __call__(self, event: ContentExtractedEvent) -> None:
        asyncio.run(publish_event(self._nats_url, self._subject, event))
