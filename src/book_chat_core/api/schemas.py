from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HistoryItem(ApiModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(ApiModel):
    message: str | None = None
    conversation_history: list[HistoryItem] = Field(default_factory=list)
    session_id: str | None = None
    generate_prefilled: bool = False


class UsageOut(ApiModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(ApiModel):
    response: str
    conversation_history: list[HistoryItem]
    session_id: str
    usage: UsageOut
    provider: str
    model: str
    method: str
    messages_persisted: bool


class ChatAvailabilityOut(ApiModel):
    available: bool
    book_type: str
    has_file: bool
    has_access: bool
    reason: str | None = None


class SessionMessageOut(ApiModel):
    message_id: str
    role: Literal["user", "assistant"]
    content: str
    message_index: int
    created_at: datetime | None = None


class SessionMessagesOut(ApiModel):
    book_id: str
    session_id: str
    messages: list[SessionMessageOut]


class ExtractionStatusOut(ApiModel):
    has_content: bool
    status: str
    word_count: int | None = None
    page_count: int | None = None
    version: int | None = None
    extracted_at: datetime | None = None
    error: str | None = None


class ExtractContentOut(ApiModel):
    message: str
    status: str
    word_count: int | None = None
    page_count: int | None = None
    size: int | None = None
    version: int | None = None
    error: str | None = None


class ExtractionStatsOut(ApiModel):
    total: int
    with_content: int
    without_content: int
    processing: int
    failed: int
    completion_percentage: int


class BulkExtractionOut(ApiModel):
    message: str
    scheduled: int
