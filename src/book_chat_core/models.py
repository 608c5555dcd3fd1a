from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ExtractionStatus(str, Enum):
    NONE = "none"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


CHAT_BOOK_TYPES = frozenset({"EBOOK", "AUDIO"})


@dataclass(frozen=True)
class Book:
    book_id: str
    name: str
    book_type: str
    file_url: str | None = None
    direct_file_url: str | None = None
    is_public: bool = False
    requires_premium: bool = False
    author_names: tuple[str, ...] = ()
    category_names: tuple[str, ...] = ()

    extracted_text: str | None = None
    content_hash: str | None = None
    content_version: int = 0
    word_count: int | None = None
    page_count: int | None = None
    size_bytes: int | None = None
    extraction_status: ExtractionStatus = ExtractionStatus.NONE
    extraction_error: str | None = None
    extracted_at: datetime | None = None
    extraction_started_at: datetime | None = None

    @property
    def file_locations(self) -> list[str]:
        """Distinct, non-empty source URIs in preference order."""
        out: list[str] = []
        for loc in (self.file_url, self.direct_file_url):
            if loc and loc not in out:
                out.append(loc)
        return out

    @property
    def has_file(self) -> bool:
        return bool(self.file_locations)


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: str = "USER"
    is_premium: bool = False
    admin_roles: frozenset[str] = field(default=frozenset({"ADMIN", "SUPER_ADMIN"}))

    @property
    def is_admin(self) -> bool:
        return self.role.upper() in self.admin_roles

    @property
    def is_premium_or_admin(self) -> bool:
        return self.is_premium or self.is_admin


@dataclass(frozen=True)
class ExtractedContent:
    text: str
    hash: str
    word_count: int
    page_count: int
    size_bytes: int
    extractor: str


@dataclass(frozen=True)
class ChatTurn:
    role: MessageRole
    content: str


@dataclass(frozen=True)
class ChatMessage:
    message_id: str
    book_id: str
    user_id: str
    session_id: str
    role: MessageRole
    content: str
    message_index: int
    created_at: datetime | None = None
