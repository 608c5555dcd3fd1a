from __future__ import annotations

from dataclasses import dataclass

from book_chat_core.models import CHAT_BOOK_TYPES, Book, Caller

PREMIUM_REQUIRED = "This book requires premium access"
CHAT_TYPE_UNSUPPORTED = "Chat is only available for ebooks and audiobooks"
FILE_MISSING = "Book file is not available for chat"


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str | None = None


ALLOW = AccessDecision(allowed=True)


def can_access(book: Book, caller: Caller) -> AccessDecision:
    """
    Visibility gate. Public books are open to every authenticated caller; everything else,
    premium-flagged or not, needs a premium or admin caller.
    """
    if book.is_public:
        return ALLOW
    if caller.is_premium_or_admin:
        return ALLOW
    return AccessDecision(allowed=False, reason=PREMIUM_REQUIRED)


def chat_type_gate(book: Book) -> AccessDecision:
    if book.book_type.upper() in CHAT_BOOK_TYPES:
        return ALLOW
    return AccessDecision(allowed=False, reason=CHAT_TYPE_UNSUPPORTED)


def file_gate(book: Book) -> AccessDecision:
    if book.has_file:
        return ALLOW
    return AccessDecision(allowed=False, reason=FILE_MISSING)


@dataclass(frozen=True)
class ChatAvailability:
    available: bool
    book_type: str
    has_file: bool
    has_access: bool
    reason: str | None = None


def chat_availability(book: Book, caller: Caller) -> ChatAvailability:
    type_ok = chat_type_gate(book)
    files = file_gate(book)
    access = can_access(book, caller)
    # First failing gate wins the reason, in the order clients render call-to-actions.
    reason = next((d.reason for d in (type_ok, files, access) if not d.allowed), None)
    return ChatAvailability(
        available=type_ok.allowed and files.allowed and access.allowed,
        book_type=book.book_type,
        has_file=files.allowed,
        has_access=access.allowed,
        reason=reason,
    )
