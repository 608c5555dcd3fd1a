from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from book_chat_core.chat.providers.base import GroundedRequest
from book_chat_core.errors import InvalidMessage, MalformedContent, RequestTooLarge
from book_chat_core.extractors.basic import PAGE_BREAK
from book_chat_core.models import Book, ChatTurn, MessageRole

TRUNCATION_NOTE = "[Content truncated due to length; only the most relevant pages are shown.]"

_KEYWORD_SPLIT_RE = re.compile(r"[\s?.,!;:\"'“”‘’()\[\]{}<>/\\|-]+")
_MAX_KEYWORDS = 10


@dataclass(frozen=True)
class Page:
    number: int
    text: str


def split_pages(text: str) -> list[Page]:
    return [
        Page(number=i, text=chunk.strip())
        for i, chunk in enumerate(text.split(PAGE_BREAK), start=1)
        if chunk.strip()
    ]


def query_keywords(query: str) -> list[str]:
    out: list[str] = []
    for word in _KEYWORD_SPLIT_RE.split(query.lower()):
        if len(word) > 3 and word not in out:
            out.append(word)
        if len(out) >= _MAX_KEYWORDS:
            break
    return out


def _format_page(page: Page) -> str:
    return f"[Page {page.number}]\n{page.text}"


def select_content_excerpt(text: str, query: str, *, max_chars: int) -> str:
    """
    Whole text when it fits the budget. Otherwise pages are ranked by keyword hits from the
    query and the best ones are packed, in page order, until the budget is used; with no hits
    the leading pages are used.
    """
    if len(text) <= max_chars:
        return text

    pages = split_pages(text)
    keywords = query_keywords(query)
    scored = [(sum(p.text.lower().count(k) for k in keywords), p) for p in pages]
    if any(score for score, _ in scored):
        ranked = [p for score, p in sorted(scored, key=lambda sp: (-sp[0], sp[1].number)) if score > 0]
    else:
        ranked = pages

    budget = max_chars - len(TRUNCATION_NOTE) - 2
    chosen: list[Page] = []
    used = 0
    for page in ranked:
        block = len(_format_page(page)) + 7
        if used + block > budget:
            if not chosen:
                # A single oversized page still contributes its head.
                chosen.append(Page(number=page.number, text=page.text[: max(budget - 20, 0)]))
                used = budget
            continue
        chosen.append(page)
        used += block

    chosen.sort(key=lambda p: p.number)
    body = "\n\n---\n\n".join(_format_page(p) for p in chosen)
    return f"{body}\n\n{TRUNCATION_NOTE}"


def trim_history(
    history: Sequence[ChatTurn],
    *,
    max_messages: int,
    max_chars: int,
) -> list[ChatTurn]:
    """Most recent turns within both budgets, returned in chronological order."""
    kept: list[ChatTurn] = []
    used = 0
    for turn in reversed(history):
        if len(kept) >= max_messages:
            break
        content = turn.content.strip()
        if not content:
            continue
        if used + len(content) > max_chars:
            break
        kept.append(ChatTurn(role=turn.role, content=content))
        used += len(content)
    kept.reverse()
    return kept


def _system_prompt(book: Book, excerpt: str) -> str:
    authors = ", ".join(book.author_names) or "Unknown author"
    categories = ", ".join(book.category_names) or "Uncategorized"
    return f"""You are a knowledgeable assistant for a digital library.
Answer questions about the book "{book.name}" by {authors} ({categories}).

Language:
- Reply in the language of the user's latest message (Bengali or English).
- The book itself may be written in Bengali or English.

Rules:
- Base every answer only on the book content below.
- If the content does not cover the question, say so plainly and point to what the book does cover.
- Quote or cite the book where helpful, including page numbers when they are shown.
- Be concise, accurate and conversational.

BOOK CONTENT:
{excerpt}

BOOK METADATA:
- Title: {book.name}
- Authors: {authors}
- Categories: {categories}
- Type: {book.book_type}"""


class GroundedPromptBuilder:
    def __init__(
        self,
        *,
        max_context_chars: int = 50_000,
        max_history_messages: int = 20,
        max_history_chars: int = 12_000,
        max_message_chars: int = 4_000,
    ):
        self.max_context_chars = max_context_chars
        self.max_history_messages = max_history_messages
        self.max_history_chars = max_history_chars
        self.max_message_chars = max_message_chars

    def build(self, book: Book, history: Sequence[ChatTurn], message: str) -> GroundedRequest:
        message = message.strip()
        if not message:
            raise InvalidMessage("Message must not be empty")
        if len(message) > self.max_message_chars:
            raise RequestTooLarge(
                f"Message is too long ({len(message)} characters, limit {self.max_message_chars})"
            )
        text = book.extracted_text or ""
        if not text.strip():
            raise MalformedContent(f"Book {book.book_id} has no usable extracted content")

        excerpt = select_content_excerpt(text, message, max_chars=self.max_context_chars)
        turns = trim_history(
            history,
            max_messages=self.max_history_messages,
            max_chars=self.max_history_chars,
        )
        turns.append(ChatTurn(role=MessageRole.USER, content=message))
        return GroundedRequest(system_prompt=_system_prompt(book, excerpt), messages=turns)
