import pytest
from fakes import completed_book

from book_chat_core.chat.prompt import (
    TRUNCATION_NOTE,
    GroundedPromptBuilder,
    query_keywords,
    select_content_excerpt,
    split_pages,
    trim_history,
)
from book_chat_core.errors import InvalidMessage, MalformedContent, RequestTooLarge
from book_chat_core.models import ChatTurn, MessageRole


def test_split_pages_numbers_by_position() -> None:
    pages = split_pages("first\f\fthird")
    assert [(p.number, p.text) for p in pages] == [(1, "first"), (3, "third")]


def test_query_keywords_ignore_short_words_and_duplicates() -> None:
    assert query_keywords("What is the River? the river, the FERRYMAN!") == ["what", "river", "ferryman"]


def test_small_text_is_used_whole() -> None:
    assert select_content_excerpt("short book", "anything", max_chars=100) == "short book"


def test_large_text_keeps_relevant_pages_in_order() -> None:
    filler = "lorem ipsum dolor sit amet " * 20
    pages = [filler, "The ferryman crossed the river at dawn. " + filler, filler, "Again the ferryman. " + filler]
    text = "\f".join(pages)

    excerpt = select_content_excerpt(text, "Who is the ferryman?", max_chars=1300)

    assert excerpt.endswith(TRUNCATION_NOTE)
    assert "[Page 2]" in excerpt
    assert "[Page 4]" in excerpt
    assert "[Page 1]" not in excerpt
    assert excerpt.index("[Page 2]") < excerpt.index("[Page 4]")
    assert len(excerpt) <= 1300


def test_large_text_without_hits_uses_leading_pages() -> None:
    text = "\f".join(f"page {i} " + "x" * 400 for i in range(1, 6))
    excerpt = select_content_excerpt(text, "zzzz", max_chars=1000)
    assert "[Page 1]" in excerpt
    assert "[Page 5]" not in excerpt


def test_trim_history_keeps_most_recent_within_budgets() -> None:
    history = [ChatTurn(role=MessageRole.USER if i % 2 == 0 else MessageRole.ASSISTANT, content=f"m{i}") for i in range(10)]
    kept = trim_history(history, max_messages=4, max_chars=1000)
    assert [t.content for t in kept] == ["m6", "m7", "m8", "m9"]

    kept = trim_history(history, max_messages=10, max_chars=5)
    assert [t.content for t in kept] == ["m8", "m9"]


def test_builder_frames_book_and_appends_message() -> None:
    book = completed_book(text="The ferryman waits.")
    history = [
        ChatTurn(role=MessageRole.USER, content="Hi"),
        ChatTurn(role=MessageRole.ASSISTANT, content="Hello!"),
    ]
    request = GroundedPromptBuilder().build(book, history, "  Who waits?  ")

    assert "The River" in request.system_prompt
    assert "Rabindranath Tagore" in request.system_prompt
    assert "The ferryman waits." in request.system_prompt
    assert "Bengali" in request.system_prompt
    assert [(t.role, t.content) for t in request.messages] == [
        (MessageRole.USER, "Hi"),
        (MessageRole.ASSISTANT, "Hello!"),
        (MessageRole.USER, "Who waits?"),
    ]


def test_builder_validates_message_and_content() -> None:
    builder = GroundedPromptBuilder(max_message_chars=10)
    with pytest.raises(InvalidMessage):
        builder.build(completed_book(), [], "   ")
    with pytest.raises(RequestTooLarge):
        builder.build(completed_book(), [], "x" * 11)
    with pytest.raises(MalformedContent):
        builder.build(completed_book(text=" \f "), [], "hello")
