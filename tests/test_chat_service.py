import pytest
from fakes import FakeProvider, InMemoryMessageStore, completed_book, make_book

from book_chat_core.chat.orchestrator import ChatOrchestrator
from book_chat_core.chat.prefill import prefilled_question
from book_chat_core.chat.service import ChatService
from book_chat_core.chat.sessions import SessionManager
from book_chat_core.errors import AllProvidersUnavailable, ContentNotReady, InvalidMessage, ProviderServerError
from book_chat_core.models import Caller, ChatTurn, MessageRole

CALLER = Caller(user_id="u1")


def _service(store: InMemoryMessageStore, *providers: FakeProvider) -> ChatService:
    orchestrator = ChatOrchestrator(list(providers) or [FakeProvider("zai")], retry_backoff_s=0)
    return ChatService(orchestrator, SessionManager(store))


def test_turn_mints_session_and_logs_both_messages() -> None:
    store = InMemoryMessageStore()
    result = _service(store, FakeProvider("zai", ["It is about a river."])).converse(
        book=completed_book(), caller=CALLER, message=" What is it about? "
    )

    assert len(result.session_id) == 32
    assert result.response.text == "It is about a river."
    assert result.log.complete is True
    assert [(m.role, m.message_index, m.content) for m in store.rows] == [
        (MessageRole.USER, 0, "What is it about?"),
        (MessageRole.ASSISTANT, 1, "It is about a river."),
    ]
    assert [t.content for t in result.conversation_history] == ["What is it about?", "It is about a river."]


def test_second_turn_continues_the_session() -> None:
    store = InMemoryMessageStore()
    service = _service(store)
    first = service.converse(book=completed_book(), caller=CALLER, message="one")
    second = service.converse(
        book=completed_book(),
        caller=CALLER,
        message="two",
        history=first.conversation_history,
        session_id=first.session_id,
    )

    assert second.session_id == first.session_id
    assert [m.message_index for m in store.rows] == [0, 1, 2, 3]
    assert len(second.conversation_history) == 4


def test_log_failure_does_not_fail_the_answer() -> None:
    store = InMemoryMessageStore()
    store.fail_next = 1
    result = _service(store, FakeProvider("zai", ["answer"])).converse(
        book=completed_book(), caller=CALLER, message="question"
    )

    assert result.response.text == "answer"
    assert result.log.complete is False
    assert [w.ok for w in result.log.writes] == [False, True]
    assert [m.message_index for m in store.rows] == [0]


def test_nothing_is_logged_for_rejected_input() -> None:
    store = InMemoryMessageStore()
    service = _service(store)
    with pytest.raises(InvalidMessage):
        service.converse(book=completed_book(), caller=CALLER, message="   ")
    with pytest.raises(ContentNotReady):
        service.converse(book=make_book(), caller=CALLER, message="hello")
    assert store.rows == []


def test_provider_outage_keeps_the_user_message() -> None:
    store = InMemoryMessageStore()
    down = FakeProvider("zai", [ProviderServerError("zai", "502")] * 2)
    with pytest.raises(AllProvidersUnavailable):
        _service(store, down).converse(book=completed_book(), caller=CALLER, message="hello")
    assert [(m.role, m.message_index) for m in store.rows] == [(MessageRole.USER, 0)]


def test_history_is_passed_to_the_provider() -> None:
    provider = FakeProvider("zai")
    history = [ChatTurn(role=MessageRole.USER, content="earlier"), ChatTurn(role=MessageRole.ASSISTANT, content="reply")]
    _service(InMemoryMessageStore(), provider).converse(
        book=completed_book(), caller=CALLER, message="now", history=history
    )
    assert [t.content for t in provider.requests[0].messages] == ["earlier", "reply", "now"]


def test_prefilled_question_is_deterministic() -> None:
    book = completed_book()
    question = prefilled_question(book)
    assert question == prefilled_question(book)
    assert "The River" in question
    assert "Rabindranath Tagore" in question
