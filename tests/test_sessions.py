from fakes import InMemoryMessageStore

from book_chat_core.chat.sessions import SessionManager
from book_chat_core.models import MessageRole


def _append(manager: SessionManager, session_id: str, role: MessageRole, content: str) -> int:
    return manager.append(book_id="b1", session_id=session_id, user_id="u1", role=role, content=content)


def test_provided_session_id_is_reused_verbatim() -> None:
    manager = SessionManager(InMemoryMessageStore())
    assert manager.resolve_session("b1", "u1", "client-session-42") == "client-session-42"


def test_new_sessions_get_distinct_ids() -> None:
    manager = SessionManager(InMemoryMessageStore())
    a = manager.resolve_session("b1", "u1")
    b = manager.resolve_session("b1", "u1", "")
    assert a != b
    assert len(a) == 32


def test_indices_are_gap_free_per_session() -> None:
    manager = SessionManager(InMemoryMessageStore())
    indices = [
        _append(manager, "s1", MessageRole.USER, "q1"),
        _append(manager, "s1", MessageRole.ASSISTANT, "a1"),
        _append(manager, "s2", MessageRole.USER, "other session"),
        _append(manager, "s1", MessageRole.USER, "q2"),
        _append(manager, "s1", MessageRole.ASSISTANT, "a2"),
    ]
    assert indices == [0, 1, 0, 2, 3]
    history = manager.history(book_id="b1", session_id="s1", user_id="u1")
    assert [m.content for m in history] == ["q1", "a1", "q2", "a2"]


def test_failed_append_is_reported_and_next_index_recomputed() -> None:
    store = InMemoryMessageStore()
    manager = SessionManager(store)
    _append(manager, "s1", MessageRole.USER, "q1")

    store.fail_next = 1
    failed = manager.try_append(book_id="b1", session_id="s1", user_id="u1", role=MessageRole.ASSISTANT, content="a1")
    assert failed.ok is False
    assert failed.message_index is None
    assert "unavailable" in failed.error

    ok = manager.try_append(book_id="b1", session_id="s1", user_id="u1", role=MessageRole.USER, content="q2")
    assert ok.ok is True
    assert ok.message_index == 1
    assert [m.message_index for m in store.rows] == [0, 1]
