import pytest
from fakes import FakeProvider, completed_book, make_book

from book_chat_core.chat.orchestrator import (
    METHOD_FALLBACK,
    METHOD_PRIMARY,
    METHOD_PRIMARY_RETRY,
    ChatOrchestrator,
)
from book_chat_core.errors import (
    AllProvidersUnavailable,
    ContentNotReady,
    ProviderAuthError,
    ProviderMalformedResponse,
    ProviderRateLimited,
    ProviderRequestRejected,
    ProviderServerError,
    ProviderTimeout,
    RequestRejected,
)
from book_chat_core.models import ExtractionStatus


def _orchestrator(*providers: FakeProvider, sleeps: list[float] | None = None) -> ChatOrchestrator:
    record = sleeps if sleeps is not None else []
    return ChatOrchestrator(list(providers), retry_backoff_s=0.5, sleep=record.append)


def test_primary_success() -> None:
    primary = FakeProvider("zai", ["Hello from zai"])
    secondary = FakeProvider("gemini")
    res = _orchestrator(primary, secondary).chat(completed_book(), [], "Hi")

    assert (res.text, res.provider_id, res.method) == ("Hello from zai", "zai", METHOD_PRIMARY)
    assert res.usage.total_tokens == 15
    assert secondary.requests == []


def test_transient_failure_retries_primary_once() -> None:
    primary = FakeProvider("zai", [ProviderTimeout("zai", "timed out"), "second try"])
    secondary = FakeProvider("gemini")
    res = _orchestrator(primary, secondary).chat(completed_book(), [], "Hi")

    assert (res.text, res.method) == ("second try", METHOD_PRIMARY_RETRY)
    assert len(primary.requests) == 2
    assert secondary.requests == []


def test_falls_back_with_the_same_request() -> None:
    primary = FakeProvider(
        "zai",
        [ProviderServerError("zai", "502"), ProviderMalformedResponse("zai", "empty completion")],
    )
    secondary = FakeProvider("gemini", ["Hello from gemini"])
    res = _orchestrator(primary, secondary).chat(completed_book(), [], "Hi")

    assert (res.text, res.provider_id, res.method) == ("Hello from gemini", "gemini", METHOD_FALLBACK)
    assert secondary.requests == [primary.requests[0]]


def test_auth_error_skips_retry_and_goes_to_fallback() -> None:
    primary = FakeProvider("zai", [ProviderAuthError("zai", "authentication failed (401)")])
    secondary = FakeProvider("gemini", ["ok"])
    res = _orchestrator(primary, secondary).chat(completed_book(), [], "Hi")

    assert res.method == METHOD_FALLBACK
    assert len(primary.requests) == 1


def test_all_providers_failing_raises_with_attempt_log() -> None:
    primary = FakeProvider("zai", [ProviderRateLimited("zai", "429"), ProviderRateLimited("zai", "429")])
    secondary = FakeProvider("gemini", [ProviderTimeout("gemini", "timed out")])

    with pytest.raises(AllProvidersUnavailable) as exc:
        _orchestrator(primary, secondary).chat(completed_book(), [], "Hi")

    assert [(pid, label) for pid, label, _ in exc.value.attempts] == [
        ("zai", METHOD_PRIMARY),
        ("zai", METHOD_PRIMARY_RETRY),
        ("gemini", METHOD_FALLBACK),
    ]
    assert exc.value.kind == "all_providers_unavailable"


def test_request_rejection_short_circuits() -> None:
    primary = FakeProvider("zai", [ProviderRequestRejected("zai", "request rejected (400)", status_code=400)])
    secondary = FakeProvider("gemini")

    with pytest.raises(RequestRejected):
        _orchestrator(primary, secondary).chat(completed_book(), [], "Hi")
    assert len(primary.requests) == 1
    assert secondary.requests == []


def test_no_providers_configured() -> None:
    with pytest.raises(AllProvidersUnavailable, match="no providers configured"):
        _orchestrator().chat(completed_book(), [], "Hi")


@pytest.mark.parametrize("status", [ExtractionStatus.NONE, ExtractionStatus.PROCESSING, ExtractionStatus.FAILED])
def test_content_must_be_extracted(status: ExtractionStatus) -> None:
    provider = FakeProvider("zai")
    with pytest.raises(ContentNotReady) as exc:
        _orchestrator(provider).chat(make_book(extraction_status=status), [], "Hi")
    assert exc.value.status == status.value
    assert provider.requests == []


def test_retry_waits_for_backoff_first() -> None:
    sleeps: list[float] = []
    primary = FakeProvider("zai", [ProviderRateLimited("zai", "429"), "after waiting"])
    res = _orchestrator(primary, FakeProvider("gemini"), sleeps=sleeps).chat(completed_book(), [], "Hi")

    assert res.method == METHOD_PRIMARY_RETRY
    assert sleeps == [0.5]


def test_no_backoff_when_retry_is_skipped() -> None:
    sleeps: list[float] = []
    primary = FakeProvider("zai", ["first time"])
    _orchestrator(primary, sleeps=sleeps).chat(completed_book(), [], "Hi")

    auth_failure = FakeProvider("zai", [ProviderAuthError("zai", "authentication failed (401)")])
    _orchestrator(auth_failure, FakeProvider("gemini"), sleeps=sleeps).chat(completed_book(), [], "Hi")

    assert sleeps == []


def test_negative_backoff_is_rejected() -> None:
    with pytest.raises(ValueError, match="retry_backoff_s"):
        ChatOrchestrator([], retry_backoff_s=-1)
