from __future__ import annotations


class BookNotFound(LookupError):
    def __init__(self, book_id: str):
        super().__init__(f"Book not found: {book_id}")
        self.book_id = book_id


class ExtractionError(Exception):
    """Extraction of a book's source file failed; `reason` is safe to show to clients."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class SourceUnavailable(ExtractionError):
    pass


class UnsupportedType(ExtractionError):
    pass


class ContentParseError(ExtractionError):
    pass


class ChatError(Exception):
    kind = "chat_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidMessage(ChatError):
    kind = "invalid_message"


class ContentNotReady(ChatError):
    kind = "content_not_ready"

    def __init__(self, message: str, *, status: str | None = None):
        super().__init__(message)
        self.status = status


class MalformedContent(ChatError):
    kind = "malformed_content"


class RequestTooLarge(ChatError):
    kind = "request_too_large"


class ProviderError(Exception):
    """
    Failure reported by one AI provider.

    `retryable` errors are retried once against the same provider. `request_shaped` errors
    mean the request itself was refused, so no other provider is tried either.
    """

    retryable = False
    request_shaped = False

    def __init__(self, provider_id: str, message: str, *, status_code: int | None = None):
        super().__init__(f"{provider_id}: {message}")
        self.provider_id = provider_id
        self.status_code = status_code


class ProviderTimeout(ProviderError):
    retryable = True


class ProviderRateLimited(ProviderError):
    retryable = True


class ProviderServerError(ProviderError):
    retryable = True


class ProviderMalformedResponse(ProviderError):
    retryable = True


class ProviderAuthError(ProviderError):
    pass


class ProviderRequestRejected(ProviderError):
    request_shaped = True


class RequestRejected(ChatError):
    kind = "request_rejected"

    def __init__(self, message: str, *, cause: ProviderError):
        super().__init__(message)
        self.cause = cause


class AllProvidersUnavailable(ChatError):
    kind = "all_providers_unavailable"

    def __init__(self, attempts: list[tuple[str, str, ProviderError]]):
        summary = "; ".join(f"{label}={err}" for _, label, err in attempts) or "no providers configured"
        super().__init__(f"All chat providers failed ({summary})")
        self.attempts = attempts
