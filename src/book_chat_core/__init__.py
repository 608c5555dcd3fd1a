__version__ = "0.1.0"

from book_chat_core.access import AccessDecision, can_access, chat_availability  # noqa: E402
from book_chat_core.config import Settings, load_settings  # noqa: E402
from book_chat_core.extraction import ExtractionOutcome, ExtractionService  # noqa: E402
from book_chat_core.models import Book, Caller, ExtractionStatus, MessageRole  # noqa: E402
from book_chat_core.validation import ValidationIssue, validate_extracted_text  # noqa: E402

__all__ = [
    "__version__",
    "AccessDecision",
    "Book",
    "Caller",
    "ExtractionOutcome",
    "ExtractionService",
    "ExtractionStatus",
    "MessageRole",
    "Settings",
    "ValidationIssue",
    "can_access",
    "chat_availability",
    "load_settings",
    "validate_extracted_text",
]
