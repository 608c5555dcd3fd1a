from book_chat_core.repositories.books import BookRepository, ExtractionStats
from book_chat_core.repositories.messages import ChatMessageRepository
from book_chat_core.repositories.users import CallerRepository

__all__ = [
    "BookRepository",
    "CallerRepository",
    "ChatMessageRepository",
    "ExtractionStats",
]
