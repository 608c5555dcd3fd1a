from book_chat_core.extractors.basic import PAGE_BREAK, ParsedText
from book_chat_core.extractors.content import ContentExtractor

__all__ = [
    "PAGE_BREAK",
    "ContentExtractor",
    "ParsedText",
]
