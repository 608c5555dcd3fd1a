from __future__ import annotations

from book_chat_core.models import Book


def prefilled_question(book: Book) -> str:
    """
    Opening overview question built from catalog metadata. The template choice is a pure
    function of the metadata, so the same book always gets the same question.
    """
    authors = " & ".join(book.author_names) or "the author"
    categories = ", ".join(book.category_names)
    subject = f"this {categories} book" if categories else "this book"
    templates = (
        f'Can you give me an overview of "{book.name}" by {authors}? '
        f"What are the main themes and key concepts discussed in {subject}?",
        f'What are the most important takeaways and main ideas from "{book.name}" by {authors}?',
        f'Tell me about the key concepts and insights {authors} presents in "{book.name}".',
    )
    pick = (len(book.name) + len(authors) + len(book.author_names)) % len(templates)
    return templates[pick]
