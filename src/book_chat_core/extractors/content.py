from __future__ import annotations

import logging

from book_chat_core.errors import ContentParseError, UnsupportedType
from book_chat_core.extractors.basic import (
    ParsedText,
    extract_html,
    extract_pdf,
    extract_plain_text,
    extract_transcript,
)
from book_chat_core.models import Book, ExtractedContent
from book_chat_core.sources.files import FetchedSource, SourceFetcher
from book_chat_core.util import count_words, sha256_text
from book_chat_core.validation import validate_extracted_text

logger = logging.getLogger(__name__)

_AUDIO_EXTS = (".mp3", ".m4a", ".m4b", ".aac", ".ogg", ".opus", ".wav", ".flac")


def _kind(source: FetchedSource) -> str:
    ct = (source.content_type or "").lower()
    name = (source.filename or "").lower()
    if "pdf" in ct or name.endswith(".pdf") or source.data[:5] == b"%PDF-":
        return "pdf"
    if ct == "text/vtt" or name.endswith((".vtt", ".srt")) or source.data[:6] == b"WEBVTT":
        return "transcript"
    if "html" in ct or name.endswith((".html", ".htm", ".xhtml")):
        return "html"
    if ct.startswith("audio/") or name.endswith(_AUDIO_EXTS):
        return "audio"
    if ct.startswith("text/") or name.endswith((".txt", ".md")):
        return "text"
    return "unknown"


def _parse_ebook(source: FetchedSource) -> ParsedText:
    kind = _kind(source)
    if kind == "pdf":
        return extract_pdf(source.data)
    if kind == "html":
        return extract_html(source.data)
    if kind in {"text", "transcript"}:
        return extract_plain_text(source.data)
    raise ContentParseError(
        f"Unsupported ebook file format (content type {source.content_type or 'unknown'})"
    )


def _parse_audio(source: FetchedSource) -> ParsedText:
    kind = _kind(source)
    if kind == "transcript":
        return extract_transcript(source.data)
    if kind == "text":
        return extract_plain_text(source.data)
    if kind == "pdf":
        return extract_pdf(source.data)
    if kind == "audio":
        raise UnsupportedType("Audiobook has no transcript; raw audio cannot be extracted")
    raise ContentParseError(
        f"Unsupported transcript format (content type {source.content_type or 'unknown'})"
    )


_PARSERS = {
    "EBOOK": _parse_ebook,
    "AUDIO": _parse_audio,
}


class ContentExtractor:
    """
    Turns a book's stored file into plain text plus metrics. Performs no persistence.
    """

    def __init__(self, fetcher: SourceFetcher):
        self._fetcher = fetcher

    def extract(self, book: Book) -> ExtractedContent:
        parse = _PARSERS.get(book.book_type.upper())
        if parse is None:
            raise UnsupportedType(f"Content extraction is not supported for book type {book.book_type}")

        source = self._fetcher.fetch_first(book.file_locations)
        parsed = parse(source)

        issues = validate_extracted_text(text=parsed.text, book_type=book.book_type)
        blocking = [i for i in issues if i.blocking]
        if blocking:
            raise ContentParseError(blocking[0].message)
        for issue in issues:
            logger.warning("Book %s extraction quality: %s %s", book.book_id, issue.code, issue.details)

        content = ExtractedContent(
            text=parsed.text,
            hash=sha256_text(parsed.text),
            word_count=count_words(parsed.text),
            page_count=parsed.page_count,
            size_bytes=len(parsed.text.encode("utf-8")),
            extractor=parsed.extractor,
        )
        logger.info(
            "Extracted book %s via %s: words=%d pages=%d bytes=%d hash=%s",
            book.book_id,
            content.extractor,
            content.word_count,
            content.page_count,
            content.size_bytes,
            content.hash[:16],
        )
        return content
