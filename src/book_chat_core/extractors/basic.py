from __future__ import annotations

import io
import re
from dataclasses import dataclass
from html.parser import HTMLParser

from pypdf import PdfReader

from book_chat_core.errors import ContentParseError

PAGE_BREAK = "\f"


@dataclass(frozen=True)
class ParsedText:
    extractor: str
    text: str
    page_count: int


class _HTMLToText(HTMLParser):
    _SKIP_TAGS = {"script", "style", "nav", "header", "footer", "aside", "noscript", "form"}
    _BLOCK_TAGS = {"p", "br", "div", "li", "tr", "h1", "h2", "h3", "h4", "h5", "h6", "section"}
    _VOID_TAGS = {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._chunks: list[str] = []
        self._skip_stack: list[str] = []

    def handle_starttag(self, tag: str, attrs) -> None:  # noqa: ANN001
        tag = tag.lower()
        if tag in self._VOID_TAGS:
            if not self._skip_stack and tag == "br":
                self._chunks.append("\n")
            return
        if self._skip_stack or tag in self._SKIP_TAGS:
            self._skip_stack.append(tag)

    def handle_startendtag(self, tag: str, attrs) -> None:  # noqa: ANN001
        self.handle_starttag(tag, attrs)

    def handle_endtag(self, tag: str) -> None:
        tag = tag.lower()
        if self._skip_stack:
            while self._skip_stack:
                if self._skip_stack.pop() == tag:
                    break
            return
        if tag in self._BLOCK_TAGS:
            self._chunks.append("\n")

    def handle_data(self, data: str) -> None:
        if self._skip_stack or not data.strip():
            return
        self._chunks.append(data)
        self._chunks.append(" ")

    def text(self) -> str:
        return "".join(self._chunks)


# Form feed is deliberately excluded: it carries page boundaries.
_WS_RE = re.compile(r"[ \t\r\v]+")
_NL_RE = re.compile(r"\n{3,}")
_TIMESTAMP_RE = re.compile(
    r"^\s*(?:\d{1,2}:)?\d{1,2}:\d{2}[.,]\d{1,3}\s*-->\s*(?:\d{1,2}:)?\d{1,2}:\d{2}[.,]\d{1,3}.*$"
)
_CUE_INDEX_RE = re.compile(r"^\s*\d+\s*$")
_VTT_TAG_RE = re.compile(r"</?[a-zA-Z][^>]*>")


def _normalize_page(text: str) -> str:
    text = text.replace("\x00", "").replace("\u200b", "")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _WS_RE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _NL_RE.sub("\n\n", text)
    return text.strip()


def normalize_text(text: str) -> str:
    pages = [_normalize_page(p) for p in text.split(PAGE_BREAK)]
    return PAGE_BREAK.join(p for p in pages if p)


def decode_text(data: bytes) -> str:
    if data.startswith(b"\xef\xbb\xbf"):
        data = data[3:]
    return data.decode("utf-8", errors="replace")


def extract_plain_text(data: bytes) -> ParsedText:
    text = normalize_text(decode_text(data))
    return ParsedText(extractor="text_utf8", text=text, page_count=_page_count(text))


def extract_html(data: bytes) -> ParsedText:
    parser = _HTMLToText()
    parser.feed(decode_text(data))
    parser.close()
    text = normalize_text(parser.text())
    return ParsedText(extractor="html_parser", text=text, page_count=_page_count(text))


def extract_pdf(data: bytes) -> ParsedText:
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except Exception as e:
        # Damaged object streams surface as TypeError or AttributeError from pypdf internals.
        raise ContentParseError(f"Could not read PDF: {e}") from e
    # Keep empty pages as placeholders so page numbering matches the document.
    normalized = [_normalize_page(p) for p in pages]
    if not any(normalized):
        return ParsedText(extractor="pypdf", text="", page_count=len(pages))
    text = PAGE_BREAK.join(normalized).rstrip(PAGE_BREAK)
    return ParsedText(extractor="pypdf", text=text, page_count=len(pages))


def extract_transcript(data: bytes) -> ParsedText:
    """
    WebVTT / SRT transcript to plain text: header, cue numbers, timestamps and inline
    styling are dropped; consecutive duplicate lines (rolling captions) are collapsed.
    """
    lines: list[str] = []
    in_block = False
    for raw in decode_text(data).replace("\r\n", "\n").split("\n"):
        line = raw.strip()
        if not line:
            in_block = False
            continue
        if in_block:
            continue
        # Header, NOTE, STYLE and REGION blocks run until the next blank line.
        if line.startswith(("WEBVTT", "NOTE", "STYLE", "REGION")):
            in_block = True
            continue
        if _TIMESTAMP_RE.match(line) or _CUE_INDEX_RE.match(line):
            continue
        line = _VTT_TAG_RE.sub("", line).strip()
        if line and (not lines or lines[-1] != line):
            lines.append(line)
    text = normalize_text("\n".join(lines))
    return ParsedText(extractor="transcript", text=text, page_count=_page_count(text))


def _page_count(text: str) -> int:
    if not text:
        return 0
    return text.count(PAGE_BREAK) + 1
