from __future__ import annotations

import logging
import mimetypes
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx
from botocore.exceptions import BotoCoreError, ClientError

from book_chat_core.errors import SourceUnavailable
from book_chat_core.storage.s3 import S3Client

logger = logging.getLogger(__name__)

_DRIVE_FILE_RE = re.compile(r"/file/d/(?P<id>[a-zA-Z0-9_-]+)")


@dataclass(frozen=True)
class FetchedSource:
    uri: str
    data: bytes
    content_type: str | None
    filename: str | None


def drive_direct_url(url: str) -> str:
    """
    Google Drive share links (`/file/d/<id>/view`) point at an HTML viewer; rewrite them to
    the direct-download endpoint. Any other URL is returned unchanged.
    """
    parsed = urlparse(url)
    if (parsed.hostname or "").lower() != "drive.google.com":
        return url
    m = _DRIVE_FILE_RE.search(parsed.path)
    if not m:
        return url
    return f"https://drive.google.com/uc?export=download&id={m.group('id')}"


def _filename_from_uri(uri: str) -> str | None:
    path = unquote(urlparse(uri).path)
    name = path.rstrip("/").split("/")[-1]
    return name or None


class SourceFetcher:
    """
    Resolves a book file location (`s3://`, `http(s)://`, `file://` or a local path) to bytes.
    Local locations are served only from beneath `local_root`; without one they are refused.
    Every failure surfaces as `SourceUnavailable`.
    """

    def __init__(
        self,
        *,
        s3: S3Client | None = None,
        timeout_s: float = 120.0,
        max_bytes: int = 200 * 1024 * 1024,
        transport: httpx.BaseTransport | None = None,
        local_root: Path | None = None,
    ):
        self._s3 = s3
        self._local_root = local_root.resolve() if local_root is not None else None
        self._timeout_s = timeout_s
        self._max_bytes = max_bytes
        self._transport = transport

    def fetch(self, uri: str) -> FetchedSource:
        scheme = urlparse(uri).scheme.lower()
        if scheme == "s3":
            return self._fetch_s3(uri)
        if scheme in {"http", "https"}:
            return self._fetch_http(uri)
        if scheme in {"", "file"}:
            return self._fetch_local(uri)
        raise SourceUnavailable(f"Unsupported file location scheme: {scheme}")

    def fetch_first(self, uris: list[str]) -> FetchedSource:
        if not uris:
            raise SourceUnavailable("Book has no file location")
        failures: list[str] = []
        for uri in uris:
            try:
                return self.fetch(uri)
            except SourceUnavailable as e:
                logger.warning("Book file location unavailable: %s (%s)", uri, e.reason)
                failures.append(e.reason)
        raise SourceUnavailable("Book file could not be retrieved: " + "; ".join(failures))

    def _fetch_s3(self, uri: str) -> FetchedSource:
        if self._s3 is None:
            raise SourceUnavailable("S3 storage is not configured")
        try:
            size = self._s3.object_size(uri)
            if size > self._max_bytes:
                raise SourceUnavailable(f"Book file too large ({size} bytes)")
            data, content_type = self._s3.read_object(uri)
        except (ClientError, BotoCoreError, ValueError) as e:
            raise SourceUnavailable(f"S3 read failed: {e}") from e
        return FetchedSource(uri=uri, data=data, content_type=content_type, filename=_filename_from_uri(uri))

    def _fetch_http(self, uri: str) -> FetchedSource:
        url = drive_direct_url(uri)
        chunks: list[bytes] = []
        total = 0
        try:
            with httpx.Client(
                timeout=self._timeout_s,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                with client.stream("GET", url) as r:
                    if r.status_code >= 400:
                        raise SourceUnavailable(f"HTTP {r.status_code} for {url}")
                    for chunk in r.iter_bytes():
                        total += len(chunk)
                        if total > self._max_bytes:
                            raise SourceUnavailable(f"Book file exceeds {self._max_bytes} bytes")
                        chunks.append(chunk)
                    content_type = r.headers.get("content-type")
        except httpx.HTTPError as e:
            raise SourceUnavailable(f"Download failed: {e}") from e
        ct = content_type.split(";")[0].strip().lower() if content_type else None
        return FetchedSource(uri=uri, data=b"".join(chunks), content_type=ct, filename=_filename_from_uri(uri))

    def _resolve_local(self, uri: str) -> Path:
        if self._local_root is None:
            raise SourceUnavailable("Local file locations are disabled")
        raw = Path(unquote(urlparse(uri).path) if uri.startswith("file:") else uri)
        path = (self._local_root / raw).resolve()
        if not path.is_relative_to(self._local_root):
            raise SourceUnavailable(f"Local file location is outside the library root: {uri}")
        return path

    def _fetch_local(self, uri: str) -> FetchedSource:
        path = self._resolve_local(uri)
        try:
            size = path.stat().st_size
            if size > self._max_bytes:
                raise SourceUnavailable(f"Book file too large ({size} bytes)")
            data = path.read_bytes()
        except OSError as e:
            raise SourceUnavailable(f"Cannot read {uri}: {e.strerror or e}") from e
        content_type, _ = mimetypes.guess_type(path.name)
        return FetchedSource(uri=uri, data=data, content_type=content_type, filename=path.name)
