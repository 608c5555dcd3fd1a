"""FastAPI application entry point for the book chat API."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Callable, Sequence
from contextlib import AbstractContextManager, asynccontextmanager
from functools import partial
from pathlib import Path

from fastapi import FastAPI

from book_chat_core import __version__
from book_chat_core.api.dependencies import open_book_store
from book_chat_core.api.errors import install_error_handlers
from book_chat_core.api.routes.admin import admin_router
from book_chat_core.api.routes.chat import chat_router
from book_chat_core.api.routes.extraction import extraction_router
from book_chat_core.chat.orchestrator import ChatOrchestrator
from book_chat_core.chat.prompt import GroundedPromptBuilder
from book_chat_core.chat.providers import ChatProvider, build_providers
from book_chat_core.config import Settings, load_settings
from book_chat_core.events import ContentExtractedEvent, NatsEventPublisher
from book_chat_core.extraction import ExtractionStore, Extractor
from book_chat_core.extractors.content import ContentExtractor
from book_chat_core.logging_setup import setup_logging
from book_chat_core.sources.files import SourceFetcher
from book_chat_core.storage.s3 import S3Client, S3Config

logger = logging.getLogger(__name__)


def build_extractor(settings: Settings) -> ContentExtractor:
    s3_cfg = S3Config.from_settings(settings)
    fetcher = SourceFetcher(
        s3=S3Client(s3_cfg) if s3_cfg else None,
        timeout_s=settings.extraction_fetch_timeout_s,
        max_bytes=settings.extraction_max_bytes,
        local_root=Path(settings.extraction_local_root) if settings.extraction_local_root else None,
    )
    return ContentExtractor(fetcher)


def build_orchestrator(settings: Settings, providers: Sequence[ChatProvider]) -> ChatOrchestrator:
    return ChatOrchestrator(
        providers,
        prompt_builder=GroundedPromptBuilder(
            max_context_chars=settings.chat_context_max_chars,
            max_history_messages=settings.chat_history_max_messages,
            max_history_chars=settings.chat_history_max_chars,
            max_message_chars=settings.chat_message_max_chars,
        ),
        retry_backoff_s=settings.chat_retry_backoff_s,
    )


def create_app(
    settings: Settings | None = None,
    *,
    providers: Sequence[ChatProvider] | None = None,
    extractor: Extractor | None = None,
    publish: Callable[[ContentExtractedEvent], None] | None = None,
    book_store_factory: Callable[[], AbstractContextManager[ExtractionStore]] | None = None,
) -> FastAPI:
    """
    Builds the API. Collaborators default to the ones described by `settings`; passing them
    explicitly swaps in alternatives (tests use in-memory fakes).
    """
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        setup_logging(settings.log_level)
        chat_providers = list(providers) if providers is not None else build_providers(settings)
        if not chat_providers:
            logger.warning("No chat providers configured; chat requests will fail")

        app.state.extractor = extractor or build_extractor(settings)
        app.state.orchestrator = build_orchestrator(settings, chat_providers)
        app.state.publish = publish
        if app.state.publish is None and settings.nats_url:
            app.state.publish = NatsEventPublisher(settings.nats_url, settings.nats_subject_extracted)
        app.state.open_book_store = book_store_factory or partial(open_book_store, settings)

        logger.info(
            "Book chat API ready (providers: %s)",
            ", ".join(p.provider_id for p in chat_providers) or "none",
        )
        yield
        logger.info("Book chat API shut down.")

    app = FastAPI(
        title="Book Chat",
        description="Content extraction and grounded chat for library books.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    install_error_handlers(app)
    app.include_router(extraction_router)
    app.include_router(chat_router)
    app.include_router(admin_router)

    @app.get("/healthz", tags=["Health"])
    def healthz() -> dict:
        return {
            "status": "ok",
            "providers": [p.provider_id for p in app.state.orchestrator.providers],
        }

    return app


def main() -> None:
    import uvicorn

    settings = load_settings()
    setup_logging(settings.log_level)
    logger.info("Starting book chat API v%s on port 8000...", __version__)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
