from __future__ import annotations

import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from openai import AsyncOpenAI

from shared.logging.config import clear_request_context, configure_logging
from studypotion_service.api import file_routes, project_routes, routes
from studypotion_service.api.errors import register_exception_handlers
from studypotion_service.domain.processing import ChunkingService, TextExtractionService
from studypotion_service.infrastructure.auth import SupabaseAuthGateway
from studypotion_service.infrastructure.embedding_client import OpenAIEmbeddingClient
from studypotion_service.infrastructure.repository import (
    PostgresFileRepository,
    PostgresProjectRepository,
    create_engine,
)
from studypotion_service.infrastructure.storage import LocalFileStorage
from studypotion_service.infrastructure.vector_repository import PgVectorChunkRepository
from studypotion_service.infrastructure.webhook import HttpWebhookNotifier
from studypotion_service.settings import Settings

settings = Settings()
configure_logging(settings.service_name, settings.log_level)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(
        "service.starting",
        version=settings.app_version,
        environment=settings.environment,
        embedding_model=settings.embedding_model,
        webhook_enabled=settings.webhook_url is not None,
    )

    engine = create_engine(
        settings.database_url.get_secret_value(),
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )
    http_client = httpx.AsyncClient()
    openai_client = AsyncOpenAI(
        api_key=settings.openai_api_key.get_secret_value(),
        max_retries=settings.embedding_max_retries,
        timeout=settings.embedding_timeout_seconds,
    )

    app.state.settings = settings
    app.state.extractor = TextExtractionService()
    app.state.chunker = ChunkingService(
        chunk_size=settings.chunk_size_chars,
        overlap=settings.chunk_overlap_chars,
    )
    app.state.embedder = OpenAIEmbeddingClient(
        client=openai_client,
        model=settings.embedding_model,
        batch_size=settings.embedding_batch_size,
        max_concurrency=settings.embedding_max_concurrency,
        dimensions=settings.embedding_dimensions,
    )
    app.state.chunk_repository = PgVectorChunkRepository(engine)
    app.state.project_repository = PostgresProjectRepository(engine)
    app.state.file_repository = PostgresFileRepository(engine)
    app.state.storage = LocalFileStorage(base_path=settings.storage_base_path)
    app.state.auth_gateway = SupabaseAuthGateway(
        client=http_client,
        auth_url=settings.auth_url,
        api_key=settings.auth_api_key.get_secret_value(),
        timeout=settings.auth_timeout_seconds,
    )
    app.state.notifier = HttpWebhookNotifier(
        client=http_client,
        webhook_url=settings.webhook_url.get_secret_value() if settings.webhook_url else None,
        timeout=settings.webhook_timeout_seconds,
    )

    logger.info("service.ready", port=settings.service_port)
    yield

    await openai_client.close()
    await http_client.aclose()
    await engine.dispose()
    logger.info("service.stopped")


app = FastAPI(
    title="StudyPotion Document Service",
    description="Projects, project files and document ingestion (extract, chunk, embed, store in pgvector).",
    version=settings.app_version,
    lifespan=lifespan,
)
app.state.settings = settings

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
)


@app.middleware("http")
async def correlation_context(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))
    request.state.correlation_id = correlation_id
    try:
        response = await call_next(request)
    finally:
        clear_request_context()
    response.headers["X-Correlation-ID"] = correlation_id
    return response


register_exception_handlers(app)
app.include_router(routes.router)
app.include_router(project_routes.router)
app.include_router(file_routes.router)
