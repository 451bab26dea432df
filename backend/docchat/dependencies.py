"""Process-scoped service container and FastAPI dependencies.

Every client is constructed once in ``build_services`` and passed into the
components that need it; nothing is imported as an ambient global.
"""

import logging
from dataclasses import dataclass
from typing import Annotated

import httpx
import redis
from fastapi import Depends, Request
from openai import AsyncOpenAI
from qdrant_client import AsyncQdrantClient
from sqlalchemy.ext.asyncio import AsyncEngine

from backend.docchat.chat.answer_stream import AnswerStream
from backend.docchat.config import Settings
from backend.docchat.db.engine import create_async_engine_from_settings, create_session_factory
from backend.docchat.db.inmemory import InMemoryDocumentStore, InMemoryRateLimiter
from backend.docchat.db.repositories import DocumentStore, RateLimiter
from backend.docchat.db.sql_repositories import SqlDocumentStore
from backend.docchat.ingestion.fetcher import SourceFetcher
from backend.docchat.ingestion.jobs import IngestionJobRunner
from backend.docchat.ingestion.parser import DocumentParser, PdfParser
from backend.docchat.ingestion.pipeline import IngestionPipeline
from backend.docchat.llm.client import (
    CompletionClient,
    build_openai_client,
    get_completion_client,
)
from backend.docchat.ratelimit import RedisRateLimiter
from backend.docchat.retrieval.composer import RetrievalComposer
from backend.docchat.retrieval.embeddings import Embedder, HashingEmbedder, OpenAIEmbedder
from backend.docchat.retrieval.vector_index import QdrantVectorIndex, VectorIndex

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a request handler needs, built once per process."""

    settings: Settings
    store: DocumentStore
    index: VectorIndex
    qdrant_client: AsyncQdrantClient
    embedder: Embedder
    http_client: httpx.AsyncClient
    completion_client: CompletionClient
    pipeline: IngestionPipeline
    jobs: IngestionJobRunner
    composer: RetrievalComposer
    answers: AnswerStream
    rate_limiter: RateLimiter
    engine: AsyncEngine | None = None
    openai_client: AsyncOpenAI | None = None
    redis_client: redis.Redis | None = None

    async def aclose(self) -> None:
        """Drain background jobs and release clients."""
        await self.jobs.shutdown()
        await self.answers.wait_for_finalizers()
        await self.http_client.aclose()
        await self.qdrant_client.close()
        if self.openai_client is not None:
            await self.openai_client.close()
        if self.redis_client is not None:
            self.redis_client.close()
        if self.engine is not None:
            await self.engine.dispose()


def build_embedder(settings: Settings, openai_client: AsyncOpenAI | None) -> Embedder:
    """Factory for the embedding client based on config."""
    if openai_client is not None:
        logger.info("Using OpenAI embeddings")
        return OpenAIEmbedder(
            openai_client,
            model=settings.openai_embedding_model,
            batch_size=settings.embedding_batch_size,
        )
    logger.warning("No OpenAI API key configured, using deterministic hashing embedder")
    return HashingEmbedder(dimension=settings.embedding_dimension)


def build_qdrant_client(settings: Settings) -> AsyncQdrantClient:
    """Factory for the vector store client based on config."""
    if settings.qdrant_url:
        api_key = settings.qdrant_api_key.get_secret_value() if settings.qdrant_api_key else None
        logger.info(f"Using Qdrant server at {settings.qdrant_url}")
        return AsyncQdrantClient(url=settings.qdrant_url, api_key=api_key, timeout=30)
    if settings.qdrant_path:
        logger.info(f"Using embedded Qdrant storage at {settings.qdrant_path}")
        return AsyncQdrantClient(path=settings.qdrant_path)
    logger.warning("No Qdrant URL or path configured, keeping vectors in process memory")
    return AsyncQdrantClient(location=":memory:")


def build_services(
    settings: Settings,
    *,
    http_client: httpx.AsyncClient | None = None,
    completion_client: CompletionClient | None = None,
    embedder: Embedder | None = None,
    parser: DocumentParser | None = None,
) -> Services:
    """Construct the process-scoped clients and wire the components.

    Keyword overrides replace the corresponding client (used by tests).
    """
    openai_client = build_openai_client(settings)
    embedder = embedder or build_embedder(settings, openai_client)
    completion_client = completion_client or get_completion_client(settings, openai_client)
    http_client = http_client or httpx.AsyncClient(follow_redirects=True)

    engine: AsyncEngine | None = None
    store: DocumentStore
    if settings.storage_backend == "memory":
        store = InMemoryDocumentStore()
    else:
        engine = create_async_engine_from_settings(settings)
        store = SqlDocumentStore(create_session_factory(engine))

    qdrant_client = build_qdrant_client(settings)
    index = QdrantVectorIndex(qdrant_client, embedder, collection=settings.qdrant_collection)

    redis_client: redis.Redis | None = None
    rate_limiter: RateLimiter
    if settings.redis_url:
        redis_client = redis.from_url(settings.redis_url, decode_responses=True)  # type: ignore[no-untyped-call]
        rate_limiter = RedisRateLimiter(redis_client, max_requests=settings.messages_per_min)
    else:
        rate_limiter = InMemoryRateLimiter(max_requests=settings.messages_per_min)

    pipeline = IngestionPipeline(
        store=store,
        fetcher=SourceFetcher(http_client, timeout_seconds=settings.fetch_timeout_seconds),
        parser=parser or PdfParser(),
        embedder=embedder,
        index=index,
        chunk_max_chars=settings.chunk_max_chars,
        upload_base_url=settings.upload_base_url,
    )
    composer = RetrievalComposer(
        store,
        index,
        top_k=settings.retrieval_top_k,
        history_window=settings.history_window,
    )

    return Services(
        settings=settings,
        store=store,
        index=index,
        qdrant_client=qdrant_client,
        embedder=embedder,
        http_client=http_client,
        completion_client=completion_client,
        pipeline=pipeline,
        jobs=IngestionJobRunner(pipeline),
        composer=composer,
        answers=AnswerStream(store, composer, completion_client),
        rate_limiter=rate_limiter,
        engine=engine,
        openai_client=openai_client,
        redis_client=redis_client,
    )


def get_services(request: Request) -> Services:
    """Services built at startup and stored on the application state."""
    services: Services = request.app.state.services
    return services


ServicesDep = Annotated[Services, Depends(get_services)]
