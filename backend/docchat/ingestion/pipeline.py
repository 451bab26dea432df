"""Document ingestion - fetch, parse, policy check, embed, index."""

import asyncio
import logging
import time
from collections.abc import Awaitable
from typing import TypeVar
from uuid import UUID

from backend.docchat.db.repositories import DocumentStore
from backend.docchat.errors import (
    Conflict,
    DocumentParseError,
    NotFound,
    PolicyExceeded,
    SourceFetchError,
)
from backend.docchat.ingestion.chunker import chunk_pages
from backend.docchat.ingestion.fetcher import SourceFetcher
from backend.docchat.ingestion.parser import DocumentParser
from backend.docchat.models.chunks import EmbeddedChunk, PageText
from backend.docchat.models.documents import Document, DocumentStatus, FailureReason, PlanLimits
from backend.docchat.plans import limits_for
from backend.docchat.retrieval.embeddings import Embedder
from backend.docchat.retrieval.vector_index import VectorIndex
from backend.docchat.utils.logging import StructuredPipelineLogger
from backend.docchat.utils.metrics import PrometheusPipelineMetrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


def failure_reason_for(error: BaseException) -> FailureReason:
    """Map an ingestion error to the reason recorded on the document."""
    if isinstance(error, PolicyExceeded):
        return FailureReason(error.reason)
    if isinstance(error, SourceFetchError):
        return FailureReason.fetch_failed
    if isinstance(error, DocumentParseError):
        return FailureReason.parse_failed
    return FailureReason.processing_failed


def check_page_limit(pages: list[PageText], limits: PlanLimits) -> None:
    """Raise PolicyExceeded if the document has more pages than the plan allows."""
    if len(pages) > limits.max_pages_per_document:
        raise PolicyExceeded("too_many_pages", len(pages), limits.max_pages_per_document)


class IngestionPipeline:
    """Turns an uploaded file into an indexed, queryable document.

    Runs decoupled from the upload request: the outcome is recorded only as
    the document status. Every path that leaves PROCESSING ends in SUCCESS
    or FAILED, including cancellation.
    """

    def __init__(
        self,
        *,
        store: DocumentStore,
        fetcher: SourceFetcher,
        parser: DocumentParser,
        embedder: Embedder,
        index: VectorIndex,
        chunk_max_chars: int = 1000,
        upload_base_url: str = "https://utfs.io/f/",
        structured_logger: StructuredPipelineLogger | None = None,
        metrics: PrometheusPipelineMetrics | None = None,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._parser = parser
        self._embedder = embedder
        self._index = index
        self._chunk_max_chars = chunk_max_chars
        self._upload_base_url = upload_base_url
        self._log = structured_logger or StructuredPipelineLogger()
        self._metrics = metrics or PrometheusPipelineMetrics()

    def source_url_for(self, storage_key: str) -> str:
        """Default download URL for a storage key."""
        return f"{self._upload_base_url}{storage_key}"

    async def ingest(
        self,
        *,
        owner_id: str,
        storage_key: str,
        name: str,
        source_url: str | None = None,
        plan_id: str | None = None,
    ) -> Document | None:
        """Ingest one uploaded file.

        Args:
            owner_id: Uploading user
            storage_key: Upload provider key; unique across all owners
            name: Display name
            source_url: Download URL (derived from the storage key when omitted)
            plan_id: Caller's subscription plan

        Returns:
            The document in its final state, the existing document when the
            storage key was already ingested, or None when the document was
            deleted before ingestion finished
        """
        existing = await self._store.get_by_storage_key(storage_key)
        if existing is not None:
            logger.info(f"Storage key {storage_key} already ingested, skipping")
            self._log.log_stage(existing.document_id, "create", "skipped", 0.0)
            return existing

        try:
            document = await self._store.create_pending(
                storage_key=storage_key,
                name=name,
                owner_id=owner_id,
                source_url=source_url or self.source_url_for(storage_key),
            )
        except Conflict:
            # Lost a race with a concurrent callback for the same key
            logger.info(f"Concurrent ingestion for {storage_key} won elsewhere, skipping")
            return await self._store.get_by_storage_key(storage_key)

        limits = limits_for(plan_id)
        logger.info(
            f"Ingesting document {document.document_id} ({storage_key}) on plan {limits.plan_id}"
        )

        try:
            await self._process(document, limits)
            final = await self._store.mark_status(document.document_id, DocumentStatus.SUCCESS)
        except asyncio.CancelledError:
            await self._fail(document.document_id, FailureReason.processing_failed)
            raise
        except NotFound:
            await self._discard(document.document_id)
            return None
        except Exception as e:
            reason = failure_reason_for(e)
            if reason is FailureReason.processing_failed:
                logger.exception(f"Ingestion of document {document.document_id} failed")
            else:
                logger.warning(f"Ingestion of document {document.document_id} failed: {e}")
            return await self._fail(document.document_id, reason)

        self._metrics.inc_outcome(DocumentStatus.SUCCESS.value)
        return final

    async def _process(self, document: Document, limits: PlanLimits) -> None:
        document_id = document.document_id

        data = await self._stage(
            document_id,
            "fetch",
            self._fetcher.fetch(document.source_url, max_bytes=limits.max_file_size_bytes),
        )
        pages = await self._stage(
            document_id, "parse", asyncio.to_thread(self._parser.parse, data)
        )

        # Page count is only known after parsing; checked before any embedding spend
        started = time.perf_counter()
        try:
            check_page_limit(pages, limits)
        except PolicyExceeded as e:
            self._record(document_id, "policy", "failure", started, e)
            raise
        self._record(document_id, "policy", "success", started)

        chunks = chunk_pages(pages, max_chars=self._chunk_max_chars)
        embeddings: list[list[float]] = []
        if chunks:
            embeddings = await self._stage(
                document_id,
                "embed",
                self._embedder.embed_documents([chunk.text for chunk in chunks]),
            )

        embedded = [
            EmbeddedChunk(
                index=chunk.index,
                text=chunk.text,
                embedding=embedding,
                metadata={"page_number": chunk.page_number, "document_id": str(document_id)},
            )
            for chunk, embedding in zip(chunks, embeddings, strict=True)
        ]
        await self._stage(
            document_id, "index", self._index.upsert_chunks(str(document_id), embedded)
        )

        logger.info(
            f"Indexed document {document_id}: {len(pages)} pages, {len(embedded)} chunks"
        )

    async def _stage(self, document_id: UUID, stage: str, operation: Awaitable[T]) -> T:
        started = time.perf_counter()
        try:
            result = await operation
        except Exception as e:
            self._record(document_id, stage, "failure", started, e)
            raise
        self._record(document_id, stage, "success", started)
        return result

    def _record(
        self,
        document_id: UUID,
        stage: str,
        outcome: str,
        started: float,
        error: Exception | None = None,
    ) -> None:
        latency_ms = (time.perf_counter() - started) * 1000
        self._metrics.record_stage(stage, outcome, latency_ms)
        self._log.log_stage(
            document_id,
            stage,
            outcome,
            latency_ms,
            error_reason=type(error).__name__ if error else None,
        )

    async def _fail(self, document_id: UUID, reason: FailureReason) -> Document | None:
        try:
            document = await self._store.mark_status(document_id, DocumentStatus.FAILED, reason)
        except NotFound:
            await self._discard(document_id)
            return None
        except Exception:
            # Nothing crosses the background boundary; the row stays as last written
            logger.exception(f"Could not record failure of document {document_id}")
            return None
        self._metrics.inc_outcome(DocumentStatus.FAILED.value, reason.value)
        return document

    async def _discard(self, document_id: UUID) -> None:
        """Clean up after a document deleted while it was being ingested."""
        logger.info(f"Document {document_id} was deleted during ingestion, dropping its chunks")
        try:
            await self._index.delete_namespace(str(document_id))
        except Exception:
            logger.exception(f"Could not drop chunks of deleted document {document_id}")
        self._metrics.inc_outcome("deleted")
