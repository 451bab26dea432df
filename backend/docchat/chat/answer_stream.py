"""Answer streaming - forwards completion tokens and persists the answer."""

import asyncio
import logging
from collections.abc import AsyncIterator
from uuid import UUID

from backend.docchat.db.repositories import DocumentStore
from backend.docchat.errors import CompletionError, NotFound, UpstreamTransportError
from backend.docchat.llm.client import CompletionClient
from backend.docchat.retrieval.composer import RetrievalComposer
from backend.docchat.utils.logging import StructuredPipelineLogger
from backend.docchat.utils.metrics import PrometheusPipelineMetrics

logger = logging.getLogger(__name__)


async def _close_upstream(upstream: AsyncIterator[str]) -> None:
    aclose = getattr(upstream, "aclose", None)
    if aclose is not None:
        await aclose()


class AnswerStream:
    """Drives one question/answer exchange for a document.

    The user's question is stored before the completion provider is called.
    Tokens are relayed to the caller as they arrive and accumulated; the
    accumulated answer is stored by a finalizer that runs on clean end, on
    provider errors after the first token and on consumer disconnect. A
    hard transport failure or an unexpected error discards the partial answer.
    """

    def __init__(
        self,
        store: DocumentStore,
        composer: RetrievalComposer,
        completion_client: CompletionClient,
        *,
        structured_logger: StructuredPipelineLogger | None = None,
        metrics: PrometheusPipelineMetrics | None = None,
    ) -> None:
        self._store = store
        self._composer = composer
        self._completion_client = completion_client
        self._log = structured_logger or StructuredPipelineLogger()
        self._metrics = metrics or PrometheusPipelineMetrics()
        # Finalizers outlive a cancelled request task; keep them referenced until done
        self._finalizers: set[asyncio.Task[None]] = set()

    async def wait_for_finalizers(self) -> None:
        """Wait until every scheduled answer finalizer has finished."""
        if self._finalizers:
            await asyncio.gather(*self._finalizers, return_exceptions=True)

    async def answer(self, document_id: UUID, owner_id: str, question: str) -> AsyncIterator[bytes]:
        """Start answering ``question`` and return the byte stream.

        Everything that can fail before the first token (ownership, prompt
        composition, opening the completion stream) fails here, before the
        caller commits a response.

        Raises:
            NotFound: If the document is missing or owned by someone else
            CompletionError: If the provider fails before producing a token
        """
        await self._store.append_message(document_id, owner_id, question, is_user_message=True)

        prompt = await self._composer.compose(document_id, owner_id, question)
        upstream = self._completion_client.stream_completion(prompt)

        try:
            first: str | None = await anext(upstream)
        except StopAsyncIteration:
            first = None
        except CompletionError:
            self._metrics.inc_stream("failed_before_first_token")
            self._log.log_answer(document_id, "failed_before_first_token", 0, persisted=False)
            await _close_upstream(upstream)
            raise

        return self._relay(document_id, owner_id, upstream, first)

    async def _relay(
        self,
        document_id: UUID,
        owner_id: str,
        upstream: AsyncIterator[str],
        first: str | None,
    ) -> AsyncIterator[bytes]:
        tokens: list[str] = []
        outcome = "completed" if first is not None else "empty"
        keep_partial = True

        try:
            if first is not None:
                tokens.append(first)
                yield first.encode("utf-8")
                async for token in upstream:
                    tokens.append(token)
                    yield token.encode("utf-8")
        except UpstreamTransportError:
            outcome = "transport_error"
            keep_partial = False
            raise
        except CompletionError:
            outcome = "provider_error"
            raise
        except (GeneratorExit, asyncio.CancelledError):
            outcome = "disconnected"
            raise
        except Exception:
            # Not a provider signal; the partial text cannot be trusted
            outcome = "error"
            keep_partial = False
            raise
        finally:
            text = "".join(tokens) if keep_partial else ""
            task = asyncio.ensure_future(
                self._finalize(document_id, owner_id, upstream, text, outcome, len(tokens))
            )
            self._finalizers.add(task)
            task.add_done_callback(self._finalizers.discard)
            await asyncio.shield(task)

    async def _finalize(
        self,
        document_id: UUID,
        owner_id: str,
        upstream: AsyncIterator[str],
        text: str,
        outcome: str,
        token_count: int,
    ) -> None:
        await _close_upstream(upstream)

        persisted = False
        if text:
            try:
                await self._store.append_message(
                    document_id, owner_id, text, is_user_message=False
                )
                persisted = True
            except NotFound:
                logger.warning(f"Document {document_id} removed before answer could be stored")

        self._metrics.inc_stream(outcome)
        self._metrics.add_tokens(token_count)
        self._log.log_answer(document_id, outcome, token_count, persisted=persisted)
