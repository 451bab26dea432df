"""Background ingestion jobs scheduled from upload callbacks."""

import asyncio
import logging

from backend.docchat.ingestion.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)


class IngestionJobRunner:
    """Runs ingestions as tracked fire-and-forget tasks.

    The caller gets no result; the document status is the only outcome.
    Tasks are held until done so they are not garbage collected mid-run,
    and can be drained on shutdown.
    """

    def __init__(self, pipeline: IngestionPipeline) -> None:
        self._pipeline = pipeline
        self._tasks: set[asyncio.Task[object]] = set()

    @property
    def pending(self) -> int:
        """Number of ingestions still running."""
        return len(self._tasks)

    def submit(
        self,
        *,
        owner_id: str,
        storage_key: str,
        name: str,
        source_url: str | None = None,
        plan_id: str | None = None,
    ) -> asyncio.Task[object]:
        """Schedule an ingestion on the running event loop."""
        task: asyncio.Task[object] = asyncio.create_task(
            self._pipeline.ingest(
                owner_id=owner_id,
                storage_key=storage_key,
                name=name,
                source_url=source_url,
                plan_id=plan_id,
            ),
            name=f"ingest:{storage_key}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.debug(f"Scheduled ingestion for {storage_key}")
        return task

    def _on_done(self, task: asyncio.Task[object]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Ingestion task {task.get_name()} was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Ingestion task {task.get_name()} crashed: {error}", exc_info=error)

    async def wait_idle(self) -> None:
        """Wait until every scheduled ingestion has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Drain running ingestions, cancelling any still running after ``timeout``."""
        if not self._tasks:
            return
        _, still_running = await asyncio.wait(list(self._tasks), timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning(f"Cancelled {len(still_running)} ingestion(s) at shutdown")
            await asyncio.gather(*still_running, return_exceptions=True)
