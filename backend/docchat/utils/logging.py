"""Structured logging for ingestion stages and answer streams."""

import logging
from typing import Any
from uuid import UUID

logger = logging.getLogger(__name__)


class StructuredPipelineLogger:
    """Structured logger for the ingestion pipeline and answer streams."""

    def log_stage(
        self,
        document_id: UUID | None,
        stage: str,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log one ingestion stage with structured data."""
        log_data: dict[str, Any] = {
            "document_id": str(document_id) if document_id else None,
            "stage": stage,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Ingestion stage: {stage} - {outcome}"

        if outcome in ("success", "skipped"):
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})

    def log_answer(
        self,
        document_id: UUID,
        outcome: str,
        tokens: int,
        persisted: bool,
    ) -> None:
        """Log the end of an answer stream."""
        log_data: dict[str, Any] = {
            "document_id": str(document_id),
            "outcome": outcome,
            "tokens": tokens,
            "persisted": persisted,
        }

        log_msg = f"Answer stream: {outcome}"

        if outcome == "completed":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})
