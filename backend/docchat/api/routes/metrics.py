"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint.

    Exposes all registered Prometheus metrics including:
    - ingestion_stage_latency_ms{stage, outcome}
    - ingestion_outcomes_total{status, reason}
    - answer_streams_total{outcome}
    - answer_tokens_total
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
