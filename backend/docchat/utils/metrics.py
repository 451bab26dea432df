"""Prometheus metrics for ingestion and answer streaming."""

from prometheus_client import Counter, Histogram

# Ingestion metrics
ingestion_stage_latency_ms = Histogram(
    "ingestion_stage_latency_ms",
    "Ingestion stage latency in milliseconds",
    ["stage", "outcome"],
    buckets=[10, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000],
)

ingestion_outcomes_total = Counter(
    "ingestion_outcomes_total",
    "Total ingestion runs by terminal status",
    ["status", "reason"],
)

# Answer stream metrics
answer_streams_total = Counter(
    "answer_streams_total",
    "Total answer streams by outcome",
    ["outcome"],
)

answer_tokens_total = Counter(
    "answer_tokens_total",
    "Total completion tokens forwarded to callers",
)


class PrometheusPipelineMetrics:
    """Prometheus-based pipeline metrics implementation."""

    def record_stage(self, stage: str, outcome: str, latency_ms: float) -> None:
        """Record ingestion stage latency."""
        ingestion_stage_latency_ms.labels(stage=stage, outcome=outcome).observe(latency_ms)

    def inc_outcome(self, status: str, reason: str = "none") -> None:
        """Increment terminal ingestion outcome counter."""
        ingestion_outcomes_total.labels(status=status, reason=reason).inc()

    def inc_stream(self, outcome: str) -> None:
        """Increment answer stream counter."""
        answer_streams_total.labels(outcome=outcome).inc()

    def add_tokens(self, count: int) -> None:
        """Count forwarded tokens."""
        if count > 0:
            answer_tokens_total.inc(count)
