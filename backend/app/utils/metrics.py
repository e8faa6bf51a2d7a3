"""Prometheus metrics for strategy jobs, providers and the chunk index."""

from prometheus_client import Counter, Histogram

# Strategy job metrics
strategy_job_stage_total = Counter(
    "strategy_job_stage_total",
    "Strategy job stage transitions",
    ["stage"],
)

strategy_job_failures_total = Counter(
    "strategy_job_failures_total",
    "Strategy jobs that ended in failed",
    ["reason"],
)

strategy_job_duration_seconds = Histogram(
    "strategy_job_duration_seconds",
    "Wall time from job creation to a terminal stage",
    ["outcome"],
    buckets=[1, 5, 10, 20, 30, 60, 120, 300],
)

# Generation provider metrics
provider_latency_ms = Histogram(
    "provider_latency_ms",
    "Generation provider latency in milliseconds",
    ["provider", "outcome"],
    buckets=[100, 250, 500, 1000, 2000, 5000, 10000, 30000, 60000],
)

# Chunk index metrics
chunk_index_ops_total = Counter(
    "chunk_index_ops_total",
    "Chunk index operations",
    ["backend", "op"],
)


class PrometheusJobMetrics:
    """Prometheus-based strategy job metrics."""

    def inc_stage(self, stage: str) -> None:
        """Count a stage transition."""
        strategy_job_stage_total.labels(stage=stage).inc()

    def inc_failure(self, reason: str) -> None:
        """Count a failed job by error class."""
        strategy_job_failures_total.labels(reason=reason).inc()

    def observe_duration(self, outcome: str, seconds: float) -> None:
        """Record total job duration."""
        strategy_job_duration_seconds.labels(outcome=outcome).observe(seconds)

    def record_provider_latency(self, provider: str, outcome: str, latency_ms: float) -> None:
        """Record provider call latency."""
        provider_latency_ms.labels(provider=provider, outcome=outcome).observe(latency_ms)


class PrometheusChunkIndexMetrics:
    """Prometheus-based chunk index metrics."""

    def inc_op(self, backend: str, op: str) -> None:
        """Count a chunk index operation."""
        chunk_index_ops_total.labels(backend=backend, op=op).inc()
