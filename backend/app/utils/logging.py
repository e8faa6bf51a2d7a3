"""Structured logging for strategy job execution."""

import logging
from typing import Any

logger = logging.getLogger(__name__)


class StructuredJobLogger:
    """Structured logger for job stage transitions."""

    def log_stage(
        self,
        job_id: str,
        stage: str,
        progress: int,
        elapsed_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log a stage transition with structured data."""
        log_data: dict[str, Any] = {
            "job_id": job_id,
            "stage": stage,
            "progress": progress,
            "elapsed_ms": round(elapsed_ms, 2),
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Strategy job {job_id}: {stage} ({progress}%)"

        if stage == "failed":
            logger.warning(log_msg, extra={"structured": log_data})
        else:
            logger.info(log_msg, extra={"structured": log_data})

    def log_provider_call(
        self,
        job_id: str,
        provider: str,
        outcome: str,
        latency_ms: float,
    ) -> None:
        """Log a generation provider call."""
        log_data: dict[str, Any] = {
            "job_id": job_id,
            "provider": provider,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }
        logger.info(f"Provider call: {provider} - {outcome}", extra={"structured": log_data})
