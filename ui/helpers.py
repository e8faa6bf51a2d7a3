"""Helper functions for UI - strategy job client, bounded poller, study stream reader."""

import json
import time
from collections.abc import Callable, Iterator
from typing import Any

import httpx

from backend.app.errors import JobNotFoundError, PollTimeoutError

DEFAULT_MAX_ATTEMPTS = 120
DEFAULT_INTERVAL_SECONDS = 1.5
TERMINAL_STAGES = ("complete", "failed")

STAGE_LABELS = {
    "queued": "Queued",
    "extracting_text": "Extracting text from your files",
    "analyzing_chapters": "Analyzing syllabus chapters",
    "generating_strategy": "Generating strategy",
    "preparing_study_content": "Preparing study content",
    "complete": "Complete",
    "failed": "Failed",
}


def get_auth_header() -> dict[str, str]:
    """Get auth header for API calls (local dev credentials)."""
    org_id = "00000000-0000-0000-0000-000000000001"
    user_id = "00000000-0000-0000-0000-000000000002"
    return {"Authorization": f"Bearer {org_id}:{user_id}"}


def compose_progress(upload_progress: int, job_progress: int) -> int:
    """Single progress bar value from the upload and job progress spaces."""
    return max(0, min(100, max(upload_progress, job_progress)))


def create_strategy_job(
    backend_url: str,
    payload: dict[str, Any],
    client: httpx.Client | None = None,
) -> dict[str, Any]:
    """Call POST /strategy-jobs.

    Args:
        backend_url: Backend base URL (e.g. http://localhost:8000)
        payload: Job request body
        client: Optional httpx client (for testing)

    Returns:
        {job_id, stage, progress}

    Raises:
        httpx.HTTPStatusError: If the request is rejected
    """
    http = client or httpx.Client(timeout=30.0)
    try:
        response = http.post(
            f"{backend_url}/strategy-jobs", json=payload, headers=get_auth_header()
        )
        response.raise_for_status()
        result: dict[str, Any] = response.json()
        return result
    finally:
        if client is None:
            http.close()


def poll_strategy_job(
    backend_url: str,
    job_id: str,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    client: httpx.Client | None = None,
    on_update: Callable[[dict[str, Any]], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """Poll GET /strategy-jobs/{job_id} until the job is terminal.

    Progress handed to on_update never decreases, even if the server
    reports a lower value.

    Args:
        backend_url: Backend base URL
        job_id: Job to poll
        max_attempts: Number of requests before giving up
        interval_seconds: Wait between requests
        client: Optional httpx client (for testing)
        on_update: Called with every snapshot (progress already clamped)
        sleep: Sleep function (for testing)

    Returns:
        The terminal job snapshot (stage complete or failed)

    Raises:
        JobNotFoundError: On 404; never retried
        PollTimeoutError: When max_attempts is exhausted
        httpx.HTTPStatusError: On other HTTP errors
    """
    http = client or httpx.Client(timeout=30.0)
    last_progress = 0
    try:
        for attempt in range(max_attempts):
            response = http.get(f"{backend_url}/strategy-jobs/{job_id}", headers=get_auth_header())
            if response.status_code == 404:
                raise JobNotFoundError("Job not found")
            response.raise_for_status()

            job: dict[str, Any] = response.json()
            last_progress = max(last_progress, int(job.get("progress", 0)))
            job["progress"] = last_progress
            if on_update is not None:
                on_update(job)

            if job.get("stage") in TERMINAL_STAGES:
                return job
            if attempt < max_attempts - 1:
                sleep(interval_seconds)
    finally:
        if client is None:
            http.close()

    raise PollTimeoutError()


def parse_sse_lines(lines: Iterator[str]) -> Iterator[dict[str, Any]]:
    """Turn SSE lines into {"event": kind, **data} dicts."""
    event = "message"
    data_lines: list[str] = []
    for line in lines:
        if line.startswith("event:"):
            event = line[len("event:") :].strip()
        elif line.startswith("data:"):
            data_lines.append(line[len("data:") :].strip())
        elif not line.strip() and data_lines:
            yield {"event": event, **json.loads("\n".join(data_lines))}
            event = "message"
            data_lines = []
    if data_lines:
        yield {"event": event, **json.loads("\n".join(data_lines))}


def stream_study_answer(
    backend_url: str,
    strategy_id: str,
    question: str,
    client: httpx.Client | None = None,
) -> Iterator[dict[str, Any]]:
    """Call POST /study/ask/stream and yield decoded events."""
    http = client or httpx.Client(timeout=120.0)
    try:
        with http.stream(
            "POST",
            f"{backend_url}/study/ask/stream",
            json={"strategy_id": strategy_id, "question": question},
            headers=get_auth_header(),
        ) as response:
            response.raise_for_status()
            yield from parse_sse_lines(response.iter_lines())
    finally:
        if client is None:
            http.close()
