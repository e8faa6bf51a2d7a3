"""Unit tests for UI helper functions: job client, bounded poller, SSE reader."""

import json

import httpx
import pytest

from backend.app.errors import JobNotFoundError, PollTimeoutError
from ui.helpers import (
    compose_progress,
    create_strategy_job,
    parse_sse_lines,
    poll_strategy_job,
    stream_study_answer,
)

BACKEND = "http://backend.test"


def _client(snapshots: list[dict], calls: list[str] | None = None) -> httpx.Client:
    """Client serving one snapshot per GET, repeating the last one."""
    remaining = list(snapshots)

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request.url.path)
        snapshot = remaining.pop(0) if len(remaining) > 1 else remaining[0]
        return httpx.Response(200, json=snapshot)

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_compose_progress_never_below_upload_share() -> None:
    assert compose_progress(30, 0) == 30
    assert compose_progress(30, 62) == 62
    assert compose_progress(30, 140) == 100


def test_create_strategy_job_posts_payload() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(202, json={"job_id": "job_1_abcdef12", "stage": "queued", "progress": 35})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    created = create_strategy_job(BACKEND, {"hours_left": 4}, client=client)

    assert created["job_id"] == "job_1_abcdef12"
    assert seen["path"] == "/strategy-jobs"
    assert seen["auth"].startswith("Bearer ")
    assert seen["body"] == {"hours_left": 4}


def test_poll_returns_terminal_snapshot_with_monotonic_progress() -> None:
    snapshots = [
        {"stage": "extracting_text", "progress": 45},
        {"stage": "analyzing_chapters", "progress": 40},
        {"stage": "complete", "progress": 100, "strategy": {"chapters": []}},
    ]
    updates: list[int] = []
    sleeps: list[float] = []

    job = poll_strategy_job(
        BACKEND,
        "job_1_abcdef12",
        interval_seconds=0.5,
        client=_client(snapshots),
        on_update=lambda snapshot: updates.append(snapshot["progress"]),
        sleep=sleeps.append,
    )

    assert job["stage"] == "complete"
    assert updates == [45, 45, 100]
    assert sleeps == [0.5, 0.5]


def test_poll_stops_on_failed_stage() -> None:
    job = poll_strategy_job(
        BACKEND,
        "job_1_abcdef12",
        client=_client([{"stage": "failed", "progress": 100, "error": "Gemini returned empty response"}]),
        sleep=lambda seconds: None,
    )

    assert job["error"] == "Gemini returned empty response"


def test_poll_not_found_is_not_retried() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(404, json={"detail": "Job not found"})

    client = httpx.Client(transport=httpx.MockTransport(handler))

    with pytest.raises(JobNotFoundError, match="Job not found"):
        poll_strategy_job(BACKEND, "job_missing", client=client, sleep=lambda seconds: None)

    assert calls == ["/strategy-jobs/job_missing"]


def test_poll_times_out_after_budget() -> None:
    calls: list[str] = []
    sleeps: list[float] = []

    with pytest.raises(PollTimeoutError, match="Generation timed out"):
        poll_strategy_job(
            BACKEND,
            "job_1_abcdef12",
            max_attempts=3,
            client=_client([{"stage": "generating_strategy", "progress": 78}], calls),
            sleep=sleeps.append,
        )

    assert len(calls) == 3
    assert len(sleeps) == 2


def test_parse_sse_lines() -> None:
    lines = [
        "event: started",
        "data: {}",
        "",
        "event: delta",
        'data: {"text": "Entropy"}',
        "",
        "event: done",
        'data: {"answer": "Entropy", "sources": []}',
    ]

    events = list(parse_sse_lines(iter(lines)))

    assert [e["event"] for e in events] == ["started", "delta", "done"]
    assert events[1]["text"] == "Entropy"
    assert events[2]["answer"] == "Entropy"


def test_stream_study_answer_reads_events() -> None:
    body = (
        'event: started\ndata: {"kind": "started", "text": ""}\n\n'
        'event: delta\ndata: {"kind": "delta", "text": "Hi"}\n\n'
        'event: done\ndata: {"kind": "done", "text": "", "answer": "Hi", "sources": []}\n\n'
    )

    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content) == {"strategy_id": "job_1", "question": "What?"}
        return httpx.Response(200, content=body.encode(), headers={"content-type": "text/event-stream"})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    events = list(stream_study_answer(BACKEND, "job_1", "What?", client=client))

    assert [e["event"] for e in events] == ["started", "delta", "done"]
    assert events[-1]["answer"] == "Hi"
