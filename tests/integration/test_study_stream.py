"""Integration tests for POST /study/ask/stream (SSE)."""

import json
import uuid
from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.routes.study import get_provider_selector
from backend.app.chunks.index import VersionedChunkIndex
from backend.app.db.context import RequestContext
from backend.app.db.engine import get_session
from backend.app.errors import ProviderError, RequestValidationError
from backend.app.llm.providers import DeltaCallback, GenerationProvider
from backend.app.main import app
from backend.app.models.sources import IndexedChunk, StudySource

CTX = RequestContext(
    org_id=uuid.UUID("00000000-0000-0000-0000-000000000001"),
    user_id=uuid.UUID("00000000-0000-0000-0000-000000000002"),
)
STRATEGY = "job_1_abcdef12"


class RecordingProvider:
    """Streams a fixed answer and keeps the prompt it was given."""

    name = "recording"

    def __init__(self, deltas: list[str], error: ProviderError | None = None) -> None:
        self.deltas = deltas
        self.error = error
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        return "".join(self.deltas)

    async def generate_stream(self, prompt: str, on_delta: DeltaCallback) -> str:
        self.prompts.append(prompt)
        for delta in self.deltas:
            await on_delta(delta)
        if self.error is not None:
            raise self.error
        return "".join(self.deltas)


def _events(body: str) -> list[dict]:
    events = []
    for frame in body.strip().split("\n\n"):
        kind, data = frame.split("\n", 1)
        events.append({"event": kind[len("event: ") :], **json.loads(data[len("data: ") :])})
    return events


async def _seed(session: AsyncSession) -> None:
    index = VersionedChunkIndex(session)
    for source_id, title in [("paper", "2022 paper.pdf"), ("notes", "notes.pdf")]:
        await index.upsert_source(
            CTX, STRATEGY, StudySource(id=source_id, type="pdf", title=title, status="indexed")
        )
    await index.replace_chunks(
        CTX,
        STRATEGY,
        [
            IndexedChunk(
                source_id="paper",
                text="Explain entropy change in a reversible cycle.",
                source_type="Previous Paper",
                source_name="2022 paper.pdf",
                source_year=2022,
                section="Chunk 1",
            ),
            IndexedChunk(
                source_id="notes",
                text="Ohm's law relates voltage and current.",
                source_type="Study Material",
                source_name="notes.pdf",
                section="Chunk 1",
            ),
        ],
    )


@pytest_asyncio.fixture
async def http(sqlite_session: AsyncSession) -> AsyncGenerator[httpx.AsyncClient, None]:
    await _seed(sqlite_session)

    async def override_session() -> AsyncGenerator[AsyncSession, None]:
        yield sqlite_session

    app.dependency_overrides[get_session] = override_session
    try:
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        ) as client:
            yield client
    finally:
        app.dependency_overrides.clear()


def _use(provider: GenerationProvider) -> None:
    app.dependency_overrides[get_provider_selector] = lambda: (lambda *args: provider)


@pytest.mark.asyncio
async def test_stream_answers_with_citations(http: httpx.AsyncClient) -> None:
    provider = RecordingProvider(["Entropy ", "stays constant."])
    _use(provider)

    response = await http.post(
        "/study/ask/stream", json={"strategy_id": STRATEGY, "question": "What about entropy?"}
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    events = _events(response.text)
    assert [e["event"] for e in events] == ["started", "delta", "delta", "done"]
    done = events[-1]
    assert done["answer"] == "Entropy stays constant."
    assert [s["source_id"] for s in done["sources"]] == ["paper"]
    assert "2022 paper.pdf" in provider.prompts[0]
    assert "notes.pdf" not in provider.prompts[0]


@pytest.mark.asyncio
async def test_stream_reports_provider_error(http: httpx.AsyncClient) -> None:
    _use(RecordingProvider([], error=ProviderError("Missing Gemini API key.", "missing_api_key")))

    response = await http.post(
        "/study/ask/stream", json={"strategy_id": STRATEGY, "question": "entropy?"}
    )

    events = _events(response.text)
    assert [e["event"] for e in events] == ["started", "error"]
    assert events[-1]["error"] == "Missing Gemini API key."


@pytest.mark.asyncio
async def test_stream_without_matches_has_no_citations(http: httpx.AsyncClient) -> None:
    provider = RecordingProvider(["Not covered."])
    _use(provider)

    response = await http.post(
        "/study/ask/stream", json={"strategy_id": STRATEGY, "question": "photosynthesis"}
    )

    assert _events(response.text)[-1]["sources"] == []
    assert "- No matching sources" in provider.prompts[0]


@pytest.mark.asyncio
async def test_incomplete_custom_model_rejected(http: httpx.AsyncClient) -> None:
    def selector(*args: object) -> GenerationProvider:
        raise RequestValidationError("Missing custom model configuration")

    app.dependency_overrides[get_provider_selector] = lambda: selector

    response = await http.post(
        "/study/ask/stream",
        json={"strategy_id": STRATEGY, "question": "entropy?", "model_type": "custom"},
    )

    assert response.status_code == 422
    assert response.json()["detail"] == "Missing custom model configuration"
