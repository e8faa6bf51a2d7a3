"""Integration tests for the per-strategy source and chunk endpoints."""

from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.routes.sources import get_document_parser
from backend.app.db.engine import get_session
from backend.app.main import app
from backend.app.parsing.parser import HttpDocumentParser

STRATEGY = "job_1_abcdef12"
FILES = {
    "/notes.txt": "Thermodynamics lecture notes. Entropy measures disorder in a closed system.",
    "/paper.md": "Question one asks about entropy change during an isothermal expansion.",
    "/scan.txt": "",
}


def _file(name: str, category: str = "studyMaterial") -> dict[str, str]:
    return {"name": name, "url": f"https://files.test/{name}", "category": category}


def _handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=FILES.get(request.url.path, "").encode())


@pytest_asyncio.fixture
async def client(sqlite_session: AsyncSession) -> AsyncGenerator[httpx.AsyncClient, None]:
    async def override_session() -> AsyncGenerator[AsyncSession, None]:
        yield sqlite_session

    file_client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_document_parser] = lambda: HttpDocumentParser(client=file_client)
    try:
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        ) as http:
            yield http
    finally:
        app.dependency_overrides.clear()
        await file_client.aclose()


async def _index(client: httpx.AsyncClient, **body: object) -> httpx.Response:
    return await client.post(f"/strategies/{STRATEGY}/sources/index", json=body)


@pytest.mark.asyncio
async def test_index_lists_sources_and_chunks(client: httpx.AsyncClient) -> None:
    response = await _index(
        client,
        files=[_file("notes.txt"), _file("paper.md", "previousPapers")],
        syllabus_text_input="Chapter 1: Thermodynamics",
    )

    assert response.status_code == 201
    body = response.json()
    assert body["chunk_count"] == 3
    assert sorted(s["title"] for s in body["sources"]) == [
        "Manual Syllabus Text",
        "notes.txt",
        "paper.md",
    ]

    sources = (await client.get(f"/strategies/{STRATEGY}/sources")).json()["sources"]
    assert {s["status"] for s in sources} == {"indexed"}

    bundle = (await client.get(f"/strategies/{STRATEGY}/chunks")).json()
    assert len(bundle["chunks"]) == 3
    assert len(bundle["enabled_source_ids"]) == 3
    assert "notes.txt" in bundle["source_title_to_id"]


@pytest.mark.asyncio
async def test_unreadable_file_becomes_error_source(client: httpx.AsyncClient) -> None:
    response = await _index(client, files=[_file("notes.txt"), _file("scan.txt")])

    assert response.status_code == 201
    by_title = {s["title"]: s for s in response.json()["sources"]}
    assert by_title["scan.txt"]["status"] == "error"
    assert by_title["scan.txt"]["enabled"] is False
    assert by_title["notes.txt"]["status"] == "indexed"


@pytest.mark.asyncio
async def test_index_requires_input(client: httpx.AsyncClient) -> None:
    response = await _index(client, files=[], syllabus_text_input="  ")

    assert response.status_code == 422
    assert response.json()["detail"] == "Provide at least one file or syllabus text."


@pytest.mark.asyncio
async def test_index_with_nothing_readable_is_rejected(client: httpx.AsyncClient) -> None:
    response = await _index(client, files=[_file("scan.txt")])

    assert response.status_code == 422
    assert response.json()["detail"].startswith("Parser produced zero chunks.")


@pytest.mark.asyncio
async def test_disable_and_remove_source(client: httpx.AsyncClient) -> None:
    body = (
        await _index(client, files=[_file("notes.txt"), _file("paper.md", "previousPapers")])
    ).json()
    paper_id = next(s["id"] for s in body["sources"] if s["title"] == "paper.md")
    notes_id = next(s["id"] for s in body["sources"] if s["title"] == "notes.txt")

    response = await client.patch(
        f"/strategies/{STRATEGY}/sources/{paper_id}", json={"enabled": False}
    )
    assert response.status_code == 200
    assert response.json() == {"source_id": paper_id, "enabled": False}

    bundle = (await client.get(f"/strategies/{STRATEGY}/chunks")).json()
    assert {c["source_id"] for c in bundle["chunks"]} == {notes_id}

    response = await client.delete(f"/strategies/{STRATEGY}/sources/{notes_id}")
    assert response.status_code == 204

    bundle = (await client.get(f"/strategies/{STRATEGY}/chunks")).json()
    assert bundle["chunks"] == []
    sources = (await client.get(f"/strategies/{STRATEGY}/sources")).json()["sources"]
    assert [s["id"] for s in sources] == [paper_id]


@pytest.mark.asyncio
async def test_unknown_source_returns_404(client: httpx.AsyncClient) -> None:
    patch_response = await client.patch(
        f"/strategies/{STRATEGY}/sources/missing", json={"enabled": True}
    )
    delete_response = await client.delete(f"/strategies/{STRATEGY}/sources/missing")

    assert patch_response.status_code == 404
    assert delete_response.status_code == 404
