"""Study source endpoints - per-strategy source catalog and chunk reads."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.auth import get_job_owner
from backend.app.chunks.index import SqlChunkIndex, build_chunk_index
from backend.app.chunks.indexing import build_index_payload, store_index_payload
from backend.app.config import get_settings
from backend.app.db.context import RequestContext
from backend.app.db.engine import get_session
from backend.app.errors import ParsingError
from backend.app.models.jobs import UploadedFile
from backend.app.models.sources import ChunkBundle, StudySource
from backend.app.parsing.parser import DocumentParser, HttpDocumentParser

router = APIRouter(prefix="/strategies/{strategy_id}", tags=["sources"])


class IndexSourcesRequest(BaseModel):
    """Request body for POST /strategies/{strategy_id}/sources/index."""

    files: list[UploadedFile] = Field(default_factory=list)
    syllabus_text_input: str | None = None


class IndexSourcesResponse(BaseModel):
    """Response for POST /strategies/{strategy_id}/sources/index."""

    sources: list[StudySource]
    chunk_count: int
    warnings: list[str]


class SourceListResponse(BaseModel):
    """Response for GET /strategies/{strategy_id}/sources."""

    sources: list[StudySource]


class UpdateSourceRequest(BaseModel):
    """Request body for PATCH /strategies/{strategy_id}/sources/{source_id}."""

    enabled: bool


class UpdateSourceResponse(BaseModel):
    """Response for PATCH /strategies/{strategy_id}/sources/{source_id}."""

    source_id: str
    enabled: bool


async def get_chunk_index(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> SqlChunkIndex:
    """FastAPI dependency for the configured chunk index backend."""
    return build_chunk_index(session, get_settings())


def get_document_parser() -> DocumentParser:
    """FastAPI dependency for the document parser."""
    return HttpDocumentParser(max_chars=get_settings().max_extracted_chars)


@router.get("/chunks", response_model=ChunkBundle)
async def get_strategy_chunks(
    strategy_id: str,
    ctx: Annotated[RequestContext, Depends(get_job_owner)],
    index: Annotated[SqlChunkIndex, Depends(get_chunk_index)],
) -> ChunkBundle:
    """Chunks of enabled sources plus the enabled id and title maps."""
    return await index.get_chunks(ctx, strategy_id)


@router.get("/sources", response_model=SourceListResponse)
async def list_strategy_sources(
    strategy_id: str,
    ctx: Annotated[RequestContext, Depends(get_job_owner)],
    index: Annotated[SqlChunkIndex, Depends(get_chunk_index)],
) -> SourceListResponse:
    """List every source of a strategy, enabled or not."""
    return SourceListResponse(sources=await index.list_sources(ctx, strategy_id))


@router.post(
    "/sources/index", response_model=IndexSourcesResponse, status_code=status.HTTP_201_CREATED
)
async def index_strategy_sources(
    strategy_id: str,
    request: IndexSourcesRequest,
    ctx: Annotated[RequestContext, Depends(get_job_owner)],
    index: Annotated[SqlChunkIndex, Depends(get_chunk_index)],
    parser: Annotated[DocumentParser, Depends(get_document_parser)],
) -> IndexSourcesResponse:
    """Parse uploaded files and pasted text, then replace the strategy's chunks.

    Raises:
        HTTPException: 422 when nothing readable was extracted
    """
    if not request.files and not (request.syllabus_text_input or "").strip():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Provide at least one file or syllabus text.",
        )

    corpus = await parser.parse_files(request.files)
    try:
        payload = build_index_payload(request.files, corpus, request.syllabus_text_input)
    except ParsingError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        ) from e

    await store_index_payload(index, ctx, strategy_id, payload)
    return IndexSourcesResponse(
        sources=payload.sources,
        chunk_count=len(payload.chunks),
        warnings=payload.warnings,
    )


@router.patch("/sources/{source_id}", response_model=UpdateSourceResponse)
async def update_strategy_source(
    strategy_id: str,
    source_id: str,
    request: UpdateSourceRequest,
    ctx: Annotated[RequestContext, Depends(get_job_owner)],
    index: Annotated[SqlChunkIndex, Depends(get_chunk_index)],
) -> UpdateSourceResponse:
    """Enable or disable a source for retrieval."""
    found = await index.set_source_enabled(ctx, strategy_id, source_id, request.enabled)

    if not found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Source not found")

    return UpdateSourceResponse(source_id=source_id, enabled=request.enabled)


@router.delete("/sources/{source_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_strategy_source(
    strategy_id: str,
    source_id: str,
    ctx: Annotated[RequestContext, Depends(get_job_owner)],
    index: Annotated[SqlChunkIndex, Depends(get_chunk_index)],
) -> Response:
    """Remove a source and all of its chunks."""
    removed = await index.remove_source(ctx, strategy_id, source_id)

    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Source not found")

    return Response(status_code=status.HTTP_204_NO_CONTENT)
