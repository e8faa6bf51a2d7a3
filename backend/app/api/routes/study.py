"""Study endpoints - POST /study/ask/stream (SSE answers grounded in indexed chunks)."""

import logging
from collections.abc import AsyncGenerator, Callable
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from backend.app.api.auth import get_job_owner
from backend.app.api.routes.sources import get_chunk_index
from backend.app.chunks.index import SqlChunkIndex
from backend.app.chunks.retriever import search_chunks
from backend.app.config import get_settings
from backend.app.db.context import RequestContext
from backend.app.errors import RequestValidationError
from backend.app.llm.prompts import build_study_prompt
from backend.app.llm.providers import GenerationProvider, select_provider
from backend.app.llm.streaming import stream_events
from backend.app.models.common import ModelType
from backend.app.models.jobs import CustomModelConfig

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/study", tags=["study"])

ProviderSelector = Callable[..., GenerationProvider]


class AskRequest(BaseModel):
    """Request body for POST /study/ask/stream."""

    strategy_id: str = Field(..., min_length=1)
    question: str = Field(..., min_length=1, max_length=4000)
    model_type: ModelType = "primary"
    custom_model: CustomModelConfig | None = None


def get_provider_selector() -> ProviderSelector:
    """FastAPI dependency returning the provider factory."""
    return select_provider


@router.post("/ask/stream")
async def ask_stream(
    request: AskRequest,
    ctx: Annotated[RequestContext, Depends(get_job_owner)],
    index: Annotated[SqlChunkIndex, Depends(get_chunk_index)],
    selector: Annotated[ProviderSelector, Depends(get_provider_selector)],
) -> StreamingResponse:
    """Answer a question from the strategy's enabled sources via SSE.

    Events: started, delta*, then exactly one of done or error.

    Raises:
        HTTPException: 422 when the custom model configuration is incomplete
    """
    settings = get_settings()
    try:
        provider = selector(request.model_type, request.custom_model, settings)
    except RequestValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        ) from e

    bundle = await index.get_chunks(ctx, request.strategy_id)
    matches = search_chunks(bundle, request.question, limit=settings.retrieval_limit)
    context = [match.chunk for match in matches]
    logger.info(
        f"Study question for {request.strategy_id}: {len(context)} of {len(bundle.chunks)} "
        "chunks retrieved"
    )

    async def event_generator() -> AsyncGenerator[str, None]:
        async for event in stream_events(
            provider, build_study_prompt(request.question, context), context
        ):
            yield event.to_sse()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )
