"""Strategy job endpoints - POST /strategy-jobs and GET /strategy-jobs/{job_id}."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from backend.app.api.auth import get_job_owner
from backend.app.db.context import RequestContext
from backend.app.errors import RequestValidationError
from backend.app.models.common import JobStage
from backend.app.models.jobs import StrategyJob, StrategyJobRequest
from backend.app.models.strategy import Strategy
from backend.app.orchestration.pipeline import StrategyOrchestrator, get_orchestrator

router = APIRouter(prefix="/strategy-jobs", tags=["strategy-jobs"])


class CreateStrategyJobResponse(BaseModel):
    """Response for POST /strategy-jobs."""

    job_id: str
    stage: JobStage
    progress: int


class StrategyJobResponse(BaseModel):
    """Response for GET /strategy-jobs/{job_id}."""

    id: str
    stage: JobStage
    progress: int
    error: str | None = None
    strategy: Strategy | None = None
    updated_at: datetime

    @classmethod
    def from_job(cls, job: StrategyJob) -> "StrategyJobResponse":
        return cls(
            id=job.id,
            stage=job.stage,
            progress=job.progress,
            error=job.error,
            strategy=job.result,
            updated_at=job.updated_at,
        )


@router.post("", response_model=CreateStrategyJobResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_strategy_job(
    request: StrategyJobRequest,
    ctx: Annotated[RequestContext, Depends(get_job_owner)],
    orchestrator: Annotated[StrategyOrchestrator, Depends(get_orchestrator)],
) -> CreateStrategyJobResponse:
    """Create a strategy job and start it in the background.

    Args:
        request: Uploaded file references, hours left and model selection
        ctx: Request context (job owner)
        orchestrator: Job orchestrator

    Returns:
        Job ID with its initial stage and progress

    Raises:
        HTTPException: 422 when the request is rejected
    """
    try:
        job = await orchestrator.create_job(ctx, request)
    except RequestValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        ) from e

    return CreateStrategyJobResponse(job_id=job.id, stage=job.stage, progress=job.progress)


@router.get("/{job_id}", response_model=StrategyJobResponse)
async def get_strategy_job(
    job_id: str,
    ctx: Annotated[RequestContext, Depends(get_job_owner)],
    orchestrator: Annotated[StrategyOrchestrator, Depends(get_orchestrator)],
) -> StrategyJobResponse:
    """Get a job snapshot.

    Returns 404 for both unknown jobs and jobs owned by another user.
    """
    job = await orchestrator.get_job(ctx, job_id)

    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")

    return StrategyJobResponse.from_job(job)
