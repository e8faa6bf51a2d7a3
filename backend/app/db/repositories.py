"""Repository protocol interfaces for data access."""

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Protocol

from backend.app.db.context import RequestContext
from backend.app.models.common import JobStage
from backend.app.models.jobs import StrategyJob
from backend.app.models.sources import (
    ChunkBundle,
    EnabledSourceBundle,
    IndexedChunk,
    StudySource,
)
from backend.app.models.strategy import Strategy
from backend.app.orchestration.state import check_transition


def owns(job: StrategyJob, ctx: RequestContext) -> bool:
    """True when the job belongs to the caller."""
    return job.org_id == ctx.org_id and job.user_id == ctx.user_id


def apply_job_update(
    job: StrategyJob,
    *,
    stage: JobStage,
    progress: int,
    result: Strategy | None = None,
    error: str | None = None,
    now: datetime | None = None,
) -> StrategyJob:
    """Produce the next job snapshot.

    Progress never decreases and updated_at never moves backwards.

    Raises:
        InvalidTransitionError: On backward moves or updates after a terminal stage
    """
    check_transition(job.stage, stage)
    now = now or datetime.now(timezone.utc)
    return job.model_copy(
        update={
            "stage": stage,
            "progress": max(job.progress, min(progress, 100)),
            "updated_at": max(now, job.updated_at),
            "result": result if result is not None else job.result,
            "error": error if error is not None else job.error,
        }
    )


class JobStore(Protocol):
    """Registry of strategy jobs."""

    async def create(self, job: StrategyJob) -> None:
        """Persist a newly created job.

        Args:
            job: Job snapshot in the queued stage
        """
        ...

    async def get(self, job_id: str, ctx: RequestContext) -> StrategyJob | None:
        """Get a job snapshot.

        Args:
            job_id: Job ID
            ctx: Request context (enforces ownership)

        Returns:
            Snapshot, or None when unknown or owned by someone else
        """
        ...

    async def update(
        self,
        job_id: str,
        *,
        stage: JobStage,
        progress: int,
        result: Strategy | None = None,
        error: str | None = None,
    ) -> StrategyJob | None:
        """Atomically advance a job.

        Returns:
            New snapshot, or None when the job is unknown

        Raises:
            InvalidTransitionError: On backward moves or updates after a terminal stage
        """
        ...


class ChunkIndex(Protocol):
    """Per-strategy store of study sources and their retrievable chunks.

    Every operation is scoped to the caller's org and user.
    """

    async def upsert_source(
        self, ctx: RequestContext, strategy_id: str, source: StudySource
    ) -> None:
        """Create or replace a source record."""
        ...

    async def list_sources(self, ctx: RequestContext, strategy_id: str) -> list[StudySource]:
        """List every source, enabled or not."""
        ...

    async def set_source_enabled(
        self, ctx: RequestContext, strategy_id: str, source_id: str, enabled: bool
    ) -> bool:
        """Toggle a source. Returns False when it does not exist."""
        ...

    async def update_source_chunk_count(
        self, ctx: RequestContext, strategy_id: str, source_id: str, chunk_count: int
    ) -> None:
        """Record the chunk count; status becomes indexed when positive, else error."""
        ...

    async def remove_source(self, ctx: RequestContext, strategy_id: str, source_id: str) -> bool:
        """Delete a source and its chunks. Returns False when it does not exist."""
        ...

    async def replace_chunks(
        self, ctx: RequestContext, strategy_id: str, chunks: Sequence[IndexedChunk]
    ) -> None:
        """Replace every chunk of a strategy. Empty input is a no-op."""
        ...

    async def append_chunks(
        self, ctx: RequestContext, strategy_id: str, chunks: Sequence[IndexedChunk]
    ) -> None:
        """Add chunks to the live set."""
        ...

    async def get_chunks(self, ctx: RequestContext, strategy_id: str) -> ChunkBundle:
        """Read the chunks of enabled sources in the live set."""
        ...

    async def get_enabled_sources(
        self, ctx: RequestContext, strategy_id: str
    ) -> EnabledSourceBundle:
        """Read the enabled source ids and title lookup."""
        ...
