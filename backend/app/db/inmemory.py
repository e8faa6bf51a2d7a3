"""In-memory implementations of repository interfaces."""

import asyncio
from datetime import datetime, timezone

from backend.app.db.context import RequestContext
from backend.app.db.repositories import apply_job_update, owns
from backend.app.models.common import JobStage
from backend.app.models.jobs import StrategyJob
from backend.app.models.strategy import Strategy


class InMemoryJobStore:
    """In-memory implementation of JobStore.

    Single process only; state is lost on restart. Updates are serialized by
    one lock per job and readers always get a complete frozen snapshot.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, StrategyJob] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def create(self, job: StrategyJob) -> None:
        """Persist a newly created job."""
        self._locks.setdefault(job.id, asyncio.Lock())
        self._jobs[job.id] = job

    async def get(self, job_id: str, ctx: RequestContext) -> StrategyJob | None:
        """Get job snapshot by ID."""
        job = self._jobs.get(job_id)

        if job is None:
            return None

        # Enforce tenancy
        if not owns(job, ctx):
            return None

        return job

    async def update(
        self,
        job_id: str,
        *,
        stage: JobStage,
        progress: int,
        result: Strategy | None = None,
        error: str | None = None,
    ) -> StrategyJob | None:
        """Advance a job under its lock."""
        lock = self._locks.get(job_id)
        if lock is None:
            return None

        async with lock:
            current = self._jobs[job_id]
            updated = apply_job_update(
                current,
                stage=stage,
                progress=progress,
                result=result,
                error=error,
                now=datetime.now(timezone.utc),
            )
            self._jobs[job_id] = updated
            return updated
