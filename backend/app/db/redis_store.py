"""Redis-backed job store.

Jobs are stored as JSON under ``strategy_job:<id>`` with a TTL. Updates use
WATCH/MULTI so concurrent writers cannot interleave a read-modify-write.
"""

import logging

import redis.asyncio as aioredis
from redis.exceptions import WatchError

from backend.app.db.context import RequestContext
from backend.app.db.repositories import apply_job_update, owns
from backend.app.models.common import JobStage
from backend.app.models.jobs import StrategyJob
from backend.app.models.strategy import Strategy

logger = logging.getLogger(__name__)

KEY_PREFIX = "strategy_job:"
MAX_UPDATE_RETRIES = 5


def job_key(job_id: str) -> str:
    """Redis key for a job."""
    return f"{KEY_PREFIX}{job_id}"


class RedisJobStore:
    """JobStore over redis.asyncio."""

    def __init__(self, redis_client: aioredis.Redis, ttl_seconds: int = 24 * 3600) -> None:
        """Initialize store.

        Args:
            redis_client: Async Redis client
            ttl_seconds: Expiry applied on every write
        """
        self._redis = redis_client
        self._ttl_seconds = ttl_seconds

    async def create(self, job: StrategyJob) -> None:
        """Persist a newly created job."""
        await self._redis.set(job_key(job.id), job.model_dump_json(), ex=self._ttl_seconds)

    async def _load(self, job_id: str) -> StrategyJob | None:
        raw = await self._redis.get(job_key(job_id))
        if raw is None:
            return None
        return StrategyJob.model_validate_json(raw)

    async def get(self, job_id: str, ctx: RequestContext) -> StrategyJob | None:
        """Get job snapshot by ID."""
        job = await self._load(job_id)
        if job is None or not owns(job, ctx):
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
        """Advance a job with optimistic locking."""
        key = job_key(job_id)
        for attempt in range(MAX_UPDATE_RETRIES):
            async with self._redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is None:
                        return None
                    updated = apply_job_update(
                        StrategyJob.model_validate_json(raw),
                        stage=stage,
                        progress=progress,
                        result=result,
                        error=error,
                    )
                    pipe.multi()
                    pipe.set(key, updated.model_dump_json(), ex=self._ttl_seconds)
                    await pipe.execute()
                    return updated
                except WatchError:
                    logger.warning(f"Job {job_id} changed during update, retry {attempt + 1}")
        raise RuntimeError(f"Could not update job {job_id} after {MAX_UPDATE_RETRIES} attempts")
