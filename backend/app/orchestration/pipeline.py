"""Strategy job orchestrator.

Runs each job as a detached background task through the fixed stage order:
extracting_text -> analyzing_chapters -> generating_strategy ->
preparing_study_content -> complete. Any exception ends the job in failed.
"""

import asyncio
import logging
import math
import time
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

import redis.asyncio as aioredis

from backend.app.config import Settings, get_settings
from backend.app.db.context import RequestContext
from backend.app.db.inmemory import InMemoryJobStore
from backend.app.db.redis_store import RedisJobStore
from backend.app.db.repositories import JobStore
from backend.app.errors import InvalidTransitionError, RequestValidationError
from backend.app.llm.prompts import build_strategy_prompt
from backend.app.llm.providers import (
    GenerationProvider,
    get_provider,
    model_label,
    validate_custom_model,
)
from backend.app.models.common import JobStage
from backend.app.models.jobs import StrategyJob, StrategyJobRequest
from backend.app.models.strategy import Strategy, SyllabusChapterHint
from backend.app.orchestration.mapper import assign_chapters, map_to_chapters
from backend.app.orchestration.normalize import extract_json_object, normalize_strategy
from backend.app.orchestration.state import STAGE_PROGRESS
from backend.app.parsing.exam_intelligence import extract_chapter_hints
from backend.app.parsing.parser import DocumentParser, HttpDocumentParser
from backend.app.utils.logging import StructuredJobLogger
from backend.app.utils.metrics import PrometheusJobMetrics

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[StrategyJobRequest, Settings], GenerationProvider]

MISSING_INPUTS_MESSAGE = (
    "Provide syllabus files or syllabus text, and at least one study material file."
)


def validate_request(request: StrategyJobRequest) -> None:
    """Reject requests that cannot produce a strategy.

    Raises:
        RequestValidationError: On non-positive hours, missing inputs or an
            incomplete custom model configuration
    """
    if not math.isfinite(request.hours_left) or request.hours_left <= 0:
        raise RequestValidationError("Invalid hours_left")

    has_syllabus = bool(request.syllabus_files) or bool(
        (request.syllabus_text_input or "").strip()
    )
    if not has_syllabus or not request.study_material_files:
        raise RequestValidationError(MISSING_INPUTS_MESSAGE)

    if request.model_type == "custom":
        validate_custom_model(request.custom_model)


def new_job_id() -> str:
    """job_<epoch ms>_<8 hex chars>."""
    return f"job_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def merge_syllabus_text(parsed_text: str, pasted_text: str | None) -> str:
    """Parsed syllabus first, pasted text after a blank line."""
    pasted = (pasted_text or "").strip()
    if not pasted:
        return parsed_text
    if not parsed_text.strip():
        return pasted
    return f"{parsed_text}\n\n{pasted}"


class StrategyOrchestrator:
    """Creates strategy jobs and drives them to a terminal stage."""

    def __init__(
        self,
        job_store: JobStore,
        parser: DocumentParser,
        *,
        provider_factory: ProviderFactory = get_provider,
        settings: Settings | None = None,
        metrics: PrometheusJobMetrics | None = None,
        job_logger: StructuredJobLogger | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            job_store: Where job snapshots live
            parser: Document parsing collaborator
            provider_factory: Picks a generation provider for a request
            settings: Settings override (for testing)
            metrics: Metrics sink
            job_logger: Structured stage logger
        """
        self.job_store = job_store
        self.parser = parser
        self.provider_factory = provider_factory
        self.settings = settings or get_settings()
        self.metrics = metrics or PrometheusJobMetrics()
        self.job_logger = job_logger or StructuredJobLogger()
        # Strong references so detached tasks are not garbage-collected.
        self._tasks: set[asyncio.Task[None]] = set()

    async def create_job(self, ctx: RequestContext, request: StrategyJobRequest) -> StrategyJob:
        """Validate, persist a queued job and start it in the background.

        Args:
            ctx: Owner of the job
            request: Job request

        Returns:
            The queued job snapshot

        Raises:
            RequestValidationError: If the request is rejected (no job is created)
        """
        validate_request(request)

        now = datetime.now(timezone.utc)
        job = StrategyJob(
            id=new_job_id(),
            org_id=ctx.org_id,
            user_id=ctx.user_id,
            stage="queued",
            progress=self.settings.job_progress_floor,
            created_at=now,
            updated_at=now,
            request=request,
        )
        await self.job_store.create(job)
        self.metrics.inc_stage("queued")
        self.job_logger.log_stage(job.id, "queued", job.progress, 0.0)

        task = asyncio.create_task(self.run_job(job.id, request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job

    async def get_job(self, ctx: RequestContext, job_id: str) -> StrategyJob | None:
        """Snapshot of a job, or None when unknown or owned by someone else."""
        return await self.job_store.get(job_id, ctx)

    async def wait_for_pending(self) -> None:
        """Await every running job task."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _advance(
        self,
        job_id: str,
        stage: JobStage,
        started: float,
        *,
        result: Strategy | None = None,
        error: str | None = None,
    ) -> None:
        progress = STAGE_PROGRESS[stage]
        await self.job_store.update(
            job_id, stage=stage, progress=progress, result=result, error=error
        )
        self.metrics.inc_stage(stage)
        self.job_logger.log_stage(
            job_id, stage, progress, (time.perf_counter() - started) * 1000, error_reason=error
        )

    async def run_job(self, job_id: str, request: StrategyJobRequest) -> None:
        """Run every stage for one job.

        Never raises: failures are recorded on the job.
        """
        started = time.perf_counter()
        try:
            await self._advance(job_id, "extracting_text", started)
            corpus = await self.parser.parse_files(request.all_files)
            syllabus_text = merge_syllabus_text(corpus.syllabus_text, request.syllabus_text_input)

            await self._advance(job_id, "analyzing_chapters", started)
            hints = extract_chapter_hints(syllabus_text, corpus.material_text)
            logger.info(f"Job {job_id}: detected {len(hints)} syllabus chapters")

            await self._advance(job_id, "generating_strategy", started)
            prompt = build_strategy_prompt(
                hours_left=request.hours_left,
                syllabus_text=syllabus_text,
                material_text=corpus.material_text,
                previous_paper_text=corpus.previous_paper_text,
                chapter_hints=hints,
                repeated_topics=corpus.repeated_topics,
                warnings=corpus.warnings,
            )
            provider = self.provider_factory(request, self.settings)
            call_started = time.perf_counter()
            try:
                raw = await provider.generate(prompt)
            except Exception:
                self.job_logger.log_provider_call(
                    job_id, provider.name, "error", (time.perf_counter() - call_started) * 1000
                )
                raise
            self.job_logger.log_provider_call(
                job_id, provider.name, "ok", (time.perf_counter() - call_started) * 1000
            )
            label = model_label(request, self.settings)
            strategy = normalize_strategy(extract_json_object(raw), request.hours_left, label)

            await self._advance(job_id, "preparing_study_content", started)
            strategy = self._attach_chapters(strategy, hints, corpus.previous_paper_text, request)

            strategy = strategy.model_copy(update={"model_used": label})
            await self._advance(job_id, "complete", started, result=strategy)
            self.metrics.observe_duration("complete", time.perf_counter() - started)
        except Exception as e:
            await self._fail(job_id, e, started)

    def _attach_chapters(
        self,
        strategy: Strategy,
        hints: list[SyllabusChapterHint],
        previous_paper_text: str,
        request: StrategyJobRequest,
    ) -> Strategy:
        chapters = map_to_chapters(
            strategy.topics, hints, previous_paper_text, request.all_files
        )
        if not chapters:
            # No syllabus chapters detected: keep the generated grouping.
            return strategy
        # Chapter topics keep generation order, so walk each chapter in step.
        cursors = {chapter.chapter_number: iter(chapter.topics) for chapter in chapters}
        topics = [
            next(cursors[topic.chapter_number])
            for topic in assign_chapters(strategy.topics, hints)
        ]
        return strategy.model_copy(update={"chapters": chapters, "topics": topics})

    async def _fail(self, job_id: str, exc: Exception, started: float) -> None:
        error = str(exc) or exc.__class__.__name__
        logger.error(f"Strategy job {job_id} failed: {error}")
        self.metrics.inc_failure(exc.__class__.__name__)
        self.metrics.observe_duration("failed", time.perf_counter() - started)
        try:
            await self._advance(job_id, "failed", started, error=error)
        except InvalidTransitionError as e:
            logger.warning(f"Could not mark job {job_id} failed: {e}")


_orchestrator: StrategyOrchestrator | None = None


def build_job_store(settings: Settings) -> JobStore:
    """JobStore for the configured backend."""
    if settings.job_store_backend == "redis":
        if not settings.redis_url:
            raise RuntimeError("REDIS_URL is required when JOB_STORE_BACKEND=redis")
        return RedisJobStore(
            aioredis.from_url(settings.redis_url), ttl_seconds=settings.job_ttl_seconds
        )
    return InMemoryJobStore()


def get_orchestrator() -> StrategyOrchestrator:
    """Process-wide orchestrator (FastAPI dependency)."""
    global _orchestrator
    if _orchestrator is None:
        settings = get_settings()
        _orchestrator = StrategyOrchestrator(
            build_job_store(settings),
            HttpDocumentParser(max_chars=settings.max_extracted_chars),
            settings=settings,
        )
    return _orchestrator
