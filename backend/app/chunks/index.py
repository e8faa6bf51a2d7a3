"""SQL chunk index backends.

Two interchangeable write strategies share one source catalog and one read
path:

- ``VersionedChunkIndex`` writes a full replacement under ``active + 1``,
  flips the pointer in ``chunk_index_meta``, then deletes stale versions.
  Readers only accept chunks tagged with the active version, so a reader
  never mixes two generations.
- ``ReplaceChunkIndex`` deletes every chunk and inserts the new set
  untagged, in one transaction.

A deployment uses one backend consistently. Reads re-validate every chunk
against the live enabled-source set, so a disabled or removed source never
leaks through even if chunk cleanup lags.
"""

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import and_, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from backend.app.config import SERVER_IN_QUERY_LIMIT, Settings
from backend.app.db.context import RequestContext
from backend.app.db.models import ChunkIndexMeta, IndexedChunkRow, StudySourceRow
from backend.app.models.sources import (
    ChunkBundle,
    EnabledSourceBundle,
    IndexedChunk,
    StudySource,
    StudySourceMetadata,
)
from backend.app.utils.metrics import PrometheusChunkIndexMetrics

logger = logging.getLogger(__name__)

DEFAULT_WRITE_BATCH_SIZE = 400


def normalize_source_title(title: str) -> str:
    """Lookup key for a source title."""
    return title.strip().lower()


def batched(items: Sequence[str], size: int) -> list[list[str]]:
    """Split items into lists of at most ``size``."""
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def _row_to_source(row: StudySourceRow) -> StudySource:
    return StudySource(
        id=row.source_id,
        type=row.type,  # type: ignore[arg-type]
        title=row.title,
        status=row.status,  # type: ignore[arg-type]
        enabled=row.enabled,
        chunk_count=row.chunk_count,
        error_message=row.error_message,
        metadata=StudySourceMetadata.model_validate(row.details or {}),
    )


def _row_to_chunk(row: IndexedChunkRow) -> IndexedChunk:
    return IndexedChunk(
        source_id=row.source_id,
        text=row.text,
        source_type=row.source_type,  # type: ignore[arg-type]
        source_name=row.source_name,
        source_year=row.source_year,
        section=row.section,
    )


class SqlChunkIndex:
    """Shared catalog and read path. Subclasses choose the write strategy."""

    backend_name = "sql"

    def __init__(
        self,
        session: AsyncSession,
        *,
        write_batch_size: int = DEFAULT_WRITE_BATCH_SIZE,
        in_query_batch_size: int = SERVER_IN_QUERY_LIMIT,
        metrics: PrometheusChunkIndexMetrics | None = None,
    ) -> None:
        """Initialize index.

        Args:
            session: Async database session
            write_batch_size: Rows written or deleted per statement batch
            in_query_batch_size: Max source ids per ``IN (...)`` read
            metrics: Optional metrics sink
        """
        if write_batch_size <= 0 or in_query_batch_size <= 0:
            raise ValueError("Batch sizes must be positive")
        self._session = session
        self._write_batch_size = write_batch_size
        self._in_query_batch_size = in_query_batch_size
        self._metrics = metrics or PrometheusChunkIndexMetrics()

    # --- helpers -----------------------------------------------------------

    @staticmethod
    def _scope(model: type, ctx: RequestContext, strategy_id: str) -> ColumnElement[bool]:
        return and_(
            model.org_id == ctx.org_id,  # type: ignore[attr-defined]
            model.user_id == ctx.user_id,  # type: ignore[attr-defined]
            model.strategy_id == strategy_id,  # type: ignore[attr-defined]
        )

    def _record(self, op: str) -> None:
        # Metrics are auxiliary; a failing sink must not fail the write.
        try:
            self._metrics.inc_op(self.backend_name, op)
        except Exception as e:
            logger.warning(f"Chunk index metric {op} failed: {e}")

    async def _get_meta(self, ctx: RequestContext, strategy_id: str) -> ChunkIndexMeta | None:
        result = await self._session.execute(
            select(ChunkIndexMeta).where(self._scope(ChunkIndexMeta, ctx, strategy_id))
        )
        return result.scalar_one_or_none()

    async def _set_meta(
        self,
        ctx: RequestContext,
        strategy_id: str,
        *,
        active_version: int | None,
        chunk_count: int,
    ) -> None:
        meta = await self._get_meta(ctx, strategy_id)
        if meta is None:
            meta = ChunkIndexMeta(
                org_id=ctx.org_id,
                user_id=ctx.user_id,
                strategy_id=strategy_id,
            )
            self._session.add(meta)
        meta.active_version = active_version
        meta.chunk_count = chunk_count
        meta.updated_at = datetime.now(timezone.utc)

    async def _insert_chunks(
        self,
        ctx: RequestContext,
        strategy_id: str,
        chunks: Sequence[IndexedChunk],
        version: int | None,
        start_ordinal: int = 0,
    ) -> None:
        for offset in range(0, len(chunks), self._write_batch_size):
            batch = chunks[offset : offset + self._write_batch_size]
            self._session.add_all(
                IndexedChunkRow(
                    org_id=ctx.org_id,
                    user_id=ctx.user_id,
                    strategy_id=strategy_id,
                    source_id=chunk.source_id,
                    ordinal=start_ordinal + offset + i,
                    text=chunk.text,
                    source_type=chunk.source_type,
                    source_name=chunk.source_name,
                    source_year=chunk.source_year,
                    section=chunk.section,
                    version=version,
                )
                for i, chunk in enumerate(batch)
            )
            await self._session.flush()

    async def _delete_chunk_ids(self, chunk_ids: list) -> None:
        for offset in range(0, len(chunk_ids), self._write_batch_size):
            batch = chunk_ids[offset : offset + self._write_batch_size]
            await self._session.execute(
                delete(IndexedChunkRow).where(IndexedChunkRow.chunk_id.in_(batch))
            )

    async def _next_ordinal(self, ctx: RequestContext, strategy_id: str) -> int:
        result = await self._session.execute(
            select(IndexedChunkRow.ordinal)
            .where(self._scope(IndexedChunkRow, ctx, strategy_id))
            .order_by(IndexedChunkRow.ordinal.desc())
            .limit(1)
        )
        last = result.scalar_one_or_none()
        return 0 if last is None else last + 1

    async def _live_version(self, ctx: RequestContext, strategy_id: str) -> int | None:
        """Version tag a chunk must carry to be readable (None means untagged)."""
        raise NotImplementedError

    # --- source catalog ----------------------------------------------------

    async def upsert_source(
        self, ctx: RequestContext, strategy_id: str, source: StudySource
    ) -> None:
        """Create or replace a source record."""
        result = await self._session.execute(
            select(StudySourceRow).where(
                self._scope(StudySourceRow, ctx, strategy_id),
                StudySourceRow.source_id == source.id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = StudySourceRow(
                org_id=ctx.org_id,
                user_id=ctx.user_id,
                strategy_id=strategy_id,
                source_id=source.id,
            )
            self._session.add(row)

        row.type = source.type
        row.title = source.title
        row.status = source.status
        row.enabled = source.enabled
        row.chunk_count = source.chunk_count
        row.error_message = source.error_message
        row.details = source.metadata.model_dump(exclude_none=True)
        await self._session.commit()
        self._record("upsert_source")

    async def list_sources(self, ctx: RequestContext, strategy_id: str) -> list[StudySource]:
        """List every source, enabled or not."""
        result = await self._session.execute(
            select(StudySourceRow)
            .where(self._scope(StudySourceRow, ctx, strategy_id))
            .order_by(StudySourceRow.created_at, StudySourceRow.source_id)
        )
        return [_row_to_source(row) for row in result.scalars().all()]

    async def set_source_enabled(
        self, ctx: RequestContext, strategy_id: str, source_id: str, enabled: bool
    ) -> bool:
        """Toggle a source. Returns False when it does not exist."""
        result = await self._session.execute(
            update(StudySourceRow)
            .where(
                self._scope(StudySourceRow, ctx, strategy_id),
                StudySourceRow.source_id == source_id,
            )
            .values(enabled=enabled)
        )
        await self._session.commit()
        self._record("set_source_enabled")
        return bool(result.rowcount)

    async def update_source_chunk_count(
        self, ctx: RequestContext, strategy_id: str, source_id: str, chunk_count: int
    ) -> None:
        """Record the chunk count; status becomes indexed when positive, else error."""
        await self._session.execute(
            update(StudySourceRow)
            .where(
                self._scope(StudySourceRow, ctx, strategy_id),
                StudySourceRow.source_id == source_id,
            )
            .values(chunk_count=chunk_count, status="indexed" if chunk_count > 0 else "error")
        )
        await self._session.commit()

    async def remove_source(self, ctx: RequestContext, strategy_id: str, source_id: str) -> bool:
        """Delete a source and every chunk it owns, chunks first.

        Returns:
            False when the source did not exist
        """
        result = await self._session.execute(
            select(IndexedChunkRow.chunk_id).where(
                self._scope(IndexedChunkRow, ctx, strategy_id),
                IndexedChunkRow.source_id == source_id,
            )
        )
        await self._delete_chunk_ids(list(result.scalars().all()))

        deleted = await self._session.execute(
            delete(StudySourceRow).where(
                self._scope(StudySourceRow, ctx, strategy_id),
                StudySourceRow.source_id == source_id,
            )
        )
        await self._session.commit()
        self._record("remove_source")
        return bool(deleted.rowcount)

    # --- reads -------------------------------------------------------------

    async def get_enabled_sources(
        self, ctx: RequestContext, strategy_id: str
    ) -> EnabledSourceBundle:
        """Read the enabled source ids and title lookup."""
        sources = await self.list_sources(ctx, strategy_id)
        bundle = EnabledSourceBundle()
        for source in sources:
            bundle.source_type_map[source.id] = source.type
            if not source.enabled:
                continue
            bundle.enabled_source_ids.append(source.id)
            if source.title.strip():
                bundle.source_title_to_id[normalize_source_title(source.title)] = source.id
        return bundle

    async def get_chunks(self, ctx: RequestContext, strategy_id: str) -> ChunkBundle:
        """Read the chunks of enabled sources in the live set.

        Source ids are queried in batches of ``in_query_batch_size``; each
        returned row is re-checked against the version tag and the enabled
        set before it is handed out.
        """
        sources = await self.get_enabled_sources(ctx, strategy_id)
        bundle = ChunkBundle(**sources.model_dump())
        if not sources.enabled_source_ids:
            return bundle

        live_version = await self._live_version(ctx, strategy_id)
        version_clause = (
            IndexedChunkRow.version.is_(None)
            if live_version is None
            else IndexedChunkRow.version == live_version
        )
        enabled = set(sources.enabled_source_ids)

        rows: list[IndexedChunkRow] = []
        for batch in batched(sources.enabled_source_ids, self._in_query_batch_size):
            result = await self._session.execute(
                select(IndexedChunkRow)
                .where(
                    self._scope(IndexedChunkRow, ctx, strategy_id),
                    IndexedChunkRow.source_id.in_(batch),
                    version_clause,
                )
                .order_by(IndexedChunkRow.ordinal)
            )
            rows.extend(result.scalars().all())

        rows.sort(key=lambda row: row.ordinal)
        bundle.chunks = [
            _row_to_chunk(row)
            for row in rows
            if row.version == live_version and row.source_id in enabled
        ]
        self._record("get_chunks")
        return bundle

    # --- writes ------------------------------------------------------------

    async def replace_chunks(
        self, ctx: RequestContext, strategy_id: str, chunks: Sequence[IndexedChunk]
    ) -> None:
        """Replace every chunk of a strategy. Empty input is a no-op."""
        raise NotImplementedError

    async def append_chunks(
        self, ctx: RequestContext, strategy_id: str, chunks: Sequence[IndexedChunk]
    ) -> None:
        """Add chunks to the live set."""
        if not chunks:
            return
        version = await self._live_version(ctx, strategy_id)
        start = await self._next_ordinal(ctx, strategy_id)
        await self._insert_chunks(ctx, strategy_id, chunks, version, start_ordinal=start)

        meta = await self._get_meta(ctx, strategy_id)
        current_count = meta.chunk_count if meta else 0
        await self._set_meta(
            ctx,
            strategy_id,
            active_version=meta.active_version if meta else None,
            chunk_count=current_count + len(chunks),
        )
        await self._session.commit()
        self._record("append_chunks")


class VersionedChunkIndex(SqlChunkIndex):
    """Write-new-version, flip pointer, delete stale."""

    backend_name = "versioned"

    async def _live_version(self, ctx: RequestContext, strategy_id: str) -> int | None:
        meta = await self._get_meta(ctx, strategy_id)
        return meta.active_version if meta else None

    async def replace_chunks(
        self, ctx: RequestContext, strategy_id: str, chunks: Sequence[IndexedChunk]
    ) -> None:
        """Write chunks under the next version, then drop older generations."""
        if not chunks:
            return

        active = await self._live_version(ctx, strategy_id)
        next_version = (active or 0) + 1

        await self._insert_chunks(ctx, strategy_id, chunks, next_version)
        await self._set_meta(ctx, strategy_id, active_version=next_version, chunk_count=len(chunks))
        await self._session.commit()

        stale = await self._session.execute(
            select(IndexedChunkRow.chunk_id).where(
                self._scope(IndexedChunkRow, ctx, strategy_id),
                (IndexedChunkRow.version != next_version) | IndexedChunkRow.version.is_(None),
            )
        )
        await self._delete_chunk_ids(list(stale.scalars().all()))
        await self._session.commit()
        self._record("replace_chunks")


class ReplaceChunkIndex(SqlChunkIndex):
    """Delete everything, insert untagged, one transaction."""

    backend_name = "replace"

    async def _live_version(self, ctx: RequestContext, strategy_id: str) -> int | None:
        return None

    async def replace_chunks(
        self, ctx: RequestContext, strategy_id: str, chunks: Sequence[IndexedChunk]
    ) -> None:
        """Delete all chunks of the strategy and insert the new set."""
        if not chunks:
            return

        existing = await self._session.execute(
            select(IndexedChunkRow.chunk_id).where(
                self._scope(IndexedChunkRow, ctx, strategy_id)
            )
        )
        await self._delete_chunk_ids(list(existing.scalars().all()))
        await self._insert_chunks(ctx, strategy_id, chunks, None)
        await self._set_meta(ctx, strategy_id, active_version=None, chunk_count=len(chunks))
        await self._session.commit()
        self._record("replace_chunks")


def build_chunk_index(session: AsyncSession, settings: Settings) -> SqlChunkIndex:
    """Build the configured chunk index backend for a session."""
    index_cls: type[SqlChunkIndex] = (
        ReplaceChunkIndex if settings.chunk_index_backend == "replace" else VersionedChunkIndex
    )
    return index_cls(
        session,
        write_batch_size=settings.chunk_write_batch_size,
        in_query_batch_size=settings.in_query_limit,
    )
