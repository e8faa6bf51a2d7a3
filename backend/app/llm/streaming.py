"""Normalize provider streams into started/delta/done/error events."""

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence

from backend.app.errors import ProviderError
from backend.app.llm.providers import GenerationProvider
from backend.app.models.events import CitedSource, StreamEvent
from backend.app.models.sources import IndexedChunk

logger = logging.getLogger(__name__)


def cite(chunks: Sequence[IndexedChunk]) -> list[CitedSource]:
    """One citation per chunk, first occurrence of each (source, section) kept."""
    seen: set[tuple[str, str]] = set()
    cited: list[CitedSource] = []
    for chunk in chunks:
        key = (chunk.source_id, chunk.section)
        if key in seen:
            continue
        seen.add(key)
        cited.append(
            CitedSource(
                source_id=chunk.source_id,
                source_name=chunk.source_name,
                source_type=chunk.source_type,
                section=chunk.section,
            )
        )
    return cited


async def stream_events(
    provider: GenerationProvider,
    prompt: str,
    sources: Sequence[IndexedChunk] = (),
) -> AsyncIterator[StreamEvent]:
    """Run a provider stream and yield normalized events.

    Yields `started`, then one `delta` per fragment, then exactly one of
    `done` (full answer plus citations) or `error`.
    """
    yield StreamEvent(kind="started")

    queue: asyncio.Queue[str | None] = asyncio.Queue()

    async def on_delta(text: str) -> None:
        await queue.put(text)

    async def run() -> str:
        try:
            return await provider.generate_stream(prompt, on_delta)
        finally:
            await queue.put(None)

    task = asyncio.create_task(run())
    try:
        while True:
            item = await queue.get()
            if item is None:
                break
            yield StreamEvent(kind="delta", text=item)

        try:
            answer = await task
        except ProviderError as e:
            logger.warning(f"Provider stream failed ({e.code}): {e}")
            yield StreamEvent(kind="error", error=str(e))
            return
        except Exception as e:
            logger.exception("Unexpected error while streaming")
            yield StreamEvent(kind="error", error=f"Generation failed: {e}")
            return

        yield StreamEvent(kind="done", answer=answer, sources=cite(sources))
    finally:
        if not task.done():
            task.cancel()
