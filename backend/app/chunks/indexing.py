"""Build study sources and chunks from parsed uploads and store them."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from backend.app.chunks.chunker import split_into_chunks
from backend.app.db.context import RequestContext
from backend.app.db.repositories import ChunkIndex
from backend.app.errors import ParsingError
from backend.app.models.common import StudySourceType
from backend.app.models.documents import ParsedCorpus
from backend.app.models.jobs import UploadedFile
from backend.app.models.sources import IndexedChunk, StudySource, StudySourceMetadata
from backend.app.parsing.parser import file_source_id
from backend.app.parsing.text import source_id_from_label

logger = logging.getLogger(__name__)

MANUAL_TEXT_LABEL = "text:manual-syllabus"
MANUAL_TEXT_TITLE = "Manual Syllabus Text"


@dataclass
class IndexPayload:
    """Sources and chunks ready to be written."""

    sources: list[StudySource] = field(default_factory=list)
    chunks: list[IndexedChunk] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def infer_source_type(file: UploadedFile) -> StudySourceType:
    """pdf and docx map to themselves; every slide deck is ppt."""
    ext = file.normalized_extension
    if ext == "pdf":
        return "pdf"
    if ext == "docx":
        return "docx"
    if ext in ("ppt", "pptx"):
        return "ppt"
    return "text"


def build_index_payload(
    files: Sequence[UploadedFile],
    corpus: ParsedCorpus,
    syllabus_text_input: str | None = None,
) -> IndexPayload:
    """Group parsed chunks under one source per file plus the pasted syllabus.

    Raises:
        ParsingError: If nothing produced a chunk
    """
    payload = IndexPayload(warnings=list(corpus.warnings))
    sources: dict[str, StudySource] = {}

    for file in files:
        source_id = file_source_id(file)
        sources[source_id] = StudySource(
            id=source_id,
            type=infer_source_type(file),
            title=file.name,
            status="indexed",
            metadata=StudySourceMetadata(file_url=file.url),
        )

    for chunk in corpus.source_chunks:
        source = sources.get(chunk.source_id)
        if source is None:
            logger.warning(f"Chunk from unknown source {chunk.source_id}; registering as text")
            source = StudySource(id=chunk.source_id, type="text", title=chunk.source_name)
            sources[chunk.source_id] = source
        source.chunk_count += 1
        payload.chunks.append(chunk)

    manual_text = (syllabus_text_input or "").strip()
    if manual_text:
        text_source_id = source_id_from_label(MANUAL_TEXT_LABEL)
        pieces = split_into_chunks(manual_text)
        sources[text_source_id] = StudySource(
            id=text_source_id,
            type="text",
            title=MANUAL_TEXT_TITLE,
            status="indexed",
            chunk_count=len(pieces),
        )
        payload.chunks.extend(
            IndexedChunk(
                source_id=text_source_id,
                text=piece,
                source_type="Syllabus Derived",
                source_name=MANUAL_TEXT_TITLE,
                section=f"Text Chunk {index + 1}",
            )
            for index, piece in enumerate(pieces)
        )

    if not payload.chunks:
        detail = f" Warnings: {' | '.join(payload.warnings)}" if payload.warnings else ""
        raise ParsingError(f"Parser produced zero chunks.{detail}")

    for source in sources.values():
        if source.chunk_count == 0:
            source.status = "error"
            source.error_message = "No readable text was extracted from this source."
            source.enabled = False
    payload.sources = list(sources.values())
    return payload


async def store_index_payload(
    index: ChunkIndex,
    ctx: RequestContext,
    strategy_id: str,
    payload: IndexPayload,
) -> None:
    """Write sources first, then swap in the new chunk set, then record counts."""
    for source in payload.sources:
        await index.upsert_source(ctx, strategy_id, source)
    await index.replace_chunks(ctx, strategy_id, payload.chunks)
    for source in payload.sources:
        await index.update_source_chunk_count(ctx, strategy_id, source.id, source.chunk_count)
