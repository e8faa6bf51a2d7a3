"""Document parsing collaborator.

Downloads uploaded files and turns them into a ParsedCorpus. Binary format
extraction is pluggable: callers register an extractor per extension.
Plain-text formats are handled out of the box; for anything registered as
supported but without an extractor the file is skipped with a warning.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Protocol

import httpx

from backend.app.models.documents import ParsedCorpus, ParsedFile
from backend.app.models.jobs import UploadedFile
from backend.app.models.sources import IndexedChunk
from backend.app.parsing.exam_intelligence import detect_repeated_topics
from backend.app.parsing.text import (
    chunk_source_type,
    extract_year,
    sanitize_extracted_text,
    source_id_from_label,
    split_source_text,
    truncate_text,
)

logger = logging.getLogger(__name__)

Extractor = Callable[[bytes], str]

SUPPORTED_EXTENSIONS = frozenset({"pdf", "docx", "ppt", "pptx", "txt", "md"})


def decode_plain_text(content: bytes) -> str:
    """Decode UTF-8 text, replacing undecodable bytes."""
    return content.decode("utf-8", errors="replace")


DEFAULT_EXTRACTORS: dict[str, Extractor] = {
    "txt": decode_plain_text,
    "md": decode_plain_text,
}


class DocumentParser(Protocol):
    """Turns uploaded files into extracted text."""

    async def parse_files(self, files: Sequence[UploadedFile]) -> ParsedCorpus:
        """Parse every file; per-file failures become warnings, never exceptions."""
        ...


def file_source_id(file: UploadedFile) -> str:
    """Source id for an uploaded file."""
    return source_id_from_label(f"{file.category}:{file.name}")


def build_source_chunks(parsed: Sequence[tuple[UploadedFile, str]]) -> list[IndexedChunk]:
    """Fixed-width chunks for each parsed file, labelled by source type and year.

    Legacy .ppt output is too noisy to index and is skipped.
    """
    chunks: list[IndexedChunk] = []
    for file, text in parsed:
        if file.normalized_extension == "ppt":
            continue
        source_type = chunk_source_type(file)
        year = extract_year(file.name)
        for index, piece in enumerate(split_source_text(sanitize_extracted_text(text))):
            chunks.append(
                IndexedChunk(
                    source_id=file_source_id(file),
                    text=piece,
                    source_type=source_type,
                    source_name=file.name,
                    source_year=year,
                    section=f"Chunk {index + 1}",
                )
            )
    return chunks


class HttpDocumentParser:
    """DocumentParser that fetches file URLs with httpx."""

    def __init__(
        self,
        *,
        extractors: dict[str, Extractor] | None = None,
        client: httpx.AsyncClient | None = None,
        max_chars: int = 35_000,
        timeout: float = 30.0,
    ) -> None:
        """Initialize parser.

        Args:
            extractors: Extension to extractor map (merged over the defaults)
            client: Optional httpx client (for testing)
            max_chars: Cap applied to each category's combined text
            timeout: Download timeout in seconds
        """
        self._extractors = {**DEFAULT_EXTRACTORS, **(extractors or {})}
        self._client = client
        self._max_chars = max_chars
        self._timeout = timeout

    async def _parse_one(self, client: httpx.AsyncClient, file: UploadedFile) -> ParsedFile:
        ext = file.normalized_extension
        if ext not in SUPPORTED_EXTENSIONS:
            return ParsedFile(
                name=file.name,
                category=file.category,
                text="",
                warning=f"{file.name}: unsupported format ({ext})",
            )

        extractor = self._extractors.get(ext)
        if extractor is None:
            return ParsedFile(
                name=file.name,
                category=file.category,
                text="",
                warning=f"{file.name}: no extractor configured for .{ext}",
            )

        try:
            response = await client.get(file.url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Fetching {file.name} failed: {e}")
            return ParsedFile(
                name=file.name,
                category=file.category,
                text="",
                warning=f"{file.name}: failed to fetch file",
            )

        try:
            text = extractor(response.content)
        except Exception as e:
            logger.warning(f"Extracting {file.name} failed: {e}")
            return ParsedFile(
                name=file.name,
                category=file.category,
                text="",
                warning=f"{file.name}: parser could not extract readable text",
            )

        warning = None
        if ext == "ppt":
            warning = (
                f"{file.name}: legacy .ppt parsed with best-effort mode; "
                "convert to .pptx for better quality."
            )
        return ParsedFile(name=file.name, category=file.category, text=text, warning=warning)

    def _combine(self, parsed: list[ParsedFile], category: str, keep_newlines: bool) -> str:
        joined = "\n".join(p.text for p in parsed if p.category == category and p.text)
        return truncate_text(
            sanitize_extracted_text(joined, keep_newlines=keep_newlines), self._max_chars
        )

    async def parse_files(self, files: Sequence[UploadedFile]) -> ParsedCorpus:
        """Download and extract every file concurrently.

        Args:
            files: Uploaded files of any category

        Returns:
            ParsedCorpus with combined texts, warnings and source chunks
        """
        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            parsed = list(await asyncio.gather(*(self._parse_one(client, f) for f in files)))
        finally:
            if self._client is None:
                await client.aclose()

        previous_paper_text = self._combine(parsed, "previousPapers", keep_newlines=False)
        return ParsedCorpus(
            # Syllabus keeps its lines so chapter headings stay detectable.
            syllabus_text=self._combine(parsed, "syllabus", keep_newlines=True),
            material_text=self._combine(parsed, "studyMaterial", keep_newlines=False),
            previous_paper_text=previous_paper_text,
            repeated_topics=detect_repeated_topics(previous_paper_text),
            warnings=[p.warning for p in parsed if p.warning],
            files=parsed,
            source_chunks=build_source_chunks(list(zip(files, (p.text for p in parsed)))),
        )
