"""Unit tests for building source/chunk payloads from parsed uploads."""

import pytest

from backend.app.chunks.indexing import (
    MANUAL_TEXT_TITLE,
    build_index_payload,
    infer_source_type,
)
from backend.app.errors import ParsingError
from backend.app.models.documents import ParsedCorpus
from backend.app.models.jobs import UploadedFile
from backend.app.parsing.parser import build_source_chunks

# 2389 characters: four 700-character slices
LONG_TEXT = " ".join(f"w{i}" for i in range(500))


def _file(name: str, category: str = "studyMaterial") -> UploadedFile:
    return UploadedFile(name=name, url=f"https://files/{name}", category=category)


def test_infer_source_type() -> None:
    assert infer_source_type(_file("a.pdf")) == "pdf"
    assert infer_source_type(_file("a.docx")) == "docx"
    assert infer_source_type(_file("a.pptx")) == "ppt"
    assert infer_source_type(_file("a.ppt")) == "ppt"
    assert infer_source_type(_file("a.txt")) == "text"


def test_payload_counts_chunks_per_source() -> None:
    notes = _file("notes.pdf")
    empty = _file("scan.pdf")
    corpus = ParsedCorpus(source_chunks=build_source_chunks([(notes, LONG_TEXT)]))

    payload = build_index_payload([notes, empty], corpus)

    by_title = {s.title: s for s in payload.sources}
    assert by_title["notes.pdf"].chunk_count == 4
    assert by_title["notes.pdf"].status == "indexed"
    assert by_title["notes.pdf"].metadata.file_url == "https://files/notes.pdf"
    assert by_title["scan.pdf"].status == "error"
    assert by_title["scan.pdf"].enabled is False
    assert by_title["notes.pdf"].enabled is True
    assert len(payload.chunks) == 4


def test_manual_syllabus_text_becomes_text_source() -> None:
    payload = build_index_payload([], ParsedCorpus(), "Chapter 1: Optics\n\nChapter 2: Waves")

    assert len(payload.sources) == 1
    source = payload.sources[0]
    assert source.type == "text"
    assert source.title == MANUAL_TEXT_TITLE
    assert source.chunk_count == 1
    chunk = payload.chunks[0]
    assert chunk.source_type == "Syllabus Derived"
    assert chunk.section == "Text Chunk 1"
    assert chunk.source_id == source.id


def test_zero_chunks_is_an_error() -> None:
    corpus = ParsedCorpus(warnings=["scan.pdf: parser could not extract readable text"])

    with pytest.raises(ParsingError, match="zero chunks"):
        build_index_payload([_file("scan.pdf")], corpus, "   ")
