"""Text cleanup and source labelling helpers for extracted documents."""

import re

from backend.app.models.common import ChunkSourceType
from backend.app.models.jobs import UploadedFile

TRUNCATION_MARKER = "\n...[truncated]"
SOURCE_SLICE_CHARS = 700
MAX_SOURCE_ID_CHARS = 80

_CONTROL_CHARS = re.compile(r"[\u0000-\u0008\u000b-\u001f\u007f-\u009f\ufffd]")
_PIPE_RUNS = re.compile(r"[|]{2,}")
_RULE_RUNS = re.compile(r"[_=~`^]{3,}")
_REPEATED_WORD = re.compile(r"(\b\w{2,20}\b)(?:\s+\1){3,}", re.IGNORECASE)
_REPEATED_LETTER = re.compile(r"([a-zA-Z])\1{5,}")
_YEAR = re.compile(r"(19|20)\d{2}")
_NON_SLUG = re.compile(r"[^a-z0-9]+")


def sanitize_extracted_text(text: str, *, keep_newlines: bool = False) -> str:
    """Remove extraction noise and collapse whitespace.

    Args:
        text: Raw extracted text
        keep_newlines: Keep line structure (needed for line-based chapter detection)

    Returns:
        Cleaned text
    """
    cleaned = _CONTROL_CHARS.sub(" ", text.replace("\r", ""))
    cleaned = _PIPE_RUNS.sub(" ", cleaned)
    cleaned = _RULE_RUNS.sub(" ", cleaned)
    cleaned = _REPEATED_WORD.sub(r"\1", cleaned)
    cleaned = _REPEATED_LETTER.sub(r"\1", cleaned)

    if keep_newlines:
        lines = (re.sub(r"[ \t\u00a0]+", " ", line).strip() for line in cleaned.split("\n"))
        return "\n".join(line for line in lines if line)

    return re.sub(r"\s+", " ", cleaned).strip()


def truncate_text(text: str, max_chars: int = 35_000) -> str:
    """Cap text length, marking the cut."""
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}{TRUNCATION_MARKER}"


def split_source_text(text: str, size: int = SOURCE_SLICE_CHARS) -> list[str]:
    """Fixed-width slices of whitespace-normalized text."""
    normalized = re.sub(r"\s+", " ", text).strip()
    return [normalized[i : i + size] for i in range(0, len(normalized), size)]


def extract_year(file_name: str) -> int | None:
    """First 19xx/20xx year in a file name."""
    match = _YEAR.search(file_name)
    return int(match.group(0)) if match else None


def chunk_source_type(file: UploadedFile) -> ChunkSourceType:
    """Label a file's chunks by where they came from."""
    if file.category == "previousPapers":
        return "Previous Paper"
    if "question bank" in file.name.lower():
        return "Question Bank"
    if file.category == "syllabus":
        return "Syllabus Derived"
    return "Study Material"


def source_id_from_label(label: str) -> str:
    """Stable, URL-safe source id."""
    return _NON_SLUG.sub("-", label.lower()).strip("-")[:MAX_SOURCE_ID_CHARS]
