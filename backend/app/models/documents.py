"""Parsed document models produced by the parsing collaborator."""

from pydantic import BaseModel, Field

from backend.app.models.common import FileCategory
from backend.app.models.sources import IndexedChunk


class RepeatedTopic(BaseModel):
    """Word that recurs across previous papers."""

    topic: str
    frequency: int = Field(..., ge=2)


class ParsedFile(BaseModel):
    """Extracted text for one uploaded file."""

    name: str
    category: FileCategory
    text: str
    warning: str | None = None


class ParsedCorpus(BaseModel):
    """Everything extracted from a job's uploads."""

    syllabus_text: str = ""
    material_text: str = ""
    previous_paper_text: str = ""
    repeated_topics: list[RepeatedTopic] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    files: list[ParsedFile] = Field(default_factory=list)
    source_chunks: list[IndexedChunk] = Field(default_factory=list)
