"""Study source and chunk models for retrieval."""

from pydantic import BaseModel, Field

from backend.app.models.common import ChunkSourceType, SourceStatus, StudySourceType


class StudySourceMetadata(BaseModel):
    """Optional provenance details for a study source."""

    file_url: str | None = None
    youtube_url: str | None = None
    website_url: str | None = None
    video_id: str | None = None
    transcript_source: str | None = Field(None, pattern="^(captions|ai-reconstructed)$")
    video_language: str | None = Field(None, pattern="^(english|hindi|other)$")
    translated_to_english: bool = False
    ai_generated_transcript: bool = False


class StudySource(BaseModel):
    """Document or link that contributes chunks to a strategy."""

    id: str
    type: StudySourceType
    title: str
    status: SourceStatus = "processing"
    enabled: bool = True
    chunk_count: int = Field(0, ge=0)
    error_message: str | None = None
    metadata: StudySourceMetadata = Field(default_factory=StudySourceMetadata)


class IndexedChunk(BaseModel):
    """Retrievable slice of source text."""

    source_id: str
    text: str
    source_type: ChunkSourceType
    source_name: str
    source_year: int | None = None
    section: str = ""


class EnabledSourceBundle(BaseModel):
    """Live view of which sources are enabled for a strategy."""

    enabled_source_ids: list[str] = Field(default_factory=list)
    source_title_to_id: dict[str, str] = Field(default_factory=dict)
    source_type_map: dict[str, StudySourceType] = Field(default_factory=dict)


class ChunkBundle(EnabledSourceBundle):
    """Enabled source view plus the chunks that passed validation."""

    chunks: list[IndexedChunk] = Field(default_factory=list)
