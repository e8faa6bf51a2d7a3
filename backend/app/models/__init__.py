"""Models package - re-exports for convenience."""

from backend.app.models.common import (
    ChunkSourceType,
    Confidence,
    FileCategory,
    JobStage,
    LikelihoodLabel,
    ModelType,
    Priority,
    SourceStatus,
    StudySourceType,
)
from backend.app.models.documents import ParsedCorpus, ParsedFile, RepeatedTopic
from backend.app.models.events import CitedSource, StreamEvent
from backend.app.models.jobs import CustomModelConfig, StrategyJob, StrategyJobRequest, UploadedFile
from backend.app.models.sources import (
    ChunkBundle,
    EnabledSourceBundle,
    IndexedChunk,
    StudySource,
    StudySourceMetadata,
)
from backend.app.models.strategy import (
    Chapter,
    ExamLikelihoodSummary,
    Strategy,
    StrategySummary,
    SyllabusChapterHint,
    Topic,
)

__all__ = [
    # Common
    "Priority",
    "Confidence",
    "FileCategory",
    "ModelType",
    "JobStage",
    "StudySourceType",
    "SourceStatus",
    "ChunkSourceType",
    "LikelihoodLabel",
    # Strategy
    "SyllabusChapterHint",
    "Topic",
    "Chapter",
    "ExamLikelihoodSummary",
    "StrategySummary",
    "Strategy",
    # Jobs
    "UploadedFile",
    "CustomModelConfig",
    "StrategyJobRequest",
    "StrategyJob",
    # Sources
    "StudySource",
    "StudySourceMetadata",
    "IndexedChunk",
    "EnabledSourceBundle",
    "ChunkBundle",
    # Documents
    "RepeatedTopic",
    "ParsedFile",
    "ParsedCorpus",
    # Events
    "StreamEvent",
    "CitedSource",
]
