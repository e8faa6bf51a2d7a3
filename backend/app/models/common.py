"""Common types and enums shared across all models."""

from enum import Enum
from typing import Literal


class Priority(str, Enum):
    """Study priority for a topic or chapter."""

    high = "high"
    medium = "medium"
    low = "low"


class Confidence(str, Enum):
    """Generator confidence in a topic's relevance."""

    high = "high"
    medium = "medium"
    low = "low"


FileCategory = Literal["syllabus", "studyMaterial", "previousPapers"]

ModelType = Literal["primary", "custom"]

JobStage = Literal[
    "queued",
    "extracting_text",
    "analyzing_chapters",
    "generating_strategy",
    "preparing_study_content",
    "complete",
    "failed",
]

StudySourceType = Literal["pdf", "ppt", "docx", "text", "url", "youtube"]

SourceStatus = Literal["processing", "indexed", "error"]

ChunkSourceType = Literal["Previous Paper", "Question Bank", "Study Material", "Syllabus Derived"]

LikelihoodLabel = Literal["VERY LIKELY", "HIGH", "MEDIUM", "LOW"]
