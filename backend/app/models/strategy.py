"""Strategy models - the generated study plan and its chapter structure."""

from pydantic import BaseModel, Field

from backend.app.models.common import Confidence, LikelihoodLabel, Priority


class SyllabusChapterHint(BaseModel):
    """Chapter detected in the syllabus, with material coverage signals."""

    chapter_number: int = Field(..., gt=0)
    chapter_title: str
    weightage: str | None = Field(None, description="Free text such as '15%' or '20 marks'")
    emphasis_score: int = Field(0, ge=0)
    coverage_score: int = Field(0, ge=0)
    material_coverage_percent: int = Field(0, ge=0, le=100)
    material_available: bool = False


class Topic(BaseModel):
    """Single study topic inside a strategy."""

    slug: str
    title: str
    priority: Priority
    estimated_time: str
    what_to_learn: list[str] = Field(default_factory=list)
    explanation: str = ""
    key_exam_points: list[str] = Field(default_factory=list)
    confidence: Confidence = Confidence.medium
    chapter_number: int | None = None
    chapter_title: str | None = None
    exam_likelihood_score: int | None = Field(None, ge=0, le=100)
    exam_likelihood_label: LikelihoodLabel | None = None


class ExamLikelihoodSummary(BaseModel):
    """Aggregate exam likelihood for one chapter."""

    high_likelihood_questions: int = 0
    average_likelihood: int = Field(0, ge=0, le=100)


class Chapter(BaseModel):
    """Chapter grouping of topics with derived priority and time."""

    chapter_number: int
    chapter_title: str
    weightage: str | None = None
    material_coverage: int = Field(0, ge=0, le=100)
    low_material_confidence: bool = False
    priority: Priority
    estimated_time: str
    topics: list[Topic] = Field(default_factory=list)
    exam_likelihood_summary: ExamLikelihoodSummary = Field(default_factory=ExamLikelihoodSummary)
    material_warning: str | None = None


class StrategySummary(BaseModel):
    """Headline numbers for a strategy."""

    hours_left: float
    estimated_coverage: str = "70%"
    high_impact_topics: int = 0


class Strategy(BaseModel):
    """Canonical strategy result attached to a completed job."""

    schema_version: int = 2
    strategy_summary: StrategySummary
    high_priority: list[str] = Field(default_factory=list)
    medium_priority: list[str] = Field(default_factory=list)
    low_priority: list[str] = Field(default_factory=list)
    study_order: list[str] = Field(default_factory=list)
    reasoning: list[str] = Field(default_factory=list)
    model_used: str = ""
    efficiency_score: str = "70%"
    topics: list[Topic] = Field(default_factory=list)
    chapters: list[Chapter] = Field(default_factory=list)
