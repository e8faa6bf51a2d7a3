"""Strategy job models - request payload and job snapshots."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from backend.app.models.common import FileCategory, JobStage, ModelType
from backend.app.models.strategy import Strategy


class UploadedFile(BaseModel):
    """Reference to a file already placed in blob storage."""

    name: str = Field(..., min_length=1)
    url: str
    type: str = Field("", description="MIME type reported by the uploader")
    extension: str = ""
    category: FileCategory

    @property
    def normalized_extension(self) -> str:
        """Lowercase extension, falling back to the file name suffix."""
        ext = self.extension or (self.name.rsplit(".", 1)[-1] if "." in self.name else "")
        return ext.lower().lstrip(".")


class CustomModelConfig(BaseModel):
    """Connection details for an OpenAI-compatible endpoint."""

    base_url: str = ""
    api_key: SecretStr = SecretStr("")
    model_name: str = ""


class StrategyJobRequest(BaseModel):
    """Payload accepted by job creation."""

    hours_left: float
    syllabus_files: list[UploadedFile] = Field(default_factory=list)
    syllabus_text_input: str | None = None
    study_material_files: list[UploadedFile] = Field(default_factory=list)
    previous_paper_files: list[UploadedFile] = Field(default_factory=list)
    model_type: ModelType = "primary"
    custom_model: CustomModelConfig | None = None

    @property
    def all_files(self) -> list[UploadedFile]:
        """Every uploaded file, syllabus first."""
        return [*self.syllabus_files, *self.study_material_files, *self.previous_paper_files]


class StrategyJob(BaseModel):
    """Immutable snapshot of a strategy job.

    Stores hand out snapshots; updates produce a new instance via model_copy.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    org_id: UUID
    user_id: UUID
    stage: JobStage
    progress: int = Field(..., ge=0, le=100)
    created_at: datetime
    updated_at: datetime
    request: StrategyJobRequest
    result: Strategy | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        """True once the job completed or failed."""
        return self.stage in ("complete", "failed")
