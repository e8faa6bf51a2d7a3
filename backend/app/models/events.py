"""Stream event models shared by every generation provider."""

from typing import Literal

from pydantic import BaseModel, Field

StreamEventKind = Literal["started", "delta", "done", "error"]


class CitedSource(BaseModel):
    """Source reference attached to a finished answer."""

    source_id: str
    source_name: str
    source_type: str
    section: str = ""


class StreamEvent(BaseModel):
    """Normalized streaming event.

    A stream is `started`, zero or more `delta`, then exactly one of
    `done` or `error`.
    """

    kind: StreamEventKind
    text: str = ""
    answer: str | None = None
    sources: list[CitedSource] = Field(default_factory=list)
    error: str | None = None

    def to_sse(self) -> str:
        """Render as a server-sent event frame."""
        return f"event: {self.kind}\ndata: {self.model_dump_json(exclude_none=True)}\n\n"
