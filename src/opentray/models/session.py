"""Session related models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, model_validator

from opentray.models.base import OpenCodeBaseModel
from opentray.models.common import TimeCreatedUpdated


StatusType = Literal["idle", "busy", "retry"]


class SessionSummary(OpenCodeBaseModel):
    """Change summary of a session."""

    additions: int = 0
    deletions: int = 0
    files: int = 0
    messages: int | None = None


class Session(OpenCodeBaseModel):
    """Session information.

    `archived` is a client-side annotation, the remote service never sets it.
    """

    id: str
    project_id: str = Field(default="", alias="projectID")
    directory: str = ""
    title: str = ""
    version: str | None = None
    time: TimeCreatedUpdated = Field(default_factory=TimeCreatedUpdated)
    parent_id: str | None = Field(default=None, alias="parentID")
    summary: SessionSummary | None = None
    archived: bool = False

    @property
    def created_at(self) -> float:
        return self.time.created

    @property
    def updated_at(self) -> float:
        return self.time.updated


class SessionCreateRequest(OpenCodeBaseModel):
    """Request body for creating a session."""

    parent_id: str | None = Field(default=None, alias="parentID")
    title: str | None = None


class SessionStatus(OpenCodeBaseModel):
    """Status of a session.

    The service sends either a bare string or an object with a `type` key.
    """

    type: StatusType = "idle"

    @model_validator(mode="before")
    @classmethod
    def _accept_plain_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"type": data}
        return data


class Todo(OpenCodeBaseModel):
    """Todo item for a session."""

    id: str
    content: str
    status: Literal["pending", "in_progress", "completed", "cancelled"] = "pending"
    priority: Literal["high", "medium", "low"] = "medium"


class FileDiff(OpenCodeBaseModel):
    """Before/after snapshot of one changed file."""

    file: str
    before_text: str = Field(default="", alias="before")
    after_text: str = Field(default="", alias="after")
    additions: int = 0
    deletions: int = 0
