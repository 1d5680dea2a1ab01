"""Message related models."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import Field

from opentray.models.base import OpenCodeBaseModel
from opentray.models.common import ModelRef, TimeCreated, Tokens
from opentray.models.parts import Part  # noqa: TC001


class MessagePath(OpenCodeBaseModel):
    """Path context for a message."""

    cwd: str = ""
    root: str = ""


class MessageTime(OpenCodeBaseModel):
    """Time information for a message."""

    created: float = 0
    completed: float | None = None


class MessageError(OpenCodeBaseModel):
    """Error reported for an assistant message."""

    type: str = "unknown"
    message: str = ""


class UserMessage(OpenCodeBaseModel):
    """User message."""

    id: str
    role: Literal["user"] = "user"
    session_id: str = Field(alias="sessionID")
    time: TimeCreated = Field(default_factory=TimeCreated)
    agent: str | None = None
    model: ModelRef | None = None
    system: str | None = None

    @property
    def created_at(self) -> float:
        return self.time.created

    @property
    def completed_at(self) -> float | None:
        return None

    @property
    def model_ref(self) -> ModelRef | None:
        return self.model

    @property
    def error(self) -> MessageError | None:
        return None


class AssistantMessage(OpenCodeBaseModel):
    """Assistant message."""

    id: str
    role: Literal["assistant"] = "assistant"
    session_id: str = Field(alias="sessionID")
    parent_id: str | None = Field(default=None, alias="parentID")
    model_id: str | None = Field(default=None, alias="modelID")
    provider_id: str | None = Field(default=None, alias="providerID")
    mode: str = "default"
    agent: str | None = None
    path: MessagePath = Field(default_factory=MessagePath)
    time: MessageTime = Field(default_factory=MessageTime)
    tokens: Tokens = Field(default_factory=Tokens)
    cost: float = 0.0
    error: MessageError | None = None
    summary: bool | None = None
    finish: str | None = None

    @property
    def created_at(self) -> float:
        return self.time.created

    @property
    def completed_at(self) -> float | None:
        return self.time.completed

    @property
    def model_ref(self) -> ModelRef | None:
        if self.provider_id is None or self.model_id is None:
            return None
        return ModelRef(provider_id=self.provider_id, model_id=self.model_id)


Message = Annotated[UserMessage | AssistantMessage, Field(discriminator="role")]


class MessageWithParts(OpenCodeBaseModel):
    """Message with its parts, in arrival order."""

    info: Message
    parts: list[Part] = Field(default_factory=list)


# Request models


class TextPartInput(OpenCodeBaseModel):
    """Text part for input."""

    type: Literal["text"] = "text"
    text: str


class MessageRequest(OpenCodeBaseModel):
    """Request body for sending a message."""

    parts: list[TextPartInput]
    model: ModelRef | None = None
