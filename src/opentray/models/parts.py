"""Message part models."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import Field, TypeAdapter

from opentray.models.base import OpenCodeBaseModel
from opentray.models.common import TimeCreated, TimeStartEnd, Tokens


class PartBase(OpenCodeBaseModel):
    """Fields shared by every part variant."""

    id: str
    message_id: str = Field(alias="messageID")
    session_id: str = Field(alias="sessionID")


class TextPart(PartBase):
    """Text content part."""

    type: Literal["text"] = "text"
    text: str = ""
    synthetic: bool | None = None
    ignored: bool | None = None
    time: TimeStartEnd | None = None
    metadata: dict[str, Any] | None = None


class ReasoningPart(PartBase):
    """Model reasoning part."""

    type: Literal["reasoning"] = "reasoning"
    text: str = ""
    time: TimeStartEnd | None = None
    metadata: dict[str, Any] | None = None


class ToolStatePending(OpenCodeBaseModel):
    """Pending tool state."""

    status: Literal["pending"] = "pending"
    input: dict[str, Any] = Field(default_factory=dict)
    raw: str = ""


class ToolStateRunning(OpenCodeBaseModel):
    """Running tool state."""

    status: Literal["running"] = "running"
    input: dict[str, Any] = Field(default_factory=dict)
    title: str | None = None
    metadata: dict[str, Any] | None = None
    time: TimeStartEnd | None = None


class ToolStateCompleted(OpenCodeBaseModel):
    """Completed tool state."""

    status: Literal["completed"] = "completed"
    input: dict[str, Any] = Field(default_factory=dict)
    output: str = ""
    title: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    time: TimeStartEnd | None = None


class ToolStateError(OpenCodeBaseModel):
    """Error tool state."""

    status: Literal["error"] = "error"
    input: dict[str, Any] = Field(default_factory=dict)
    error: str = ""
    metadata: dict[str, Any] | None = None
    time: TimeStartEnd | None = None


ToolState = Annotated[
    ToolStatePending | ToolStateRunning | ToolStateCompleted | ToolStateError,
    Field(discriminator="status"),
]


class ToolPart(PartBase):
    """Tool call part."""

    type: Literal["tool"] = "tool"
    call_id: str = Field(default="", alias="callID")
    tool: str
    state: ToolState = Field(default_factory=ToolStatePending)
    metadata: dict[str, Any] | None = None


class FilePart(PartBase):
    """File reference part."""

    type: Literal["file"] = "file"
    mime: str = ""
    filename: str | None = None
    url: str = ""
    source: Any = None


class StepStartPart(PartBase):
    """Step start marker."""

    type: Literal["step-start"] = "step-start"
    snapshot: str | None = None


class StepFinishPart(PartBase):
    """Step finish marker."""

    type: Literal["step-finish"] = "step-finish"
    reason: str = ""
    snapshot: str | None = None
    cost: float = 0
    tokens: Tokens = Field(default_factory=Tokens)


class AgentSource(OpenCodeBaseModel):
    """Location of an agent mention in the prompt."""

    value: str
    start: int
    end: int


class AgentPart(PartBase):
    """Agent mention part."""

    type: Literal["agent"] = "agent"
    name: str
    source: AgentSource | None = None


class SnapshotPart(PartBase):
    """Workspace snapshot marker."""

    type: Literal["snapshot"] = "snapshot"
    snapshot: str


class PatchPart(PartBase):
    """Patch marker listing changed files."""

    type: Literal["patch"] = "patch"
    hash: str = ""
    files: list[str] = Field(default_factory=list)


class RetryError(OpenCodeBaseModel):
    """Error that caused a retry."""

    type: str = "unknown"
    message: str = ""


class RetryPart(PartBase):
    """Retry attempt marker."""

    type: Literal["retry"] = "retry"
    attempt: int = 0
    error: RetryError = Field(default_factory=RetryError)
    time: TimeCreated | None = None


class CompactionPart(PartBase):
    """Compaction marker."""

    type: Literal["compaction"] = "compaction"
    auto: bool = False


class SubtaskPart(PartBase):
    """Delegated subtask part."""

    type: Literal["subtask"] = "subtask"
    prompt: str = ""
    description: str = ""
    agent: str = ""
    command: str | None = None


# Discriminated union for all part types
Part = Annotated[
    TextPart
    | ReasoningPart
    | ToolPart
    | FilePart
    | StepStartPart
    | StepFinishPart
    | AgentPart
    | SnapshotPart
    | PatchPart
    | RetryPart
    | CompactionPart
    | SubtaskPart,
    Field(discriminator="type"),
]

PartType = Literal[
    "text",
    "reasoning",
    "tool",
    "file",
    "step-start",
    "step-finish",
    "agent",
    "snapshot",
    "patch",
    "retry",
    "compaction",
    "subtask",
]

part_adapter: TypeAdapter[Part] = TypeAdapter(Part)


def part_text(part: Part) -> str | None:
    """Return the human-readable text carried by a part, if any."""
    match part:
        case TextPart(text=text) | ReasoningPart(text=text):
            return text
        case ToolPart(tool=tool, state=state):
            return f"{tool} [{state.status}]"
        case FilePart(filename=filename, url=url):
            return filename or url
        case AgentPart(name=name):
            return f"@{name}"
        case SubtaskPart(description=description):
            return description
        case RetryPart(attempt=attempt, error=error):
            return f"retry #{attempt}: {error.message}"
        case PatchPart(files=files):
            return ", ".join(files)
        case StepStartPart() | StepFinishPart() | SnapshotPart() | CompactionPart():
            return None
