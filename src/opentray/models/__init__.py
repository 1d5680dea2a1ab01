"""OpenCode wire models.

All models inherit from OpenCodeBaseModel which provides:
- populate_by_name=True for camelCase alias support
- by_alias=True serialization by default
"""

from opentray.models.base import OpenCodeBaseModel
from opentray.models.common import (
    ModelRef,
    TimeCreated,
    TimeCreatedUpdated,
    TimeStartEnd,
    Tokens,
    TokensCache,
)
from opentray.models.app import HealthResponse, Instance, PathInfo, Project
from opentray.models.parts import (
    AgentPart,
    CompactionPart,
    FilePart,
    Part,
    PartType,
    PatchPart,
    ReasoningPart,
    RetryPart,
    SnapshotPart,
    StepFinishPart,
    StepStartPart,
    SubtaskPart,
    TextPart,
    ToolPart,
    ToolState,
    ToolStateCompleted,
    ToolStateError,
    ToolStatePending,
    ToolStateRunning,
    part_adapter,
    part_text,
)
from opentray.models.message import (
    AssistantMessage,
    Message,
    MessageError,
    MessageRequest,
    MessageWithParts,
    TextPartInput,
    UserMessage,
)
from opentray.models.session import (
    FileDiff,
    Session,
    SessionCreateRequest,
    SessionStatus,
    SessionSummary,
    StatusType,
    Todo,
)
from opentray.models.permission import (
    PermissionReply,
    PermissionReplyRequest,
    PermissionRequest,
)
from opentray.models.provider import (
    MCPServer,
    Model,
    OpenCodeConfig,
    Provider,
    ProviderAuthMethod,
    ProviderListResponse,
)
from opentray.models.events import (
    EventEnvelope,
    EventType,
    MessageUpdatedProperties,
    PartRemovedProperties,
    PartUpdatedProperties,
    PermissionAskedProperties,
    PermissionRepliedProperties,
    SessionStatusProperties,
    SessionUpdatedProperties,
)

__all__ = [
    "AgentPart",
    "AssistantMessage",
    "CompactionPart",
    "EventEnvelope",
    "EventType",
    "FileDiff",
    "FilePart",
    "HealthResponse",
    "Instance",
    "MCPServer",
    "Message",
    "MessageError",
    "MessageRequest",
    "MessageUpdatedProperties",
    "MessageWithParts",
    "Model",
    "ModelRef",
    "OpenCodeBaseModel",
    "OpenCodeConfig",
    "Part",
    "PartRemovedProperties",
    "PartType",
    "PartUpdatedProperties",
    "PatchPart",
    "PathInfo",
    "PermissionAskedProperties",
    "PermissionRepliedProperties",
    "PermissionReply",
    "PermissionReplyRequest",
    "PermissionRequest",
    "Project",
    "Provider",
    "ProviderAuthMethod",
    "ProviderListResponse",
    "ReasoningPart",
    "RetryPart",
    "Session",
    "SessionCreateRequest",
    "SessionStatus",
    "SessionStatusProperties",
    "SessionSummary",
    "SessionUpdatedProperties",
    "SnapshotPart",
    "StatusType",
    "StepFinishPart",
    "StepStartPart",
    "SubtaskPart",
    "TextPart",
    "TextPartInput",
    "TimeCreated",
    "TimeCreatedUpdated",
    "TimeStartEnd",
    "Todo",
    "Tokens",
    "TokensCache",
    "ToolPart",
    "ToolState",
    "ToolStateCompleted",
    "ToolStateError",
    "ToolStatePending",
    "ToolStateRunning",
    "UserMessage",
    "part_adapter",
    "part_text",
]
