"""Push-channel event models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, Field, model_validator

from opentray.models.base import OpenCodeBaseModel
from opentray.models.message import Message  # noqa: TC001
from opentray.models.parts import Part  # noqa: TC001
from opentray.models.permission import PermissionRequest  # noqa: TC001
from opentray.models.session import Session, SessionStatus  # noqa: TC001


EventType = Literal[
    "server.connected",
    "server.heartbeat",
    "session.updated",
    "session.status",
    "message.updated",
    "message.part.updated",
    "message.part.removed",
    "permission.asked",
    "permission.replied",
]


class EventEnvelope(OpenCodeBaseModel):
    """Decoded frame: an event type plus its untyped properties.

    Frames arrive either bare or wrapped in a `payload` key.
    """

    type: str
    properties: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _unwrap_payload(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("payload"), dict):
            return data["payload"]
        return data


class SessionUpdatedProperties(OpenCodeBaseModel):
    """Properties of session.updated.

    Accepts `{info: Session}` as well as a bare session object.
    """

    info: Session

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_session(cls, data: Any) -> Any:
        if isinstance(data, dict) and "info" not in data:
            return {"info": data}
        return data


class SessionStatusProperties(OpenCodeBaseModel):
    """Properties of session.status."""

    session_id: str = Field(alias="sessionID")
    status: SessionStatus


class MessageUpdatedProperties(OpenCodeBaseModel):
    """Properties of message.updated."""

    info: Message


class PartUpdatedProperties(OpenCodeBaseModel):
    """Properties of message.part.updated."""

    part: Part
    delta: str | None = None


class PartRemovedProperties(OpenCodeBaseModel):
    """Properties of message.part.removed."""

    session_id: str = Field(alias="sessionID")
    message_id: str = Field(alias="messageID")
    part_id: str = Field(alias="partID")


class PermissionRepliedProperties(OpenCodeBaseModel):
    """Properties of permission.replied."""

    session_id: str = Field(alias="sessionID")
    request_id: str = Field(validation_alias=AliasChoices("requestID", "permissionID", "id"))
    reply: str | None = Field(default=None, validation_alias=AliasChoices("reply", "response"))


PermissionAskedProperties = PermissionRequest
