"""Permission request models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, Field

from opentray.models.base import OpenCodeBaseModel


PermissionReply = Literal["once", "always", "reject"]


class PermissionRequest(OpenCodeBaseModel):
    """A tool permission the service asks the user to grant."""

    id: str
    session_id: str = Field(alias="sessionID")
    permission: str = Field(default="", validation_alias=AliasChoices("permission", "type"))
    patterns: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class PermissionReplyRequest(OpenCodeBaseModel):
    """Request body for replying to a permission request."""

    reply: PermissionReply
