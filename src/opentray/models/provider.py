"""Provider, model, config and MCP related models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import ConfigDict, Field

from opentray.models.base import OpenCodeBaseModel


class ModelLimit(OpenCodeBaseModel):
    """Limit information for a model."""

    context: float = 0
    output: float = 0


class ModelCapabilities(OpenCodeBaseModel):
    """Capability flags of a model."""

    reasoning: bool | None = None
    toolcall: bool | None = None
    attachment: bool | None = None


class Model(OpenCodeBaseModel):
    """Model information as returned by /provider."""

    id: str
    name: str = ""
    provider_id: str = Field(default="", alias="providerID")
    family: str | None = None
    status: str | None = None
    limit: ModelLimit | None = None
    capabilities: ModelCapabilities | None = None


class Provider(OpenCodeBaseModel):
    """Provider with its models."""

    id: str
    name: str = ""
    source: str = ""
    env: list[str] = Field(default_factory=list)
    models: dict[str, Model] = Field(default_factory=dict)


class ProviderListResponse(OpenCodeBaseModel):
    """Response of GET /provider."""

    all: list[Provider] = Field(default_factory=list)
    default: dict[str, str] = Field(default_factory=dict)
    connected: list[str] = Field(default_factory=list)


class ProviderAuthMethod(OpenCodeBaseModel):
    """Authentication method offered by a provider."""

    model_config = ConfigDict(extra="allow")

    type: str
    name: str = ""
    env: str | None = None


class OpenCodeConfig(OpenCodeBaseModel):
    """Instance configuration.

    Only the keys the engine reads are typed; everything else is preserved.
    """

    model_config = ConfigDict(extra="allow")

    model: str | None = None
    small_model: str | None = None
    default_agent: str | None = None
    username: str | None = None
    provider: dict[str, Any] | None = None


McpStatus = Literal["connected", "disconnected", "error"]


class MCPServer(OpenCodeBaseModel):
    """MCP server known to an instance."""

    name: str
    status: McpStatus = "disconnected"
    tools: list[str] = Field(default_factory=list)
