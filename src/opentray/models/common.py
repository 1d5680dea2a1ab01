"""Common/shared models used across multiple domains."""

from pydantic import Field

from opentray.models.base import OpenCodeBaseModel


class TimeCreatedUpdated(OpenCodeBaseModel):
    """Timestamp with created and updated fields."""

    created: float = 0
    updated: float = 0


class TimeCreated(OpenCodeBaseModel):
    """Timestamp with created field only."""

    created: float = 0


class TimeStartEnd(OpenCodeBaseModel):
    """Timestamp with start and optional end."""

    start: float = 0
    end: float | None = None


class ModelRef(OpenCodeBaseModel):
    """Reference to a provider model."""

    provider_id: str = Field(alias="providerID")
    model_id: str = Field(alias="modelID")


class TokensCache(OpenCodeBaseModel):
    """Token cache information."""

    read: float = 0
    write: float = 0


class Tokens(OpenCodeBaseModel):
    """Token usage information."""

    cache: TokensCache = Field(default_factory=TokensCache)
    input: float = 0
    output: float = 0
    reasoning: float = 0
