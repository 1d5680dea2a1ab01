"""Instance, health and path related models."""

from __future__ import annotations

from opentray.models.base import OpenCodeBaseModel


class HealthResponse(OpenCodeBaseModel):
    """Response of the /global/health endpoint."""

    healthy: bool = False
    version: str = ""


class PathInfo(OpenCodeBaseModel):
    """Response of the /path endpoint."""

    directory: str
    home: str = ""
    state: str = ""
    config: str = ""
    worktree: str = ""


class Project(OpenCodeBaseModel):
    """Response of the /project/current endpoint."""

    id: str = ""
    path: str
    name: str | None = None


class Instance(OpenCodeBaseModel):
    """A discovered running service endpoint.

    Rebuilt on every discovery cycle; identity is the endpoint.
    """

    endpoint: str
    directory: str
    port: int
    connected: bool = True
    version: str | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Instance):
            return NotImplemented
        return self.endpoint == other.endpoint

    def __hash__(self) -> int:
        return hash(self.endpoint)
