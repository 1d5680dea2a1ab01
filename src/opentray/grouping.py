"""Helpers for presenting sessions grouped by project directory."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePath
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Iterable

    from opentray.models import Session


def get_directory_name(directory: str) -> str:
    """Last path component of a directory, or the input if it has none."""
    name = PurePath(directory.rstrip("/\\")).name if directory else ""
    return name or directory


@dataclass
class SessionGroup:
    """Sessions sharing one working directory."""

    directory: str
    project_name: str
    sessions: list[Session] = field(default_factory=list)
    is_active: bool = False


def group_sessions(sessions: Iterable[Session], active_directory: str | None = None) -> list[SessionGroup]:
    """Group sessions by directory.

    The group of the active directory comes first, the others follow in order
    of their first session. Session order within a group is preserved.
    """
    groups: dict[str, SessionGroup] = {}
    for session in sessions:
        if (group := groups.get(session.directory)) is None:
            group = SessionGroup(
                directory=session.directory,
                project_name=get_directory_name(session.directory),
                is_active=session.directory == active_directory,
            )
            groups[session.directory] = group
        group.sessions.append(session)
    return sorted(groups.values(), key=lambda g: not g.is_active)
