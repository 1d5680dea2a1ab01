"""Pure merge rules applying push events to cached session state.

Every function takes the current state plus one decoded event and returns the
next state without mutating its input. Events addressed to another session than
the one held in the state leave it untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from opentray.models import MessageWithParts, OpenCodeBaseModel, Session, StatusType


if TYPE_CHECKING:
    from collections.abc import Iterable

    from opentray.models import Message, Part, PermissionRequest


class SessionState(OpenCodeBaseModel):
    """Cached detail of the selected session."""

    session: Session
    status: StatusType = "idle"
    messages: list[MessageWithParts] = Field(default_factory=list)

    def find_message(self, message_id: str) -> MessageWithParts | None:
        return next((m for m in self.messages if m.info.id == message_id), None)


def sort_sessions(sessions: Iterable[Session]) -> list[Session]:
    """Most recently updated first."""
    return sorted(sessions, key=lambda s: s.time.updated, reverse=True)


def upsert_session(sessions: list[Session], session: Session) -> list[Session]:
    """Replace the session with the same id, or prepend it if unknown."""
    if any(s.id == session.id for s in sessions):
        return sort_sessions(session if s.id == session.id else s for s in sessions)
    return [session, *sessions]


def remove_sessions(sessions: list[Session], session_ids: Iterable[str]) -> list[Session]:
    ids = set(session_ids)
    return [s for s in sessions if s.id not in ids]


def upsert_message(state: SessionState, info: Message) -> SessionState:
    """Append an unknown message with an empty part list; known ids are a no-op."""
    if info.session_id != state.session.id or state.find_message(info.id) is not None:
        return state
    message = MessageWithParts(info=info, parts=[])
    return state.model_copy(update={"messages": [*state.messages, message]})


def upsert_part(state: SessionState, part: Part) -> SessionState:
    """Replace the part with the same id in its message, else append it.

    Parts keep arrival order and are never re-sorted. Parts whose message is
    not (yet) known are dropped.
    """
    if part.session_id != state.session.id:
        return state
    message = state.find_message(part.message_id)
    if message is None:
        return state
    parts = list(message.parts)
    index = next((i for i, p in enumerate(parts) if p.id == part.id), None)
    if index is None:
        parts.append(part)
    else:
        parts[index] = part
    return _replace_message(state, message.model_copy(update={"parts": parts}))


def remove_part(state: SessionState, session_id: str, message_id: str, part_id: str) -> SessionState:
    if session_id != state.session.id:
        return state
    message = state.find_message(message_id)
    if message is None or not any(p.id == part_id for p in message.parts):
        return state
    parts = [p for p in message.parts if p.id != part_id]
    return _replace_message(state, message.model_copy(update={"parts": parts}))


def apply_status(state: SessionState, session_id: str, status: StatusType) -> SessionState:
    """Mirror the authoritative status. Every transition is accepted."""
    if session_id != state.session.id or status == state.status:
        return state
    return state.model_copy(update={"status": status})


def apply_session_info(state: SessionState, session: Session) -> SessionState:
    if session.id != state.session.id:
        return state
    return state.model_copy(update={"session": session})


def apply_permission_asked(
    current: PermissionRequest | None, request: PermissionRequest
) -> PermissionRequest:
    """A new request supersedes any unresolved one."""
    return request


def apply_permission_replied(
    current: PermissionRequest | None, request_id: str
) -> PermissionRequest | None:
    """Any reply clears the surfaced request."""
    return None


def _replace_message(state: SessionState, message: MessageWithParts) -> SessionState:
    messages = [message if m.info.id == message.info.id else m for m in state.messages]
    return state.model_copy(update={"messages": messages})
