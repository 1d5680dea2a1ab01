"""Mutating operations on the selected instance and session.

Remote operations return a success value; their effect on the cache is
confirmed later by push events, not by the return value. Archive operations
are local-only and change the live list and the archive store in one step.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

import anyenv
from psygnal import Signal

from opentray.exceptions import ConfigValidationError
from opentray.log import get_logger


if TYPE_CHECKING:
    from collections.abc import Callable

    from opentray.client import OpenCodeClient
    from opentray.models import OpenCodeConfig, PermissionReply, Session
    from opentray.repository import SessionRepository


logger = get_logger(__name__)

OutcomeKind = Literal[
    "archived",
    "bulk_archived",
    "restored",
    "archive_deleted",
    "deleted",
]


@dataclass(frozen=True)
class OperationOutcome:
    """User-facing summary of a completed command."""

    kind: OutcomeKind
    title: str
    body: str
    session_ids: tuple[str, ...] = ()
    failed_ids: tuple[str, ...] = ()
    """Ids whose remote call failed (bulk delete only)."""

    @property
    def ok(self) -> bool:
        return not self.failed_ids


@dataclass
class BulkDeleteResult:
    """Aggregate result of a bulk delete."""

    requested: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> list[str]:
        return [sid for sid in self.requested if sid not in self.failed]


class CommandFacade:
    """Command API consumed by front ends."""

    outcome = Signal(object)
    """Emitted with one OperationOutcome per user-visible command."""

    def __init__(
        self,
        repository: SessionRepository,
        client: Callable[[], OpenCodeClient | None],
    ) -> None:
        """Initialize the facade.

        Args:
            repository: The shared store
            client: Returns the client of the selected instance, if any
        """
        self.repository = repository
        self._client = client

    def _selected(self) -> tuple[OpenCodeClient, str] | None:
        client = self._client()
        session_id = self.repository.selected_session_id
        if client is None or session_id is None:
            return None
        return client, session_id

    # Sessions

    async def create_session(self, title: str | None = None) -> Session | None:
        if (client := self._client()) is None:
            return None
        session = await client.create_session(title)
        if session is not None:
            self.repository.add_session(session)
        return session

    async def delete_session(self, session: Session) -> bool:
        if (client := self._client()) is None:
            return False
        if ok := await client.delete_session(session.id):
            self.repository.remove_sessions([session.id])
        return ok

    async def bulk_delete(self, sessions: list[Session]) -> BulkDeleteResult:
        """Delete sessions remotely, all requests concurrently.

        Every targeted session leaves the live list whatever the remote
        outcome; the failures are only reported in the aggregate outcome.
        """
        result = BulkDeleteResult(requested=[s.id for s in sessions])
        if (client := self._client()) is None or not sessions:
            return result
        oks = await asyncio.gather(*(client.delete_session(s.id) for s in sessions))
        result.failed = [sid for sid, ok in zip(result.requested, oks, strict=True) if not ok]
        if result.failed:
            logger.warning("Some remote deletes failed", failed=result.failed)
        self.repository.remove_sessions(result.requested)
        body = f"{len(sessions)} session(s) have been deleted"
        if result.failed:
            body += f" ({len(result.failed)} failed remotely)"
        self._emit(
            "deleted",
            "Sessions Deleted",
            body,
            result.requested,
            failed=result.failed,
        )
        return result

    # Archive (local only)

    def archive_session(self, session: Session) -> bool:
        if not self._archive([session]):
            return False
        self._emit("archived", "Session Archived", f'"{session.title}" has been archived', [session.id])
        return True

    def bulk_archive(self, sessions: list[Session]) -> bool:
        if not sessions or not self._archive(sessions):
            return False
        body = f"{len(sessions)} session(s) have been archived"
        self._emit("bulk_archived", "Sessions Archived", body, [s.id for s in sessions])
        return True

    def _archive(self, sessions: list[Session]) -> bool:
        try:
            self.repository.archive_sessions(sessions)
        except OSError:
            logger.exception("Failed to persist archive")
            return False
        return True

    def unarchive_session(self, session: Session) -> Session | None:
        try:
            restored = self.repository.unarchive_session(session)
        except OSError:
            logger.exception("Failed to persist archive")
            return None
        if restored is not None:
            body = f'"{session.title}" has been restored'
            self._emit("restored", "Session Restored", body, [session.id])
        return restored

    def delete_archived(self, session: Session) -> bool:
        """Forget an archived session locally."""
        try:
            return self.repository.delete_archived([session]) == 1
        except OSError:
            logger.exception("Failed to persist archive")
            return False

    def bulk_delete_archived(self, sessions: list[Session]) -> int:
        try:
            removed = self.repository.delete_archived(sessions)
        except OSError:
            logger.exception("Failed to persist archive")
            return 0
        body = f"{len(sessions)} session(s) have been deleted"
        self._emit("archive_deleted", "Sessions Deleted", body, [s.id for s in sessions])
        return removed

    # Conversation

    async def send_message(self, text: str) -> bool:
        if (selected := self._selected()) is None:
            return False
        client, session_id = selected
        return await client.send_message(session_id, text)

    async def abort(self) -> bool:
        """Ask the service to abort the selected session.

        The local status is left alone; it follows the next status event.
        """
        if (selected := self._selected()) is None:
            return False
        client, session_id = selected
        return await client.abort_session(session_id)

    async def change_model(self, provider_id: str, model_id: str) -> bool:
        if (selected := self._selected()) is None:
            return False
        client, session_id = selected
        return await client.change_model(session_id, provider_id, model_id)

    async def reply_permission(self, reply: PermissionReply) -> bool:
        """Answer the surfaced permission request."""
        request = self.repository.permission
        if (client := self._client()) is None or request is None:
            return False
        ok = await client.reply_permission(request.id, reply)
        if ok:
            self.repository.resolve_permission(request.id)
        return ok

    async def refresh_todos(self) -> None:
        if (selected := self._selected()) is None:
            return
        client, session_id = selected
        self.repository.set_todos(await client.get_todos(session_id))

    # Config

    async def update_config(self, patch: dict[str, Any]) -> OpenCodeConfig | None:
        if (client := self._client()) is None:
            return None
        config = await client.update_config(patch)
        if config is not None:
            self.repository.set_config(config)
        return config

    async def update_config_text(self, text: str) -> OpenCodeConfig | None:
        """Validate user-edited JSON, then patch the instance config with it.

        Raises:
            ConfigValidationError: If the text is not a JSON object. Nothing is
                sent in that case.
        """
        try:
            patch = anyenv.load_json(text)
        except anyenv.JsonLoadError as e:
            msg = "Invalid JSON syntax"
            raise ConfigValidationError(msg) from e
        if not isinstance(patch, dict):
            msg = "Invalid JSON syntax"
            raise ConfigValidationError(msg)
        return await self.update_config(patch)

    def _emit(
        self,
        kind: OutcomeKind,
        title: str,
        body: str,
        session_ids: list[str],
        *,
        failed: list[str] | None = None,
    ) -> None:
        outcome = OperationOutcome(
            kind=kind,
            title=title,
            body=body,
            session_ids=tuple(session_ids),
            failed_ids=tuple(failed or ()),
        )
        self.outcome.emit(outcome)
