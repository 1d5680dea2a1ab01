"""Observable client-side cache of instances, sessions and session detail."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from psygnal import Signal

from opentray import reconcile
from opentray.config import UNKNOWN_DIRECTORY
from opentray.log import get_logger


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from opentray.archive import ArchiveStore
    from opentray.models import (
        FileDiff,
        Instance,
        MCPServer,
        OpenCodeConfig,
        PermissionRequest,
        Provider,
        Session,
        StatusType,
        Todo,
    )
    from opentray.reconcile import SessionState


logger = get_logger(__name__)


class SessionRepository:
    """Single shared store for everything the engine knows.

    Writers are discovery results, the event handlers and the local-only
    commands. Readers subscribe to the signals instead of polling attributes.
    """

    instances_changed = Signal(list)
    """Emitted with the instances of the latest discovery cycle."""
    instance_changed = Signal(object)
    """Emitted with the newly selected instance (or None)."""
    sessions_changed = Signal(list)
    """Emitted with the live session list."""
    archive_changed = Signal(list)
    """Emitted with the archived sessions of the selected instance."""
    selection_changed = Signal(object)
    """Emitted with the newly selected session (or None)."""
    detail_changed = Signal(object)
    """Emitted with the new SessionState of the selected session (or None)."""
    status_changed = Signal(str, str)
    """Emitted with session id and new status of the selected session."""
    permission_changed = Signal(object)
    """Emitted with the surfaced permission request (or None)."""
    info_changed = Signal()
    """Config, MCP servers, providers, diffs or todos changed."""
    session_finished = Signal(object, int)
    """Selected session went busy -> idle. Carries the session and its diff count."""
    error_changed = Signal(object)

    def __init__(self, archive: ArchiveStore) -> None:
        self.archive = archive
        self.instances: list[Instance] = []
        self.instance: Instance | None = None
        self.sessions: list[Session] = []
        self.selected_session: Session | None = None
        self.detail: SessionState | None = None
        self.status: StatusType = "idle"
        self.diffs: list[FileDiff] = []
        self.todos: list[Todo] = []
        self.permission: PermissionRequest | None = None
        self.config: OpenCodeConfig | None = None
        self.mcp_servers: list[MCPServer] = []
        self.providers: list[Provider] = []
        self.error: str | None = None

    @property
    def scope(self) -> str:
        """Archive scope of the selected instance.

        The working directory, or the endpoint when the directory is unknown.
        """
        if self.instance is None:
            return UNKNOWN_DIRECTORY
        if self.instance.directory == UNKNOWN_DIRECTORY:
            return self.instance.endpoint
        return self.instance.directory

    @property
    def selected_session_id(self) -> str | None:
        return self.selected_session.id if self.selected_session else None

    @property
    def archived_sessions(self) -> list[Session]:
        return self.archive.sessions(self.scope)

    # Discovery / instance

    def set_instances(self, instances: list[Instance]) -> None:
        self.instances = list(instances)
        self.instances_changed.emit(self.instances)

    def set_error(self, error: str | None) -> None:
        if error != self.error:
            self.error = error
            self.error_changed.emit(error)

    def select_instance(self, instance: Instance | None) -> None:
        """Switch instance, dropping all instance-scoped state."""
        self.clear_session()
        self.instance = instance
        self.sessions = []
        self.permission = None
        self.config = None
        self.mcp_servers = []
        self.providers = []
        self.instance_changed.emit(instance)
        self.sessions_changed.emit(self.sessions)
        self.permission_changed.emit(None)
        self.archive_changed.emit(self.archived_sessions)
        self.info_changed.emit()

    def set_info(
        self,
        config: OpenCodeConfig | None,
        mcp_servers: list[MCPServer],
        providers: list[Provider],
    ) -> None:
        self.config = config
        self.mcp_servers = mcp_servers
        self.providers = providers
        self.info_changed.emit()

    def set_config(self, config: OpenCodeConfig) -> None:
        self.config = config
        self.info_changed.emit()

    # Live session list

    def _is_archived(self, session_id: str) -> bool:
        return self.archive.is_archived(self.scope, session_id)

    def set_sessions(self, sessions: Iterable[Session]) -> None:
        """Replace the live list with fetched sessions, minus archived ones."""
        live = [s for s in sessions if not self._is_archived(s.id)]
        self.sessions = reconcile.sort_sessions(live)
        self.sessions_changed.emit(self.sessions)

    def upsert_session(self, session: Session) -> None:
        """Merge a session update by id. Archived sessions are never resurrected."""
        if self._is_archived(session.id):
            logger.debug("Ignoring update for archived session", session_id=session.id)
            return
        self.sessions = reconcile.upsert_session(self.sessions, session)
        self.sessions_changed.emit(self.sessions)
        if self.selected_session_id == session.id:
            self.selected_session = session
            self.apply(reconcile.apply_session_info, session)

    def add_session(self, session: Session) -> None:
        self.sessions = [session, *reconcile.remove_sessions(self.sessions, [session.id])]
        self.sessions_changed.emit(self.sessions)

    def remove_sessions(self, session_ids: Iterable[str]) -> None:
        ids = set(session_ids)
        self.sessions = reconcile.remove_sessions(self.sessions, ids)
        self.sessions_changed.emit(self.sessions)
        if self.selected_session_id in ids:
            self.clear_session()

    # Archive (local-only, both stores change in one step)

    def archive_sessions(self, sessions: list[Session]) -> list[Session]:
        """Move sessions from the live list into the archive.

        The archive write happens first; if it fails nothing changes.
        """
        archived = self.archive.bulk_archive(self.scope, sessions)
        self.sessions = reconcile.remove_sessions(self.sessions, (s.id for s in sessions))
        self.sessions_changed.emit(self.sessions)
        self.archive_changed.emit(self.archived_sessions)
        return archived

    def unarchive_session(self, session: Session) -> Session | None:
        """Move a session from the archive back to the top of the live list."""
        restored = self.archive.unarchive(self.scope, session)
        if restored is None:
            return None
        self.sessions = [restored, *reconcile.remove_sessions(self.sessions, [restored.id])]
        self.sessions_changed.emit(self.sessions)
        self.archive_changed.emit(self.archived_sessions)
        return restored

    def delete_archived(self, sessions: list[Session]) -> int:
        removed = self.archive.bulk_delete(self.scope, sessions)
        if removed:
            self.archive_changed.emit(self.archived_sessions)
        return removed

    # Selected session

    def select_session(self, session: Session) -> None:
        if self.selected_session_id != session.id:
            self.clear_session()
        self.selected_session = session
        self.selection_changed.emit(session)

    def clear_session(self) -> None:
        had_selection = self.selected_session is not None
        self.selected_session = None
        self.detail = None
        self.diffs = []
        self.todos = []
        self.status = "idle"
        if had_selection:
            self.selection_changed.emit(None)
            self.detail_changed.emit(None)

    def set_detail(self, detail: SessionState | None) -> None:
        """Install freshly fetched detail, keeping the last mirrored status."""
        if detail is not None:
            if detail.session.id != self.selected_session_id:
                return
            detail = detail.model_copy(update={"status": self.status})
        self.detail = detail
        self.detail_changed.emit(detail)

    def set_diffs(self, diffs: list[FileDiff]) -> None:
        self.diffs = diffs
        self.info_changed.emit()

    def set_todos(self, todos: list[Todo]) -> None:
        self.todos = todos
        self.info_changed.emit()

    def apply(self, merge: Callable[..., SessionState], *args: Any) -> None:
        """Run a pure merge function against the selected session's detail."""
        if self.detail is None:
            return
        new = merge(self.detail, *args)
        if new is not self.detail:
            self.detail = new
            self.detail_changed.emit(new)

    def set_status(self, session_id: str, status: StatusType) -> None:
        """Mirror the status of the selected session (last write wins)."""
        if session_id != self.selected_session_id or status == self.status:
            return
        previous, self.status = self.status, status
        self.apply(reconcile.apply_status, session_id, status)
        self.status_changed.emit(session_id, status)
        if previous == "busy" and status == "idle" and self.selected_session:
            self.session_finished.emit(self.selected_session, len(self.diffs))

    # Permission

    def surface_permission(self, request: PermissionRequest) -> None:
        self.permission = reconcile.apply_permission_asked(self.permission, request)
        self.permission_changed.emit(self.permission)

    def resolve_permission(self, request_id: str) -> None:
        self.permission = reconcile.apply_permission_replied(self.permission, request_id)
        self.permission_changed.emit(self.permission)
