"""Client-side archive of sessions.

Archive status is unknown to the remote service. It is persisted independently
of the session cache and is authoritative: an archived session is never put back
into the live list by later fetches or events.

Entries are keyed by (scope, session id), where the scope is the working
directory of the instance the session belongs to.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import anyenv
from pydantic import TypeAdapter, ValidationError

from opentray.log import get_logger
from opentray.models import OpenCodeBaseModel, Session


if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path


logger = get_logger(__name__)

ArchiveKey = tuple[str, str]


class ArchivedSession(OpenCodeBaseModel):
    """One persisted archive record."""

    scope: str
    session: Session


_entries_adapter = TypeAdapter(list[ArchivedSession])


class ArchiveStore:
    """Persisted set of archived sessions.

    Every mutation writes the file before it becomes visible in memory, so a
    failed write leaves the store unchanged (the OSError propagates).
    """

    def __init__(self, path: Path | None = None) -> None:
        """Initialize the store.

        Args:
            path: JSON file backing the store. None keeps it in memory only.
        """
        self.path = path
        self._entries: dict[ArchiveKey, ArchivedSession] = {}
        self.load()

    def load(self) -> None:
        """(Re)load entries from disk. Unreadable files load as empty."""
        self._entries = {}
        if self.path is None or not self.path.exists():
            return
        try:
            content = self.path.read_text(encoding="utf-8")
            records = _entries_adapter.validate_python(anyenv.load_json(content))
        except (OSError, anyenv.JsonLoadError, ValidationError) as e:
            logger.warning("Failed to read archive", path=str(self.path), error=str(e))
            return
        self._entries = {(r.scope, r.session.id): r for r in records}

    def _commit(self, entries: dict[ArchiveKey, ArchivedSession]) -> None:
        if self.path is not None:
            data = [r.model_dump(mode="json") for r in entries.values()]
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(anyenv.dump_json(data, indent=True), encoding="utf-8")
            tmp.replace(self.path)
        self._entries = entries

    def archive(self, scope: str, session: Session) -> Session:
        """Archive a session and return the archived copy."""
        return self.bulk_archive(scope, [session])[0]

    def bulk_archive(self, scope: str, sessions: Iterable[Session]) -> list[Session]:
        entries = dict(self._entries)
        archived: list[Session] = []
        for session in sessions:
            copy = session.model_copy(update={"archived": True})
            entries[scope, session.id] = ArchivedSession(scope=scope, session=copy)
            archived.append(copy)
        self._commit(entries)
        logger.debug("Archived sessions", scope=scope, count=len(archived))
        return archived

    def unarchive(self, scope: str, session: Session) -> Session | None:
        """Remove a session from the archive.

        Returns:
            The restored session with the archived flag cleared, or None if it
            was not archived.
        """
        entries = dict(self._entries)
        record = entries.pop((scope, session.id), None)
        if record is None:
            return None
        self._commit(entries)
        return record.session.model_copy(update={"archived": False})

    def delete(self, scope: str, session: Session) -> bool:
        """Forget an archived session. Local only, the remote is not touched."""
        return self.bulk_delete(scope, [session]) == 1

    def bulk_delete(self, scope: str, sessions: Iterable[Session]) -> int:
        entries = dict(self._entries)
        removed = sum(entries.pop((scope, s.id), None) is not None for s in sessions)
        if removed:
            self._commit(entries)
        return removed

    def is_archived(self, scope: str, session_id: str) -> bool:
        return (scope, session_id) in self._entries

    def archived_ids(self, scope: str) -> set[str]:
        return {sid for (s, sid) in self._entries if s == scope}

    def sessions(self, scope: str | None = None) -> list[Session]:
        """Archived sessions in archive order, optionally limited to one scope."""
        return [r.session for r in self._entries.values() if scope is None or r.scope == scope]

    def __len__(self) -> int:
        return len(self._entries)
