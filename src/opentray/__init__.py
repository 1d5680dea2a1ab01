"""Companion client for locally running OpenCode instances.

Discovers running instances, mirrors their sessions into an observable
repository and keeps it live through the instance's push channel.

Example:
    async with SyncEngine() as engine:
        engine.repository.sessions_changed.connect(print)
        await engine.discover()
        await engine.commands.create_session("Refactor parser")
"""

from opentray.archive import ArchiveStore
from opentray.client import OpenCodeClient
from opentray.commands import BulkDeleteResult, CommandFacade, OperationOutcome
from opentray.config import TrayConfig
from opentray.discovery import DiscoveryPoller, InstanceLocator
from opentray.engine import SyncEngine
from opentray.exceptions import (
    ConfigValidationError,
    EngineNotStartedError,
    FrameDecodeError,
    OpenTrayError,
    TransportError,
)
from opentray.grouping import SessionGroup, group_sessions
from opentray.reconcile import SessionState
from opentray.repository import SessionRepository
from opentray.stream import EventHandlers, EventSubscription, subscribe

__version__ = "0.1.0"

__all__ = [
    "ArchiveStore",
    "BulkDeleteResult",
    "CommandFacade",
    "ConfigValidationError",
    "DiscoveryPoller",
    "EngineNotStartedError",
    "EventHandlers",
    "EventSubscription",
    "FrameDecodeError",
    "InstanceLocator",
    "OpenCodeClient",
    "OpenTrayError",
    "OperationOutcome",
    "SessionGroup",
    "SessionRepository",
    "SessionState",
    "SyncEngine",
    "TransportError",
    "TrayConfig",
    "group_sessions",
    "subscribe",
]
