"""Sync engine tying discovery, the push channel and the repository together."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Self

from opentray import reconcile, stream
from opentray.archive import ArchiveStore
from opentray.client import OpenCodeClient
from opentray.commands import CommandFacade
from opentray.config import TrayConfig
from opentray.discovery import DiscoveryPoller, InstanceLocator
from opentray.exceptions import EngineNotStartedError
from opentray.log import get_logger
from opentray.reconcile import SessionState
from opentray.repository import SessionRepository
from opentray.stream import EventHandlers


if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from opentray.models import (
        Instance,
        Message,
        Part,
        PermissionRequest,
        Session,
        StatusType,
    )
    from opentray.stream import EventSubscription


logger = get_logger(__name__)

NO_INSTANCES_MESSAGE = "No OpenCode instances found"

type ClientFactory = Callable[[Instance], OpenCodeClient]
type Subscribe = Callable[..., EventSubscription]


class SyncEngine:
    """Keeps the repository in sync with the selected instance.

    At most one push channel is open at any time. It belongs to the selected
    instance: switching instance replaces it exactly once, switching session
    within the same instance never touches it.

    Example:
        ```python
        async with SyncEngine() as engine:
            engine.repository.sessions_changed.connect(print)
            engine.start()
            ...
        ```
    """

    def __init__(
        self,
        config: TrayConfig | None = None,
        *,
        locator: InstanceLocator | None = None,
        archive: ArchiveStore | None = None,
        repository: SessionRepository | None = None,
        client_factory: ClientFactory | None = None,
        subscribe: Subscribe = stream.subscribe,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Engine configuration
            locator: Instance locator (defaults to one built from config)
            archive: Archive store (defaults to the configured archive file)
            repository: Shared store (defaults to one using the archive)
            client_factory: Creates the client of a selected instance
            subscribe: Opens the push channel of a client
        """
        self.config = config or TrayConfig()
        self.locator = locator or InstanceLocator(self.config)
        if repository is None:
            repository = SessionRepository(archive or ArchiveStore(self.config.archive_path))
        self.repository = repository
        self._client_factory = client_factory or self._create_client
        self._subscribe = subscribe
        self.poller = DiscoveryPoller(self.discover, self.config)
        self.client: OpenCodeClient | None = None
        self.subscription: EventSubscription | None = None
        self._commands = CommandFacade(self.repository, lambda: self.client)
        self._switch_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[None]] = set()
        self._entered = False

    async def __aenter__(self) -> Self:
        self._entered = True
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()
        await self._teardown()
        self._entered = False

    def _ensure_entered(self) -> None:
        if not self._entered:
            raise EngineNotStartedError

    def _create_client(self, instance: Instance) -> OpenCodeClient:
        return OpenCodeClient(
            instance,
            timeout=self.config.request_timeout,
            directory_header=self.config.directory_header,
        )

    @property
    def commands(self) -> CommandFacade:
        self._ensure_entered()
        return self._commands

    # Discovery

    def start(self) -> None:
        """Start discovery polling in the background."""
        self._ensure_entered()
        self.poller.start()

    async def stop(self) -> None:
        """Stop discovery polling."""
        await self.poller.stop()

    async def discover(self) -> list[Instance]:
        """Run one discovery cycle and store the result."""
        self._ensure_entered()
        try:
            instances = await self.locator.discover()
        except Exception as e:
            logger.exception("Discovery failed")
            self.repository.set_error(str(e))
            return []
        self.repository.set_instances(instances)
        self.repository.set_error(None if instances else NO_INSTANCES_MESSAGE)
        if (current := self.repository.instance) is not None:
            # Rediscovered after a restart on the same port: reattach.
            found = next((i for i in instances if i == current), None)
            if found is not None and not self._is_attached(found):
                await self.select_instance(found)
        elif self.config.auto_select and len(instances) == 1:
            await self.select_instance(instances[0])
        return instances

    # Instance selection

    async def select_instance(self, instance: Instance | None) -> None:
        """Make an instance the active one.

        Selecting the already selected endpoint while its channel is alive is a
        no-op. If that channel has died, the instance is bootstrapped again and
        a fresh channel is opened, keeping the session selection. Otherwise the
        old channel is closed, instance-scoped state is reset, the new instance
        is bootstrapped and one new channel is opened.
        """
        self._ensure_entered()
        async with self._switch_lock:
            if instance is not None and self._is_attached(instance):
                return
            current = self.repository.instance
            await self._teardown()
            if instance is not None and current is not None and _same_target(instance, current):
                logger.info("Reattaching push channel", endpoint=instance.endpoint)
                await self._connect(instance)
                if (session_id := self.repository.selected_session_id) is not None:
                    await self._load_session(session_id)
                return
            self.repository.select_instance(instance)
            if instance is None:
                return
            logger.info("Selected instance", endpoint=instance.endpoint, directory=instance.directory)
            await self._connect(instance)

    async def clear_instance(self) -> None:
        """Close the channel and drop all instance-scoped state."""
        await self.select_instance(None)

    @property
    def channel_alive(self) -> bool:
        return self.subscription is not None and self.subscription.is_alive

    def _is_attached(self, instance: Instance) -> bool:
        current = self.repository.instance
        return current is not None and _same_target(instance, current) and self.channel_alive

    async def _connect(self, instance: Instance) -> None:
        self.client = self._client_factory(instance)
        await self._bootstrap(self.client)
        self.subscription = self._subscribe(
            self.client,
            self._handlers(),
            debounce_window=self.config.debounce_window,
        )

    async def _teardown(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        if self.subscription is not None:
            subscription, self.subscription = self.subscription, None
            await subscription.unsubscribe()
        if self.client is not None:
            client, self.client = self.client, None
            await client.aclose()

    async def _bootstrap(self, client: OpenCodeClient) -> None:
        sessions, config, mcp_servers, providers = await asyncio.gather(
            client.list_sessions(),
            client.get_config(),
            client.list_mcp_servers(),
            client.list_providers(),
        )
        self.repository.set_sessions(sessions)
        self.repository.set_info(config, mcp_servers, providers)

    # Session selection

    async def select_session(self, session: Session) -> None:
        """Select a session and load its detail. The channel is left alone."""
        self._ensure_entered()
        self.repository.select_session(session)
        await self._load_session(session.id)

    def clear_session(self) -> None:
        self.repository.clear_session()

    async def _load_session(self, session_id: str) -> None:
        if self.client is None:
            return
        details, diffs, todos = await asyncio.gather(
            self.client.get_session_details(session_id),
            self.client.get_diffs(session_id),
            self.client.get_todos(session_id),
        )
        if self.repository.selected_session_id != session_id:
            return
        if details is not None:
            session, messages = details
            self.repository.set_detail(SessionState(session=session, messages=messages))
        self.repository.set_diffs(diffs)
        self.repository.set_todos(todos)

    async def refresh(self) -> None:
        """Refetch whatever is currently shown."""
        self._ensure_entered()
        if self.client is None:
            await self.discover()
        elif not self.channel_alive and (instance := self.repository.instance) is not None:
            await self.select_instance(instance)
        elif (session_id := self.repository.selected_session_id) is None:
            self.repository.set_sessions(await self.client.list_sessions())
        else:
            await self._load_session(session_id)

    # Push channel handlers

    def _handlers(self) -> EventHandlers:
        return EventHandlers(
            on_session_updated=self.repository.upsert_session,
            on_message_updated=self._on_message_updated,
            on_part_updated=self._on_part_updated,
            on_part_removed=self._on_part_removed,
            on_permission_asked=self._on_permission_asked,
            on_permission_replied=self._on_permission_replied,
            on_status_changed=self._on_status_changed,
            on_connected=self._on_connected,
            on_error=self._on_error,
        )

    def _on_message_updated(self, info: Message) -> None:
        self.repository.apply(reconcile.upsert_message, info)

    def _on_part_updated(self, part: Part, delta: str | None) -> None:
        self.repository.apply(reconcile.upsert_part, part)

    def _on_part_removed(self, session_id: str, message_id: str, part_id: str) -> None:
        self.repository.apply(reconcile.remove_part, session_id, message_id, part_id)

    def _on_permission_asked(self, request: PermissionRequest) -> None:
        logger.info("Permission requested", session_id=request.session_id, permission=request.permission)
        self.repository.surface_permission(request)

    def _on_permission_replied(self, session_id: str, request_id: str) -> None:
        self.repository.resolve_permission(request_id)

    def _on_status_changed(self, session_id: str, status: StatusType) -> None:
        self.repository.set_status(session_id, status)
        if status == "idle" and session_id == self.repository.selected_session_id:
            # Diffs settle once the session goes idle.
            task = asyncio.create_task(self._refresh_diffs(session_id))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _refresh_diffs(self, session_id: str) -> None:
        if self.client is None:
            return
        diffs = await self.client.get_diffs(session_id)
        if self.repository.selected_session_id == session_id:
            self.repository.set_diffs(diffs)

    def _on_connected(self) -> None:
        self.repository.set_error(None)

    def _on_error(self, error: BaseException) -> None:
        self.repository.set_error(f"Event stream error: {error}")


def _same_target(a: Instance, b: Instance) -> bool:
    return a == b and a.directory == b.directory
