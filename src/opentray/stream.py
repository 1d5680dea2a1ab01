"""Push-channel consumer.

Opens one long-lived Server-Sent-Events channel per instance, decodes each frame
into an envelope and dispatches it to optional typed handlers. `session.updated`
events are coalesced per session id over a quiescence window; every other event
is dispatched synchronously in arrival order.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from opentray.exceptions import FrameDecodeError, TransportError
from opentray.log import get_logger
from opentray.models import (
    EventEnvelope,
    MessageUpdatedProperties,
    PartRemovedProperties,
    PartUpdatedProperties,
    PermissionAskedProperties,
    PermissionRepliedProperties,
    SessionStatusProperties,
    SessionUpdatedProperties,
)


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Hashable

    from opentray.client import OpenCodeClient
    from opentray.models import Message, Part, PermissionRequest, Session, StatusType


logger = get_logger(__name__)

DEFAULT_DEBOUNCE_WINDOW = 0.1


@dataclass
class EventHandlers:
    """Callbacks for decoded events. Every handler is optional."""

    on_session_updated: Callable[[Session], Any] | None = None
    """Coalesced session update, carrying the latest payload."""
    on_message_updated: Callable[[Message], Any] | None = None
    on_part_updated: Callable[[Part, str | None], Any] | None = None
    """Called with the full part and the optional incremental text delta."""
    on_part_removed: Callable[[str, str, str], Any] | None = None
    """Called with session id, message id and part id."""
    on_permission_asked: Callable[[PermissionRequest], Any] | None = None
    on_permission_replied: Callable[[str, str], Any] | None = None
    """Called with session id and request id."""
    on_status_changed: Callable[[str, StatusType], Any] | None = None
    on_connected: Callable[[], Any] | None = None
    on_error: Callable[[BaseException], Any] | None = None
    """Channel failure. The consumer does not reconnect on its own."""


class KeyedDebouncer[K: Hashable, V]:
    """Coalesces values per key over a quiescence window.

    Each push cancels and reschedules the timer of its key, so N pushes within
    the window yield one delivery with the latest value. Keys never share a timer.
    """

    def __init__(self, window: float, callback: Callable[[V], Any]) -> None:
        self.window = window
        self._callback = callback
        self._pending: dict[K, V] = {}
        self._timers: dict[K, asyncio.TimerHandle] = {}

    def push(self, key: K, value: V) -> None:
        self._pending[key] = value
        if timer := self._timers.pop(key, None):
            timer.cancel()
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(self.window, self._fire, key)

    def _fire(self, key: K) -> None:
        self._timers.pop(key, None)
        if key in self._pending:
            self._callback(self._pending.pop(key))

    def flush(self) -> None:
        """Deliver every pending value immediately."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        pending = list(self._pending.values())
        self._pending.clear()
        for value in pending:
            self._callback(value)

    @property
    def pending(self) -> int:
        return len(self._pending)


def decode_frame(data: str) -> EventEnvelope:
    """Decode one frame into an envelope.

    Raises:
        FrameDecodeError: If the frame is not a JSON object with a type.
    """
    try:
        return EventEnvelope.model_validate_json(data)
    except ValidationError as e:
        raise FrameDecodeError(str(e), data) from e


async def iter_sse_data(response: httpx.Response) -> AsyncIterator[str]:
    """Yield the data payload of each Server-Sent Event of a streaming response."""
    data_lines: list[str] = []
    async for line in response.aiter_lines():
        if not line:
            if data_lines:
                yield "\n".join(data_lines)
                data_lines = []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if field == "data":
            data_lines.append(value.removeprefix(" "))
    if data_lines:
        yield "\n".join(data_lines)


class EventSubscription:
    """One push channel attached to one instance.

    Use `subscribe()` to create and start it, `unsubscribe()` to flush pending
    coalesced updates and close the channel.
    """

    def __init__(
        self,
        client: OpenCodeClient,
        handlers: EventHandlers,
        *,
        debounce_window: float = DEFAULT_DEBOUNCE_WINDOW,
    ) -> None:
        self.client = client
        self.handlers = handlers
        self._debouncer: KeyedDebouncer[str, Session] = KeyedDebouncer(
            debounce_window, self._deliver_session
        )
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def endpoint(self) -> str:
        return self.client.instance.endpoint

    @property
    def is_open(self) -> bool:
        return not self._closed

    @property
    def is_alive(self) -> bool:
        """Open and still reading: the server has not ended the channel."""
        return not self._closed and self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is not None:
            msg = "Subscription already started"
            raise RuntimeError(msg)
        self._task = asyncio.create_task(self._run(), name=f"opentray-events-{self.endpoint}")

    async def _run(self) -> None:
        try:
            async with self.client.open_event_stream() as response:
                logger.debug("Push channel open", endpoint=self.endpoint)
                async for data in iter_sse_data(response):
                    self.feed(data)
        except (httpx.HTTPError, httpx.StreamError) as e:
            logger.warning("Push channel failed", endpoint=self.endpoint, error=str(e))
            self._call(self.handlers.on_error, e)
        else:
            if not self._closed:
                error = TransportError("GET", "/global/event", "channel closed by server")
                logger.warning("Push channel closed", endpoint=self.endpoint)
                self._call(self.handlers.on_error, error)

    def feed(self, data: str) -> None:
        """Decode and dispatch one raw frame. Malformed frames are dropped."""
        if self._closed:
            return
        try:
            envelope = decode_frame(data)
        except FrameDecodeError as e:
            logger.warning("Dropping malformed frame", error=str(e), frame=data[:100])
            return
        try:
            self.dispatch(envelope)
        except ValidationError as e:
            logger.warning("Dropping invalid event", event_type=envelope.type, error=str(e))

    def dispatch(self, envelope: EventEnvelope) -> None:
        props = envelope.properties
        h = self.handlers
        match envelope.type:
            case "session.updated":
                session = SessionUpdatedProperties.model_validate(props).info
                self._debouncer.push(session.id, session)
            case "message.updated":
                info = MessageUpdatedProperties.model_validate(props).info
                self._call(h.on_message_updated, info)
            case "message.part.updated":
                updated = PartUpdatedProperties.model_validate(props)
                self._call(h.on_part_updated, updated.part, updated.delta)
            case "message.part.removed":
                removed = PartRemovedProperties.model_validate(props)
                self._call(h.on_part_removed, removed.session_id, removed.message_id, removed.part_id)
            case "permission.asked":
                request = PermissionAskedProperties.model_validate(props)
                self._call(h.on_permission_asked, request)
            case "permission.replied":
                replied = PermissionRepliedProperties.model_validate(props)
                self._call(h.on_permission_replied, replied.session_id, replied.request_id)
            case "session.status":
                status = SessionStatusProperties.model_validate(props)
                self._call(h.on_status_changed, status.session_id, status.status.type)
            case "server.connected":
                logger.info("Connected to push channel", endpoint=self.endpoint)
                self._call(h.on_connected)
            case "server.heartbeat":
                pass
            case _:
                logger.debug("Ignoring event", event_type=envelope.type)

    def _deliver_session(self, session: Session) -> None:
        self._call(self.handlers.on_session_updated, session)

    def _call(self, handler: Callable[..., Any] | None, *args: Any) -> None:
        if handler is None:
            return
        try:
            handler(*args)
        except Exception:
            logger.exception("Event handler failed", handler=getattr(handler, "__name__", None))

    async def unsubscribe(self) -> None:
        """Flush pending coalesced updates, then close the channel."""
        if self._closed:
            return
        self._debouncer.flush()
        self._closed = True
        if self._task is not None:
            if not self._task.done():
                self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        logger.debug("Push channel closed by client", endpoint=self.endpoint)


def subscribe(
    client: OpenCodeClient,
    handlers: EventHandlers,
    *,
    debounce_window: float = DEFAULT_DEBOUNCE_WINDOW,
) -> EventSubscription:
    """Open the push channel of the client's instance.

    Returns:
        The running subscription. Await `unsubscribe()` to close it.
    """
    subscription = EventSubscription(client, handlers, debounce_window=debounce_window)
    subscription.start()
    return subscription
