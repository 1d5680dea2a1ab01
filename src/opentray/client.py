"""HTTP client for a single OpenCode instance.

Every call is scoped to the instance's working directory via a header. Transport
failures never leave this module: they are logged and mapped to an empty / None /
False result so callers only ever see degraded data, never an exception.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, Self
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from opentray.config import DIRECTORY_HEADER
from opentray.exceptions import TransportError
from opentray.log import get_logger
from opentray.models import (
    FileDiff,
    MCPServer,
    Message,
    MessageRequest,
    MessageWithParts,
    ModelRef,
    OpenCodeConfig,
    Part,
    PermissionReplyRequest,
    Provider,
    ProviderAuthMethod,
    ProviderListResponse,
    Session,
    SessionCreateRequest,
    TextPartInput,
    Todo,
)


if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from types import TracebackType

    from opentray.models import Instance, PermissionReply


logger = get_logger(__name__)

_sessions_adapter = TypeAdapter(list[Session])
_raw_items_adapter = TypeAdapter(list[dict[str, Any]])
_message_adapter: TypeAdapter[Message] = TypeAdapter(Message)
_part_adapter: TypeAdapter[Part] = TypeAdapter(Part)
_diffs_adapter = TypeAdapter(list[FileDiff])
_todos_adapter = TypeAdapter(list[Todo])
_auth_adapter = TypeAdapter(dict[str, list[ProviderAuthMethod]])
_session_adapter = TypeAdapter(Session | None)
_config_adapter = TypeAdapter(OpenCodeConfig | None)
_mcp_adapter = TypeAdapter(dict[str, Any] | None)
_providers_adapter = TypeAdapter(ProviderListResponse | None)

MODEL_COMMAND = "/model"


def _details_failed(error: BaseException) -> None:
    if not isinstance(error, TransportError):
        raise error
    logger.warning("Failed to fetch session details", error=str(error))


def parse_transcript(items: list[dict[str, Any]]) -> list[MessageWithParts]:
    """Validate a transcript message by message and part by part.

    Items that do not validate are logged and skipped.
    """
    messages: list[MessageWithParts] = []
    for item in items:
        try:
            info = _message_adapter.validate_python(item.get("info"))
        except ValidationError as e:
            logger.warning("Skipping invalid message", error=str(e))
            continue
        parts: list[Part] = []
        for raw in item.get("parts") or []:
            try:
                parts.append(_part_adapter.validate_python(raw))
            except ValidationError as e:
                part_type = raw.get("type") if isinstance(raw, dict) else None
                logger.warning("Skipping invalid part", message_id=info.id, part_type=part_type, error=str(e))
        messages.append(MessageWithParts(info=info, parts=parts))
    return messages


def directory_header_value(directory: str) -> str:
    """Header-safe form of a working directory."""
    return directory if directory.isascii() else quote(directory, safe="/\\: ")


def get_client(
    base_url: str,
    headers: dict[str, str],
    timeout: float,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(timeout),
        headers=headers,
        transport=transport,
    )


class OpenCodeClient:
    """Async client for the REST and push endpoints of one instance.

    Example:
        ```python
        async with OpenCodeClient(instance) as client:
            sessions = await client.list_sessions()
            await client.send_message(sessions[0].id, "Hello")
        ```
    """

    def __init__(
        self,
        instance: Instance,
        *,
        timeout: float = 30.0,
        directory_header: str = DIRECTORY_HEADER,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            instance: The instance all calls are made against
            timeout: Request timeout in seconds
            directory_header: Name of the directory-scoping header
            transport: Optional httpx transport (used for testing)
        """
        self.instance = instance
        self.timeout = timeout
        headers = {directory_header: directory_header_value(instance.directory)}
        self._client = get_client(instance.endpoint, headers, timeout, transport)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
    ) -> httpx.Response:
        """Perform a request, raising TransportError on any failure."""
        try:
            response = await self._client.request(method, path, json=json)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(method, path, str(e) or type(e).__name__) from e
        return response

    async def _fetch[T](self, path: str, adapter: TypeAdapter[T], default: T) -> T:
        """GET a resource and validate it, returning default on failure."""
        try:
            response = await self._request("GET", path)
            return adapter.validate_json(response.content)
        except TransportError as e:
            logger.warning("Request failed", endpoint=self.instance.endpoint, error=str(e))
        except ValidationError as e:
            logger.warning("Unexpected response body", path=path, error=str(e))
        return default

    async def _send(self, method: str, path: str, body: Any = None) -> bool:
        """Perform a mutating call and report whether it succeeded."""
        try:
            await self._request(method, path, json=body)
        except TransportError as e:
            logger.warning("Request failed", endpoint=self.instance.endpoint, error=str(e))
            return False
        return True

    # Sessions

    async def list_sessions(self) -> list[Session]:
        return await self._fetch("/session", _sessions_adapter, [])

    async def get_session(self, session_id: str) -> Session | None:
        return await self._fetch(f"/session/{session_id}", _session_adapter, None)

    async def get_session_details(
        self, session_id: str
    ) -> tuple[Session, list[MessageWithParts]] | None:
        """Fetch a session and its transcript concurrently.

        Messages and parts that do not validate are skipped, the rest of the
        transcript is kept.

        Returns:
            The session and its messages, or None if either request fails.
        """
        session_res, messages_res = await asyncio.gather(
            self._request("GET", f"/session/{session_id}"),
            self._request("GET", f"/session/{session_id}/message"),
            return_exceptions=True,
        )
        if isinstance(session_res, BaseException):
            return _details_failed(session_res)
        if isinstance(messages_res, BaseException):
            return _details_failed(messages_res)
        try:
            session = Session.model_validate_json(session_res.content)
            items = _raw_items_adapter.validate_json(messages_res.content)
        except ValidationError as e:
            logger.warning("Unexpected session details", session_id=session_id, error=str(e))
            return None
        return session, parse_transcript(items)

    async def get_diffs(self, session_id: str) -> list[FileDiff]:
        return await self._fetch(f"/session/{session_id}/diff", _diffs_adapter, [])

    async def get_todos(self, session_id: str) -> list[Todo]:
        return await self._fetch(f"/session/{session_id}/todo", _todos_adapter, [])

    async def create_session(self, title: str | None = None) -> Session | None:
        body = SessionCreateRequest(title=title).model_dump(exclude_none=True)
        try:
            response = await self._request("POST", "/session", json=body)
            return Session.model_validate_json(response.content)
        except TransportError as e:
            logger.warning("Failed to create session", error=str(e))
        except ValidationError as e:
            logger.warning("Unexpected session payload", error=str(e))
        return None

    async def delete_session(self, session_id: str) -> bool:
        return await self._send("DELETE", f"/session/{session_id}")

    async def send_message(self, session_id: str, text: str, model: ModelRef | None = None) -> bool:
        request = MessageRequest(parts=[TextPartInput(text=text)], model=model)
        body = request.model_dump(exclude_none=True)
        return await self._send("POST", f"/session/{session_id}/message", body)

    async def change_model(self, session_id: str, provider_id: str, model_id: str) -> bool:
        """Switch the model of a session.

        The change takes effect with the next message.
        """
        model = ModelRef(provider_id=provider_id, model_id=model_id)
        return await self.send_message(session_id, MODEL_COMMAND, model=model)

    async def abort_session(self, session_id: str) -> bool:
        return await self._send("POST", f"/session/{session_id}/abort")

    async def reply_permission(self, request_id: str, reply: PermissionReply) -> bool:
        body = PermissionReplyRequest(reply=reply).model_dump()
        return await self._send("POST", f"/permission/{request_id}/reply", body)

    # Instance info

    async def get_config(self) -> OpenCodeConfig | None:
        return await self._fetch("/config", _config_adapter, None)

    async def update_config(self, patch: dict[str, Any]) -> OpenCodeConfig | None:
        try:
            response = await self._request("PATCH", "/config", json=patch)
            return OpenCodeConfig.model_validate_json(response.content)
        except TransportError as e:
            logger.warning("Failed to update config", error=str(e))
        except ValidationError as e:
            logger.warning("Unexpected config payload", error=str(e))
        return None

    async def list_mcp_servers(self) -> list[MCPServer]:
        data = await self._fetch("/mcp", _mcp_adapter, None)
        if not data:
            return []
        servers: list[MCPServer] = []
        for name, info in data.items():
            info = info if isinstance(info, dict) else {}
            status = info.get("status")
            servers.append(
                MCPServer(
                    name=name,
                    status=status if status in ("connected", "error") else "disconnected",
                    tools=info.get("tools") or [],
                )
            )
        return servers

    async def list_providers(self) -> list[Provider]:
        response = await self._fetch("/provider", _providers_adapter, None)
        return response.all if response else []

    async def get_provider_auth(self) -> dict[str, list[ProviderAuthMethod]]:
        return await self._fetch("/provider/auth", _auth_adapter, {})

    # Push channel

    @asynccontextmanager
    async def open_event_stream(self) -> AsyncIterator[httpx.Response]:
        """Open the long-lived push channel.

        Unlike the other methods this raises httpx errors, the event stream
        consumer reports them to its caller.
        """
        timeout = httpx.Timeout(self.timeout, read=None)
        headers = {"Accept": "text/event-stream"}
        async with self._client.stream(
            "GET", "/global/event", headers=headers, timeout=timeout
        ) as response:
            response.raise_for_status()
            yield response
