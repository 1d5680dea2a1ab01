"""Test configuration and shared fixtures.

Provides an in-memory fake of the OpenCode HTTP API served through
httpx.MockTransport, so no sockets are opened:
- FakeInstance: sessions, messages, config and a push channel fed from a queue
- FakeNetwork: routes requests to fake instances by port
"""

from __future__ import annotations

import asyncio
import itertools
import json
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from opentray.archive import ArchiveStore
from opentray.client import OpenCodeClient
from opentray.config import TrayConfig
from opentray.models import Instance, Session
from opentray.repository import SessionRepository


if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path


# =============================================================================
# Wire payload factories
# =============================================================================


def session_data(
    session_id: str,
    *,
    title: str | None = None,
    updated: float = 1000,
    directory: str = "/work/alpha",
) -> dict[str, Any]:
    """Session as the service serializes it (camelCase keys)."""
    return {
        "id": session_id,
        "projectID": "proj",
        "directory": directory,
        "title": title or f"Session {session_id}",
        "version": "1",
        "time": {"created": 1, "updated": updated},
    }


def make_session(session_id: str, **kwargs: Any) -> Session:
    return Session.model_validate(session_data(session_id, **kwargs))


def user_message(message_id: str, session_id: str) -> dict[str, Any]:
    return {
        "id": message_id,
        "role": "user",
        "sessionID": session_id,
        "time": {"created": 1},
    }


def assistant_message(message_id: str, session_id: str) -> dict[str, Any]:
    return {
        "id": message_id,
        "role": "assistant",
        "sessionID": session_id,
        "modelID": "claude-sonnet",
        "providerID": "anthropic",
        "time": {"created": 2},
    }


def text_part(part_id: str, message_id: str, session_id: str, text: str = "") -> dict[str, Any]:
    return {
        "id": part_id,
        "type": "text",
        "messageID": message_id,
        "sessionID": session_id,
        "text": text,
    }


def sse_frame(event_type: str, properties: dict[str, Any]) -> str:
    """One encoded push-channel frame payload."""
    return json.dumps({"type": event_type, "properties": properties})


# =============================================================================
# Fake OpenCode instance
# =============================================================================


class FakeInstance:
    """In-memory OpenCode instance."""

    def __init__(self, directory: str = "/work/alpha", *, version: str = "1.0.0") -> None:
        self.directory = directory
        self.version = version
        self.healthy = True
        self.hang = False
        self.sessions: dict[str, dict[str, Any]] = {}
        self.messages: dict[str, list[dict[str, Any]]] = {}
        self.diffs: dict[str, list[dict[str, Any]]] = {}
        self.todos: dict[str, list[dict[str, Any]]] = {}
        self.config: dict[str, Any] = {"model": "anthropic/claude-sonnet", "username": "dev"}
        self.mcp: dict[str, Any] = {}
        self.providers: dict[str, Any] = {"all": [], "default": {}, "connected": []}
        self.failing: set[str] = set()
        """Paths answered with 500."""
        self.requests: list[httpx.Request] = []
        self.stream_opens = 0
        self.events: asyncio.Queue[str | None] = asyncio.Queue()
        self._ids = itertools.count(1)

    def add_session(self, session_id: str, **kwargs: Any) -> dict[str, Any]:
        data = session_data(session_id, directory=self.directory, **kwargs)
        self.sessions[session_id] = data
        return data

    def push(self, event_type: str, properties: dict[str, Any]) -> None:
        """Queue one event on the push channel."""
        self.events.put_nowait(sse_frame(event_type, properties))

    def push_raw(self, frame: str) -> None:
        self.events.put_nowait(frame)

    def close_stream(self) -> None:
        self.events.put_nowait(None)

    def requests_to(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    async def _stream(self) -> AsyncIterator[bytes]:
        yield b": keep-alive\n\n"
        yield f"data: {sse_frame('server.connected', {})}\n\n".encode()
        while (frame := await self.events.get()) is not None:
            yield f"data: {frame}\n\n".encode()

    async def handle(self, request: httpx.Request) -> httpx.Response:  # noqa: PLR0911
        self.requests.append(request)
        if self.hang:
            await asyncio.sleep(3600)
        path = request.url.path
        if path in self.failing:
            return httpx.Response(500, json={"error": "boom"})
        match request.method, path.strip("/").split("/"):
            case "GET", ["global", "health"]:
                return httpx.Response(200, json={"healthy": self.healthy, "version": self.version})
            case "GET", ["path"]:
                return httpx.Response(200, json={"directory": self.directory, "home": "/home/dev"})
            case "GET", ["project", "current"]:
                return httpx.Response(200, json={"id": "proj", "path": self.directory})
            case "GET", ["session"]:
                return httpx.Response(200, json=list(self.sessions.values()))
            case "POST", ["session"]:
                body = json.loads(request.content or b"{}")
                session_id = f"ses_new{next(self._ids)}"
                data = self.add_session(session_id, title=body.get("title"), updated=9999)
                return httpx.Response(200, json=data)
            case "GET", ["session", session_id]:
                if session_id not in self.sessions:
                    return httpx.Response(404)
                return httpx.Response(200, json=self.sessions[session_id])
            case "DELETE", ["session", session_id]:
                if self.sessions.pop(session_id, None) is None:
                    return httpx.Response(404)
                return httpx.Response(200, json=True)
            case "GET", ["session", session_id, "message"]:
                return httpx.Response(200, json=self.messages.get(session_id, []))
            case "POST", ["session", _, "message"]:
                return httpx.Response(200, json={})
            case "GET", ["session", session_id, "diff"]:
                return httpx.Response(200, json=self.diffs.get(session_id, []))
            case "GET", ["session", session_id, "todo"]:
                return httpx.Response(200, json=self.todos.get(session_id, []))
            case "POST", ["session", _, "abort"]:
                return httpx.Response(200, json=True)
            case "POST", ["permission", _, "reply"]:
                return httpx.Response(200, json=True)
            case "GET", ["config"]:
                return httpx.Response(200, json=self.config)
            case "PATCH", ["config"]:
                self.config = {**self.config, **json.loads(request.content)}
                return httpx.Response(200, json=self.config)
            case "GET", ["mcp"]:
                return httpx.Response(200, json=self.mcp)
            case "GET", ["provider"]:
                return httpx.Response(200, json=self.providers)
            case "GET", ["provider", "auth"]:
                return httpx.Response(200, json={"anthropic": [{"type": "api", "name": "API key"}]})
            case "GET", ["global", "event"]:
                self.stream_opens += 1
                headers = {"content-type": "text/event-stream"}
                return httpx.Response(200, headers=headers, content=self._stream())
        return httpx.Response(404)


class FakeNetwork:
    """Routes requests to fake instances by port. Unknown ports refuse."""

    def __init__(self) -> None:
        self.instances: dict[int, FakeInstance] = {}

    def add(self, port: int, directory: str = "/work/alpha") -> FakeInstance:
        self.instances[port] = FakeInstance(directory)
        return self.instances[port]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        fake = self.instances.get(request.url.port or 80)
        if fake is None:
            msg = "Connection refused"
            raise httpx.ConnectError(msg, request=request)
        return await fake.handle(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client_factory(self, instance: Instance) -> OpenCodeClient:
        return OpenCodeClient(instance, transport=self.transport())


def make_instance(port: int = 4096, directory: str = "/work/alpha") -> Instance:
    return Instance(endpoint=f"http://127.0.0.1:{port}", directory=directory, port=port)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_instance() -> FakeInstance:
    fake = FakeInstance()
    fake.add_session("ses_a", updated=300)
    fake.add_session("ses_b", updated=200)
    fake.add_session("ses_c", updated=100)
    return fake


@pytest.fixture
def instance(fake_instance: FakeInstance) -> Instance:
    return make_instance(directory=fake_instance.directory)


@pytest.fixture
def transport(fake_instance: FakeInstance) -> httpx.MockTransport:
    return httpx.MockTransport(fake_instance.handle)


@pytest.fixture
async def client(instance: Instance, transport: httpx.MockTransport) -> AsyncIterator[OpenCodeClient]:
    async with OpenCodeClient(instance, transport=transport) as client:
        yield client


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
def tray_config(tmp_path: Path) -> TrayConfig:
    """Config with fast timings and an isolated archive file."""
    return TrayConfig(
        archive_path=tmp_path / "archive.json",
        probe_timeout=0.05,
        retry_delay=0,
        poll_interval=60,
        debounce_window=0.05,
    )


@pytest.fixture
def archive(tmp_path: Path) -> ArchiveStore:
    return ArchiveStore(tmp_path / "archive.json")


@pytest.fixture
def repository(archive: ArchiveStore) -> SessionRepository:
    return SessionRepository(archive)
