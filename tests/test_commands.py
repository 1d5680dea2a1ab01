"""Tests for the command facade."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from opentray.commands import CommandFacade, OperationOutcome
from opentray.exceptions import ConfigValidationError
from opentray.models import PermissionRequest

from conftest import make_session


if TYPE_CHECKING:
    from opentray.client import OpenCodeClient
    from opentray.models import Instance
    from opentray.repository import SessionRepository

    from conftest import FakeInstance


@pytest.fixture
def commands(repository: SessionRepository, client: OpenCodeClient, instance: Instance) -> CommandFacade:
    repository.select_instance(instance)
    repository.set_sessions([make_session("ses_a", updated=3), make_session("ses_b", updated=2)])
    return CommandFacade(repository, lambda: client)


@pytest.fixture
def outcomes(commands: CommandFacade) -> list[OperationOutcome]:
    collected: list[OperationOutcome] = []
    commands.outcome.connect(collected.append)
    return collected


@pytest.mark.asyncio
async def test_create_session_adds_to_top(commands: CommandFacade):
    session = await commands.create_session("Fresh")
    assert session is not None
    assert commands.repository.sessions[0].id == session.id


@pytest.mark.asyncio
async def test_delete_session_removes_on_success(commands: CommandFacade):
    session = commands.repository.sessions[0]
    commands.repository.select_session(session)
    assert await commands.delete_session(session)
    assert session.id not in {s.id for s in commands.repository.sessions}
    assert commands.repository.selected_session is None


@pytest.mark.asyncio
async def test_delete_session_failure_keeps_session(commands: CommandFacade, fake_instance: FakeInstance):
    fake_instance.failing.add("/session/ses_a")
    assert not await commands.delete_session(make_session("ses_a"))
    assert "ses_a" in {s.id for s in commands.repository.sessions}


@pytest.mark.asyncio
async def test_bulk_delete_removes_all_and_reports_failures(
    commands: CommandFacade,
    fake_instance: FakeInstance,
    outcomes: list[OperationOutcome],
):
    fake_instance.add_session("ses_c")
    commands.repository.add_session(make_session("ses_c"))
    fake_instance.failing.add("/session/ses_b")
    targets = [make_session(sid) for sid in ("ses_a", "ses_b", "ses_c")]
    result = await commands.bulk_delete(targets)
    assert commands.repository.sessions == []
    assert len(fake_instance.requests_to("DELETE", "/session/ses_a")) == 1
    assert len(fake_instance.requests_to("DELETE", "/session/ses_b")) == 1
    assert len(fake_instance.requests_to("DELETE", "/session/ses_c")) == 1
    assert result.failed == ["ses_b"]
    assert result.succeeded == ["ses_a", "ses_c"]
    [outcome] = outcomes
    assert outcome.kind == "deleted"
    assert outcome.failed_ids == ("ses_b",)
    assert not outcome.ok


def test_archive_session_moves_to_archive(commands: CommandFacade, outcomes: list[OperationOutcome]):
    session = commands.repository.sessions[0]
    assert commands.archive_session(session)
    assert session.id not in {s.id for s in commands.repository.sessions}
    assert [s.id for s in commands.repository.archived_sessions] == [session.id]
    assert outcomes[0].title == "Session Archived"


def test_bulk_archive_emits_single_outcome(commands: CommandFacade, outcomes: list[OperationOutcome]):
    assert commands.bulk_archive(list(commands.repository.sessions))
    assert commands.repository.sessions == []
    assert len(outcomes) == 1
    assert outcomes[0].body == "2 session(s) have been archived"


def test_archive_write_failure_changes_nothing(commands: CommandFacade, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    commands.repository.archive.path = blocker / "archive.json"
    session = commands.repository.sessions[0]
    assert not commands.archive_session(session)
    assert session.id in {s.id for s in commands.repository.sessions}
    assert commands.repository.archived_sessions == []


def test_unarchive_restores_to_top(commands: CommandFacade, outcomes: list[OperationOutcome]):
    session = commands.repository.sessions[1]
    commands.archive_session(session)
    restored = commands.unarchive_session(session)
    assert restored is not None
    assert not restored.archived
    assert commands.repository.sessions[0].id == session.id
    assert outcomes[-1].kind == "restored"


def test_delete_archived_is_local(commands: CommandFacade, fake_instance: FakeInstance):
    sessions = list(commands.repository.sessions)
    commands.bulk_archive(sessions)
    assert commands.delete_archived(sessions[0])
    assert commands.bulk_delete_archived(sessions) == 1
    assert commands.repository.archived_sessions == []
    assert fake_instance.requests_to("DELETE", "/session/ses_a") == []


@pytest.mark.asyncio
async def test_session_commands_need_selection(commands: CommandFacade, fake_instance: FakeInstance):
    assert not await commands.send_message("hi")
    assert not await commands.abort()
    assert fake_instance.requests_to("POST", "/session/ses_a/message") == []


@pytest.mark.asyncio
async def test_send_abort_and_change_model(commands: CommandFacade, fake_instance: FakeInstance):
    commands.repository.select_session(commands.repository.sessions[0])
    assert await commands.send_message("hello")
    assert await commands.change_model("anthropic", "claude-opus")
    assert await commands.abort()
    assert len(fake_instance.requests_to("POST", "/session/ses_a/message")) == 2
    assert len(fake_instance.requests_to("POST", "/session/ses_a/abort")) == 1


@pytest.mark.asyncio
async def test_abort_never_sets_status(commands: CommandFacade):
    repo = commands.repository
    repo.select_session(repo.sessions[0])
    repo.set_status("ses_a", "busy")
    assert await commands.abort()
    assert repo.status == "busy"


@pytest.mark.asyncio
async def test_reply_permission_clears_request(commands: CommandFacade, fake_instance: FakeInstance):
    commands.repository.surface_permission(PermissionRequest(id="per_1", session_id="ses_a"))
    assert await commands.reply_permission("always")
    assert commands.repository.permission is None
    body = json.loads(fake_instance.requests_to("POST", "/permission/per_1/reply")[0].content)
    assert body == {"reply": "always"}


@pytest.mark.asyncio
async def test_reply_without_request_is_noop(commands: CommandFacade, fake_instance: FakeInstance):
    assert not await commands.reply_permission("once")
    assert not any(r.url.path.startswith("/permission") for r in fake_instance.requests)


@pytest.mark.asyncio
async def test_refresh_todos(commands: CommandFacade, fake_instance: FakeInstance):
    fake_instance.todos["ses_a"] = [{"id": "t1", "content": "write tests", "status": "in_progress"}]
    commands.repository.select_session(commands.repository.sessions[0])
    await commands.refresh_todos()
    assert [t.content for t in commands.repository.todos] == ["write tests"]


@pytest.mark.asyncio
async def test_update_config_text(commands: CommandFacade, fake_instance: FakeInstance):
    config = await commands.update_config_text('{"username": "alice"}')
    assert config is not None
    assert commands.repository.config is not None
    assert commands.repository.config.username == "alice"


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["{not json", "[1, 2]"])
async def test_invalid_config_text_is_rejected_locally(
    commands: CommandFacade, fake_instance: FakeInstance, text: str
):
    with pytest.raises(ConfigValidationError, match="Invalid JSON syntax"):
        await commands.update_config_text(text)
    assert fake_instance.requests_to("PATCH", "/config") == []


@pytest.mark.asyncio
async def test_commands_without_instance_fail(repository: SessionRepository):
    commands = CommandFacade(repository, lambda: None)
    assert await commands.create_session() is None
    assert not await commands.delete_session(make_session("ses_a"))
    assert await commands.update_config({"a": 1}) is None
