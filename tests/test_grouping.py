"""Tests for session grouping helpers."""

from __future__ import annotations

from opentray.grouping import get_directory_name, group_sessions

from conftest import make_session


def test_directory_name():
    assert get_directory_name("/work/alpha") == "alpha"
    assert get_directory_name("/work/alpha/") == "alpha"
    assert get_directory_name("Unknown") == "Unknown"
    assert get_directory_name("") == ""


def test_group_sessions_puts_active_first():
    sessions = [
        make_session("a", directory="/work/alpha"),
        make_session("b", directory="/work/beta"),
        make_session("c", directory="/work/alpha"),
    ]
    groups = group_sessions(sessions, active_directory="/work/beta")
    assert [g.project_name for g in groups] == ["beta", "alpha"]
    assert groups[0].is_active
    assert [s.id for s in groups[1].sessions] == ["a", "c"]


def test_group_sessions_without_active_directory():
    groups = group_sessions([make_session("a", directory="/x/one"), make_session("b", directory="/x/two")])
    assert [g.directory for g in groups] == ["/x/one", "/x/two"]
    assert not any(g.is_active for g in groups)
