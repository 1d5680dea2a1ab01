"""Tests for the persisted archive store."""

from __future__ import annotations

from typing import TYPE_CHECKING

import anyenv
import pytest

from opentray.archive import ArchiveStore

from conftest import make_session


if TYPE_CHECKING:
    from pathlib import Path


def test_archive_persists_across_instances(tmp_path: Path):
    path = tmp_path / "archive.json"
    store = ArchiveStore(path)
    archived = store.archive("/work/alpha", make_session("ses_a", title="Refactor"))
    assert archived.archived
    reloaded = ArchiveStore(path)
    assert reloaded.is_archived("/work/alpha", "ses_a")
    [session] = reloaded.sessions("/work/alpha")
    assert session.title == "Refactor"
    assert session.archived


def test_archive_is_scoped_by_directory(archive: ArchiveStore):
    archive.archive("/work/alpha", make_session("ses_a"))
    assert archive.is_archived("/work/alpha", "ses_a")
    assert not archive.is_archived("/work/beta", "ses_a")
    assert archive.sessions("/work/beta") == []
    assert len(archive.sessions()) == 1


def test_unarchive_clears_flag(archive: ArchiveStore):
    archive.bulk_archive("/work/alpha", [make_session("ses_a"), make_session("ses_b")])
    restored = archive.unarchive("/work/alpha", make_session("ses_a"))
    assert restored is not None
    assert not restored.archived
    assert archive.archived_ids("/work/alpha") == {"ses_b"}
    assert archive.unarchive("/work/alpha", make_session("ses_a")) is None


def test_delete_only_touches_archive(archive: ArchiveStore):
    archive.bulk_archive("/work/alpha", [make_session("ses_a"), make_session("ses_b")])
    assert archive.delete("/work/alpha", make_session("ses_a"))
    assert not archive.delete("/work/alpha", make_session("ses_a"))
    assert archive.bulk_delete("/work/alpha", [make_session("ses_b"), make_session("ses_x")]) == 1
    assert len(archive) == 0


def test_file_format_is_list_of_records(tmp_path: Path):
    path = tmp_path / "archive.json"
    ArchiveStore(path).archive("/work/alpha", make_session("ses_a"))
    data = anyenv.load_json(path.read_text())
    assert data[0]["scope"] == "/work/alpha"
    assert data[0]["session"]["id"] == "ses_a"
    assert data[0]["session"]["projectID"] == "proj"


def test_unreadable_file_loads_empty(tmp_path: Path):
    path = tmp_path / "archive.json"
    path.write_text("{not json")
    store = ArchiveStore(path)
    assert len(store) == 0


def test_failed_write_leaves_store_unchanged(tmp_path: Path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    store = ArchiveStore(blocker / "archive.json")
    with pytest.raises(OSError):  # noqa: PT011
        store.archive("/work/alpha", make_session("ses_a"))
    assert not store.is_archived("/work/alpha", "ses_a")


def test_in_memory_store():
    store = ArchiveStore()
    store.archive("/work/alpha", make_session("ses_a"))
    assert store.is_archived("/work/alpha", "ses_a")
