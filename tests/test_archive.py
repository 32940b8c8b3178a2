# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for the zip builder and the archive store.
"""

import asyncio
import os
import threading
import time
import zipfile
from pathlib import Path

import pytest

import panelbackup.archive.builder
from panelbackup.archive import (
    CompletionSignal,
    build_archive,
    delete_archive,
    get_store_stats,
    list_archives,
    partial_path_for,
    resolve_archive_path,
)
from panelbackup.config import BackupConfig
from panelbackup.exceptions import ArchiveError, ArchiveNotFoundError, EmptyBackupError


# ============================================================================
# Completion Signal
# ============================================================================

@pytest.mark.asyncio
async def test_completion_signal_first_resolve_wins():
    signal = CompletionSignal(asyncio.get_running_loop())

    signal.resolve(3)
    signal.reject(ArchiveError("late failure"))

    assert await signal.wait() == 3
    assert signal.settled


@pytest.mark.asyncio
async def test_completion_signal_first_reject_wins_across_threads():
    """Settling from a worker thread is delivered to the loop."""
    loop = asyncio.get_running_loop()
    signal = CompletionSignal(loop)

    await loop.run_in_executor(None, signal.reject, ArchiveError("stream closed"))
    await loop.run_in_executor(None, signal.resolve, 10)

    with pytest.raises(ArchiveError, match="stream closed"):
        await signal.wait()


# ============================================================================
# Zip Builder
# ============================================================================

@pytest.mark.asyncio
async def test_build_archive_uses_relative_paths(temp_dir: Path):
    """Entries are relative to the source dir, with no wrapping folder."""
    work = temp_dir / "backup-x"
    (work / "database").mkdir(parents=True)
    (work / "database" / "backup-x.sql").write_text("SELECT 1;\n")
    (work / "backend" / "src").mkdir(parents=True)
    (work / "backend" / "src" / "app.py").write_text("print('hi')\n")
    (work / "frontend" / "empty").mkdir(parents=True)

    archive_path = temp_dir / "backup-x.zip"
    size = await build_archive(work, archive_path)

    assert size == archive_path.stat().st_size
    with zipfile.ZipFile(archive_path) as archive:
        names = set(archive.namelist())
        assert archive.read("database/backup-x.sql") == b"SELECT 1;\n"
        assert archive.getinfo("backend/src/app.py").compress_type == zipfile.ZIP_DEFLATED

    assert names == {
        "database/backup-x.sql",
        "backend/src/app.py",
        "frontend/empty/",
    }
    assert not any(name.startswith("backup-x/") for name in names)


@pytest.mark.asyncio
async def test_build_archive_missing_source(temp_dir: Path):
    with pytest.raises(ArchiveError):
        await build_archive(temp_dir / "missing", temp_dir / "out.zip")

    assert not (temp_dir / "out.zip").exists()


@pytest.mark.asyncio
async def test_build_archive_unwritable_destination(temp_dir: Path):
    """Failing to open the output stream rejects the build."""
    work = temp_dir / "work"
    work.mkdir()
    (work / "file.txt").write_text("x\n")

    with pytest.raises(ArchiveError, match="Failed to write zip file"):
        await build_archive(work, temp_dir / "no-such-dir" / "out.zip")


@pytest.mark.asyncio
async def test_build_archive_writer_error(temp_dir: Path, monkeypatch):
    """An entry failing mid-archive rejects the build and removes the partial zip."""
    work = temp_dir / "work"
    work.mkdir()
    (work / "file.txt").write_text("x\n")

    def unreadable(self, filename, arcname=None, *args, **kwargs):
        raise PermissionError(13, "Permission denied", str(filename))

    monkeypatch.setattr(zipfile.ZipFile, "write", unreadable)
    archive_path = temp_dir / "out.zip"

    with pytest.raises(ArchiveError, match="Failed to compress files") as exc_info:
        await build_archive(work, archive_path)

    assert not isinstance(exc_info.value, EmptyBackupError)
    assert not archive_path.exists()
    assert not partial_path_for(archive_path).exists(), "Partial zip must be removed"


@pytest.mark.asyncio
async def test_archive_is_hidden_until_complete(test_config: BackupConfig, monkeypatch):
    """While compression runs, the store neither lists nor serves the archive."""
    work = test_config.archive_root / "backup-live"
    (work / "database").mkdir(parents=True)
    (work / "database" / "dump.sql").write_text("SELECT 1;\n")
    (work / "backend").mkdir()
    (work / "backend" / "app.py").write_text("print(1)\n")

    release = threading.Event()
    iter_entries = panelbackup.archive.builder._iter_entries

    def stalling_entries(source_dir):
        for index, entry in enumerate(iter_entries(source_dir)):
            yield entry
            if index == 0:
                release.wait(timeout=10)

    monkeypatch.setattr(panelbackup.archive.builder, "_iter_entries", stalling_entries)

    archive_path = test_config.archive_root / "backup-live.zip"
    partial_path = partial_path_for(archive_path)
    build = asyncio.create_task(build_archive(work, archive_path))
    try:
        for _ in range(500):
            if partial_path.exists():
                break
            await asyncio.sleep(0.01)
        assert partial_path.exists(), "Compression should be in progress"

        page = await list_archives(test_config)
        assert page.count == 0
        assert page.backups == []
        with pytest.raises(ArchiveNotFoundError):
            await resolve_archive_path(test_config, "backup-live")
    finally:
        release.set()

    size = await build

    page = await list_archives(test_config)
    assert [a.id for a in page.backups] == ["backup-live"]
    assert page.backups[0].size == size
    assert not partial_path.exists()


# ============================================================================
# Archive Store
# ============================================================================

def _make_archives(root: Path, count: int) -> None:
    """Create backup-00.zip ... with strictly increasing mtimes."""
    root.mkdir(parents=True, exist_ok=True)
    base = time.time() - 10_000
    for i in range(count):
        path = root / f"backup-{i:02d}.zip"
        path.write_bytes(b"PK" + bytes(i))
        os.utime(path, (base + i * 60, base + i * 60))


@pytest.mark.asyncio
async def test_list_archives_paginates_newest_first(test_config: BackupConfig):
    _make_archives(test_config.archive_root, 12)

    first = await list_archives(test_config, 1, "")

    assert first.count == 12
    assert first.has_more is True
    assert [a.id for a in first.backups] == [f"backup-{i:02d}" for i in range(11, 1, -1)]

    second = await list_archives(test_config, 2, "")

    assert [a.name for a in second.backups] == ["backup-01.zip", "backup-00.zip"]
    assert second.count == 12
    assert second.has_more is False


@pytest.mark.asyncio
async def test_list_archives_search_is_case_insensitive(test_config: BackupConfig):
    _make_archives(test_config.archive_root, 12)

    page = await list_archives(test_config, 1, "BACKUP-1")

    assert page.count == 2, "count reflects the filtered set"
    assert [a.id for a in page.backups] == ["backup-11", "backup-10"]
    assert page.has_more is False


@pytest.mark.asyncio
async def test_list_archives_ignores_other_entries(test_config: BackupConfig):
    """Working directories and non-zip files are not listed."""
    root = test_config.archive_root
    _make_archives(root, 1)
    (root / "backup-running").mkdir()
    (root / "notes.txt").write_text("hi\n")

    page = await list_archives(test_config)

    assert [a.name for a in page.backups] == ["backup-00.zip"]
    assert page.to_dict()["backups"][0]["size"] == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("page_number", ["abc", "0", -3, None])
async def test_list_archives_invalid_page_means_first(test_config: BackupConfig, page_number):
    _make_archives(test_config.archive_root, 3)

    page = await list_archives(test_config, page_number)

    assert [a.id for a in page.backups] == ["backup-02", "backup-01", "backup-00"]


@pytest.mark.asyncio
async def test_list_archives_missing_root(test_config: BackupConfig):
    page = await list_archives(test_config)

    assert page.to_dict() == {"backups": [], "count": 0, "hasMore": False}


@pytest.mark.asyncio
async def test_delete_archive_removes_exactly_one(test_config: BackupConfig):
    _make_archives(test_config.archive_root, 3)

    await delete_archive(test_config, "backup-01")

    remaining = sorted(p.name for p in test_config.archive_root.iterdir())
    assert remaining == ["backup-00.zip", "backup-02.zip"]

    with pytest.raises(ArchiveNotFoundError):
        await delete_archive(test_config, "backup-01")


@pytest.mark.asyncio
@pytest.mark.parametrize("backup_id", ["../secret", "..", "a/b", ""])
async def test_unsafe_ids_are_not_found(test_config: BackupConfig, backup_id: str):
    """Ids that could escape the archive root never resolve."""
    _make_archives(test_config.archive_root, 1)

    with pytest.raises(ArchiveNotFoundError):
        await resolve_archive_path(test_config, backup_id)


@pytest.mark.asyncio
async def test_resolve_archive_path(test_config: BackupConfig):
    _make_archives(test_config.archive_root, 1)

    path = await resolve_archive_path(test_config, "backup-00")

    assert path == test_config.archive_root / "backup-00.zip"


@pytest.mark.asyncio
async def test_store_stats(test_config: BackupConfig):
    _make_archives(test_config.archive_root, 3)

    stats = await get_store_stats(test_config)

    assert stats["archive_count"] == 3
    assert stats["total_bytes"] == 2 + 3 + 4
    assert stats["oldest_backup"] < stats["newest_backup"]
