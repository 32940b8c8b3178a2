# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Panel Backup Archive Store - Finished archives on disk.

The store is a single directory of <backup_id>.zip files. It has no index:
listing, download and delete all work directly against the filesystem, so
they are safe to call while a backup is running.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import List

import aiofiles.os
import structlog

from panelbackup.config import BackupConfig
from panelbackup.errors import explain_archive_not_found
from panelbackup.exceptions import ArchiveNotFoundError, StoreError

logger = structlog.get_logger()

ARCHIVE_EXTENSION = ".zip"

_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


@dataclass
class ArchiveInfo:
    """One finished backup archive."""

    id: str
    name: str
    size: int
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class ArchivePage:
    """A page of archives plus the filtered total."""

    backups: List[ArchiveInfo] = field(default_factory=list)
    count: int = 0
    has_more: bool = False

    def to_dict(self) -> dict:
        return {
            "backups": [b.to_dict() for b in self.backups],
            "count": self.count,
            "hasMore": self.has_more,
        }


async def ensure_archive_root(config: BackupConfig) -> Path:
    """
    Create the archive root if it does not exist.

    Returns:
        Path to the archive root

    Raises:
        StoreError: If the directory cannot be created
    """
    root = config.archive_root
    try:
        await aiofiles.os.makedirs(root, mode=config.archive_dir_mode, exist_ok=True)
    except OSError as e:
        logger.error("archive_root_create_failed", path=str(root), error=str(e))
        raise StoreError(
            f"Could not create backup directory: {e}",
            details={"archive_root": str(root)},
        ) from e
    return root


def is_valid_backup_id(backup_id: str) -> bool:
    """Reject ids that could escape the archive root."""
    return bool(backup_id) and ".." not in backup_id and bool(_SAFE_ID.match(backup_id))


def archive_path_for(config: BackupConfig, backup_id: str) -> Path:
    """Path of the archive for a backup id (it may not exist yet)."""
    return config.archive_root / f"{backup_id}{ARCHIVE_EXTENSION}"


def _created_at(stat_result) -> datetime:
    # st_birthtime is missing on most Linux filesystems
    timestamp = getattr(stat_result, "st_birthtime", None) or stat_result.st_mtime
    return datetime.fromtimestamp(timestamp, UTC)


def _parse_page_number(page_number: int | str | None) -> int:
    try:
        page = int(page_number or 1)
    except (TypeError, ValueError):
        return 1
    return page if page > 0 else 1


async def _scan_archives(root: Path) -> List[ArchiveInfo]:
    if not await aiofiles.os.path.isdir(root):
        return []

    archives: List[ArchiveInfo] = []
    for name in await aiofiles.os.listdir(root):
        if not name.endswith(ARCHIVE_EXTENSION):
            continue
        path = root / name
        try:
            stat_result = await aiofiles.os.stat(path)
        except FileNotFoundError:
            # Deleted between listdir and stat
            continue
        if not path.is_file():
            continue
        archives.append(
            ArchiveInfo(
                id=name[: -len(ARCHIVE_EXTENSION)],
                name=name,
                size=stat_result.st_size,
                created_at=_created_at(stat_result),
            )
        )
    return archives


async def list_archives(
    config: BackupConfig,
    page_number: int | str | None = 1,
    search_param: str | None = "",
) -> ArchivePage:
    """
    List archives newest first, filtered and paginated.

    Args:
        config: Backup configuration (archive root, page size)
        page_number: 1-based page; invalid or non-positive values mean 1
        search_param: Case-insensitive substring matched against the filename

    Returns:
        ArchivePage with the page items, the filtered total and has_more
    """
    try:
        archives = await _scan_archives(config.archive_root)
    except OSError as e:
        raise StoreError(
            f"Failed to list backups: {e}",
            details={"archive_root": str(config.archive_root)},
        ) from e

    if search_param:
        needle = search_param.lower()
        archives = [a for a in archives if needle in a.name.lower()]

    archives.sort(key=lambda a: (a.created_at, a.name), reverse=True)

    page = _parse_page_number(page_number)
    limit = config.page_size
    offset = (page - 1) * limit
    total = len(archives)

    return ArchivePage(
        backups=archives[offset : offset + limit],
        count=total,
        has_more=offset + limit < total,
    )


async def resolve_archive_path(config: BackupConfig, backup_id: str) -> Path:
    """
    Resolve the archive file for download.

    Raises:
        ArchiveNotFoundError: If no archive exists for the id
    """
    if not is_valid_backup_id(backup_id):
        raise ArchiveNotFoundError(explain_archive_not_found(backup_id))

    path = archive_path_for(config, backup_id)
    if not await aiofiles.os.path.isfile(path):
        raise ArchiveNotFoundError(
            explain_archive_not_found(backup_id),
            details={"backup_id": backup_id},
        )
    return path


async def delete_archive(config: BackupConfig, backup_id: str) -> None:
    """
    Delete one archive.

    Raises:
        ArchiveNotFoundError: If no archive exists for the id
        StoreError: If the file exists but cannot be removed
    """
    path = await resolve_archive_path(config, backup_id)

    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError as e:
        raise ArchiveNotFoundError(
            explain_archive_not_found(backup_id),
            details={"backup_id": backup_id},
        ) from e
    except OSError as e:
        logger.error("archive_delete_failed", backup_id=backup_id, error=str(e))
        raise StoreError(
            f"Failed to delete backup: {e}",
            details={"backup_id": backup_id},
        ) from e

    logger.info("archive_deleted", backup_id=backup_id)


async def get_store_stats(config: BackupConfig) -> dict:
    """
    Get statistics about the archive store.

    Returns:
        Dict with archive count, total bytes, oldest and newest timestamps
    """
    archives = await _scan_archives(config.archive_root)

    stats = {
        "archive_count": len(archives),
        "total_bytes": sum(a.size for a in archives),
        "oldest_backup": None,
        "newest_backup": None,
    }

    if archives:
        created = sorted(a.created_at for a in archives)
        stats["oldest_backup"] = created[0].isoformat()
        stats["newest_backup"] = created[-1].isoformat()

    return stats
