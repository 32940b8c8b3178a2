# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Panel Backup Copier - Mirror a source tree into the working directory.

The copy is a depth-first walk that skips any entry whose basename matches
an exclusion pattern (directories are pruned with their whole subtree).
Symlinks are followed. A directory link that resolves to one of its own
ancestors is not entered, which cuts cycles; the same directory reached
twice through unrelated paths is copied both times.
"""

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, List

import aiofiles
import aiofiles.os
import structlog

from panelbackup.exceptions import CopyError
from panelbackup.patterns import is_excluded

logger = structlog.get_logger()

COPY_CHUNK_SIZE = 1024 * 1024


@dataclass
class CopyStats:
    """Counters collected while copying one tree."""

    files_copied: int = 0
    directories_created: int = 0
    entries_excluded: int = 0
    bytes_copied: int = 0


async def copy_directory(
    src: Path,
    dest: Path,
    exclude_patterns: List[str] | None = None,
) -> CopyStats:
    """
    Recursively copy src into dest, skipping excluded entries.

    A missing source directory is not an error: nothing is copied and dest
    is not created.

    Args:
        src: Source directory
        dest: Destination directory (created on demand)
        exclude_patterns: Basenames or single-wildcard globs to skip

    Returns:
        CopyStats for the copied tree

    Raises:
        CopyError: If a directory cannot be read or a file cannot be written
    """
    stats = CopyStats()
    src = Path(src)
    dest = Path(dest)

    if not await aiofiles.os.path.isdir(src):
        logger.debug("copy_source_missing", src=str(src))
        return stats

    await _copy_tree(src, dest, list(exclude_patterns or []), frozenset(), stats)

    logger.info(
        "directory_copied",
        src=str(src),
        dest=str(dest),
        files=stats.files_copied,
        directories=stats.directories_created,
        excluded=stats.entries_excluded,
        bytes=stats.bytes_copied,
    )
    return stats


async def _copy_tree(
    src: Path,
    dest: Path,
    patterns: List[str],
    ancestors: FrozenSet[str],
    stats: CopyStats,
) -> None:
    # Real paths on the current descent only
    real = os.path.realpath(src)
    if real in ancestors:
        logger.warning("copy_symlink_cycle_skipped", path=str(src))
        return
    ancestors = ancestors | {real}

    try:
        names = sorted(await aiofiles.os.listdir(src))
    except OSError as e:
        raise CopyError(
            f"Failed to read directory: {e}",
            details={"path": str(src)},
        ) from e

    await _ensure_dir(dest, stats)

    for name in names:
        if is_excluded(name, patterns):
            stats.entries_excluded += 1
            continue

        src_path = src / name
        dest_path = dest / name

        try:
            is_dir = await aiofiles.os.path.isdir(src_path)
            is_file = not is_dir and await aiofiles.os.path.isfile(src_path)
        except OSError as e:
            raise CopyError(
                f"Failed to stat entry: {e}",
                details={"path": str(src_path)},
            ) from e

        if is_dir:
            await _copy_tree(src_path, dest_path, patterns, ancestors, stats)
        elif is_file:
            stats.bytes_copied += await _copy_file(src_path, dest_path)
            stats.files_copied += 1
        else:
            # Dangling symlink, socket, fifo...
            logger.warning("copy_entry_skipped", path=str(src_path))


async def _ensure_dir(path: Path, stats: CopyStats) -> None:
    if await aiofiles.os.path.isdir(path):
        return
    try:
        await aiofiles.os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise CopyError(
            f"Failed to create directory: {e}",
            details={"path": str(path)},
        ) from e
    stats.directories_created += 1


async def _copy_file(src: Path, dest: Path) -> int:
    """Copy file contents and permission bits, return bytes written."""
    written = 0
    try:
        async with aiofiles.open(src, "rb") as reader:
            async with aiofiles.open(dest, "wb") as writer:
                while True:
                    chunk = await reader.read(COPY_CHUNK_SIZE)
                    if not chunk:
                        break
                    await writer.write(chunk)
                    written += len(chunk)
        shutil.copymode(src, dest)
    except OSError as e:
        raise CopyError(
            f"Failed to copy file: {e}",
            details={"src": str(src), "dest": str(dest)},
        ) from e
    return written
