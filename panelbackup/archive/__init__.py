# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Archive Layer - Zip building and the on-disk archive store.
"""

from panelbackup.archive.builder import (
    CompletionSignal,
    build_archive,
    partial_path_for,
)

from panelbackup.archive.store import (
    ArchiveInfo,
    ArchivePage,
    archive_path_for,
    delete_archive,
    ensure_archive_root,
    get_store_stats,
    list_archives,
    resolve_archive_path,
)

__all__ = [
    # Builder
    "CompletionSignal",
    "build_archive",
    "partial_path_for",
    # Store
    "ArchiveInfo",
    "ArchivePage",
    "archive_path_for",
    "delete_archive",
    "ensure_archive_root",
    "get_store_stats",
    "list_archives",
    "resolve_archive_path",
]
