# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Panel Backup - Full system backups for the admin panel.

Dumps the database, copies the backend and frontend source trees, and packs
everything into a single zip archive while publishing progress events.
Finished archives can be listed, downloaded and deleted. Package name:
panelbackup.
"""

__version__ = "0.1.0"

# Configuration creation (user-facing API)
from panelbackup.builder import build_config, build_from_steps
from panelbackup.config import BackupConfig, DatabaseConfig, DatabaseDialect
from panelbackup.env import create_config_from_env

# Core functions
from panelbackup.core import (
    BackupResult,
    generate_backup_id,
    initialize_backup_state,
    run_backup,
    start_backup,
)

# Archive store
from panelbackup.archive import (
    delete_archive,
    list_archives,
    resolve_archive_path,
)

# Progress
from panelbackup.progress import (
    ProgressBroadcaster,
    ProgressEvent,
    ProgressSink,
    ProgressStatus,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "BackupConfig",
    "DatabaseConfig",
    "DatabaseDialect",
    "build_config",
    "build_from_steps",
    "create_config_from_env",
    # Orchestration
    "BackupResult",
    "generate_backup_id",
    "initialize_backup_state",
    "run_backup",
    "start_backup",
    # Archive store
    "delete_archive",
    "list_archives",
    "resolve_archive_path",
    # Progress
    "ProgressBroadcaster",
    "ProgressEvent",
    "ProgressSink",
    "ProgressStatus",
]
