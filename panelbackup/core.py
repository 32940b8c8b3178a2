# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Panel Backup Core - Orchestrator for a full system backup.

One backup job runs these steps strictly in order:

1. create the working directory <archive_root>/<backup_id>
2. dump the database into <work>/database/<backup_id>.sql
3. copy the backend tree into <work>/backend
4. copy the frontend tree into <work>/frontend
5. zip the working directory into <archive_root>/<backup_id>.zip
6. verify the archive and remove the working directory

Progress is published after each step. Any failure publishes an error
event, removes the working directory and the partial archive, and is
raised to the caller.
"""

import asyncio
import shutil
from dataclasses import dataclass
from datetime import datetime, UTC
from pathlib import Path
from typing import List, Set, TypedDict

import aiofiles.os
import structlog

from panelbackup.archive import (
    archive_path_for,
    build_archive,
    ensure_archive_root,
    partial_path_for,
)
from panelbackup.config import BackupConfig
from panelbackup.copier import copy_directory
from panelbackup.database import dump_database
from panelbackup.errors import explain_empty_archive, explain_nothing_to_compress
from panelbackup.exceptions import (
    ArchiveError,
    BackupInProgressError,
    EmptyBackupError,
    PanelBackupError,
)
from panelbackup.progress import ProgressEvent, ProgressSink, ProgressStatus

logger = structlog.get_logger()

BACKUP_ID_PREFIX = "backup-"


@dataclass
class BackupResult:
    """Result of a successful backup job."""

    backup_id: str
    archive_path: Path
    size_bytes: int
    duration_seconds: float


class BackupState(TypedDict):
    """Runtime state shared by the HTTP routes and background jobs."""

    running: Set[str]
    tasks: Set[asyncio.Task]
    last_run_at: datetime | None
    total_runs: int
    total_failed: int
    last_error: str | None


def initialize_backup_state() -> BackupState:
    """Create empty runtime state."""
    return BackupState(
        running=set(),
        tasks=set(),
        last_run_at=None,
        total_runs=0,
        total_failed=0,
        last_error=None,
    )


def generate_backup_id(now: datetime | None = None) -> str:
    """
    Build a backup id from a UTC timestamp.

    The timestamp is ISO 8601 with millisecond precision and ':' / '.'
    replaced by '-', e.g. backup-2024-01-01T00-00-00-000Z.
    """
    now = (now or datetime.now(UTC)).astimezone(UTC)
    stamp = now.strftime("%Y-%m-%dT%H:%M:%S") + f".{now.microsecond // 1000:03d}Z"
    return BACKUP_ID_PREFIX + stamp.replace(":", "-").replace(".", "-")


class _ProgressReporter:
    """Publishes monotonically non-decreasing progress for one job."""

    def __init__(self, backup_id: str, sink: ProgressSink):
        self.backup_id = backup_id
        self.sink = sink
        self.progress = 0

    async def emit(self, progress: int, status: ProgressStatus, error: str | None = None) -> None:
        self.progress = max(self.progress, progress)
        event = ProgressEvent(
            backup_id=self.backup_id,
            progress=self.progress,
            status=status,
            error=error,
        )
        try:
            await self.sink.publish(event)
        except Exception as e:
            # Subscribers are fire-and-forget, never fail the job for them
            logger.warning(
                "progress_publish_failed",
                backup_id=self.backup_id,
                status=status.value,
                error=str(e),
            )

    async def fail(self, message: str) -> None:
        await self.emit(self.progress, ProgressStatus.ERROR, message or "Unknown error")


async def run_backup(
    config: BackupConfig,
    backup_id: str,
    sink: ProgressSink,
    state: BackupState | None = None,
) -> BackupResult:
    """
    Run a complete backup job.

    Args:
        config: Backup configuration
        backup_id: Job id, also the archive name without extension
        sink: Receives progress events
        state: Optional runtime state for counters and duplicate detection

    Returns:
        BackupResult describing the finished archive

    Raises:
        BackupInProgressError: If a job with this id is already running
        PanelBackupError: If any step fails (after cleanup)
    """
    _claim(state, backup_id)
    try:
        return await _run_pipeline(config, backup_id, sink, state)
    finally:
        _release(state, backup_id)


async def start_backup(
    config: BackupConfig,
    state: BackupState,
    sink: ProgressSink,
    backup_id: str | None = None,
) -> str:
    """
    Start a backup job in the background and return its id immediately.

    Progress and failures are reported through the sink.
    """
    backup_id = backup_id or generate_backup_id()
    _claim(state, backup_id)

    task = asyncio.create_task(_run_claimed(config, backup_id, sink, state))
    state["tasks"].add(task)
    task.add_done_callback(state["tasks"].discard)

    logger.info("backup_scheduled", backup_id=backup_id)
    return backup_id


async def _run_claimed(
    config: BackupConfig,
    backup_id: str,
    sink: ProgressSink,
    state: BackupState,
) -> None:
    try:
        await _run_pipeline(config, backup_id, sink, state)
    except Exception as e:
        # Already logged and published by the pipeline
        logger.debug("background_backup_finished_with_error", backup_id=backup_id, error=str(e))
    finally:
        _release(state, backup_id)


def _claim(state: BackupState | None, backup_id: str) -> None:
    if state is None:
        return
    if backup_id in state["running"]:
        raise BackupInProgressError(
            f"Backup already running: {backup_id}",
            details={"backup_id": backup_id},
        )
    state["running"].add(backup_id)


def _release(state: BackupState | None, backup_id: str) -> None:
    if state is not None:
        state["running"].discard(backup_id)


async def _run_pipeline(
    config: BackupConfig,
    backup_id: str,
    sink: ProgressSink,
    state: BackupState | None,
) -> BackupResult:
    work_dir = config.archive_root / backup_id
    archive_path = archive_path_for(config, backup_id)
    reporter = _ProgressReporter(backup_id, sink)
    start_time = datetime.now(UTC)
    archive_written = False

    logger.info("backup_started", backup_id=backup_id, database=config.database.masked())

    try:
        await ensure_archive_root(config)
        await aiofiles.os.makedirs(work_dir, mode=config.archive_dir_mode, exist_ok=True)
        await reporter.emit(5, ProgressStatus.PREPARING)

        # Step 1: Database
        await reporter.emit(10, ProgressStatus.DATABASE)
        dump_path = work_dir / "database" / f"{backup_id}.sql"
        await dump_database(config.database, dump_path, config.dump_timeout_seconds)
        await reporter.emit(30, ProgressStatus.DATABASE)

        # Step 2: Backend sources
        await reporter.emit(35, ProgressStatus.BACKEND)
        await _copy_source(
            "backend", config.backend_source, work_dir / "backend", config.backend_excludes
        )
        await reporter.emit(60, ProgressStatus.BACKEND)

        # Step 3: Frontend sources
        await reporter.emit(65, ProgressStatus.FRONTEND)
        await _copy_source(
            "frontend", config.frontend_source, work_dir / "frontend", config.frontend_excludes
        )
        await reporter.emit(85, ProgressStatus.FRONTEND)

        # Step 4: Compress
        await reporter.emit(90, ProgressStatus.COMPRESSING)
        await _ensure_has_content(work_dir)
        await build_archive(work_dir, archive_path, config.compression_level)
        archive_written = True
        size = _verify_archive(archive_path)

        # Step 5: Cleanup (best effort)
        await _remove_tree(work_dir, "working_dir_cleanup_failed")

        await reporter.emit(100, ProgressStatus.COMPLETED)

    except Exception as e:
        logger.error("backup_failed", backup_id=backup_id, error=str(e), exc_info=True)

        if state is not None:
            state["total_runs"] += 1
            state["total_failed"] += 1
            state["last_run_at"] = datetime.now(UTC)
            state["last_error"] = str(e)

        await reporter.fail(_public_message(e))
        await _cleanup_after_failure(work_dir, archive_path, archive_written)
        raise

    duration = (datetime.now(UTC) - start_time).total_seconds()

    if state is not None:
        state["total_runs"] += 1
        state["last_run_at"] = datetime.now(UTC)

    logger.info(
        "backup_completed",
        backup_id=backup_id,
        archive_path=str(archive_path),
        size=size,
        duration=duration,
    )

    return BackupResult(
        backup_id=backup_id,
        archive_path=archive_path,
        size_bytes=size,
        duration_seconds=duration,
    )


async def _copy_source(label: str, src: Path, dest: Path, excludes: List[str]) -> None:
    if not await aiofiles.os.path.isdir(src):
        logger.warning("source_tree_missing", tree=label, path=str(src))
        return
    await copy_directory(src, dest, excludes)


async def _ensure_has_content(work_dir: Path) -> None:
    if not await aiofiles.os.path.isdir(work_dir):
        raise ArchiveError(
            "Working directory not found for compression",
            details={"work_dir": str(work_dir)},
        )

    contents = sorted(await aiofiles.os.listdir(work_dir))
    logger.info("working_dir_contents", work_dir=str(work_dir), entries=contents)

    if not contents:
        raise EmptyBackupError(explain_nothing_to_compress())


def _verify_archive(archive_path: Path) -> int:
    if not archive_path.is_file():
        raise ArchiveError(
            "Failed to create zip file",
            details={"archive_path": str(archive_path)},
        )
    size = archive_path.stat().st_size
    if size == 0:
        raise EmptyBackupError(
            explain_empty_archive(),
            details={"archive_path": str(archive_path)},
        )
    return size


def _public_message(error: Exception) -> str:
    """Message for subscribers: no details dict, no stderr."""
    if isinstance(error, PanelBackupError):
        return error.message
    return str(error) or type(error).__name__


async def _remove_tree(path: Path, failure_event: str) -> None:
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, shutil.rmtree, path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(failure_event, path=str(path), error=str(e))


async def _cleanup_after_failure(
    work_dir: Path,
    archive_path: Path,
    archive_written: bool,
) -> None:
    if await aiofiles.os.path.exists(work_dir):
        await _remove_tree(work_dir, "working_dir_cleanup_failed")

    # An archive under the final name is only ours once build_archive returned
    targets = [partial_path_for(archive_path)]
    if archive_written:
        targets.append(archive_path)

    for path in targets:
        if not await aiofiles.os.path.exists(path):
            continue
        try:
            await aiofiles.os.remove(path)
            logger.info("partial_archive_removed", archive_path=str(path))
        except OSError as e:
            logger.warning("partial_archive_cleanup_failed", path=str(path), error=str(e))


def get_backup_status(state: BackupState) -> dict:
    """Snapshot of runtime counters."""
    return {
        "running": sorted(state["running"]),
        "last_run_at": state["last_run_at"].isoformat() if state["last_run_at"] else None,
        "total_runs": state["total_runs"],
        "total_failed": state["total_failed"],
        "last_error": state["last_error"],
    }


async def shutdown_backup_state(state: BackupState) -> None:
    """Wait for background jobs to finish."""
    pending = list(state["tasks"])
    if pending:
        logger.info("waiting_for_backups", count=len(pending))
        await asyncio.gather(*pending, return_exceptions=True)
    logger.info("backup_state_shutdown_complete")
