# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Panel Backup FastAPI Integration - Plugin for FastAPI applications.

This module provides:
- Lifespan management (startup/shutdown)
- Backup endpoints (start, list, download, delete, status)
- A websocket that streams backup-progress events

Authentication is left to the host application (mount the routes behind
its own dependencies).
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Sequence

import structlog
from fastapi import FastAPI, HTTPException, Query, Response, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse

from panelbackup.archive import delete_archive, get_store_stats, list_archives, resolve_archive_path
from panelbackup.config import BackupConfig
from panelbackup.core import (
    BackupState,
    get_backup_status,
    initialize_backup_state,
    shutdown_backup_state,
    start_backup,
)
from panelbackup.exceptions import (
    ArchiveNotFoundError,
    BackupInProgressError,
    PanelBackupError,
)
from panelbackup.progress import (
    PROGRESS_EVENT_NAME,
    FanOutSink,
    LoggingSink,
    ProgressBroadcaster,
)

logger = structlog.get_logger()


def _to_http_error(error: PanelBackupError) -> HTTPException:
    if isinstance(error, ArchiveNotFoundError):
        return HTTPException(status_code=404, detail=error.message)
    if isinstance(error, BackupInProgressError):
        return HTTPException(status_code=409, detail=error.message)
    return HTTPException(status_code=500, detail=error.message)


async def _forward_progress(websocket: WebSocket, queue: asyncio.Queue) -> None:
    """Send queued events until the client goes away."""
    try:
        while True:
            event = await queue.get()
            await websocket.send_json(
                {"event": PROGRESS_EVENT_NAME, "data": event.to_payload()}
            )
    except (WebSocketDisconnect, RuntimeError, OSError) as e:
        # Closed sockets surface differently depending on the server
        logger.debug("progress_send_stopped", error=str(e))


def register_backup_routes(
    app: FastAPI,
    config: BackupConfig,
    state: BackupState,
    broadcaster: ProgressBroadcaster,
    prefix: str = "/backups",
    dependencies: Sequence[Any] | None = None,
) -> None:
    """
    Register backup endpoints on a FastAPI app.

    Args:
        app: FastAPI application
        config: Backup configuration
        state: Runtime state
        broadcaster: Progress fan-out used by the websocket route
        prefix: URL prefix for endpoints (default: /backups)
        dependencies: Extra dependencies (e.g. the host's auth check)
    """
    deps = list(dependencies or [])
    sink = FanOutSink(broadcaster, LoggingSink())

    @app.post(prefix, status_code=202, dependencies=deps)
    async def create_backup() -> dict:
        """
        Start a backup job.

        Returns immediately with the generated id; follow progress on the
        websocket.
        """
        try:
            backup_id = await start_backup(config, state, sink)
        except PanelBackupError as e:
            raise _to_http_error(e) from e
        return {"backupId": backup_id}

    @app.get(prefix, dependencies=deps)
    async def list_backups(
        page_number: str | None = Query(default="1", alias="pageNumber"),
        search_param: str | None = Query(default="", alias="searchParam"),
    ) -> dict:
        """
        List backups, newest first.

        Args:
            pageNumber: 1-based page number
            searchParam: Case-insensitive filename filter
        """
        try:
            page = await list_archives(config, page_number, search_param)
        except PanelBackupError as e:
            raise _to_http_error(e) from e
        return page.to_dict()

    @app.get(f"{prefix}/status", dependencies=deps)
    async def backup_status() -> dict:
        """
        Running jobs, counters and archive store statistics.
        """
        return {**get_backup_status(state), "store": await get_store_stats(config)}

    @app.get(f"{prefix}/{{backup_id}}/download", dependencies=deps)
    async def download_backup(backup_id: str) -> FileResponse:
        """
        Stream one archive as an attachment.
        """
        try:
            path = await resolve_archive_path(config, backup_id)
        except PanelBackupError as e:
            raise _to_http_error(e) from e
        return FileResponse(path, media_type="application/zip", filename=path.name)

    @app.delete(f"{prefix}/{{backup_id}}", status_code=204, dependencies=deps)
    async def remove_backup(backup_id: str) -> Response:
        """
        Delete one archive.
        """
        try:
            await delete_archive(config, backup_id)
        except PanelBackupError as e:
            raise _to_http_error(e) from e
        return Response(status_code=204)

    @app.websocket(f"{prefix}/progress")
    async def progress_socket(websocket: WebSocket) -> None:
        """
        Push every backup-progress event to the connected client.

        Events published while the client is not connected are lost.
        """
        await websocket.accept()
        queue = broadcaster.open_queue()
        logger.debug("progress_subscriber_connected", subscribers=broadcaster.subscriber_count)

        sender = asyncio.create_task(_forward_progress(websocket, queue))
        try:
            # Client messages are ignored; reading notices the disconnect
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug("progress_receive_stopped", error=str(e))
        finally:
            sender.cancel()
            await asyncio.gather(sender, return_exceptions=True)
            broadcaster.close_queue(queue)
            logger.debug("progress_subscriber_disconnected")


def setup_backup_plugin(
    app: FastAPI,
    config: BackupConfig,
    prefix: str = "/backups",
) -> None:
    """
    Set up the backup plugin with startup/shutdown hooks.

    This is the main entry point for integrating backups with a FastAPI app.

    Args:
        app: FastAPI application
        config: Backup configuration
        prefix: URL prefix for the endpoints
    """
    app.state.backup_config = config
    app.state.backup_state = None
    app.state.backup_broadcaster = None

    @app.on_event("startup")
    async def startup():
        """Initialize backup state on app startup."""
        logger.info("backup_plugin_starting", archive_root=str(config.archive_root))

        state = initialize_backup_state()
        broadcaster = ProgressBroadcaster()
        app.state.backup_state = state
        app.state.backup_broadcaster = broadcaster

        register_backup_routes(app, config, state, broadcaster, prefix)

        logger.info("backup_plugin_started")

    @app.on_event("shutdown")
    async def shutdown():
        """Wait for running backups on app shutdown."""
        logger.info("backup_plugin_stopping")

        state = app.state.backup_state
        if state:
            await shutdown_backup_state(state)

        logger.info("backup_plugin_stopped")


@asynccontextmanager
async def backup_lifespan(app: FastAPI, config: BackupConfig, prefix: str = "/backups"):
    """
    Alternative lifespan context manager for FastAPI.

    Use this instead of setup_backup_plugin if you prefer the
    lifespan pattern:

        app = FastAPI(lifespan=lambda app: backup_lifespan(app, config))
    """
    logger.info("backup_lifespan_starting")

    state = initialize_backup_state()
    broadcaster = ProgressBroadcaster()
    app.state.backup_config = config
    app.state.backup_state = state
    app.state.backup_broadcaster = broadcaster

    register_backup_routes(app, config, state, broadcaster, prefix)

    logger.info("backup_lifespan_started")

    try:
        yield
    finally:
        logger.info("backup_lifespan_stopping")
        await shutdown_backup_state(state)
        logger.info("backup_lifespan_stopped")


def get_backup_broadcaster(app: FastAPI) -> ProgressBroadcaster:
    """
    Get the progress broadcaster from a FastAPI app.

    Useful for bridging progress into another push transport.

    Raises:
        RuntimeError: If the plugin is not initialized
    """
    broadcaster = getattr(app.state, "backup_broadcaster", None)
    if broadcaster is None:
        raise RuntimeError("Backup plugin not initialized. Call setup_backup_plugin first.")
    return broadcaster
