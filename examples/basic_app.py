# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Example FastAPI Application with Panel Backup Integration.

This example demonstrates how to mount the backup routes on an admin
panel API, protected by the panel's own auth dependency.

Run with:
    uvicorn examples.basic_app:app --reload

Environment variables:
    DATABASE_URL: postgres:// or mysql:// connection URL
    BACKUP_ARCHIVE_ROOT: Where archives are written (default: ./backups)
    BACKUP_PROJECT_ROOT: Directory holding backend/ and frontend/
    PANEL_ADMIN_TOKEN: Bearer token accepted by the admin routes
"""

import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, HTTPException

from panelbackup.builder import (
    build_config,
    create_empty_config,
    exclude_backend,
    exclude_frontend,
    with_archive_root,
    with_database,
)
from panelbackup.env import create_config_from_env
from panelbackup.exceptions import ConfigurationError
from panelbackup.core import initialize_backup_state, shutdown_backup_state
from panelbackup.integrations.fastapi import register_backup_routes
from panelbackup.progress import ProgressBroadcaster


def create_backup_config():
    """
    Create the backup configuration.

    Environment first; without it fall back to a local development setup.
    """
    try:
        return create_config_from_env()
    except ConfigurationError as e:
        print(f"Falling back to development backup config: {e}")

    config = create_empty_config()
    config = with_database(config, "postgres", "panel_dev", username="panel")
    config = with_archive_root(config, "./backups")

    # Coverage reports and local caches are not worth archiving
    config = exclude_backend(config, ["coverage", ".pytest_cache"])
    config = exclude_frontend(config, [".next", "*.tsbuildinfo"])

    return build_config(config)


backup_config = create_backup_config()
backup_state = initialize_backup_state()
broadcaster = ProgressBroadcaster()


async def require_admin(authorization: str = Header(default="")) -> None:
    """Minimal bearer check standing in for the panel's real auth."""
    expected = os.getenv("PANEL_ADMIN_TOKEN")
    if not expected or authorization != f"Bearer {expected}":
        raise HTTPException(status_code=401, detail="Unauthorized")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await shutdown_backup_state(backup_state)


app = FastAPI(
    title="Admin Panel with Backups",
    description="Example application demonstrating full system backups",
    version="1.0.0",
    lifespan=lifespan,
)

register_backup_routes(
    app,
    backup_config,
    backup_state,
    broadcaster,
    prefix="/api/backups",
    dependencies=[Depends(require_admin)],
)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Admin panel API",
        "docs": "/docs",
        "backups": "/api/backups",
    }


# ============================================================================
# Backup Endpoints (registered above)
# ============================================================================
#
# POST   /api/backups                 - Start a backup, returns {"backupId"}
# GET    /api/backups                 - List (pageNumber, searchParam)
# GET    /api/backups/status          - Running jobs and store stats
# GET    /api/backups/{id}/download   - Download the zip
# DELETE /api/backups/{id}            - Delete the zip
# WS     /api/backups/progress        - backup-progress events
#
# The websocket route is not behind require_admin; put it behind a proxy
# or check a token in the query string if the panel needs it.


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
