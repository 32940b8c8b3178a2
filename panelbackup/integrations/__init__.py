# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Framework Integrations - FastAPI plugin and other framework integrations.
"""

from panelbackup.integrations.fastapi import (
    backup_lifespan,
    register_backup_routes,
    setup_backup_plugin,
)

__all__ = [
    "backup_lifespan",
    "register_backup_routes",
    "setup_backup_plugin",
]
