# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
PostgreSQL dump via pg_dump.

The password is passed through PGPASSWORD so it never shows up in the
process list or in logged command lines.
"""

from pathlib import Path
from typing import Dict, List, Tuple

from panelbackup.config import DatabaseConfig
from panelbackup.database.runner import run_dump_process

PG_DUMP = "pg_dump"


def build_postgres_command(db: DatabaseConfig) -> Tuple[List[str], Dict[str, str]]:
    """Return (argv, extra_env) for pg_dump."""
    argv = [PG_DUMP, "-h", db.host, "-p", str(db.effective_port)]
    if db.username:
        argv += ["-U", db.username]
    argv += ["-d", db.database]

    env = {"PGPASSWORD": db.password} if db.password else {}
    return argv, env


async def dump_postgres(
    db: DatabaseConfig,
    output_path: Path,
    timeout: float | None = None,
) -> int:
    """
    Dump a PostgreSQL database as plain SQL.

    Returns:
        Size of the dump file in bytes
    """
    argv, env = build_postgres_command(db)
    return await run_dump_process(argv, env, output_path, timeout)
