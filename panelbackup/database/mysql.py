# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
MySQL / MariaDB dump via mysqldump.

The password is passed through MYSQL_PWD instead of -p<password>.
"""

from pathlib import Path
from typing import Dict, List, Tuple

from panelbackup.config import DatabaseConfig
from panelbackup.database.runner import run_dump_process

MYSQLDUMP = "mysqldump"


def build_mysql_command(db: DatabaseConfig) -> Tuple[List[str], Dict[str, str]]:
    """Return (argv, extra_env) for mysqldump."""
    argv = [
        MYSQLDUMP,
        "-h", db.host,
        "-P", str(db.effective_port),
    ]
    if db.username:
        argv += ["-u", db.username]
    argv.append(db.database)

    env = {"MYSQL_PWD": db.password} if db.password else {}
    return argv, env


async def dump_mysql(
    db: DatabaseConfig,
    output_path: Path,
    timeout: float | None = None,
) -> int:
    """
    Dump a MySQL database as SQL statements.

    Returns:
        Size of the dump file in bytes
    """
    argv, env = build_mysql_command(db)
    return await run_dump_process(argv, env, output_path, timeout)
