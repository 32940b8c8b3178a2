# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Database Dumper - Produce a SQL dump with the engine's native tool.
"""

from pathlib import Path
from typing import Dict, List, Tuple

from panelbackup.config import DatabaseConfig, DatabaseDialect
from panelbackup.errors import explain_unsupported_dialect
from panelbackup.exceptions import ConfigurationError


def build_dump_command(db: DatabaseConfig) -> Tuple[List[str], Dict[str, str]]:
    """
    Build the dump command for a database without running it.

    Returns:
        Tuple of (argv, extra environment variables)

    Raises:
        ConfigurationError: If the dialect is unsupported
    """
    if db.dialect == DatabaseDialect.POSTGRES:
        from panelbackup.database.postgres import build_postgres_command

        return build_postgres_command(db)
    elif db.dialect == DatabaseDialect.MYSQL:
        from panelbackup.database.mysql import build_mysql_command

        return build_mysql_command(db)
    else:
        raise ConfigurationError(explain_unsupported_dialect(str(db.dialect)))


async def dump_database(
    db: DatabaseConfig,
    output_path: Path,
    timeout: float | None = None,
) -> int:
    """
    Dump the configured database into output_path.

    Args:
        db: Connection settings
        output_path: SQL file to write
        timeout: Seconds before the dump process is killed (None: no limit)

    Returns:
        Size of the dump in bytes

    Raises:
        ConfigurationError: If the dialect is unsupported
        DatabaseDumpError: If the dump tool is missing, fails or times out
    """
    if db.dialect == DatabaseDialect.POSTGRES:
        from panelbackup.database.postgres import dump_postgres

        return await dump_postgres(db, output_path, timeout)
    elif db.dialect == DatabaseDialect.MYSQL:
        from panelbackup.database.mysql import dump_mysql

        return await dump_mysql(db, output_path, timeout)
    else:
        raise ConfigurationError(explain_unsupported_dialect(str(db.dialect)))


__all__ = [
    "build_dump_command",
    "dump_database",
]
