# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Dump process runner shared by the PostgreSQL and MySQL dumpers.

The dump tool is executed without a shell. Its standard output goes
straight into the target file; standard error is captured for the log
only and never returned to the caller.
"""

import asyncio
import os
from pathlib import Path
from typing import Dict, List

import structlog

from panelbackup.errors import explain_dump_failed, explain_dump_timeout
from panelbackup.exceptions import DatabaseDumpError

logger = structlog.get_logger()

# Keep at most this much stderr in a log event
STDERR_LOG_LIMIT = 4096


async def run_dump_process(
    argv: List[str],
    extra_env: Dict[str, str],
    output_path: Path,
    timeout: float | None = None,
) -> int:
    """
    Run a dump command with stdout redirected into output_path.

    Args:
        argv: Command and arguments, argv[0] is looked up on PATH
        extra_env: Variables added to the current environment (credentials)
        output_path: File receiving the dump
        timeout: Seconds to wait before killing the process, None waits forever

    Returns:
        Size of the written dump in bytes

    Raises:
        DatabaseDumpError: If the tool is missing, fails, or times out
    """
    tool = argv[0]
    env = {**os.environ, **extra_env}
    output_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(output_path, "wb") as out:
            try:
                process = await asyncio.create_subprocess_exec(
                    *argv,
                    stdout=out,
                    stderr=asyncio.subprocess.PIPE,
                    env=env,
                )
            except OSError as e:
                logger.error("database_dump_tool_unavailable", tool=tool, error=str(e))
                raise DatabaseDumpError(explain_dump_failed(), details={"tool": tool}) from e

            try:
                _, stderr = await asyncio.wait_for(process.communicate(), timeout)
            except asyncio.TimeoutError as e:
                process.kill()
                await process.wait()
                logger.error("database_dump_timeout", tool=tool, timeout=timeout)
                raise DatabaseDumpError(
                    explain_dump_timeout(timeout),
                    details={"tool": tool},
                ) from e
    except OSError as e:
        logger.error("database_dump_output_failed", path=str(output_path), error=str(e))
        raise DatabaseDumpError(explain_dump_failed(), details={"tool": tool}) from e

    if process.returncode != 0:
        logger.error(
            "database_dump_failed",
            tool=tool,
            returncode=process.returncode,
            stderr=(stderr or b"")[:STDERR_LOG_LIMIT].decode("utf-8", errors="ignore"),
        )
        raise DatabaseDumpError(
            explain_dump_failed(),
            details={"tool": tool, "returncode": process.returncode},
        )

    size = output_path.stat().st_size
    logger.info("database_dump_written", tool=tool, path=str(output_path), size=size)
    return size
