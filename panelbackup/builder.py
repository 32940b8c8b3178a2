# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Panel Backup Builder - Functional builder pattern for configuration.

This module provides pure functions for building BackupConfig objects.
Each function takes a config dict and returns a new dict with the
modification applied (immutable updates).
"""

from pathlib import Path
from typing import Any, Callable, Dict, List

from panelbackup.config import (
    DEFAULT_BACKEND_EXCLUDES,
    DEFAULT_FRONTEND_EXCLUDES,
    BackupConfig,
    DatabaseConfig,
    DatabaseDialect,
)


# Type alias for builder functions
ConfigDict = Dict[str, Any]
BuilderFunc = Callable[[ConfigDict], ConfigDict]


def create_empty_config() -> ConfigDict:
    """
    Create an initial empty configuration dictionary.

    Returns:
        Dict with default values for all configuration fields
    """
    return {
        "database": None,
        "archive_root": Path("./backups"),
        "project_root": Path(".."),
        "backend_dir_name": "backend",
        "frontend_dir_name": "frontend",
        "backend_excludes": list(DEFAULT_BACKEND_EXCLUDES),
        "frontend_excludes": list(DEFAULT_FRONTEND_EXCLUDES),
        "page_size": 10,
        "compression_level": 9,
        "dump_timeout_seconds": 3600,
        "archive_dir_mode": 0o755,
    }


def with_archive_root(config: ConfigDict, path: Path | str) -> ConfigDict:
    """
    Set the directory where finished archives are stored.

    Args:
        config: Current configuration dictionary
        path: Archive root directory

    Returns:
        New configuration dictionary with archive root set
    """
    return {**config, "archive_root": Path(path)}


def with_project_root(config: ConfigDict, path: Path | str) -> ConfigDict:
    """
    Set the directory containing the backend and frontend trees.

    Args:
        config: Current configuration dictionary
        path: Project root directory

    Returns:
        New configuration dictionary with project root set
    """
    return {**config, "project_root": Path(path)}


def with_database(
    config: ConfigDict,
    dialect: DatabaseDialect | str,
    database: str,
    *,
    host: str = "localhost",
    port: int | None = None,
    username: str = "",
    password: str = "",
) -> ConfigDict:
    """
    Set the database connection used by the dump step.

    Args:
        config: Current configuration dictionary
        dialect: 'postgres' or 'mysql'
        database: Database name
        host: Database host
        port: Database port (None for the dialect default)
        username: Database user
        password: Database password

    Returns:
        New configuration dictionary with database set
    """
    db = DatabaseConfig(
        dialect=dialect,
        database=database,
        host=host,
        port=port,
        username=username,
        password=password,
    )
    return {**config, "database": db}


def exclude_backend(config: ConfigDict, patterns: List[str]) -> ConfigDict:
    """
    Add exclusion patterns for the backend tree.

    Args:
        config: Current configuration dictionary
        patterns: Basenames or single-wildcard globs (e.g. ['coverage', '*.tmp'])

    Returns:
        New configuration dictionary with patterns added
    """
    return {**config, "backend_excludes": list(config["backend_excludes"]) + patterns}


def exclude_frontend(config: ConfigDict, patterns: List[str]) -> ConfigDict:
    """
    Add exclusion patterns for the frontend tree.

    Args:
        config: Current configuration dictionary
        patterns: Basenames or single-wildcard globs

    Returns:
        New configuration dictionary with patterns added
    """
    return {**config, "frontend_excludes": list(config["frontend_excludes"]) + patterns}


def with_page_size(config: ConfigDict, page_size: int) -> ConfigDict:
    """
    Set the number of archives returned per listing page.
    """
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")
    return {**config, "page_size": page_size}


def with_dump_timeout(config: ConfigDict, seconds: float | None) -> ConfigDict:
    """
    Set the dump process timeout. None waits forever.
    """
    if seconds is not None and seconds <= 0:
        raise ValueError(f"dump timeout must be > 0, got {seconds}")
    return {**config, "dump_timeout_seconds": seconds}


def build_config(config_dict: ConfigDict) -> BackupConfig:
    """
    Validate and build an immutable BackupConfig from a configuration dictionary.

    Args:
        config_dict: Configuration dictionary built using builder functions

    Returns:
        Validated, immutable BackupConfig instance

    Raises:
        ConfigurationError: If validation fails
    """
    if not config_dict.get("database"):
        from panelbackup.exceptions import ConfigurationError

        raise ConfigurationError("database is required")

    return BackupConfig(**config_dict)


def build_from_steps(*steps: BuilderFunc) -> BackupConfig:
    """
    Build config by applying a sequence of builder functions.

    Example:
        config = build_from_steps(
            lambda c: with_database(c, "postgres", "panel", username="panel"),
            lambda c: with_archive_root(c, "/var/lib/panel/backups"),
            lambda c: exclude_backend(c, ["coverage"]),
        )
    """
    config = create_empty_config()
    for step in steps:
        config = step(config)
    return build_config(config)
