# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Panel Backup Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation and passed
explicitly to every component. There are no module-level path constants.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List


class DatabaseDialect(str, Enum):
    """Database engine whose native dump tool is used."""

    POSTGRES = "postgres"
    MYSQL = "mysql"


DEFAULT_PORTS = {
    DatabaseDialect.POSTGRES: 5432,
    DatabaseDialect.MYSQL: 3306,
}

DEFAULT_BACKEND_EXCLUDES: List[str] = [
    "node_modules",
    "dist",
    ".git",
    "backups",
    "*.log",
    ".env",
]

DEFAULT_FRONTEND_EXCLUDES: List[str] = [
    "node_modules",
    ".git",
    "build",
    "dist",
    "*.log",
    ".env",
]


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings handed to the dump tool."""

    dialect: DatabaseDialect
    database: str
    host: str = "localhost"

    # None means the dialect default (5432 / 3306)
    port: int | None = None

    username: str = ""
    password: str = field(default="", repr=False)

    def __post_init__(self) -> None:
        from panelbackup.exceptions import ConfigurationError
        from panelbackup.errors import explain_unsupported_dialect

        if not isinstance(self.dialect, DatabaseDialect):
            try:
                object.__setattr__(self, "dialect", DatabaseDialect(self.dialect))
            except ValueError as exc:
                raise ConfigurationError(explain_unsupported_dialect(self.dialect)) from exc

        if not self.database:
            raise ConfigurationError("Database name is required")

    @property
    def effective_port(self) -> int:
        return self.port or DEFAULT_PORTS[self.dialect]

    def masked(self) -> dict:
        """Connection settings safe to put in a log line."""
        return {
            "dialect": self.dialect.value,
            "host": self.host,
            "port": self.effective_port,
            "username": self.username,
            "database": self.database,
        }


@dataclass(frozen=True)
class BackupConfig:
    """
    Immutable configuration for the backup pipeline.

    One instance is shared by the orchestrator, the archive store and the
    HTTP routes.
    """

    # Database to dump
    database: DatabaseConfig

    # Directory holding <id>.zip archives (and transient working dirs)
    archive_root: Path = field(default_factory=lambda: Path("./backups"))

    # Directory containing the backend and frontend source trees
    project_root: Path = field(default_factory=lambda: Path(".."))

    backend_dir_name: str = "backend"
    frontend_dir_name: str = "frontend"

    # Basenames or single-wildcard globs skipped while copying
    backend_excludes: List[str] = field(
        default_factory=lambda: list(DEFAULT_BACKEND_EXCLUDES)
    )
    frontend_excludes: List[str] = field(
        default_factory=lambda: list(DEFAULT_FRONTEND_EXCLUDES)
    )

    # Listing page size
    page_size: int = 10

    # zlib level used for zip entries (0-9)
    compression_level: int = 9

    # Upper bound for the dump process, None disables the timeout
    dump_timeout_seconds: float | None = 3600

    # Permission bits for the archive root and working directories
    archive_dir_mode: int = 0o755

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not isinstance(self.database, DatabaseConfig):
            errors.append("database must be a DatabaseConfig")

        # Paths may arrive as strings from env or builder
        object.__setattr__(self, "archive_root", Path(self.archive_root))
        object.__setattr__(self, "project_root", Path(self.project_root))

        if self.page_size < 1:
            errors.append(f"page_size must be >= 1, got {self.page_size}")

        if not 0 <= self.compression_level <= 9:
            errors.append(
                f"compression_level must be between 0 and 9, got {self.compression_level}"
            )

        if self.dump_timeout_seconds is not None and self.dump_timeout_seconds <= 0:
            errors.append(
                f"dump_timeout_seconds must be > 0 or None, got {self.dump_timeout_seconds}"
            )

        for name in (self.backend_dir_name, self.frontend_dir_name):
            if not name or "/" in name or name in (".", ".."):
                errors.append(f"Invalid source directory name: {name!r}")

        for pattern in [*self.backend_excludes, *self.frontend_excludes]:
            if not isinstance(pattern, str) or not pattern:
                errors.append(f"Invalid exclusion pattern: {pattern!r}")

        if errors:
            from panelbackup.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    @property
    def backend_source(self) -> Path:
        return self.project_root / self.backend_dir_name

    @property
    def frontend_source(self) -> Path:
        return self.project_root / self.frontend_dir_name

    def with_updates(self, **kwargs) -> "BackupConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import fields

        current = {f.name: getattr(self, f.name) for f in fields(self)}
        current.update(kwargs)
        return BackupConfig(**current)
