# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Panel Backup Exceptions - Custom exceptions for the panelbackup package.
"""


class PanelBackupError(Exception):
    """Base exception for all panelbackup errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(PanelBackupError):
    """Raised when configuration is invalid."""

    pass


class DatabaseDumpError(PanelBackupError):
    """Raised when the database dump tool is missing or fails."""

    pass


class CopyError(PanelBackupError):
    """Raised when a source tree cannot be copied."""

    pass


class ArchiveError(PanelBackupError):
    """Raised when the zip archive cannot be built."""

    pass


class EmptyBackupError(ArchiveError):
    """Raised when there is nothing to compress or the archive is empty."""

    pass


class StoreError(PanelBackupError):
    """Raised when archive store operations fail."""

    pass


class ArchiveNotFoundError(StoreError):
    """Raised when a requested archive does not exist."""

    pass


class BackupInProgressError(PanelBackupError):
    """Raised when a backup with the same id is already running."""

    pass
