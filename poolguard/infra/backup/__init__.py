"""Backup infrastructure — last successful backup lookup, repository disk usage."""

from .repository import repository_usage
from .source import (
    BackupSource,
    NullBackupSource,
    PgBackRestBackupSource,
    TimestampFileBackupSource,
    create_backup_source,
)

__all__ = [
    "BackupSource",
    "NullBackupSource",
    "TimestampFileBackupSource",
    "PgBackRestBackupSource",
    "create_backup_source",
    "repository_usage",
]
