"""Bulk export, backup and restore."""

from household_ledger.reports.backup import (
    BackupContents,
    BackupFormatError,
    RejectedRecord,
    export_backup,
    parse_backup,
)
from household_ledger.reports.export import export_csv

__all__ = [
    "BackupContents",
    "BackupFormatError",
    "RejectedRecord",
    "export_backup",
    "parse_backup",
    "export_csv",
]
