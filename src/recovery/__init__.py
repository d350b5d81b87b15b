"""
Disaster recovery backup and restore utilities.
"""

from .backup import BackupSummary, BackupUploader
from .jobs import JobStore, RestoreFile, RestoreJob, RestoreState
from .pricing import RestoreCostEstimator, RestoreTier, estimate_cost
from .restore import BackupObject, RestoreTracker, parse_restore_header
from .telemetry import OperationsLogShipper

__all__ = [
    "BackupObject",
    "BackupSummary",
    "BackupUploader",
    "JobStore",
    "OperationsLogShipper",
    "RestoreCostEstimator",
    "RestoreFile",
    "RestoreJob",
    "RestoreState",
    "RestoreTier",
    "RestoreTracker",
    "estimate_cost",
    "parse_restore_header",
]
