"""
Backup retention policy and rotation.

Usage:
    from backupsync.retention import RetentionPolicy, should_delete

    # Decide for one file
    should_delete("backup1_20240101.gpg", today=date(2024, 8, 5))

    # Rotate a directory
    result = rotate_local_directory("/backups", dry_run=True)
"""

from backupsync.retention.policy import (
    DEFAULT_POLICY,
    RetentionDecision,
    RetentionPolicy,
    RetentionVerdict,
    evaluate,
    extract_file_date,
    should_delete,
)
from backupsync.retention.rotation import (
    RotationResult,
    rotate_local_directory,
    rotate_remote_directory,
)

__all__ = [
    "DEFAULT_POLICY",
    "RetentionDecision",
    "RetentionPolicy",
    "RetentionVerdict",
    "evaluate",
    "extract_file_date",
    "should_delete",
    "RotationResult",
    "rotate_local_directory",
    "rotate_remote_directory",
]
