"""
Backup rotation for local directories and SMB shares.

Applies the retention policy to every file in a location and deletes the
files it marks as eligible. Includes dry-run mode for testing.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from loguru import logger

from backupsync.retention.policy import (
    DEFAULT_POLICY,
    RetentionDecision,
    RetentionPolicy,
    evaluate,
)
from backupsync.transport.command import CommandError
from backupsync.transport.smb import SmbShare


@dataclass
class RotationResult:
    """
    Result of a rotation pass over one location.

    Attributes:
        location: Directory (local path or remote share path) that was rotated
        dry_run: Whether this was a dry run
        scanned: Number of files evaluated
        deleted: Names deleted (or that would be deleted in a dry run)
        retained: Number of files kept
        indeterminate: Names kept because no valid date could be read
        errors: List of error messages
        duration_seconds: Time taken for rotation
    """

    location: str
    dry_run: bool
    scanned: int = 0
    deleted: list[str] = field(default_factory=list)
    retained: int = 0
    indeterminate: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """Check if rotation was successful."""
        return len(self.errors) == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "location": self.location,
            "dry_run": self.dry_run,
            "scanned": self.scanned,
            "deleted": self.deleted,
            "retained": self.retained,
            "indeterminate": self.indeterminate,
            "errors": self.errors,
            "duration_seconds": self.duration_seconds,
        }


def _record(result: RotationResult, name: str, decision: RetentionDecision) -> bool:
    """Count a verdict; return True if the file should be deleted."""
    result.scanned += 1
    if decision is RetentionDecision.DELETE:
        return True
    result.retained += 1
    if decision is RetentionDecision.INDETERMINATE:
        result.indeterminate.append(name)
    return False


def rotate_local_directory(
    directory: str | Path,
    today: date | None = None,
    policy: RetentionPolicy = DEFAULT_POLICY,
    dry_run: bool = False,
) -> RotationResult:
    """
    Delete files under a local directory that the policy no longer retains.

    Every regular file below the directory is evaluated by its basename.

    Args:
        directory: Directory to rotate (searched recursively)
        today: Reference date (defaults to today)
        policy: Retention windows to apply
        dry_run: If True, only report what would be deleted

    Returns:
        RotationResult for the directory
    """
    directory = Path(directory)
    today = today or date.today()
    result = RotationResult(location=str(directory), dry_run=dry_run)
    start_time = time.time()

    if not directory.is_dir():
        result.errors.append(f"Directory does not exist: {directory}")
        logger.error(result.errors[-1])
        return result

    for file_path in sorted(p for p in directory.rglob("*") if p.is_file()):
        verdict = evaluate(file_path.name, today, policy)
        if not _record(result, str(file_path), verdict.decision):
            continue

        if dry_run:
            logger.info(f"Would delete: {file_path}")
            result.deleted.append(str(file_path))
            continue

        try:
            file_path.unlink()
            result.deleted.append(str(file_path))
            logger.info(f"Deleted file (by applying defined retention policies): {file_path}")
        except OSError as e:
            result.errors.append(f"Error deleting file: {file_path}: {e}")
            logger.error(result.errors[-1])

    result.duration_seconds = time.time() - start_time
    logger.info(
        f"Rotated {directory}: scanned={result.scanned}, deleted={len(result.deleted)}, "
        f"indeterminate={len(result.indeterminate)}, errors={len(result.errors)}"
    )
    return result


def rotate_remote_directory(
    share: SmbShare,
    remote_path: str,
    today: date | None = None,
    policy: RetentionPolicy = DEFAULT_POLICY,
    dry_run: bool = False,
) -> RotationResult:
    """
    Delete files in a directory of an SMB share that the policy no longer retains.

    Args:
        share: Share holding the backups
        remote_path: Directory on the share
        today: Reference date (defaults to today)
        policy: Retention windows to apply
        dry_run: If True, only report what would be deleted

    Returns:
        RotationResult for the remote directory
    """
    today = today or date.today()
    result = RotationResult(location=remote_path, dry_run=dry_run)
    start_time = time.time()

    try:
        names = share.list_files(remote_path)
    except CommandError as e:
        result.errors.append(f"Error listing files in {remote_path}: {e}")
        logger.error(result.errors[-1])
        return result

    for name in names:
        verdict = evaluate(name, today, policy)
        if not _record(result, name, verdict.decision):
            continue

        if dry_run:
            logger.info(f"Would delete: {remote_path}/{name}")
            result.deleted.append(name)
            continue

        try:
            share.delete(name, remote_path)
            result.deleted.append(name)
        except CommandError as e:
            result.errors.append(f"Error deleting file: {remote_path}/{name}: {e}")
            logger.error(result.errors[-1])

    result.duration_seconds = time.time() - start_time
    logger.info(
        f"Rotated {share.service}{remote_path}: scanned={result.scanned}, "
        f"deleted={len(result.deleted)}, errors={len(result.errors)}"
    )
    return result
