"""
Nightly backup synchronization job.

Brings up the VPN, checks the nightly backup files, ships them to the SMB
share, rotates the share with the retention policy, uploads the job log and
mails a summary.

Usage:
    from backupsync.sync import BackupSyncJob
    from backupsync.utils.config import get_config

    report = BackupSyncJob(get_config()).run()
    print(report.error_count)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from loguru import logger

from backupsync.notify import Notifier
from backupsync.retention.rotation import RotationResult, rotate_remote_directory
from backupsync.transport.command import CommandError
from backupsync.transport.smb import SmbShare
from backupsync.transport.vpn import VpnError, VpnTunnel
from backupsync.utils.config import SyncConfig

SEPARATOR = "#" * 79


@dataclass
class SyncReport:
    """
    Outcome of one sync run.

    Attributes:
        vpn_connected: Whether the tunnel came up
        interface: Tun interface used
        route_added: Whether the route was in place
        verified: Local backup files found before upload
        uploaded: Local backup files shipped to the share
        rotations: Rotation result per remote directory
        log_uploaded: Whether the job log reached the share
        notified: Whether the summary mail was accepted
        errors: Error messages, in order of occurrence
        error_log: Lines of the mailed error log; errors plus per-directory
            rotation summaries
    """

    vpn_connected: bool = False
    interface: str | None = None
    route_added: bool = False
    verified: list[str] = field(default_factory=list)
    uploaded: list[str] = field(default_factory=list)
    rotations: dict[str, RotationResult] = field(default_factory=dict)
    log_uploaded: bool = False
    notified: bool = False
    errors: list[str] = field(default_factory=list)
    error_log: list[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def exit_code(self) -> int:
        return 0 if self.vpn_connected else 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "vpn_connected": self.vpn_connected,
            "interface": self.interface,
            "route_added": self.route_added,
            "verified": self.verified,
            "uploaded": self.uploaded,
            "rotations": {path: r.to_dict() for path, r in self.rotations.items()},
            "log_uploaded": self.log_uploaded,
            "notified": self.notified,
            "errors": self.errors,
            "error_log": self.error_log,
            "error_count": self.error_count,
        }


class BackupSyncJob:
    """
    Sequential sync and retention job.

    Collaborators default to instances built from the config and can be
    replaced for testing.
    """

    def __init__(
        self,
        config: SyncConfig,
        vpn: VpnTunnel | None = None,
        share: SmbShare | None = None,
        notifier: Notifier | None = None,
        dry_run: bool = False,
    ):
        self.config = config
        self.vpn = vpn or VpnTunnel(
            str(config.vpn_config),
            config.route,
            config.gateway,
            retry_interval=config.retry_interval,
            max_retries=config.max_retries,
        )
        self.share = share or SmbShare(config.smb_server, config.smb_share, config.smb_credentials_file)
        self.notifier = notifier or Notifier(config.mail_from, config.mail_to, config.log_file)
        self.dry_run = dry_run

    def _error(self, report: SyncReport, message: str) -> None:
        logger.error(message)
        report.errors.append(message)
        report.error_log.append(message)

    def run(self, today: date | None = None) -> SyncReport:
        """
        Run the job.

        Args:
            today: Reference date for retention (defaults to today)

        Returns:
            SyncReport describing every step
        """
        today = today or date.today()
        report = SyncReport()

        try:
            report.interface = self.vpn.connect()
        except VpnError as e:
            logger.error(str(e))
            logger.error("Exiting script due to VPN connection failure.")
            self.vpn.disconnect()
            logger.info(SEPARATOR)
            report.notified = self.notifier.send(
                "backup synchronization: Exiting script due to VPN connection failure.",
                error_log=str(e),
            )
            return report

        report.vpn_connected = True
        try:
            report.route_added = self.vpn.add_route(report.interface)
            logger.info("Start backup synchronization & retention process.")
            self._verify_local_files(report)
        finally:
            if not self.vpn.disconnect():
                self._error(report, "Error disconnecting VPN.")

        self._upload_backups(report)

        for remote_path in self.config.remote_paths:
            result = rotate_remote_directory(
                self.share, remote_path, today, self.config.policy, dry_run=self.dry_run
            )
            report.rotations[remote_path] = result
            if not result.success:
                report.errors.extend(result.errors)
                report.error_log.extend(result.errors)
                # summary line for the mail, not counted as an error
                logger.error(f"Error rotating files in {remote_path}")
                report.error_log.append(f"Error rotating files in {remote_path}")

        self._upload_log(report)

        if report.errors:
            logger.info(f"backup synchronization and retention process completed - {report.error_count} error(s).")
            error_log = "\n".join(report.error_log)
        else:
            logger.info("backup synchronization and retention process completed without error.")
            error_log = "Process completed without error."

        report.notified = self.notifier.send(
            f"backup synchronization and retention process completed - {report.error_count} error(s).",
            body=(
                "Backup file rotation and deletion is complete. "
                f"Check the log in {self.config.log_file} for details."
            ),
            error_log=error_log,
        )

        if report.errors:
            logger.warning("Error(s) occurred during the execution. Please check the log file for details.")
        logger.info(SEPARATOR)
        return report

    def _verify_local_files(self, report: SyncReport) -> None:
        for target in self.config.targets:
            name = target.local_file.name
            if target.local_file.is_file():
                logger.info(f"Backup {name} downloaded OK.")
                report.verified.append(name)
            else:
                self._error(report, f"Error downloading file: {name}")

    def _upload_backups(self, report: SyncReport) -> None:
        for target in self.config.targets:
            if target.local_file.name not in report.verified:
                continue
            try:
                self.share.put(target.local_file, target.remote_path)
            except CommandError as e:
                self._error(report, f"Error uploading file: {target.local_file.name}: {e}")
                continue

            logger.info(f"Backup {target.local_file.name} uploaded OK.")
            report.uploaded.append(target.local_file.name)
            try:
                target.local_file.unlink()
            except OSError as e:
                self._error(report, f"Error removing local file: {target.local_file}: {e}")

    def _upload_log(self, report: SyncReport) -> None:
        if not self.config.log_file.is_file():
            logger.warning(f"Log file not found, not uploaded: {self.config.log_file}")
            return
        try:
            self.share.put(self.config.log_file, self.config.log_remote_path)
            report.log_uploaded = True
        except CommandError as e:
            self._error(report, f"Error uploading log file: {e}")
