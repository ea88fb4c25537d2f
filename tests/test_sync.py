"""
Tests for the backup sync job.

Tests cover:
- VPN failure short-circuits the job and notifies
- Upload of verified local backups and removal of local copies
- Rotation of every remote directory with error aggregation
- Log upload and summary notification
"""

import subprocess
from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from backupsync.notify import Notifier
from backupsync.retention.policy import RetentionPolicy
from backupsync.sync import BackupSyncJob, SyncReport
from backupsync.transport.command import CommandError
from backupsync.transport.smb import SmbShare
from backupsync.transport.vpn import VpnError, VpnTunnel
from backupsync.utils.config import BackupTarget, SyncConfig

TODAY = date(2024, 8, 5)


@pytest.fixture
def sync_env(tmp_path):
    """Config with two local backups, plus doubles for VPN, share and mail."""
    backup1 = tmp_path / "backup1_20240805.gpg"
    backup2 = tmp_path / "backup2_20240805.gpg"
    backup1.write_bytes(b"one")
    backup2.write_bytes(b"two")
    log_file = tmp_path / "backups.log"
    log_file.write_text("")

    config = SyncConfig(
        targets=[BackupTarget(backup1, "/backups1"), BackupTarget(backup2, "/backups2")],
        log_file=log_file,
        policy=RetentionPolicy(),
    )

    vpn = MagicMock(spec=VpnTunnel)
    vpn.connect.return_value = "tun0"
    vpn.add_route.return_value = True
    vpn.disconnect.return_value = True

    share = MagicMock(spec=SmbShare)
    share.service = "//192.168.1.1/share"
    share.list_files.side_effect = lambda path: {
        "/backups1": ["backup1_20240805.gpg", "backup1_20100315.gpg"],
        "/backups2": ["backup2_20240805.gpg", "backup2_20240101.gpg"],
    }[path]

    notifier = MagicMock(spec=Notifier)
    notifier.send.return_value = True

    job = BackupSyncJob(config, vpn=vpn, share=share, notifier=notifier)
    return {
        "job": job,
        "config": config,
        "vpn": vpn,
        "share": share,
        "notifier": notifier,
        "backups": [backup1, backup2],
        "log_file": log_file,
    }


class TestSyncReport:
    """Tests for SyncReport dataclass."""

    def test_defaults(self):
        report = SyncReport()

        assert report.error_count == 0
        assert report.exit_code == 1  # VPN never connected

    def test_exit_code_ignores_step_errors(self):
        report = SyncReport(vpn_connected=True, errors=["Error uploading file: x"])

        assert report.error_count == 1
        assert report.exit_code == 0

    def test_to_dict(self):
        data = SyncReport(vpn_connected=True).to_dict()

        assert data["vpn_connected"] is True
        assert data["rotations"] == {}
        assert data["error_count"] == 0


class TestBackupSyncJob:
    """Tests for BackupSyncJob.run()."""

    def test_successful_run(self, sync_env):
        report = sync_env["job"].run(TODAY)

        assert report.vpn_connected is True
        assert report.interface == "tun0"
        assert report.route_added is True
        assert report.uploaded == ["backup1_20240805.gpg", "backup2_20240805.gpg"]
        assert report.log_uploaded is True
        assert report.notified is True
        assert report.errors == []
        assert report.exit_code == 0

    def test_steps_in_order(self, sync_env):
        manager = MagicMock()
        manager.attach_mock(sync_env["vpn"], "vpn")
        manager.attach_mock(sync_env["share"], "share")

        sync_env["job"].run(TODAY)

        names = [c[0] for c in manager.mock_calls]
        assert names.index("vpn.connect") < names.index("vpn.add_route") < names.index("vpn.disconnect")
        assert names.index("vpn.disconnect") < names.index("share.put")
        assert names.index("share.put") < names.index("share.list_files")

    def test_local_copies_removed_after_upload(self, sync_env):
        sync_env["job"].run(TODAY)

        for backup in sync_env["backups"]:
            assert not backup.exists()

    def test_uploads_to_target_directories(self, sync_env):
        sync_env["job"].run(TODAY)

        puts = [(c.args[0], c.args[1]) for c in sync_env["share"].put.call_args_list]
        assert puts == [
            (sync_env["backups"][0], "/backups1"),
            (sync_env["backups"][1], "/backups2"),
            (sync_env["log_file"], "/backups"),
        ]

    def test_rotates_each_remote_directory(self, sync_env):
        report = sync_env["job"].run(TODAY)

        sync_env["share"].delete.assert_called_once_with("backup1_20100315.gpg", "/backups1")
        assert set(report.rotations) == {"/backups1", "/backups2"}
        assert report.rotations["/backups2"].deleted == []

    def test_summary_notification(self, sync_env):
        sync_env["job"].run(TODAY)

        subject = sync_env["notifier"].send.call_args.args[0]
        kwargs = sync_env["notifier"].send.call_args.kwargs
        assert subject == "backup synchronization and retention process completed - 0 error(s)."
        assert kwargs["error_log"] == "Process completed without error."

    def test_vpn_failure_stops_job(self, sync_env):
        sync_env["vpn"].connect.side_effect = VpnError("Failed to establish VPN connection after 5 attempts.")

        report = sync_env["job"].run(TODAY)

        assert report.vpn_connected is False
        assert report.exit_code == 1
        sync_env["share"].put.assert_not_called()
        sync_env["share"].list_files.assert_not_called()
        subject = sync_env["notifier"].send.call_args.args[0]
        assert "VPN connection failure" in subject
        sync_env["vpn"].disconnect.assert_called_once()
        for backup in sync_env["backups"]:
            assert backup.exists()

    def test_missing_local_backup(self, sync_env):
        sync_env["backups"][1].unlink()

        report = sync_env["job"].run(TODAY)

        assert report.verified == ["backup1_20240805.gpg"]
        assert report.uploaded == ["backup1_20240805.gpg"]
        assert report.errors == ["Error downloading file: backup2_20240805.gpg"]

    def test_upload_failure_keeps_local_copy(self, sync_env):
        sync_env["share"].put.side_effect = [CommandError(["smbclient"], "exited with status 1"), None, None]

        report = sync_env["job"].run(TODAY)

        assert sync_env["backups"][0].exists()
        assert not sync_env["backups"][1].exists()
        assert report.uploaded == ["backup2_20240805.gpg"]
        assert any("Error uploading file: backup1_20240805.gpg" in e for e in report.errors)

    def test_rotation_errors_are_counted(self, sync_env):
        sync_env["share"].delete.side_effect = CommandError(["smbclient"], "exited with status 1")

        report = sync_env["job"].run(TODAY)

        assert report.error_count == 1
        assert "Error rotating files in /backups1" not in report.errors
        assert report.error_log[-1] == "Error rotating files in /backups1"
        subject = sync_env["notifier"].send.call_args.args[0]
        assert subject.endswith("- 1 error(s).")
        error_log = sync_env["notifier"].send.call_args.kwargs["error_log"]
        assert error_log.splitlines()[-1] == "Error rotating files in /backups1"
        assert report.exit_code == 0

    def test_disconnect_failure_is_recorded(self, sync_env):
        sync_env["vpn"].disconnect.return_value = False

        report = sync_env["job"].run(TODAY)

        assert report.errors == ["Error disconnecting VPN."]

    def test_dry_run_does_not_delete(self, sync_env):
        job = BackupSyncJob(
            sync_env["config"],
            vpn=sync_env["vpn"],
            share=sync_env["share"],
            notifier=sync_env["notifier"],
            dry_run=True,
        )

        report = job.run(TODAY)

        sync_env["share"].delete.assert_not_called()
        assert report.rotations["/backups1"].deleted == ["backup1_20100315.gpg"]

    def test_disconnects_when_a_step_raises(self, sync_env):
        sync_env["vpn"].add_route.side_effect = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            sync_env["job"].run(TODAY)

        sync_env["vpn"].disconnect.assert_called_once()


class TestSyncWithRealTunnel:
    """Sync runs against a real VpnTunnel with the system tools faked."""

    @staticmethod
    def _system(state):
        def fake_run(args, **kwargs):
            state["calls"].append(args)
            if args[:3] == ["ip", "route", "show"]:
                raise subprocess.TimeoutExpired(args, kwargs.get("timeout"))
            if args[:3] == ["ip", "-o", "link"]:
                links = "" if state["killed"] else "7: tun0: <POINTOPOINT,UP,LOWER_UP> mtu 1500\n"
                return subprocess.CompletedProcess(args, 0, stdout=links, stderr="")
            if args[0] == "pkill":
                state["killed"] = True
            return subprocess.CompletedProcess(args, 0, stdout="", stderr="")

        return fake_run

    def test_route_listing_timeout_keeps_job_running(self, sync_env):
        state = {"calls": [], "killed": False}
        tunnel = VpnTunnel("config.ovpn", "192.168.1.0/24", "10.8.0.1", max_retries=2, sleep=lambda s: None)
        job = BackupSyncJob(
            sync_env["config"], vpn=tunnel, share=sync_env["share"], notifier=sync_env["notifier"]
        )

        with patch("subprocess.run", side_effect=self._system(state)):
            report = job.run(TODAY)

        assert report.vpn_connected is True
        assert report.route_added is True
        assert ["pkill", "openvpn"] in state["calls"]
        assert report.uploaded == ["backup1_20240805.gpg", "backup2_20240805.gpg"]
        assert report.notified is True
        assert sync_env["notifier"].send.called
