"""
Configuration for backupsync.

Values come from BACKUPSYNC_* environment variables and fall back to the
defaults of the original deployment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from loguru import logger

from backupsync.retention.policy import (
    DEFAULT_RETENTION_MONTHS,
    DEFAULT_RETENTION_WEEKS,
    DEFAULT_RETENTION_YEARS,
    RetentionPolicy,
)

ENV_PREFIX = "BACKUPSYNC_"


@dataclass(frozen=True)
class BackupTarget:
    """A local backup file and the share directory it is shipped to."""

    local_file: Path
    remote_path: str


def _env(name: str, default: str) -> str:
    return os.getenv(ENV_PREFIX + name, default)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {ENV_PREFIX}{name}: {raw!r}, using {default}")
        return default


def default_targets(today: date | None = None) -> list[BackupTarget]:
    """Nightly backup files named after today's date."""
    stamp = (today or date.today()).strftime("%Y%m%d")
    return [
        BackupTarget(Path(f"/backup1_{stamp}.gpg"), "/backups1"),
        BackupTarget(Path(f"/backup2_{stamp}.gpg"), "/backups2"),
    ]


def _parse_targets(raw: str, today: date | None = None) -> list[BackupTarget]:
    """
    Parse "local:remote" pairs separated by commas.

    A {date} placeholder in the local file is replaced with the YYYYMMDD of
    today (or the given reference date).
    """
    stamp = (today or date.today()).strftime("%Y%m%d")
    targets = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        local, sep, remote = item.rpartition(":")
        if not sep or not local or not remote:
            raise ValueError(f"Invalid backup target {item!r}, expected LOCAL_FILE:REMOTE_PATH")
        targets.append(BackupTarget(Path(local.replace("{date}", stamp)), remote))
    return targets


def load_targets(today: date | None = None) -> list[BackupTarget]:
    """Backup targets from BACKUPSYNC_TARGETS, stamped with the reference date."""
    raw = _env("TARGETS", "")
    return _parse_targets(raw, today) if raw.strip() else default_targets(today)


@dataclass
class SyncConfig:
    """
    Settings for the sync job.

    Attributes:
        smb_server: SMB server host
        smb_share: Share name on the server
        smb_credentials_file: smbclient authentication file
        targets: Local backup files and their remote directories
        log_file: Job log, also uploaded to log_remote_path
        log_remote_path: Share directory receiving the log file
        vpn_config: OpenVPN configuration file
        route: Network routed through the tunnel
        gateway: Gateway for the route
        retry_interval: Seconds between VPN checks
        max_retries: VPN checks before giving up
        mail_from: Notification sender
        mail_to: Notification recipient
        policy: Retention windows applied to the remote directories
    """

    smb_server: str = "192.168.1.1"
    smb_share: str = "share"
    smb_credentials_file: Path = Path("/run/secrets/.auth_smb_secret")
    targets: list[BackupTarget] = field(default_factory=default_targets)
    log_file: Path = Path("/backups.log")
    log_remote_path: str = "/backups"
    vpn_config: Path = Path("config.ovpn")
    route: str = "192.168.1.0/24"
    gateway: str = "10.8.0.1"
    retry_interval: int = 5
    max_retries: int = 5
    mail_from: str = "notif@mail.com"
    mail_to: str = "user@mail.com"
    policy: RetentionPolicy = field(default_factory=RetentionPolicy)

    @property
    def remote_paths(self) -> list[str]:
        """Remote directories to rotate, in target order without duplicates."""
        return list(dict.fromkeys(t.remote_path for t in self.targets))

    @classmethod
    def from_env(cls, today: date | None = None) -> SyncConfig:
        """Build a config from BACKUPSYNC_* environment variables."""
        return cls(
            smb_server=_env("SMB_SERVER", cls.smb_server),
            smb_share=_env("SMB_SHARE", cls.smb_share),
            smb_credentials_file=Path(_env("SMB_CREDENTIALS_FILE", str(cls.smb_credentials_file))),
            targets=load_targets(today),
            log_file=Path(_env("LOG_FILE", str(cls.log_file))),
            log_remote_path=_env("LOG_REMOTE_PATH", cls.log_remote_path),
            vpn_config=Path(_env("VPN_CONFIG", str(cls.vpn_config))),
            route=_env("ROUTE", cls.route),
            gateway=_env("GATEWAY", cls.gateway),
            retry_interval=_env_int("RETRY_INTERVAL", cls.retry_interval),
            max_retries=_env_int("MAX_RETRIES", cls.max_retries),
            mail_from=_env("MAIL_FROM", cls.mail_from),
            mail_to=_env("MAIL_TO", cls.mail_to),
            policy=RetentionPolicy.from_weeks(
                weeks=_env_int("RETENTION_WEEKS", DEFAULT_RETENTION_WEEKS),
                months=_env_int("RETENTION_MONTHS", DEFAULT_RETENTION_MONTHS),
                years=_env_int("RETENTION_YEARS", DEFAULT_RETENTION_YEARS),
            ),
        )


_config: SyncConfig | None = None


def get_config() -> SyncConfig:
    """Get the process-wide config, reading the environment on first use."""
    global _config
    if _config is None:
        _config = SyncConfig.from_env()
    return _config


def reset_config() -> None:
    """Forget the cached config (used by tests)."""
    global _config
    _config = None
