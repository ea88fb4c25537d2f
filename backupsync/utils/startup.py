"""Startup validation for the sync job.

Provides fail-fast checks that the files and tools the job needs are present.
"""

from __future__ import annotations

import os
import shutil

from loguru import logger

from backupsync.utils.config import SyncConfig

REQUIRED_TOOLS = ("openvpn", "ip", "smbclient", "msmtp", "pkill")


def validate_startup(config: SyncConfig) -> list[str]:
    """
    Check sync prerequisites.

    Args:
        config: Sync configuration to validate

    Returns:
        List of error messages. Empty if all valid.
    """
    errors = []

    if not config.smb_credentials_file.is_file():
        errors.append(f"SMB credentials file not found: {config.smb_credentials_file}")
    elif not os.access(config.smb_credentials_file, os.R_OK):
        errors.append(f"SMB credentials file not readable: {config.smb_credentials_file}")

    if not config.vpn_config.is_file():
        errors.append(f"VPN configuration not found: {config.vpn_config}")

    for tool in REQUIRED_TOOLS:
        if shutil.which(tool) is None:
            errors.append(f"Required tool not on PATH: {tool}")

    if not config.targets:
        errors.append("No backup targets configured")

    return errors


def fail_fast_startup(config: SyncConfig) -> None:
    """
    Validate startup and raise if invalid.

    Raises:
        RuntimeError: If a prerequisite is missing.
    """
    errors = validate_startup(config)
    if errors:
        error_msg = "Startup validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        logger.error(error_msg)
        raise RuntimeError(error_msg)

    logger.debug("Startup validation passed")
