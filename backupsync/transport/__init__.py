"""
Wrappers around the system tools used to move backups: smbclient for the
share, openvpn and ip for the tunnel.
"""

from backupsync.transport.command import CommandError, run_command
from backupsync.transport.smb import SmbShare
from backupsync.transport.vpn import VpnError, VpnTunnel

__all__ = [
    "CommandError",
    "run_command",
    "SmbShare",
    "VpnError",
    "VpnTunnel",
]
