"""
backupsync - Backup synchronization and retention

Ships nightly backup files to an SMB share over a VPN tunnel and prunes the
share with a grandfather-father-son retention policy.
"""

try:
    from importlib.metadata import version

    __version__ = version("backupsync")
except Exception:
    __version__ = "0.0.0"  # Fallback for development
