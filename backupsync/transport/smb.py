"""
SMB share access through the smbclient command line tool.
"""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath

from loguru import logger

from backupsync.transport.command import run_command

# "  name   A   1234  Mon Jan  1 10:00:00 2024"
LISTING_LINE = re.compile(
    r"^\s{2}(?P<name>.+?)\s+(?P<attrs>[A-Za-z]*)\s+(?P<size>\d+)\s+"
    r"\w{3}\s+\w{3}\s+\d+\s+[\d:]+\s+\d{4}\s*$"
)


def _quote(value: str) -> str:
    return '"' + value.replace('"', '\\"') + '"'


class SmbShare:
    """
    A share on an SMB server, addressed as //server/share.

    Every operation is one smbclient invocation authenticated with an
    authentication file (smbclient -A).
    """

    def __init__(self, server: str, share: str, credentials_file: str | Path, timeout: float = 300):
        self.server = server
        self.share = share
        self.credentials_file = str(credentials_file)
        self.timeout = timeout

    @property
    def service(self) -> str:
        return f"//{self.server}/{self.share}"

    def _run(self, command: str, directory: str | None = None):
        args = ["smbclient", self.service, "-A", self.credentials_file]
        if directory:
            args += ["-D", directory]
        args += ["-c", command]
        return run_command(args, timeout=self.timeout)

    def put(self, local_file: str | Path, remote_path: str) -> str:
        """
        Upload a local file into a remote directory.

        Returns:
            Remote path of the uploaded file
        """
        local_file = Path(local_file)
        remote_file = str(PurePosixPath(remote_path) / local_file.name)
        self._run(f"put {_quote(str(local_file))} {_quote(remote_file)}")
        logger.info(f"Uploaded {local_file.name} to {self.service}{remote_file}")
        return remote_file

    def list_files(self, remote_path: str) -> list[str]:
        """
        List regular files in a remote directory.

        Directories, the "." and ".." entries and the trailing summary line
        are skipped.
        """
        result = self._run("ls", directory=remote_path)
        return parse_listing(result.stdout)

    def delete(self, name: str, remote_path: str) -> None:
        """Delete a file from a remote directory."""
        self._run(f"del {_quote(name)}", directory=remote_path)
        logger.info(f"Deleted backup file (by applying defined retention policies): {remote_path}/{name}")


def parse_listing(output: str) -> list[str]:
    """Extract regular file names from smbclient "ls" output."""
    names = []
    for line in output.splitlines():
        match = LISTING_LINE.match(line)
        if not match:
            continue
        name = match.group("name")
        if name in (".", "..") or "D" in match.group("attrs"):
            continue
        names.append(name)
    return names
