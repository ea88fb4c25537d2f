"""
Subprocess helper for the external tools backupsync drives.
"""

from __future__ import annotations

import subprocess

from loguru import logger

DEFAULT_TIMEOUT = 300


class CommandError(RuntimeError):
    """An external command could not be run or exited with an error."""

    def __init__(self, args: list[str], message: str, returncode: int | None = None, stderr: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"{args[0]}: {message}")


def run_command(
    args: list[str],
    *,
    input_text: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """
    Run an external command and capture its text output.

    Args:
        args: Command and arguments
        input_text: Text fed to the command's stdin
        timeout: Seconds before the command is abandoned
        check: Raise CommandError on a non-zero exit status

    Returns:
        The completed process

    Raises:
        CommandError: If the executable is missing, times out, or (with
            check=True) exits non-zero
    """
    logger.debug(f"Running: {' '.join(args)}")
    try:
        result = subprocess.run(
            args,
            input=input_text,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        raise CommandError(args, "command not found")
    except subprocess.TimeoutExpired:
        raise CommandError(args, f"timed out after {timeout}s")

    if check and result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise CommandError(
            args,
            f"exited with status {result.returncode}: {stderr}",
            returncode=result.returncode,
            stderr=stderr,
        )
    return result
