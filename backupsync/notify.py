"""
Email notifications sent through msmtp.

The job summary carries the accumulated error log and the tail of the job
log file.
"""

from __future__ import annotations

from email.message import EmailMessage
from pathlib import Path

from loguru import logger

from backupsync.transport.command import CommandError, run_command
from backupsync.utils.logs import tail_lines

LOG_TAIL_LINES = 10


def build_message(
    subject: str,
    body: str,
    error_log: str,
    log_tail: list[str],
    sender: str,
    recipient: str,
) -> EmailMessage:
    """Compose the notification email."""
    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = sender
    message["To"] = recipient
    message.set_content(
        f"{body}\n"
        f"\n--- Error Log ---\n\n"
        f"{error_log}\n"
        f"\n--- Log (last {LOG_TAIL_LINES} lines) ---\n\n"
        + "\n".join(log_tail)
        + "\n"
    )
    return message


class Notifier:
    """Sends job notifications from one address to another through msmtp."""

    def __init__(self, sender: str, recipient: str, log_file: str | Path | None = None):
        self.sender = sender
        self.recipient = recipient
        self.log_file = log_file

    def send(self, subject: str, body: str = "", error_log: str = "") -> bool:
        """
        Send a notification.

        Failures are logged and reported through the return value, never
        raised, so a mail problem cannot hide the job outcome.

        Returns:
            True if msmtp accepted the message
        """
        if error_log:
            logger.info(error_log)
        log_tail = tail_lines(self.log_file, LOG_TAIL_LINES) if self.log_file else []
        message = build_message(subject, body, error_log, log_tail, self.sender, self.recipient)

        try:
            run_command(
                ["msmtp", f"--from={self.sender}", "-t"],
                input_text=message.as_string(),
                timeout=60,
            )
        except CommandError as e:
            logger.error(f"Failed to send notification email: {e}")
            return False

        logger.info(f"Notification sent to {self.recipient}: {subject}")
        return True
