"""
Retention policy for dated backup files.

Implements a grandfather-father-son rotation over filenames that embed a
YYYYMMDD date: recent files are always kept, first-of-month files are kept
for a number of months, first-of-January files for a number of years, and
everything else past the short window is eligible for deletion.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum

from loguru import logger

DATE_PATTERN = re.compile(r"\d{8}")

DEFAULT_RETENTION_WEEKS = 13
DEFAULT_RETENTION_MONTHS = 12
DEFAULT_RETENTION_YEARS = 5


class RetentionDecision(Enum):
    """Outcome of evaluating a single backup file."""

    RETAIN_RECENT = "retain_recent"  # Younger than the short window
    RETAIN_MONTHLY = "retain_monthly"  # First-of-month snapshot inside the monthly window
    RETAIN_YEARLY = "retain_yearly"  # First-of-January snapshot inside the yearly window
    DELETE = "delete"
    INDETERMINATE = "indeterminate"  # No valid date in the filename, retained


@dataclass(frozen=True)
class RetentionPolicy:
    """
    Retention windows for backup files.

    Attributes:
        short_retention_days: Files younger than this are always kept
        monthly_retention_months: First-of-month files are kept this many months back
        yearly_retention_years: First-of-January files are kept this many years back
    """

    short_retention_days: int = DEFAULT_RETENTION_WEEKS * 7
    monthly_retention_months: int = DEFAULT_RETENTION_MONTHS
    yearly_retention_years: int = DEFAULT_RETENTION_YEARS

    def __post_init__(self):
        for name in ("short_retention_days", "monthly_retention_months", "yearly_retention_years"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")

    @classmethod
    def from_weeks(
        cls,
        weeks: int = DEFAULT_RETENTION_WEEKS,
        months: int = DEFAULT_RETENTION_MONTHS,
        years: int = DEFAULT_RETENTION_YEARS,
    ) -> RetentionPolicy:
        """Build a policy whose short window is given in weeks."""
        return cls(
            short_retention_days=weeks * 7,
            monthly_retention_months=months,
            yearly_retention_years=years,
        )


DEFAULT_POLICY = RetentionPolicy()


@dataclass(frozen=True)
class RetentionVerdict:
    """Decision for one filename, with the facts it was based on."""

    filename: str
    decision: RetentionDecision
    file_date: date | None = None
    age_days: int | None = None

    @property
    def should_delete(self) -> bool:
        return self.decision is RetentionDecision.DELETE

    @property
    def indeterminate(self) -> bool:
        return self.decision is RetentionDecision.INDETERMINATE


def extract_file_date(filename: str) -> date | None:
    """
    Read the embedded YYYYMMDD date from a filename.

    Args:
        filename: Name to search; the first run of 8 digits is used

    Returns:
        The parsed date, or None if there is no 8-digit run or it is not a
        valid calendar date
    """
    match = DATE_PATTERN.search(filename)
    if match is None:
        return None

    digits = match.group(0)
    try:
        return date(int(digits[:4]), int(digits[4:6]), int(digits[6:]))
    except ValueError:
        return None


def months_between(earlier: date, later: date) -> int:
    """Number of calendar months from earlier's month to later's month."""
    return (later.year * 12 + later.month) - (earlier.year * 12 + earlier.month)


def evaluate(
    filename: str,
    today: date | None = None,
    policy: RetentionPolicy = DEFAULT_POLICY,
) -> RetentionVerdict:
    """
    Decide whether a backup file is kept or eligible for deletion.

    Rules are applied in order; the first one that retains the file wins:

    1. No valid date in the filename: retained as INDETERMINATE
    2. Younger than short_retention_days: RETAIN_RECENT
    3. 1st of a month at most monthly_retention_months months back: RETAIN_MONTHLY
    4. January 1st at most yearly_retention_years years back: RETAIN_YEARLY
    5. Otherwise: DELETE

    Args:
        filename: Backup filename containing a YYYYMMDD date
        today: Reference date (defaults to today)
        policy: Retention windows to apply

    Returns:
        RetentionVerdict for the file
    """
    today = today or date.today()

    file_date = extract_file_date(filename)
    if file_date is None:
        logger.warning(f"Skipping file with no valid date: {filename}")
        return RetentionVerdict(filename, RetentionDecision.INDETERMINATE)

    age_days = (today - file_date).days
    if age_days < policy.short_retention_days:
        decision = RetentionDecision.RETAIN_RECENT
    elif file_date.day == 1 and months_between(file_date, today) <= policy.monthly_retention_months:
        decision = RetentionDecision.RETAIN_MONTHLY
    elif (
        file_date.month == 1
        and file_date.day == 1
        and file_date.year >= today.year - policy.yearly_retention_years
    ):
        decision = RetentionDecision.RETAIN_YEARLY
    else:
        decision = RetentionDecision.DELETE

    logger.debug(f"{filename}: {decision.value} (dated {file_date}, {age_days} days old)")
    return RetentionVerdict(filename, decision, file_date, age_days)


def should_delete(
    filename: str,
    today: date | None = None,
    policy: RetentionPolicy = DEFAULT_POLICY,
) -> bool:
    """Return True if the file is eligible for deletion under the policy."""
    return evaluate(filename, today, policy).should_delete
