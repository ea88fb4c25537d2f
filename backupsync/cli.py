"""
Command line interface for backupsync.

Usage:
    backupsync --check backup1_20240101.gpg notes.gpg --today 2024-08-05
    backupsync --rotate /path/to/backups            # dry run
    backupsync --rotate /path/to/backups --execute
    backupsync --rotate-remote /backups1 --execute
    backupsync --sync
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from datetime import date

from loguru import logger

from backupsync.retention.policy import RetentionPolicy, evaluate
from backupsync.retention.rotation import RotationResult, rotate_local_directory, rotate_remote_directory
from backupsync.sync import BackupSyncJob
from backupsync.transport.smb import SmbShare
from backupsync.utils.config import get_config, load_targets
from backupsync.utils.logs import configure_logging
from backupsync.utils.startup import fail_fast_startup


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYY-MM-DD")


def create_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="backupsync",
        description="Backup synchronization and retention",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Check which files the policy would delete:
    backupsync --check backup1_20240101.gpg backup1_20231115.gpg

  Rotate a local directory (dry run):
    backupsync --rotate /backups

  Rotate a share directory:
    backupsync --rotate-remote /backups1 --execute

  Run the nightly job:
    backupsync --sync
""",
    )

    # Action flags
    parser.add_argument(
        "--check",
        nargs="+",
        metavar="NAME",
        help="Print the retention decision for each filename",
    )
    parser.add_argument(
        "--rotate",
        metavar="DIR",
        help="Rotate files in a local directory",
    )
    parser.add_argument(
        "--rotate-remote",
        metavar="PATH",
        help="Rotate files in a directory of the configured SMB share",
    )
    parser.add_argument(
        "--sync",
        action="store_true",
        help="Run the full VPN, upload, rotation and notification job",
    )

    # Options
    parser.add_argument(
        "--today",
        type=_parse_date,
        help="Reference date as YYYY-MM-DD (default: today)",
    )
    parser.add_argument(
        "--short-days",
        type=int,
        help="Days every backup is kept (default: from config, 91)",
    )
    parser.add_argument(
        "--monthly-months",
        type=int,
        help="Months first-of-month backups are kept (default: from config, 12)",
    )
    parser.add_argument(
        "--yearly-years",
        type=int,
        help="Years first-of-January backups are kept (default: from config, 5)",
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="Actually delete files when rotating. Default is dry run.",
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress output except errors",
    )
    return parser


def _policy_from_args(args: argparse.Namespace, base: RetentionPolicy) -> RetentionPolicy:
    return RetentionPolicy(
        short_retention_days=base.short_retention_days if args.short_days is None else args.short_days,
        monthly_retention_months=(
            base.monthly_retention_months if args.monthly_months is None else args.monthly_months
        ),
        yearly_retention_years=base.yearly_retention_years if args.yearly_years is None else args.yearly_years,
    )


def _print_rotation(result: RotationResult) -> None:
    print(f"Scanned {result.scanned} files in {result.location}")
    label = "Would delete" if result.dry_run else "Deleted"
    print(f"{label}: {len(result.deleted)}")
    for name in result.deleted:
        print(f"  - {name}")
    if result.indeterminate:
        print(f"Kept without a valid date: {len(result.indeterminate)}")
    for error in result.errors:
        print(f"Error: {error}", file=sys.stderr)
    if result.dry_run:
        print("No files were deleted. Use the --execute flag to perform deletion.")


def main(argv: list[str] | None = None) -> int:
    """
    CLI entry point.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = create_arg_parser()
    args = parser.parse_args(argv)

    try:
        config = get_config()
        configure_logging(config.log_file if args.sync else None, quiet=args.quiet)
        policy = _policy_from_args(args, config.policy)

        if args.check:
            for name in args.check:
                verdict = evaluate(name, args.today, policy)
                print(f"{verdict.decision.value:<15} {name}")
            return 0

        elif args.rotate:
            result = rotate_local_directory(args.rotate, args.today, policy, dry_run=not args.execute)
            _print_rotation(result)
            return 0 if result.success else 1

        elif args.rotate_remote:
            share = SmbShare(config.smb_server, config.smb_share, config.smb_credentials_file)
            result = rotate_remote_directory(
                share, args.rotate_remote, args.today, policy, dry_run=not args.execute
            )
            _print_rotation(result)
            return 0 if result.success else 1

        elif args.sync:
            if args.today:
                config = replace(config, targets=load_targets(args.today))
            fail_fast_startup(config)
            report = BackupSyncJob(replace(config, policy=policy)).run(args.today)
            print(f"Sync completed with {report.error_count} error(s)")
            return report.exit_code

        else:
            parser.print_help()
            return 0

    except Exception as e:
        logger.error(f"backupsync failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
