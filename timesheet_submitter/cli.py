"""
Command-line interface for the timesheet submitter.

This module provides the CLI using argparse: import entries from CSV into
the local store, submit pending entries to the web form, and inspect or
reset the store.
"""

import argparse
import getpass
import os
import sys
from typing import Dict, List, Optional

from playwright.async_api import Error as PlaywrightError
from sqlalchemy.exc import SQLAlchemyError

from .config import Config
from .csv_loader import CSVLoadError, load_csv
from .errors import SubmitterError
from .logging_utils import get_logger, log_error, log_section, log_success, log_warning, setup_logging
from .models import QuarterWindow
from .orchestrator import SubmissionOrchestrator, run_submission
from .quarters import DEFAULT_QUARTER_WINDOWS, QuarterConfigError, load_quarter_windows
from .store import TimesheetStore
from .time_utils import TimeParseError, format_minutes, normalize_date_to_iso

PASSWORD_ENV = 'TIMESHEET_PASSWORD'


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser.

    Returns:
        Configured ArgumentParser
    """
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        '--db',
        type=str,
        metavar='PATH',
        help='Path to the SQLite store (default: $TIMESHEET_DB or timesheet.sqlite3)'
    )
    common.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Enable verbose logging (debug level)'
    )

    parser = argparse.ArgumentParser(
        prog='timesheet-submitter',
        description='Submit timesheet entries to the quarterly web form',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import entries from CSV (duplicates are skipped)
  timesheet-submitter import --csv data/october.csv

  # Show which quarter form each pending entry would go to
  timesheet-submitter submit --dry-run

  # Submit pending entries, keep going after a failed entry
  timesheet-submitter submit --continue-on-failure

  # List pending entries
  timesheet-submitter pending

  # Find natural-key duplicates in a date range
  timesheet-submitter duplicates --from 2026-10-01 --to 2026-10-31
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    # Import command
    import_parser = subparsers.add_parser('import', parents=[common],
                                          help='Import entries from a CSV file')
    import_parser.add_argument(
        '--csv',
        type=str,
        required=True,
        metavar='PATH',
        help='Path to CSV file with timesheet entries'
    )

    # Submit command
    submit_parser = subparsers.add_parser('submit', parents=[common],
                                          help='Submit pending entries to the web form')
    submit_parser.add_argument(
        '--quarters',
        type=str,
        metavar='PATH',
        help='JSON file with the quarter window table'
    )
    submit_parser.add_argument(
        '--only',
        action='append',
        metavar='QUARTER_ID',
        help='Only submit entries of this quarter (repeatable)'
    )
    submit_parser.add_argument(
        '--email',
        type=str,
        help='Login email (default: $TIMESHEET_EMAIL)'
    )
    submit_parser.add_argument(
        '--headless',
        action='store_true',
        help='Run browser in headless mode (no GUI)'
    )
    submit_parser.add_argument(
        '--fill-only',
        action='store_true',
        help='Fill the form without clicking submit'
    )
    submit_parser.add_argument(
        '--continue-on-failure',
        action='store_true',
        help='Continue with the next entry when an entry fails'
    )
    submit_parser.add_argument(
        '--screenshots',
        type=str,
        metavar='DIR',
        help='Save a screenshot for every failed entry'
    )
    submit_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show the routing plan without opening a browser'
    )

    # Pending command
    subparsers.add_parser('pending', parents=[common], help='List entries awaiting submission')

    # Duplicates command
    dup_parser = subparsers.add_parser('duplicates', parents=[common],
                                       help='List natural-key duplicates')
    dup_parser.add_argument('--from', dest='start_date', metavar='DATE', help='First date (inclusive)')
    dup_parser.add_argument('--to', dest='end_date', metavar='DATE', help='Last date (inclusive)')

    # Reset command
    reset_parser = subparsers.add_parser('reset', parents=[common], help='Delete every stored entry')
    reset_parser.add_argument(
        '--yes',
        action='store_true',
        help='Confirm the reset'
    )

    return parser


def build_config(args: argparse.Namespace, environ: Optional[Dict[str, str]] = None) -> Config:
    """
    Build the configuration from the environment and parsed arguments.

    Arguments win over environment variables.
    """
    overrides = {'verbose': args.verbose}
    if args.db:
        overrides['db_path'] = args.db
    if getattr(args, 'quarters', None):
        overrides['quarters_path'] = args.quarters
    if getattr(args, 'email', None):
        overrides['email'] = args.email
    if getattr(args, 'headless', False):
        overrides['headless'] = True
    if getattr(args, 'fill_only', False):
        overrides['submit_after_filling'] = False
    if getattr(args, 'continue_on_failure', False):
        overrides['stop_on_row_failure'] = False
    if getattr(args, 'screenshots', None):
        overrides['screenshot_dir'] = args.screenshots
    if getattr(args, 'dry_run', False):
        overrides['dry_run'] = True

    return Config.from_env(environ, **overrides)


def _load_windows(config: Config) -> List[QuarterWindow]:
    if config.quarters_path:
        return load_quarter_windows(config.quarters_path)
    return DEFAULT_QUARTER_WINDOWS


def _credentials(config: Config) -> Dict[str, str]:
    email = config.email
    if not email:
        raise SubmitterError("Login email is required (--email or $TIMESHEET_EMAIL)")
    password = os.environ.get(PASSWORD_ENV)
    if password is None:
        password = getpass.getpass(f"Password for {email}: ")
    return {'email': email, 'password': password}


def cmd_import(args: argparse.Namespace, config: Config) -> int:
    """Import a CSV file into the store."""
    logger = get_logger()
    log_section("Importing CSV Data", logger)

    try:
        entries = load_csv(args.csv)
    except CSVLoadError as e:
        log_error(f"CSV loading failed: {e}", logger)
        return 1

    logger.info(f"Loaded {len(entries)} entr{'y' if len(entries) == 1 else 'ies'} from {args.csv}")

    with TimesheetStore(config.db_path) as store:
        result = store.insert_entries(entries)

    if not result.success:
        log_error(f"Import rolled back: {result.error_message}", logger)
        return 1

    log_success(f"Imported {result.inserted} entries ({result.duplicates} duplicate(s) skipped)", logger)
    return 0


def cmd_submit(args: argparse.Namespace, config: Config) -> int:
    """Submit pending entries."""
    logger = get_logger()

    try:
        windows = _load_windows(config)
    except QuarterConfigError as e:
        log_error(f"Quarter configuration error: {e}", logger)
        return 1

    with TimesheetStore(config.db_path) as store:
        if config.dry_run:
            entries = store.get_pending_entries()
            orchestrator = SubmissionOrchestrator(config, store, windows)
            plan = orchestrator.plan(entries, args.only)
            log_section("Dry Run", logger)
            for quarter_id, group in plan.items():
                logger.info(f"{quarter_id}: {len(group)} entries")
                for entry in group:
                    logger.info(
                        f"  {entry.id}. {entry.date} {format_minutes(entry.time_in)}-"
                        f"{format_minutes(entry.time_out)} {entry.project} ({entry.hours:.2f}h)"
                    )
            routed = sum(len(group) for group in orchestrator.plan(entries).values())
            if routed < len(entries):
                log_warning(f"{len(entries) - routed} entries fall outside every quarter window", logger)
            logger.info("No browser operations performed.")
            return 0

        credentials = _credentials(config)
        summary = run_submission(config, store, windows, credentials, quarter_ids=args.only)

    logger.info(summary.format_summary())
    if summary.all_succeeded:
        logger.info("Operation completed successfully")
        return 0
    logger.warning("Operation completed with errors")
    return 1


def cmd_pending(args: argparse.Namespace, config: Config) -> int:
    logger = get_logger()
    with TimesheetStore(config.db_path) as store:
        entries = store.get_pending_entries()
        counts = store.count_by_status()

    for entry in entries:
        note = f" [failed: {entry.last_error}]" if entry.last_error else ""
        logger.info(
            f"  {entry.id}. {entry.date} {format_minutes(entry.time_in)}-{format_minutes(entry.time_out)} "
            f"{entry.project} - {entry.task_description}{note}"
        )
    logger.info(
        f"{counts['pending']} pending, {counts['failed']} failed, {counts['submitted']} submitted"
    )
    return 0


def cmd_duplicates(args: argparse.Namespace, config: Config) -> int:
    logger = get_logger()
    try:
        start = normalize_date_to_iso(args.start_date) if args.start_date else None
        end = normalize_date_to_iso(args.end_date) if args.end_date else None
    except TimeParseError as e:
        log_error(str(e), logger)
        return 1

    with TimesheetStore(config.db_path) as store:
        groups = store.get_duplicate_entries(start, end)

    if not groups:
        log_success("No duplicates found", logger)
        return 0

    for group in groups:
        logger.info(
            f"  {group.date} {format_minutes(group.time_in)} {group.project} - "
            f"{group.task_description}: {group.count} rows (ids {', '.join(map(str, group.ids))})"
        )
    log_warning(f"{len(groups)} duplicate group(s) found", logger)
    return 1


def cmd_reset(args: argparse.Namespace, config: Config) -> int:
    logger = get_logger()
    if not args.yes:
        log_error("Refusing to reset without --yes", logger)
        return 1
    with TimesheetStore(config.db_path) as store:
        removed = store.reset()
    log_success(f"Removed {removed} entries", logger)
    return 0


COMMANDS = {
    'import': cmd_import,
    'submit': cmd_submit,
    'pending': cmd_pending,
    'duplicates': cmd_duplicates,
    'reset': cmd_reset,
}


def main(argv=None):
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv)

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=getattr(args, 'verbose', False))
    logger = get_logger()

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = build_config(args)
        config.validate()
    except ValueError as e:
        log_error(f"Configuration error: {e}", logger)
        return 1

    try:
        return COMMANDS[args.command](args, config)

    except KeyboardInterrupt:
        logger.info("")
        logger.warning("Operation cancelled by user")
        return 130  # Standard exit code for SIGINT

    except (SubmitterError, PlaywrightError, SQLAlchemyError) as e:
        logger.info("")
        log_error(f"Operation failed: {e}", logger)
        return 1


if __name__ == '__main__':
    sys.exit(main())
