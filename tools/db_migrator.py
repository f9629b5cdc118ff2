#!/usr/bin/env python3
"""
Oracle -> SQL Server Migrator CLI

Copies every table of the source schema to the target: drop + create
(primary keys kept, foreign keys dropped), then batched data copy. One
failing table does not stop the others.

Usage:
    ora2mssql --source "User Id=scott;Password=tiger;Data Source=db:1521/ORCLPDB1" \\
              --target "Server=sql,1433;Database=warehouse;User Id=sa;Password=..." \\
              --batch-size 1000 --workers 4 --report-json report.json

Connection strings fall back to ORACLE_CONNECTION_STRING /
MSSQL_CONNECTION_STRING (environment or .env), then to an interactive prompt.
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from config.secure_config import ConfigManager, MigratorConfig
from core.database_manager import DatabaseManager, sanitize_error
from core.errors import MigrationError
from core.migration import MigrationRunner, MigrationReport, TableState

logger = logging.getLogger(__name__)


def _split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Oracle to SQL Server schema and data migrator")
    parser.add_argument("--source", help="Source connection string (Oracle ADO.NET style or URL)")
    parser.add_argument("--target", help="Target connection string (SQL Server ADO.NET style or URL)")
    parser.add_argument("--batch-size", type=int, help="Rows per insert transaction (default 1000)")
    parser.add_argument("--workers", type=int, help="Tables migrated in parallel (default 1)")
    parser.add_argument("--tables", help="Comma-separated tables to migrate (default: all)")
    parser.add_argument("--exclude", help="Comma-separated glob patterns of tables to skip")
    parser.add_argument("--dry-run", action="store_true", help="Read schemas and print DDL without touching the target")
    parser.add_argument("--report-json", help="Write the migration report as JSON to this path")
    parser.add_argument("--log-file", help="Also write the log to this file")
    parser.add_argument("--log-level", choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], help="Logging level")
    return parser


def configure_logging(level: str, log_file: Optional[str] = None):
    logging.basicConfig(level=getattr(logging, level, logging.INFO),
                        format='%(asctime)s - %(levelname)s - %(message)s')
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
        logging.getLogger().addHandler(file_handler)


def prompt_connection(label: str) -> Optional[str]:
    """Ask for a connection string when running in a terminal"""
    if not sys.stdin.isatty():
        return None
    value = input(f"Enter {label} connection string: ").strip()
    return value or None


def apply_arguments(config: MigratorConfig, args: argparse.Namespace) -> MigratorConfig:
    """Command-line values override environment values"""
    if args.source:
        config.source_connection = args.source
    if args.target:
        config.target_connection = args.target
    if args.batch_size is not None:
        config.batch_size = args.batch_size
    if args.workers is not None:
        config.max_workers = args.workers
    if args.exclude:
        config.exclude = _split_list(args.exclude)
    if args.log_level:
        config.log_level = args.log_level

    if not config.source_connection:
        config.source_connection = prompt_connection("Oracle")
    if not config.target_connection:
        config.target_connection = prompt_connection("SQL Server")
    return config


def print_report(report: MigrationReport):
    """Print per-table results and totals"""
    print("\n" + "=" * 70)
    print("MIGRATION DRY RUN REPORT" if report.dry_run else "MIGRATION REPORT")
    print("=" * 70)
    print(f"Source: {report.source_dialect}  ->  Target: {report.target_dialect}")
    print("-" * 70)

    for result in report.tables:
        marker = "✗" if result.state == TableState.FAILED else "✓"
        print(f"  {marker} {result.name}")
        print(f"      State: {result.state.value}")
        if not report.dry_run:
            print(f"      Rows: {result.rows_copied:,}")
        if result.error:
            print(f"      Failed at: {result.failed_step or 'start'} - {result.error}")
        for warning in result.warnings:
            print(f"      ⚠️  {warning}")
        if report.dry_run:
            for sql in result.ddl:
                print("      " + sql.replace("\n", "\n      "))

    summary = report.summary()
    print("\n" + "-" * 70)
    print("SUMMARY:")
    print("-" * 70)
    print(f"  Tables attempted: {summary['attempted']}")
    print(f"  Succeeded: {summary['succeeded']}")
    print(f"  Failed: {summary['failed']}")
    print(f"  Total Rows: {summary['total_rows']:,}")
    if report.cancelled:
        print("  Run was cancelled")
    print("=" * 70 + "\n")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = apply_arguments(ConfigManager().config, args)
    configure_logging(config.log_level, args.log_file)

    try:
        config.validate()
        manager = DatabaseManager(source=config.source_connection, target=config.target_connection)
        runner = MigrationRunner.from_manager(
            manager,
            batch_size=config.batch_size,
            max_workers=config.max_workers,
            include=_split_list(args.tables) or None,
            exclude=config.exclude,
            dry_run=args.dry_run,
        )
    except MigrationError as e:
        logger.error(f"Cannot start migration: {sanitize_error(e.message)}")
        return 2

    previous_handler = None
    if threading.current_thread() is threading.main_thread():
        # First Ctrl+C stops between batches; in-flight batches finish or roll back
        previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: runner.cancel())

    try:
        report = runner.run()
    except MigrationError as e:
        logger.error(f"Migration failed: {sanitize_error(e.message)}")
        return 1
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    print_report(report)

    if args.report_json:
        Path(args.report_json).write_text(report.to_json())
        logger.info(f"Report written to {args.report_json}")

    return 0 if report.success else 1


if __name__ == "__main__":
    sys.exit(main())
