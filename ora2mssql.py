#!/usr/bin/env python3
"""
ora2mssql - programmatic entry point

Usage:
    from ora2mssql import migrate

    report = migrate(
        "User Id=scott;Password=tiger;Data Source=db:1521/ORCLPDB1",
        "Server=sql,1433;Database=warehouse;User Id=sa;Password=...",
        max_workers=4,
    )
    print(report.summary())
"""

import logging
from typing import Any, Optional

from core import DatabaseManager, MigrationRunner, MigrationReport

logger = logging.getLogger(__name__)

__version__ = '1.0.0'


def migrate(source: Any, target: Any, **options) -> MigrationReport:
    """
    Migrate all (selected) tables from source to target.

    Args:
        source: Source connection string, URL or backend config dict
        target: Target connection string, URL or backend config dict
        **options: MigrationRunner options (batch_size, max_workers, include,
                   exclude, dry_run, cancel_event, null_markers, on_progress)

    Returns:
        MigrationReport with one entry per table
    """
    manager = DatabaseManager(source=source, target=target)
    return MigrationRunner.from_manager(manager, **options).run()


def plan(source: Any, target: Any, tables: Optional[list] = None) -> MigrationReport:
    """Dry run: read schemas and generate DDL without touching the target"""
    return migrate(source, target, include=tables, dry_run=True)


__all__ = ['migrate', 'plan', '__version__']
