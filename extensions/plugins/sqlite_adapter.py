#!/usr/bin/env python3
"""
SQLite Adapter - Source and Target

Provides both migration capabilities over one sqlite3 connection:
- Source: list_tables(), describe_columns(), stream_rows()
- Target: execute_ddl(), begin()/commit()/rollback(), execute()

Used for local runs and as a real database in tests. The connection runs in
autocommit mode (isolation_level=None) so batch transactions are explicit
BEGIN/COMMIT pairs issued by the copier.
"""

import sqlite3
import logging
import re
from typing import Dict, List, Any, Optional, Iterator, Sequence, Tuple

from core.database_manager import SourceCatalog, TargetExecutor

logger = logging.getLogger(__name__)

# rows fetched per round trip while streaming
FETCH_SIZE = 1000


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _parse_declared_type(col_type: str) -> Tuple[Optional[int], Optional[int], Optional[int]]:
    """Parse "VARCHAR(100)" -> (100, None, None), "NUMERIC(10,2)" -> (None, 10, 2)"""
    match = re.search(r'\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\)', col_type)
    if not match:
        return None, None, None
    if match.group(2) is not None:
        return None, int(match.group(1)), int(match.group(2))
    base = col_type.split('(')[0].strip().upper()
    if base in ('NUMERIC', 'DECIMAL', 'NUMBER'):
        return None, int(match.group(1)), 0
    return int(match.group(1)), None, None


class SQLiteAdapter(SourceCatalog, TargetExecutor):
    """SQLite adapter usable as migration source and target."""

    backend_type = 'sqlite'
    paramstyle = 'qmark'

    def __init__(self, database: str = ':memory:', timeout: float = 30.0):
        """
        Initialize SQLite adapter.

        Args:
            database: Path to SQLite database file or ':memory:' for in-memory
            timeout: Busy timeout in seconds
        """
        self.database = database
        self.timeout = timeout
        self._connection: Optional[sqlite3.Connection] = None
        self._connect()
        logger.info(f"SQLite adapter initialized for {database}")

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            self._connection = sqlite3.connect(
                self.database,
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False
            )
            self._connection.row_factory = sqlite3.Row
            logger.debug(f"Connected to SQLite database: {self.database}")
        except sqlite3.Error as e:
            logger.error(f"Failed to connect to SQLite: {e}")
            raise

    @property
    def connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise sqlite3.ProgrammingError("SQLite adapter is closed")
        return self._connection

    def close(self) -> None:
        """Close database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None
            logger.debug("SQLite adapter closed")

    # =========================================================================
    # Source
    # =========================================================================

    def list_tables(self) -> List[str]:
        """User tables ordered by name, case as stored"""
        cursor = self.connection.execute("""
            SELECT name
            FROM sqlite_master
            WHERE type = 'table'
            AND name NOT LIKE 'sqlite_%'
            ORDER BY name
        """)
        tables = [row['name'] for row in cursor.fetchall()]
        logger.debug(f"Found {len(tables)} tables: {tables}")
        return tables

    def describe_columns(self, table_name: str) -> List[Dict[str, Any]]:
        """Column metadata from PRAGMA table_info, in column order"""
        cursor = self.connection.execute(f"PRAGMA table_info({_quote(table_name)})")

        columns = []
        for col in cursor.fetchall():
            col_type = col['type'] or 'TEXT'  # SQLite defaults to TEXT
            length, precision, scale = _parse_declared_type(col_type)
            columns.append({
                'name': col['name'],
                'data_type': col_type,
                'data_length': length,
                'data_precision': precision,
                'data_scale': scale,
                'nullable': col['notnull'] == 0,
                'is_primary_key': col['pk'] > 0,
            })
        return columns

    def stream_rows(self, table_name: str, columns: Sequence[str]) -> Iterator[Tuple[Any, ...]]:
        column_list = ", ".join(_quote(c) for c in columns)
        cursor = self.connection.execute(f"SELECT {column_list} FROM {_quote(table_name)}")
        try:
            while True:
                rows = cursor.fetchmany(FETCH_SIZE)
                if not rows:
                    break
                for row in rows:
                    yield tuple(row)
        finally:
            cursor.close()

    # =========================================================================
    # Target
    # =========================================================================

    def execute_ddl(self, sql: str) -> None:
        # autocommit mode: DDL outside BEGIN commits on its own
        self.connection.execute(sql)

    def begin(self) -> None:
        self.connection.execute("BEGIN")

    def commit(self) -> None:
        self.connection.execute("COMMIT")

    def rollback(self) -> None:
        if self.connection.in_transaction:
            self.connection.execute("ROLLBACK")

    def execute(self, sql: str, params: Sequence[Any]) -> None:
        self.connection.execute(sql, tuple(params))
