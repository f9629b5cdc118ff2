#!/usr/bin/env python3
"""
Oracle Adapter - Migration Source

Reads the catalog of the connected user's schema and streams table rows with
python-oracledb in thin mode (no Oracle Client install needed).

- Session is READ ONLY: the migrator never writes to the source.
- CLOB/BLOB columns are fetched as str/bytes so rows can be bound directly
  on the target.
- NUMBER columns with a fractional part are fetched as Decimal, never float.
- TIMESTAMP WITH TIME ZONE columns are selected as text that keeps their
  offset (python-oracledb drops it from datetime values).
- Primary-key membership comes from the 'P' constraint only.
"""

import decimal
import oracledb
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Sequence, Tuple

from core.database_manager import SourceCatalog

logger = logging.getLogger(__name__)

LIST_TABLES_SQL = "SELECT table_name FROM user_tables ORDER BY table_name"

COLUMN_TYPES_SQL = "SELECT column_name, data_type FROM user_tab_columns WHERE table_name = :table_name"

# Parsed by SQL Server (DATETIMEOFFSET) and PostgreSQL (timestamptz)
TSTZ_FORMAT = 'YYYY-MM-DD HH24:MI:SS.FF7 TZH:TZM'

# char_length is the declared length in characters for VARCHAR2/NVARCHAR2/CHAR;
# data_length (bytes) is used for RAW and everything else
DESCRIBE_COLUMNS_SQL = """
    SELECT c.column_name,
           c.data_type,
           NVL(NULLIF(c.char_length, 0), c.data_length) AS data_length,
           c.data_precision,
           c.data_scale,
           c.nullable,
           CASE WHEN pk.column_name IS NOT NULL THEN 'Y' ELSE 'N' END AS is_primary_key
    FROM user_tab_columns c
    LEFT JOIN (
        SELECT cols.table_name, cols.column_name
        FROM user_constraints cons
        JOIN user_cons_columns cols
          ON cons.constraint_name = cols.constraint_name
        WHERE cons.constraint_type = 'P'
    ) pk
      ON c.table_name = pk.table_name AND c.column_name = pk.column_name
    WHERE c.table_name = :table_name
    ORDER BY c.column_id
"""


@dataclass
class ConnectionConfig:
    """Oracle connection configuration"""
    host: str = "localhost"
    port: int = 1521
    service_name: str = ""
    user: str = ""
    password: str = ""
    arraysize: int = 1000

    @property
    def dsn(self) -> str:
        return f"{self.host}:{self.port}/{self.service_name}"


def output_type_handler(cursor, name, default_type, size, precision, scale):
    """Fetch LOBs as strings/bytes instead of LOB locators, fractional numbers as Decimal"""
    if default_type == oracledb.DB_TYPE_NUMBER and scale != 0:
        # unconstrained NUMBER reports scale -127
        return cursor.var(decimal.Decimal, arraysize=cursor.arraysize)
    if default_type in (oracledb.CLOB, oracledb.NCLOB):
        return cursor.var(oracledb.LONG_STRING, arraysize=cursor.arraysize)
    if default_type == oracledb.BLOB:
        return cursor.var(oracledb.LONG_BINARY, arraysize=cursor.arraysize)


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _is_zoned_timestamp(data_type: str) -> bool:
    data_type = (data_type or '').upper()
    return 'WITH TIME ZONE' in data_type and 'LOCAL' not in data_type


class OracleAdapter(SourceCatalog):
    """Oracle migration source (read only)"""

    backend_type = 'oracle'

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self.connection = oracledb.connect(user=config.user, password=config.password, dsn=config.dsn)
        self.connection.outputtypehandler = output_type_handler

        cursor = self.connection.cursor()
        cursor.execute("SET TRANSACTION READ ONLY")
        cursor.close()
        logger.info(f"Connected to Oracle source {config.dsn} (READ ONLY, Thin Mode)")

    def list_tables(self) -> List[str]:
        with self.connection.cursor() as cursor:
            cursor.execute(LIST_TABLES_SQL)
            return [row[0] for row in cursor.fetchall()]

    def describe_columns(self, table_name: str) -> List[Dict[str, Any]]:
        with self.connection.cursor() as cursor:
            cursor.execute(DESCRIBE_COLUMNS_SQL, table_name=table_name)
            return [
                {
                    'name': name,
                    'data_type': data_type,
                    'data_length': data_length,
                    'data_precision': data_precision,
                    'data_scale': data_scale,
                    'nullable': nullable,
                    'is_primary_key': is_pk,
                }
                for name, data_type, data_length, data_precision, data_scale, nullable, is_pk
                in cursor.fetchall()
            ]

    def select_list(self, table_name: str, columns: Sequence[str]) -> str:
        """Column expressions for the row query; zoned timestamps keep their offset as text"""
        with self.connection.cursor() as cursor:
            cursor.execute(COLUMN_TYPES_SQL, table_name=table_name)
            types = dict(cursor.fetchall())

        expressions = []
        for column in columns:
            if _is_zoned_timestamp(types.get(column)):
                expressions.append(f"TO_CHAR({_quote(column)}, '{TSTZ_FORMAT}') AS {_quote(column)}")
            else:
                expressions.append(_quote(column))
        return ", ".join(expressions)

    def stream_rows(self, table_name: str, columns: Sequence[str]) -> Iterator[Tuple[Any, ...]]:
        column_list = self.select_list(table_name, columns)
        cursor = self.connection.cursor()
        cursor.arraysize = self.config.arraysize
        cursor.prefetchrows = self.config.arraysize + 1
        try:
            cursor.execute(f"SELECT {column_list} FROM {_quote(table_name)}")
            while True:
                rows = cursor.fetchmany()
                if not rows:
                    break
                for row in rows:
                    yield tuple(row)
        finally:
            cursor.close()

    def close(self):
        if self.connection is not None:
            # ends the read-only transaction
            self.connection.rollback()
            self.connection.close()
            self.connection = None
            logger.debug("Oracle connection closed")
