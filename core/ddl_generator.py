"""
DDL Generator
=============

Builds target statements from a TableDescriptor:

- conditional DROP (safe when the table is absent)
- CREATE TABLE with columns in descriptor order, NULL/NOT NULL, and a single
  named primary-key constraint; foreign keys are never emitted
- the parameterized INSERT reused for every row of a copy
"""

import hashlib
import logging
from typing import List, Optional

from core.errors import DdlError, ConfigurationError
from core.schema_ir import TableDescriptor
from core.type_registry import TypeRegistry

logger = logging.getLogger(__name__)

SUPPORTED_DIALECTS = ('mssql', 'postgresql', 'sqlite')

# SQL Server sysname limit
MAX_IDENTIFIER_LENGTH = 128
PK_HASH_LENGTH = 8


class DDLGenerator:
    def __init__(self, target_dialect: str = 'mssql', source_dialect: str = 'oracle'):
        dialect = TypeRegistry.normalize_dialect(target_dialect, default='')
        if dialect not in SUPPORTED_DIALECTS:
            raise ConfigurationError(f"Unsupported target dialect: {target_dialect}")
        self.target_dialect = dialect
        self.source_dialect = source_dialect

    def quote_ident(self, identifier: str) -> str:
        """Quote identifier for the target database"""
        if self.target_dialect == 'mssql':
            return '[' + identifier.replace(']', ']]') + ']'
        return '"' + identifier.replace('"', '""') + '"'

    @staticmethod
    def _quote_literal(value: str) -> str:
        return "N'" + value.replace("'", "''") + "'"

    def generate_drop(self, table_name: str) -> str:
        """Drop the target table only if it exists"""
        if self.target_dialect == 'mssql':
            # OBJECT_ID takes the (quoted) name as a string literal
            return (f"IF OBJECT_ID({self._quote_literal(self.quote_ident(table_name))}, N'U') IS NOT NULL "
                    f"DROP TABLE {self.quote_ident(table_name)}")
        return f"DROP TABLE IF EXISTS {self.quote_ident(table_name)}"

    def primary_key_name(self, table_name: str) -> str:
        """PK_<table>; over-long names are cut and suffixed with a hash of the full table name"""
        name = f"PK_{table_name}"
        if len(name) <= MAX_IDENTIFIER_LENGTH:
            return name
        digest = hashlib.sha1(table_name.encode("utf-8")).hexdigest()[:PK_HASH_LENGTH]
        return name[:MAX_IDENTIFIER_LENGTH - PK_HASH_LENGTH - 1] + "_" + digest

    def column_type(self, column) -> str:
        return TypeRegistry.map_column(column, self.target_dialect, self.source_dialect)

    def generate_create(self, table: TableDescriptor) -> str:
        """CREATE TABLE with primary key constraint (but NOT foreign keys)"""
        if not table.columns:
            raise DdlError(f"Cannot create table {table.name} without columns", table.name)

        definitions: List[str] = []
        for column in table.columns:
            nullable = "NULL" if column.nullable else "NOT NULL"
            definitions.append(f"    {self.quote_ident(column.name)} {self.column_type(column)} {nullable}")

        primary_keys = table.primary_key_columns
        if primary_keys:
            pk_cols = ", ".join(self.quote_ident(name) for name in primary_keys)
            definitions.append(
                f"    CONSTRAINT {self.quote_ident(self.primary_key_name(table.name))} PRIMARY KEY ({pk_cols})"
            )

        return f"CREATE TABLE {self.quote_ident(table.name)} (\n" + ",\n".join(definitions) + "\n)"

    def generate_insert(self, table: TableDescriptor, paramstyle: Optional[str] = 'format') -> str:
        """Parameterized INSERT with an explicit column list in descriptor order"""
        if not table.columns:
            raise DdlError(f"Cannot insert into table {table.name} without columns", table.name)

        placeholder = '?' if paramstyle == 'qmark' else '%s'
        column_list = ", ".join(self.quote_ident(name) for name in table.column_names)
        placeholders = ", ".join([placeholder] * len(table.columns))
        return f"INSERT INTO {self.quote_ident(table.name)} ({column_list}) VALUES ({placeholders})"
