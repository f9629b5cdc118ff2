"""
Schema Reader
=============

Turns source catalog metadata into ColumnDescriptor/TableDescriptor objects.

Primary-key membership comes straight from the catalog's primary-key
constraint; unique constraints, indexes and foreign keys are never read.
"""

import logging
from typing import Any, Dict, List

from core.database_manager import SourceCatalog, sanitize_error
from core.errors import SchemaReadError
from core.schema_ir import ColumnDescriptor, TableDescriptor

logger = logging.getLogger(__name__)


def _as_int(value: Any) -> int:
    """Catalog numbers may be None (unspecified) or negative (Oracle scale); both become 0"""
    if value is None:
        return 0
    return max(int(value), 0)


def _as_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().upper() in ('Y', 'YES', 'TRUE', '1')
    return bool(value)


class SchemaReader:
    def __init__(self, catalog: SourceCatalog):
        self.catalog = catalog

    def list_tables(self) -> List[str]:
        """Source tables in catalog order, case as stored"""
        try:
            tables = list(self.catalog.list_tables())
        except Exception as e:
            raise SchemaReadError(f"Failed to list source tables: {sanitize_error(e)}") from e
        logger.info(f"Found {len(tables)} tables in source database")
        return tables

    def describe_columns(self, table_name: str) -> List[ColumnDescriptor]:
        """Column descriptors ordered by source column position"""
        try:
            raw_columns = self.catalog.describe_columns(table_name)
        except Exception as e:
            raise SchemaReadError(
                f"Failed to read columns of {table_name}: {sanitize_error(e)}", table_name
            ) from e

        if not raw_columns:
            # No columns means the table vanished (or is not a table we can copy)
            raise SchemaReadError(f"Table {table_name} not found or has no columns", table_name)

        try:
            return [self._to_descriptor(raw) for raw in raw_columns]
        except (KeyError, TypeError, ValueError) as e:
            raise SchemaReadError(f"Malformed column metadata for {table_name}: {e}", table_name) from e

    def describe_table(self, table_name: str) -> TableDescriptor:
        columns = self.describe_columns(table_name)
        try:
            table = TableDescriptor(name=table_name, columns=columns)
        except ValueError as e:
            raise SchemaReadError(str(e), table_name) from e

        logger.debug(f"Table {table_name}: {len(table.columns)} columns, "
                     f"primary key {table.primary_key_columns or 'none'}")
        return table

    @staticmethod
    def _to_descriptor(raw: Dict[str, Any]) -> ColumnDescriptor:
        return ColumnDescriptor(
            name=raw['name'],
            source_type=raw.get('data_type') or '',
            length=_as_int(raw.get('data_length')),
            precision=_as_int(raw.get('data_precision')),
            scale=_as_int(raw.get('data_scale')),
            nullable=_as_flag(raw.get('nullable', True)),
            is_primary_key=_as_flag(raw.get('is_primary_key', False)),
        )
