#!/usr/bin/env python3
"""
Migration Error Hierarchy
Canonical exception classes for the schema and data migrator.
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    UNKNOWN = "UNKNOWN_ERROR"
    SCHEMA_READ_ERROR = "SCHEMA_READ_ERROR"
    DDL_ERROR = "DDL_ERROR"
    DATA_COPY_ERROR = "DATA_COPY_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    CANCELLED = "CANCELLED"


class MigrationError(Exception):
    """Base class for all migration exceptions"""
    def __init__(self, message: str, code: ErrorCode = ErrorCode.UNKNOWN, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class SchemaReadError(MigrationError):
    """Raised when source catalog metadata cannot be read for a table"""
    def __init__(self, message: str, table_name: Optional[str] = None):
        super().__init__(message, ErrorCode.SCHEMA_READ_ERROR, {'table': table_name})
        self.table_name = table_name


class DdlError(MigrationError):
    """Raised when a drop/create statement is rejected or cannot be generated"""
    def __init__(self, message: str, table_name: Optional[str] = None, statement: Optional[str] = None):
        super().__init__(message, ErrorCode.DDL_ERROR, {'table': table_name, 'statement': statement})
        self.table_name = table_name
        self.statement = statement


class DataCopyError(MigrationError):
    """Raised when a batch transaction fails; earlier batches stay committed"""
    def __init__(self, message: str, table_name: Optional[str] = None,
                 rows_committed: int = 0, batch_number: Optional[int] = None):
        details = {
            'table': table_name,
            'rows_committed': rows_committed,
            'batch_number': batch_number
        }
        super().__init__(message, ErrorCode.DATA_COPY_ERROR, details)
        self.table_name = table_name
        self.rows_committed = rows_committed
        self.batch_number = batch_number


class MigrationCancelled(MigrationError):
    """Raised when a run-level cancellation is observed between batches or tables"""
    def __init__(self, message: str = "Migration cancelled", table_name: Optional[str] = None,
                 rows_committed: int = 0):
        super().__init__(message, ErrorCode.CANCELLED, {'table': table_name, 'rows_committed': rows_committed})
        self.table_name = table_name
        self.rows_committed = rows_committed


class ConfigurationError(MigrationError):
    """Raised when configuration is missing or invalid"""
    def __init__(self, message: str, problems: Optional[list] = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, {'problems': problems or []})
        self.problems = problems or []
