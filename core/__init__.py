#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Migration Core Package Initialization
Exports all main components for clean imports
"""

from .errors import (
    ErrorCode, MigrationError, SchemaReadError, DdlError, DataCopyError,
    MigrationCancelled, ConfigurationError
)
from .schema_ir import ColumnDescriptor, TableDescriptor
from .type_registry import TypeRegistry, TypeInfo, IRType
from .database_manager import DatabaseManager, SourceCatalog, TargetExecutor, parse_connection_string
from .schema_reader import SchemaReader
from .ddl_generator import DDLGenerator
from .batch_copier import Batch, BatchCopier
from .migration import MigrationRunner, MigrationReport, TableResult, TableState

# Export everything
__all__ = [
    # Errors
    'ErrorCode',
    'MigrationError',
    'SchemaReadError',
    'DdlError',
    'DataCopyError',
    'MigrationCancelled',
    'ConfigurationError',

    # Model
    'ColumnDescriptor',
    'TableDescriptor',
    'TypeRegistry',
    'TypeInfo',
    'IRType',

    # Backends
    'DatabaseManager',
    'SourceCatalog',
    'TargetExecutor',
    'parse_connection_string',

    # Components
    'SchemaReader',
    'DDLGenerator',
    'Batch',
    'BatchCopier',
    'MigrationRunner',
    'MigrationReport',
    'TableResult',
    'TableState',
]

# Version info
__version__ = '1.0.0'
