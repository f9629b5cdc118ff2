"""
Migration Runner
================

Drives a whole run: list source tables, then for each table read its schema,
drop and recreate it on the target and copy its rows in batches.

Tables are independent units of work. A failure in one table is recorded in
the report and the run moves on to the next table; only a failure to list the
source tables stops the run.
"""

import fnmatch
import json
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from core.batch_copier import BatchCopier, DEFAULT_BATCH_SIZE
from core.database_manager import DatabaseManager, SourceCatalog, TargetExecutor, sanitize_error
from core.ddl_generator import DDLGenerator
from core.errors import DdlError, ErrorCode, MigrationCancelled, MigrationError
from core.schema_ir import TableDescriptor
from core.schema_reader import SchemaReader
from core.type_registry import TypeRegistry

logger = logging.getLogger(__name__)

CANCELLED_REASON = "cancelled"


class TableState(Enum):
    PENDING = "pending"
    SCHEMA_READ = "schema_read"
    TABLE_CREATED = "table_created"
    DATA_COPIED = "data_copied"
    DONE = "done"
    PLANNED = "planned"
    FAILED = "failed"


class Step(Enum):
    SCHEMA_READ = "schema_read"
    CREATE_TABLE = "create_table"
    COPY_DATA = "copy_data"


@dataclass
class TableResult:
    name: str
    state: TableState = TableState.PENDING
    rows_copied: int = 0
    failed_step: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    ddl: List[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.state in (TableState.DONE, TableState.PLANNED)

    def fail(self, step: Optional[Step], error: str, code: ErrorCode):
        self.state = TableState.FAILED
        self.failed_step = step.value if step else None
        self.error = error
        self.error_code = code.value

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['state'] = self.state.value
        data['duration'] = round(self.duration, 3)
        return data


@dataclass
class MigrationReport:
    tables: List[TableResult] = field(default_factory=list)
    source_dialect: str = 'oracle'
    target_dialect: str = 'mssql'
    dry_run: bool = False
    cancelled: bool = False
    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    @property
    def failed_tables(self) -> List[TableResult]:
        return [t for t in self.tables if t.state == TableState.FAILED]

    @property
    def success(self) -> bool:
        return not self.cancelled and not self.failed_tables

    def get(self, table_name: str) -> TableResult:
        for result in self.tables:
            if result.name == table_name:
                return result
        raise KeyError(table_name)

    def summary(self) -> Dict[str, int]:
        failed = len(self.failed_tables)
        return {
            'attempted': len(self.tables),
            'succeeded': len(self.tables) - failed,
            'failed': failed,
            'total_rows': sum(t.rows_copied for t in self.tables),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source_dialect': self.source_dialect,
            'target_dialect': self.target_dialect,
            'dry_run': self.dry_run,
            'cancelled': self.cancelled,
            'started_at': self.started_at,
            'finished_at': self.finished_at,
            'summary': self.summary(),
            'tables': [t.to_dict() for t in self.tables],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


class MigrationRunner:
    def __init__(self, source_factory: Callable[[], SourceCatalog],
                 target_factory: Callable[[], TargetExecutor],
                 source_dialect: str = 'oracle', target_dialect: str = 'mssql',
                 batch_size: int = DEFAULT_BATCH_SIZE, max_workers: int = 1,
                 include: Optional[Sequence[str]] = None,
                 exclude: Optional[Sequence[str]] = None,
                 dry_run: bool = False,
                 cancel_event: Optional[threading.Event] = None,
                 null_markers: Sequence[Any] = (),
                 on_progress: Optional[Callable[[str, int], None]] = None):
        """
        Args:
            source_factory: Opens a new source catalog connection per call
            target_factory: Opens a new target connection per call
            source_dialect: Source type family for type mapping
            target_dialect: Target dialect for DDL
            batch_size: Rows per copy transaction
            max_workers: Tables migrated in parallel (1 = sequential)
            include: Only these tables (case-insensitive), in listing order
            exclude: Glob patterns of tables to skip
            dry_run: Read schemas and generate DDL without touching the target
            cancel_event: Run-level cancellation signal
            null_markers: Extra source values written as NULL
            on_progress: Called with (table_name, rows_committed) per batch
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {max_workers}")

        self.source_factory = source_factory
        self.target_factory = target_factory
        self.source_dialect = source_dialect
        self.ddl_generator = DDLGenerator(target_dialect, source_dialect)
        self.target_dialect = self.ddl_generator.target_dialect
        self.batch_size = batch_size
        self.max_workers = max_workers
        self.include = list(include) if include else None
        self.exclude = list(exclude) if exclude else []
        self.dry_run = dry_run
        self.cancel_event = cancel_event or threading.Event()
        self.null_markers = tuple(null_markers)
        self.on_progress = on_progress

        self._results: Dict[str, TableResult] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_manager(cls, manager: DatabaseManager, **kwargs) -> 'MigrationRunner':
        """Build a runner whose connections come from a DatabaseManager"""
        return cls(manager.source_factory(), manager.target_factory(),
                   source_dialect=manager.source_dialect,
                   target_dialect=manager.target_dialect, **kwargs)

    def cancel(self):
        """Request cancellation; in-flight batches finish or roll back first"""
        logger.warning("Cancellation requested")
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def select_tables(self, tables: Iterable[str]) -> List[str]:
        """Apply include list and exclude patterns, keeping listing order"""
        selected = list(tables)

        if self.include is not None:
            wanted = {name.upper() for name in self.include}
            missing = wanted - {name.upper() for name in selected}
            for name in sorted(missing):
                logger.warning(f"Requested table {name} not found in source")
            selected = [name for name in selected if name.upper() in wanted]

        if self.exclude:
            selected = [
                name for name in selected
                if not any(fnmatch.fnmatch(name.upper(), pattern.upper()) for pattern in self.exclude)
            ]

        return selected

    def list_tables(self) -> List[str]:
        with self.source_factory() as source:
            return SchemaReader(source).list_tables()

    def run(self) -> MigrationReport:
        """Migrate every selected table and return the report"""
        report = MigrationReport(source_dialect=self.source_dialect,
                                 target_dialect=self.target_dialect,
                                 dry_run=self.dry_run,
                                 started_at=datetime.now().isoformat())

        # Raises SchemaReadError: without a table list there is nothing to migrate
        tables = self.select_tables(self.list_tables())
        logger.info(f"Migrating {len(tables)} tables: {', '.join(tables)}")

        self._results = {name: TableResult(name) for name in tables}

        if self.max_workers == 1 or len(tables) <= 1:
            for name in tables:
                self._record(self._run_table(name))
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {executor.submit(self._run_table, name): name for name in tables}
                for future in as_completed(futures):
                    self._record(future.result())

        report.tables = [self._results[name] for name in tables]
        report.cancelled = self.cancelled
        report.finished_at = datetime.now().isoformat()

        summary = report.summary()
        logger.info(f"Migration finished: {summary['succeeded']}/{summary['attempted']} tables, "
                    f"{summary['total_rows']} rows"
                    + (" (cancelled)" if report.cancelled else ""))
        return report

    def _record(self, result: TableResult):
        with self._lock:
            self._results[result.name] = result

    def _run_table(self, table_name: str) -> TableResult:
        if self.cancelled:
            result = TableResult(table_name)
            result.fail(None, CANCELLED_REASON, ErrorCode.CANCELLED)
            logger.warning(f"Skipping {table_name}: migration cancelled")
            return result
        return self.migrate_table(table_name)

    def migrate_table(self, table_name: str) -> TableResult:
        """Run one table through read -> create -> copy; never raises"""
        result = TableResult(table_name)
        started = time.monotonic()
        step = Step.SCHEMA_READ
        logger.info(f"Migrating table {table_name}")

        try:
            with self.source_factory() as source:
                table = SchemaReader(source).describe_table(table_name)
                result.state = TableState.SCHEMA_READ
                result.warnings = self.check_conversions(table)
                result.ddl = [self.ddl_generator.generate_drop(table.name),
                              self.ddl_generator.generate_create(table)]

                if self.dry_run:
                    result.state = TableState.PLANNED
                    logger.info(f"[DRY RUN] Planned {table_name}")
                    return result

                step = Step.CREATE_TABLE
                with self.target_factory() as target:
                    self._create_table(target, table, result.ddl)
                    result.state = TableState.TABLE_CREATED

                    step = Step.COPY_DATA
                    copier = BatchCopier(target, self.ddl_generator,
                                         batch_size=self.batch_size,
                                         cancel_event=self.cancel_event,
                                         null_markers=self.null_markers,
                                         on_progress=self.on_progress)
                    result.rows_copied = copier.copy(table, source.stream_rows(table.name, table.column_names))
                    result.state = TableState.DATA_COPIED

            result.state = TableState.DONE
            logger.info(f"Table {table_name} done ({result.rows_copied} rows)")

        except MigrationCancelled as e:
            result.rows_copied = e.rows_committed
            result.fail(step, CANCELLED_REASON, e.code)
            logger.warning(f"Table {table_name} cancelled after {e.rows_committed} rows")
        except MigrationError as e:
            result.rows_copied = getattr(e, 'rows_committed', result.rows_copied)
            result.fail(step, sanitize_error(e.message), e.code)
            logger.error(f"Table {table_name} failed at {step.value}: {result.error}")
        except Exception as e:
            result.fail(step, sanitize_error(e), ErrorCode.UNKNOWN)
            logger.exception(f"Table {table_name} failed at {step.value}: {result.error}")
        finally:
            result.duration = time.monotonic() - started

        return result

    def _create_table(self, target: TargetExecutor, table: TableDescriptor, statements: List[str]):
        for sql in statements:
            logger.debug(f"Executing DDL: {sql}")
            try:
                target.execute_ddl(sql)
            except Exception as e:
                raise DdlError(f"DDL failed for {table.name}: {sanitize_error(e)}", table.name, sql) from e

    def check_conversions(self, table: TableDescriptor) -> List[str]:
        """Lossy type conversion warnings for one table"""
        warnings = []
        for column in table.columns:
            lossy, reason = TypeRegistry.is_lossy_conversion(column, self.target_dialect, self.source_dialect)
            if lossy:
                warning = f"{column.name}: {reason}"
                warnings.append(warning)
                logger.warning(f"{table.name}.{warning}")
        return warnings
