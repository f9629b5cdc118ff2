"""
Batch Copier
============

Streams rows from a source iterator into a target table in bounded,
transactional batches.

Each batch is applied as one target transaction: one parameterized insert per
row, same statement text for every row, then commit. A failing insert rolls
back its whole batch; batches committed earlier for the same table stay
applied.
"""

import logging
import threading
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

from core.database_manager import TargetExecutor, sanitize_error
from core.ddl_generator import DDLGenerator
from core.errors import DataCopyError, MigrationCancelled
from core.schema_ir import TableDescriptor

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000


class Batch:
    """Ordered rows awaiting one flush"""

    def __init__(self, capacity: int = DEFAULT_BATCH_SIZE):
        if capacity < 1:
            raise ValueError(f"Batch capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.rows: List[Tuple[Any, ...]] = []

    def add(self, row: Tuple[Any, ...]):
        self.rows.append(row)

    def is_full(self) -> bool:
        return len(self.rows) >= self.capacity

    def clear(self):
        self.rows = []

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Tuple[Any, ...]]:
        return iter(self.rows)


class BatchCopier:
    def __init__(self, target: TargetExecutor, ddl_generator: DDLGenerator,
                 batch_size: int = DEFAULT_BATCH_SIZE,
                 cancel_event: Optional[threading.Event] = None,
                 null_markers: Sequence[Any] = (),
                 on_progress: Optional[Callable[[str, int], None]] = None):
        """
        Args:
            target: Open target connection, owned by the caller
            ddl_generator: Provides the insert statement text
            batch_size: Rows per transaction
            cancel_event: Run-level cancellation, checked before each flush
            null_markers: Source values to write as NULL in addition to None
            on_progress: Called with (table_name, rows_committed) after each commit
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.target = target
        self.ddl_generator = ddl_generator
        self.batch_size = batch_size
        self.cancel_event = cancel_event
        self.null_markers = tuple(null_markers)
        self.on_progress = on_progress

    def _to_target_value(self, value: Any) -> Any:
        if value is None:
            return None
        for marker in self.null_markers:
            if type(value) is type(marker) and value == marker:
                return None
        return value

    def _build_row(self, table: TableDescriptor, row: Sequence[Any], rows_committed: int) -> Tuple[Any, ...]:
        values = tuple(row)
        if len(values) != len(table.columns):
            raise DataCopyError(
                f"Row width {len(values)} does not match {len(table.columns)} columns of {table.name}",
                table.name, rows_committed
            )
        if not self.null_markers:
            return values
        return tuple(self._to_target_value(v) for v in values)

    def copy(self, table: TableDescriptor, rows: Iterable[Sequence[Any]],
             batch_size: Optional[int] = None) -> int:
        """
        Copy rows into the (already created) target table.

        Returns:
            Total rows copied

        Raises:
            DataCopyError: A batch failed and was rolled back
            MigrationCancelled: Cancellation was observed between batches
        """
        size = batch_size or self.batch_size
        insert_sql = self.ddl_generator.generate_insert(table, self.target.paramstyle)
        logger.debug(f"Insert statement for {table.name}: {insert_sql}")

        batch = Batch(size)
        rows_committed = 0
        batch_number = 0

        source = iter(rows)
        while True:
            try:
                row = next(source)
            except StopIteration:
                break
            except Exception as e:
                raise DataCopyError(
                    f"Failed to read source rows of {table.name} after {rows_committed + len(batch)} rows: "
                    f"{sanitize_error(e)}",
                    table.name, rows_committed, batch_number + 1
                ) from e

            batch.add(self._build_row(table, row, rows_committed))
            if batch.is_full():
                batch_number += 1
                rows_committed += self._flush(table, insert_sql, batch, batch_number, rows_committed)

        if len(batch):
            batch_number += 1
            rows_committed += self._flush(table, insert_sql, batch, batch_number, rows_committed)

        logger.info(f"Copied {rows_committed} rows into {table.name} in {batch_number} batches")
        return rows_committed

    def _flush(self, table: TableDescriptor, insert_sql: str, batch: Batch,
               batch_number: int, rows_committed: int) -> int:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise MigrationCancelled(
                f"Migration cancelled before batch {batch_number} of {table.name}",
                table.name, rows_committed
            )

        count = len(batch)
        try:
            self.target.begin()
            for values in batch:
                self.target.execute(insert_sql, values)
            self.target.commit()
        except Exception as e:
            try:
                self.target.rollback()
            except Exception as rollback_error:
                logger.error(f"Rollback of batch {batch_number} for {table.name} failed: "
                             f"{sanitize_error(rollback_error)}")
            raise DataCopyError(
                f"Failed to insert batch {batch_number} for {table.name} at offset {rows_committed}: "
                f"{sanitize_error(e)}",
                table.name, rows_committed, batch_number
            ) from e

        batch.clear()
        total = rows_committed + count
        logger.info(f"  Migrated rows {rows_committed + 1} to {total} for {table.name}")
        if self.on_progress:
            self.on_progress(table.name, total)
        return count
