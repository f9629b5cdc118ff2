from dataclasses import dataclass, field
from typing import List, Tuple


@dataclass(frozen=True)
class ColumnDescriptor:
    """One column of one source table, engine agnostic.

    length/precision/scale use 0 for "unspecified / not applicable".
    """
    name: str
    source_type: str
    length: int = 0
    precision: int = 0
    scale: int = 0
    nullable: bool = True
    is_primary_key: bool = False

    def __post_init__(self):
        if not self.name:
            raise ValueError("Column name must not be empty")
        for attr in ('length', 'precision', 'scale'):
            value = getattr(self, attr)
            if value < 0:
                raise ValueError(f"Column {self.name}: {attr} must be non-negative, got {value}")


@dataclass(frozen=True)
class TableDescriptor:
    """Table definition: name plus columns in source catalog order.

    Column order drives both the CREATE TABLE column order and the
    positional binding of copied rows.
    """
    name: str
    columns: Tuple[ColumnDescriptor, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Accept any sequence but store an immutable tuple
        object.__setattr__(self, 'columns', tuple(self.columns))
        seen = set()
        for col in self.columns:
            if col.name in seen:
                raise ValueError(f"Table {self.name}: duplicate column name '{col.name}'")
            seen.add(col.name)

    @property
    def column_names(self) -> List[str]:
        return [col.name for col in self.columns]

    @property
    def primary_key_columns(self) -> List[str]:
        """Primary key columns in descriptor order (composite when more than one)"""
        return [col.name for col in self.columns if col.is_primary_key]
