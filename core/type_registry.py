import re
from enum import Enum
from typing import Dict, Tuple, Optional, Set

from core.schema_ir import ColumnDescriptor


class IRType(Enum):
    # Numeric
    SMALLINT = "SMALLINT"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    DECIMAL = "DECIMAL"  # With precision/scale
    REAL = "REAL"
    DOUBLE = "DOUBLE PRECISION"

    # String
    CHAR = "CHAR"  # Fixed length
    VARCHAR = "VARCHAR"  # Variable length
    TEXT = "TEXT"  # Unlimited

    # Binary
    VARBINARY = "VARBINARY"  # Bounded
    BYTEA = "BYTEA"  # Unlimited

    # Date/Time
    TIMESTAMP = "TIMESTAMP"
    TIMESTAMP_TZ = "TIMESTAMP WITH TIME ZONE"

    # Boolean
    BOOLEAN = "BOOLEAN"


# Numeric family: resolved from precision/scale rather than a fixed IR type
NUMERIC = 'NUMERIC'

FALLBACK_LENGTH = 255
UNCONSTRAINED_DECIMAL = (38, 10)
MAX_DECIMAL_PRECISION = 38
INT32_MAX_PRECISION = 9
INT64_SAFE_PRECISION = 18


class TypeInfo:
    def __init__(self, ir_type: IRType, precision: Optional[int] = None,
                 scale: Optional[int] = None, length: Optional[int] = None,
                 fallback: bool = False):
        self.ir_type = ir_type
        self.precision = precision
        self.scale = scale
        self.length = length
        # True when the source type was not recognised
        self.fallback = fallback

    def __eq__(self, other):
        if not isinstance(other, TypeInfo):
            return NotImplemented
        return (self.ir_type, self.precision, self.scale, self.length, self.fallback) == \
               (other.ir_type, other.precision, other.scale, other.length, other.fallback)

    def __repr__(self):
        return f"TypeInfo({self.ir_type.value}, p={self.precision}, s={self.scale}, l={self.length})"


class TypeRegistry:
    # Source type → IR type mappings
    # Format: dialect -> base_type -> (IRType or NUMERIC, default_length)
    # default_length applies to bounded types when the source reports no length
    SOURCE_TO_IR: Dict[str, Dict[str, Tuple[object, Optional[int]]]] = {
        'oracle': {
            'varchar2': (IRType.VARCHAR, 255),
            'nvarchar2': (IRType.VARCHAR, 255),
            'varchar': (IRType.VARCHAR, 255),
            'nvarchar': (IRType.VARCHAR, 255),
            'char': (IRType.CHAR, 1),
            'nchar': (IRType.CHAR, 1),
            'number': (NUMERIC, None),
            'numeric': (NUMERIC, None),
            'decimal': (NUMERIC, None),
            'integer': (IRType.INTEGER, None),
            'int': (IRType.INTEGER, None),
            'smallint': (IRType.SMALLINT, None),
            'float': (IRType.DOUBLE, None),
            'double precision': (IRType.DOUBLE, None),
            'binary_double': (IRType.DOUBLE, None),
            'real': (IRType.REAL, None),
            'binary_float': (IRType.REAL, None),
            'date': (IRType.TIMESTAMP, None),
            'timestamp': (IRType.TIMESTAMP, None),
            'timestamp with time zone': (IRType.TIMESTAMP_TZ, None),
            'timestamp with local time zone': (IRType.TIMESTAMP_TZ, None),
            'clob': (IRType.TEXT, None),
            'nclob': (IRType.TEXT, None),
            'long': (IRType.TEXT, None),
            'blob': (IRType.BYTEA, None),
            'long raw': (IRType.BYTEA, None),
            'raw': (IRType.VARBINARY, 255),
            'boolean': (IRType.BOOLEAN, None),
        },
        'sqlite': {
            # SQLite declared types; INTEGER storage is 64-bit
            'integer': (IRType.BIGINT, None),
            'int': (IRType.BIGINT, None),
            'bigint': (IRType.BIGINT, None),
            'smallint': (IRType.SMALLINT, None),
            'numeric': (NUMERIC, None),
            'decimal': (NUMERIC, None),
            'real': (IRType.DOUBLE, None),
            'double': (IRType.DOUBLE, None),
            'double precision': (IRType.DOUBLE, None),
            'float': (IRType.DOUBLE, None),
            'varchar': (IRType.VARCHAR, 255),
            'nvarchar': (IRType.VARCHAR, 255),
            'char': (IRType.CHAR, 1),
            'nchar': (IRType.CHAR, 1),
            'text': (IRType.TEXT, None),
            'clob': (IRType.TEXT, None),
            'blob': (IRType.BYTEA, None),
            'boolean': (IRType.BOOLEAN, None),
            'date': (IRType.TIMESTAMP, None),
            'datetime': (IRType.TIMESTAMP, None),
            'timestamp': (IRType.TIMESTAMP, None),
        },
    }

    # IR type → Target type mappings
    IR_TO_TARGET: Dict[str, Dict[IRType, str]] = {
        'mssql': {
            IRType.SMALLINT: 'SMALLINT',
            IRType.INTEGER: 'INT',
            IRType.BIGINT: 'BIGINT',
            IRType.DECIMAL: 'DECIMAL',
            IRType.REAL: 'REAL',
            IRType.DOUBLE: 'FLOAT',
            IRType.CHAR: 'NCHAR',
            IRType.VARCHAR: 'NVARCHAR',
            IRType.TEXT: 'NVARCHAR(MAX)',
            IRType.VARBINARY: 'VARBINARY',
            IRType.BYTEA: 'VARBINARY(MAX)',
            IRType.BOOLEAN: 'BIT',
            IRType.TIMESTAMP: 'DATETIME2',
            IRType.TIMESTAMP_TZ: 'DATETIMEOFFSET',
        },
        'postgresql': {
            IRType.SMALLINT: 'SMALLINT',
            IRType.INTEGER: 'INTEGER',
            IRType.BIGINT: 'BIGINT',
            IRType.DECIMAL: 'NUMERIC',
            IRType.REAL: 'REAL',
            IRType.DOUBLE: 'DOUBLE PRECISION',
            IRType.CHAR: 'CHAR',
            IRType.VARCHAR: 'VARCHAR',
            IRType.TEXT: 'TEXT',
            IRType.VARBINARY: 'BYTEA',
            IRType.BYTEA: 'BYTEA',
            IRType.BOOLEAN: 'BOOLEAN',
            IRType.TIMESTAMP: 'TIMESTAMP',
            IRType.TIMESTAMP_TZ: 'TIMESTAMP WITH TIME ZONE',
        },
        'sqlite': {
            IRType.SMALLINT: 'SMALLINT',
            IRType.INTEGER: 'INTEGER',
            IRType.BIGINT: 'BIGINT',
            IRType.DECIMAL: 'DECIMAL',
            IRType.REAL: 'REAL',
            IRType.DOUBLE: 'DOUBLE',
            IRType.CHAR: 'CHAR',
            IRType.VARCHAR: 'VARCHAR',
            IRType.TEXT: 'TEXT',
            IRType.VARBINARY: 'BLOB',
            IRType.BYTEA: 'BLOB',
            IRType.BOOLEAN: 'BOOLEAN',
            IRType.TIMESTAMP: 'TIMESTAMP',
            IRType.TIMESTAMP_TZ: 'TEXT',
        },
    }

    # IR types rendered with a (length) suffix, per target
    SIZED_TYPES: Dict[str, Set[IRType]] = {
        'mssql': {IRType.CHAR, IRType.VARCHAR, IRType.VARBINARY},
        'postgresql': {IRType.CHAR, IRType.VARCHAR},
        'sqlite': {IRType.CHAR, IRType.VARCHAR},
    }

    # Longest bounded length per target; beyond it the unbounded form is used
    MAX_LENGTHS: Dict[str, Dict[IRType, Tuple[int, str]]] = {
        'mssql': {
            IRType.CHAR: (4000, 'NVARCHAR(MAX)'),
            IRType.VARCHAR: (4000, 'NVARCHAR(MAX)'),
            IRType.VARBINARY: (8000, 'VARBINARY(MAX)'),
        },
    }

    @staticmethod
    def normalize_dialect(dialect: Optional[str], default: str = 'mssql') -> str:
        """Normalize a dialect/scheme name to a registry key"""
        dialect_lower = (dialect or '').lower()
        if 'postgres' in dialect_lower: return 'postgresql'
        if 'mssql' in dialect_lower or 'sqlserver' in dialect_lower: return 'mssql'
        if 'sqlite' in dialect_lower: return 'sqlite'
        if 'oracle' in dialect_lower: return 'oracle'
        return default

    @staticmethod
    def map_column(descriptor: ColumnDescriptor, target_dialect: str = 'mssql',
                   source_dialect: str = 'oracle') -> str:
        """Map a source column to a target column type expression"""
        type_info = TypeRegistry.map_to_ir(source_dialect, descriptor)
        return TypeRegistry.map_from_ir(target_dialect, type_info)

    @staticmethod
    def map_to_ir(source_dialect: str, descriptor: ColumnDescriptor) -> TypeInfo:
        """Map a source column to IR. Never raises: unknown types fall back to bounded text."""
        dialect_lower = TypeRegistry.normalize_dialect(source_dialect, default='oracle')
        if dialect_lower not in TypeRegistry.SOURCE_TO_IR:
            dialect_lower = 'oracle'
        table = TypeRegistry.SOURCE_TO_IR[dialect_lower]

        raw_type = (descriptor.source_type or '').lower().strip()
        base_type, precision, scale, length = TypeRegistry._parse_type_string(raw_type)

        # 1. Exact match of the full string, 2. parsed base type, 3. first word
        mapping = table.get(raw_type) or table.get(base_type)
        if not mapping and base_type:
            mapping = table.get(base_type.split()[0])

        if not mapping:
            return TypeInfo(IRType.VARCHAR, length=FALLBACK_LENGTH, fallback=True)

        ir_type, default_length = mapping

        # Catalog metadata wins over values embedded in the type string
        precision = descriptor.precision or precision or 0
        scale = descriptor.scale or scale or 0
        length = descriptor.length or length or 0

        if ir_type == NUMERIC:
            return TypeRegistry._numeric_to_ir(precision, scale)

        if default_length is not None:
            return TypeInfo(ir_type, length=length if length > 0 else default_length)

        return TypeInfo(ir_type)

    @staticmethod
    def _numeric_to_ir(precision: int, scale: int) -> TypeInfo:
        if scale > 0:
            p = min(max(precision or MAX_DECIMAL_PRECISION, scale), MAX_DECIMAL_PRECISION)
            return TypeInfo(IRType.DECIMAL, p, min(scale, p))
        if precision > 0:
            ir_type = IRType.INTEGER if precision <= INT32_MAX_PRECISION else IRType.BIGINT
            return TypeInfo(ir_type, precision, 0)
        p, s = UNCONSTRAINED_DECIMAL
        return TypeInfo(IRType.DECIMAL, p, s)

    @staticmethod
    def map_from_ir(target_dialect: str, type_info: TypeInfo) -> str:
        """Map IR type to target type"""
        dialect_lower = TypeRegistry.normalize_dialect(target_dialect)
        if dialect_lower not in TypeRegistry.IR_TO_TARGET:
            dialect_lower = 'mssql'

        base_type = TypeRegistry.IR_TO_TARGET[dialect_lower][type_info.ir_type]

        if type_info.ir_type == IRType.DECIMAL and type_info.precision:
            return f"{base_type}({type_info.precision}, {type_info.scale or 0})"

        if type_info.ir_type in TypeRegistry.SIZED_TYPES[dialect_lower] and type_info.length:
            limit = TypeRegistry.MAX_LENGTHS.get(dialect_lower, {}).get(type_info.ir_type)
            if limit and type_info.length > limit[0]:
                return limit[1]
            return f"{base_type}({type_info.length})"

        return base_type

    @staticmethod
    def _parse_type_string(type_str: str) -> Tuple[str, Optional[int], Optional[int], Optional[int]]:
        """Parse 'varchar(255)' -> ('varchar', 255, None, 255)
        Also handles 'timestamp(6) with time zone' -> ('timestamp with time zone', 6, None, 6)
        """
        # Capture: base_prefix, optional (precision, scale), and trailing modifiers
        match = re.match(r'([a-zA-Z0-9_$#]+)\s*(?:\((\d+)(?:\s*,\s*(\d+))?\))?\s*(.*)', type_str)
        if not match:
            return (type_str.strip(), None, None, None)

        base_prefix = match.group(1).strip()
        precision = int(match.group(2)) if match.group(2) else None
        scale = int(match.group(3)) if match.group(3) else None
        trailing = match.group(4).strip() if match.group(4) else ""

        # Combine base prefix with trailing modifiers (e.g., "timestamp" + "with time zone")
        base = (base_prefix + ' ' + trailing).strip() if trailing else base_prefix
        length = precision  # Alias

        return (base, precision, scale, length)

    @staticmethod
    def is_lossy_conversion(descriptor: ColumnDescriptor, target_dialect: str = 'mssql',
                            source_dialect: str = 'oracle') -> Tuple[bool, Optional[str]]:
        """Check if conversion is lossy"""
        type_info = TypeRegistry.map_to_ir(source_dialect, descriptor)
        target_type_str = TypeRegistry.map_from_ir(target_dialect, type_info)
        source_type = descriptor.source_type or '<none>'
        target_lower = TypeRegistry.normalize_dialect(target_dialect)

        if type_info.fallback:
            return (True, f"Unrecognised type {source_type} -> {target_type_str}; longer values will be rejected")

        raw = source_type.lower()
        base_type = TypeRegistry._parse_type_string(raw)[0]
        is_numeric_family = TypeRegistry.SOURCE_TO_IR.get(
            TypeRegistry.normalize_dialect(source_dialect, default='oracle'), {}
        ).get(base_type, (None,))[0] == NUMERIC

        if is_numeric_family and (type_info.precision, type_info.scale) == UNCONSTRAINED_DECIMAL \
                and not descriptor.precision and not descriptor.scale:
            return (True, f"Precision loss: unconstrained {source_type} -> {target_type_str} "
                          f"(more than {UNCONSTRAINED_DECIMAL[1]} fractional digits are rounded)")

        if type_info.ir_type == IRType.BIGINT and (type_info.precision or 0) > INT64_SAFE_PRECISION:
            return (True, f"Range loss: {source_type} with precision {type_info.precision} -> {target_type_str} "
                          f"(values beyond 64-bit range will be rejected)")

        if 'local time zone' in raw:
            return (True, f"Timezone change: {source_type} -> {target_type_str} (stored with session offset)")

        if type_info.ir_type == IRType.DECIMAL and target_lower == 'sqlite':
            return (True, f"Precision loss: {source_type} -> SQLite {target_type_str} (floating point affinity)")

        if type_info.ir_type == IRType.TIMESTAMP_TZ and target_lower == 'sqlite':
            return (True, f"Timezone loss: {source_type} -> SQLite {target_type_str}")

        return (False, None)
