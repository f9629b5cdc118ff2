import unittest

from core.ddl_generator import DDLGenerator
from core.errors import DdlError, ConfigurationError
from core.schema_ir import ColumnDescriptor, TableDescriptor
from extensions.plugins.sqlite_adapter import SQLiteAdapter


def order_lines():
    return TableDescriptor('ORDER_LINES', [
        ColumnDescriptor('ORDER_ID', 'NUMBER', precision=10, nullable=False, is_primary_key=True),
        ColumnDescriptor('LINE_NO', 'NUMBER', precision=5, nullable=False, is_primary_key=True),
        ColumnDescriptor('NOTE', 'VARCHAR2', length=100),
    ])


def audit_log():
    return TableDescriptor('AUDIT_LOG', [
        ColumnDescriptor('LOGGED_AT', 'TIMESTAMP(6)', nullable=False),
        ColumnDescriptor('MESSAGE', 'CLOB'),
    ])


class TestDDLGenerator(unittest.TestCase):

    def setUp(self):
        self.generator = DDLGenerator()

    def test_create_with_composite_primary_key(self):
        expected = (
            "CREATE TABLE [ORDER_LINES] (\n"
            "    [ORDER_ID] BIGINT NOT NULL,\n"
            "    [LINE_NO] INT NOT NULL,\n"
            "    [NOTE] NVARCHAR(100) NULL,\n"
            "    CONSTRAINT [PK_ORDER_LINES] PRIMARY KEY ([ORDER_ID], [LINE_NO])\n"
            ")"
        )
        self.assertEqual(self.generator.generate_create(order_lines()), expected)

    def test_single_constraint_never_per_column(self):
        sql = self.generator.generate_create(order_lines())
        self.assertEqual(sql.count('PRIMARY KEY'), 1)
        self.assertNotIn('FOREIGN KEY', sql)
        self.assertNotIn('REFERENCES', sql)

    def test_create_without_primary_key(self):
        sql = self.generator.generate_create(audit_log())
        self.assertNotIn('PRIMARY KEY', sql)
        self.assertNotIn('CONSTRAINT', sql)
        self.assertIn('[LOGGED_AT] DATETIME2 NOT NULL', sql)
        self.assertIn('[MESSAGE] NVARCHAR(MAX) NULL', sql)

    def test_create_is_deterministic(self):
        self.assertEqual(self.generator.generate_create(order_lines()),
                         self.generator.generate_create(order_lines()))

    def test_zero_columns(self):
        with self.assertRaises(DdlError):
            self.generator.generate_create(TableDescriptor('EMPTY', []))
        with self.assertRaises(DdlError):
            self.generator.generate_insert(TableDescriptor('EMPTY', []))

    def test_drop_is_conditional(self):
        self.assertEqual(self.generator.generate_drop('EMP'),
                         "IF OBJECT_ID(N'[EMP]', N'U') IS NOT NULL DROP TABLE [EMP]")
        self.assertEqual(DDLGenerator('postgresql').generate_drop('EMP'), 'DROP TABLE IF EXISTS "EMP"')

    def test_drop_escapes_quotes(self):
        self.assertEqual(self.generator.generate_drop("O'BRIEN"),
                         "IF OBJECT_ID(N'[O''BRIEN]', N'U') IS NOT NULL DROP TABLE [O'BRIEN]")

    def test_identifier_quoting(self):
        self.assertEqual(self.generator.quote_ident('a]b'), '[a]]b]')
        self.assertEqual(DDLGenerator('postgresql').quote_ident('a"b'), '"a""b"')
        self.assertEqual(DDLGenerator('sqlite').quote_ident('Order'), '"Order"')

    def test_insert_statement(self):
        self.assertEqual(
            self.generator.generate_insert(order_lines()),
            "INSERT INTO [ORDER_LINES] ([ORDER_ID], [LINE_NO], [NOTE]) VALUES (%s, %s, %s)"
        )
        self.assertEqual(
            DDLGenerator('sqlite').generate_insert(audit_log(), 'qmark'),
            'INSERT INTO "AUDIT_LOG" ("LOGGED_AT", "MESSAGE") VALUES (?, ?)'
        )

    def test_primary_key_name_truncated(self):
        name = 'T' * 200
        table = TableDescriptor(name, [ColumnDescriptor('ID', 'NUMBER', precision=5, is_primary_key=True)])
        sql = self.generator.generate_create(table)
        pk_name = self.generator.primary_key_name(name)
        self.assertEqual(len(pk_name), 128)
        self.assertTrue(pk_name.startswith('PK_' + 'T' * 116 + '_'))
        self.assertIn(f'CONSTRAINT [{pk_name}]', sql)

    def test_truncated_primary_key_names_stay_unique(self):
        first = 'ORDER_HISTORY_' + 'X' * 120 + '_2023'
        second = 'ORDER_HISTORY_' + 'X' * 120 + '_2024'
        self.assertNotEqual(self.generator.primary_key_name(first),
                            self.generator.primary_key_name(second))
        self.assertEqual(self.generator.primary_key_name(first), self.generator.primary_key_name(first))
        self.assertEqual(self.generator.primary_key_name('T' * 125), 'PK_' + 'T' * 125)

    def test_unsupported_dialect(self):
        with self.assertRaises(ConfigurationError):
            DDLGenerator('db2')

    def test_other_dialects(self):
        sql = DDLGenerator('postgresql').generate_create(order_lines())
        self.assertIn('"NOTE" VARCHAR(100) NULL', sql)
        self.assertIn('CONSTRAINT "PK_ORDER_LINES" PRIMARY KEY ("ORDER_ID", "LINE_NO")', sql)


class TestDDLOnSQLite(unittest.TestCase):

    def setUp(self):
        self.target = SQLiteAdapter(':memory:')
        self.generator = DDLGenerator('sqlite')

    def tearDown(self):
        self.target.close()

    def table_exists(self, name):
        row = self.target.connection.execute(
            "SELECT count(*) FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)).fetchone()
        return row[0] == 1

    def test_drop_is_idempotent(self):
        drop = self.generator.generate_drop('ORDER_LINES')
        self.target.execute_ddl(drop)
        self.target.execute_ddl(drop)
        self.assertFalse(self.table_exists('ORDER_LINES'))

    def test_drop_and_recreate(self):
        table = order_lines()
        for _ in range(2):
            self.target.execute_ddl(self.generator.generate_drop(table.name))
            self.target.execute_ddl(self.generator.generate_create(table))
        self.assertTrue(self.table_exists('ORDER_LINES'))

        pk = [row['name'] for row in self.target.connection.execute('PRAGMA table_info("ORDER_LINES")')
              if row['pk'] > 0]
        self.assertEqual(pk, ['ORDER_ID', 'LINE_NO'])


if __name__ == '__main__':
    unittest.main()
