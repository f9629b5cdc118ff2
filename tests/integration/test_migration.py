#!/usr/bin/env python3
"""
Integration Test for the Migrator

- SQLite -> SQLite end to end through the public entry point
- Oracle -> SQL Server with mocked drivers (exact DDL and insert text)
- Command-line entry point
"""

import json
import os
import shutil
import sys
import tempfile
import unittest
from unittest.mock import MagicMock, patch

import ora2mssql
from core.migration import TableState
from tools.db_migrator import main
from tests.helpers import create_sqlite_db, fetch_all, sqlite_url

SCHEMA = """
    CREATE TABLE DEPT (
        ID INTEGER NOT NULL PRIMARY KEY,
        NAME VARCHAR(30) NOT NULL
    );
    CREATE TABLE EMP (
        ID INTEGER NOT NULL,
        SEQ INTEGER NOT NULL,
        DEPT_ID INTEGER REFERENCES DEPT(ID),
        NAME NVARCHAR(50),
        PRIMARY KEY (ID, SEQ)
    );
    CREATE TABLE AUDIT_LOG (
        MSG TEXT
    );
"""

ROWS = {
    'DEPT': [(10, 'Sales'), (20, 'Research'), (30, 'Ops')],
    'EMP': [(1, 1, 10, 'Ann'), (1, 2, 20, None), (2, 1, 30, 'Bob'), (3, 1, None, 'Cy'), (4, 1, 10, 'Di')],
    'AUDIT_LOG': [],
}


class TestSQLiteToSQLite(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.source = create_sqlite_db(os.path.join(self.test_dir, "source.db"), SCHEMA, ROWS)
        self.target = os.path.join(self.test_dir, "target.db")

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_full_migration(self):
        report = ora2mssql.migrate(sqlite_url(self.source), sqlite_url(self.target), batch_size=2)

        self.assertTrue(report.success)
        self.assertEqual([t.name for t in report.tables], ['AUDIT_LOG', 'DEPT', 'EMP'])
        self.assertEqual(report.get('EMP').rows_copied, 5)
        self.assertEqual(report.get('AUDIT_LOG').rows_copied, 0)
        self.assertEqual(report.get('AUDIT_LOG').state, TableState.DONE)
        self.assertEqual(report.summary()['total_rows'], 8)

        self.assertEqual(fetch_all(self.target, 'SELECT * FROM EMP ORDER BY ID, SEQ'), ROWS['EMP'])
        self.assertEqual(fetch_all(self.target, 'SELECT * FROM DEPT ORDER BY ID'), ROWS['DEPT'])

    def test_primary_keys_kept_foreign_keys_dropped(self):
        ora2mssql.migrate(sqlite_url(self.source), sqlite_url(self.target))

        pk_columns = [row[1] for row in fetch_all(self.target, 'PRAGMA table_info("EMP")') if row[5]]
        self.assertEqual(pk_columns, ['ID', 'SEQ'])
        self.assertEqual(fetch_all(self.target, 'PRAGMA foreign_key_list("EMP")'), [])

    def test_rerun_replaces_target_tables(self):
        ora2mssql.migrate(sqlite_url(self.source), sqlite_url(self.target))
        report = ora2mssql.migrate(sqlite_url(self.source), sqlite_url(self.target))

        self.assertTrue(report.success)
        self.assertEqual(fetch_all(self.target, 'SELECT COUNT(*) FROM EMP'), [(5,)])

    def test_plan_does_not_touch_target(self):
        report = ora2mssql.plan(sqlite_url(self.source), sqlite_url(self.target), tables=['dept'])

        self.assertTrue(report.dry_run)
        self.assertEqual([t.name for t in report.tables], ['DEPT'])
        self.assertEqual(report.get('DEPT').state, TableState.PLANNED)
        self.assertTrue(report.get('DEPT').ddl[1].startswith('CREATE TABLE "DEPT"'))
        self.assertFalse(os.path.exists(self.target) and
                         fetch_all(self.target, "SELECT name FROM sqlite_master WHERE type='table'"))


class TestOracleToMSSQL(unittest.TestCase):
    """Full run against mocked oracledb and pymssql"""

    EXPECTED_CREATE = (
        "CREATE TABLE [EMP] (\n"
        "    [ID] BIGINT NOT NULL,\n"
        "    [NAME] NVARCHAR(50) NULL,\n"
        "    [HIRED] DATETIME2 NULL,\n"
        "    [NOTES] NVARCHAR(MAX) NULL,\n"
        "    CONSTRAINT [PK_EMP] PRIMARY KEY ([ID])\n"
        ")"
    )

    def setUp(self):
        self.mock_oracledb = MagicMock()
        ora_conn = MagicMock()
        self.ora_cursor = MagicMock()
        self.mock_oracledb.connect.return_value = ora_conn
        ora_conn.cursor.return_value = self.ora_cursor
        self.ora_cursor.__enter__.return_value = self.ora_cursor
        self.ora_cursor.fetchall.side_effect = [
            [('EMP',)],
            [
                ('ID', 'NUMBER', 22, 10, 0, 'N', 'Y'),
                ('NAME', 'VARCHAR2', 50, None, None, 'Y', 'N'),
                ('HIRED', 'DATE', 7, None, None, 'Y', 'N'),
                ('NOTES', 'CLOB', 4000, None, None, 'Y', 'N'),
            ],
            [('ID', 'NUMBER'), ('NAME', 'VARCHAR2'), ('HIRED', 'DATE'), ('NOTES', 'CLOB')],
        ]
        self.ora_cursor.fetchmany.side_effect = [
            [(1, 'Ann', None, 'first'), (2, 'Bob', None, None), (3, 'Cy', None, '')],
            [],
        ]

        self.mock_pymssql = MagicMock()
        self.mock_pymssql.Error = Exception
        self.sql_conn = MagicMock()
        self.sql_cursor = MagicMock()
        self.mock_pymssql.connect.return_value = self.sql_conn
        self.sql_conn.cursor.return_value = self.sql_cursor

    def run_migration(self, **options):
        modules = {'oracledb': self.mock_oracledb, 'pymssql': self.mock_pymssql}
        with patch.dict(sys.modules, modules):
            sys.modules.pop('extensions.plugins.oracle_adapter', None)
            sys.modules.pop('extensions.plugins.mssql_adapter', None)
            return ora2mssql.migrate(
                "User Id=scott;Password=tiger;Data Source=db:1521/ORCLPDB1",
                "Server=sql,1433;Database=warehouse;User Id=sa;Password=pw",
                **options
            )

    def test_full_run(self):
        report = self.run_migration(batch_size=2)

        self.assertTrue(report.success)
        result = report.get('EMP')
        self.assertEqual(result.rows_copied, 3)
        self.assertEqual(result.warnings, [])

        statements = [c.args for c in self.sql_cursor.execute.call_args_list]
        self.assertEqual(statements[0], ("IF OBJECT_ID(N'[EMP]', N'U') IS NOT NULL DROP TABLE [EMP]",))
        self.assertEqual(statements[1], (self.EXPECTED_CREATE,))

        insert_sql = "INSERT INTO [EMP] ([ID], [NAME], [HIRED], [NOTES]) VALUES (%s, %s, %s, %s)"
        self.assertEqual(statements[2:], [
            (insert_sql, (1, 'Ann', None, 'first')),
            (insert_sql, (2, 'Bob', None, None)),
            (insert_sql, (3, 'Cy', None, '')),
        ])
        # two DDL commits + two batch commits
        self.assertEqual(self.sql_conn.commit.call_count, 4)
        self.ora_cursor.execute.assert_any_call("SET TRANSACTION READ ONLY")

    def test_insert_failure_rolls_back_batch(self):
        outcomes = [None, None, None, None, Exception("Violation of PRIMARY KEY constraint")]

        def execute(*args):
            outcome = outcomes.pop(0) if outcomes else None
            if outcome:
                raise outcome

        self.sql_cursor.execute.side_effect = execute
        report = self.run_migration(batch_size=2)

        result = report.get('EMP')
        self.assertEqual(result.state, TableState.FAILED)
        self.assertEqual(result.failed_step, 'copy_data')
        self.assertEqual(result.rows_copied, 2)
        self.assertEqual(result.error_code, 'DATA_COPY_ERROR')
        self.sql_conn.rollback.assert_called_once()

    def test_dry_run_never_connects_to_target(self):
        report = self.run_migration(dry_run=True)

        self.assertEqual(report.get('EMP').ddl[1], self.EXPECTED_CREATE)
        self.mock_pymssql.connect.assert_not_called()


class TestCommandLine(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.source = create_sqlite_db(os.path.join(self.test_dir, "source.db"), SCHEMA, ROWS)
        self.target = os.path.join(self.test_dir, "target.db")
        self.report_path = os.path.join(self.test_dir, "report.json")

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_main_writes_report(self):
        argv = ['--source', sqlite_url(self.source), '--target', sqlite_url(self.target),
                '--batch-size', '2', '--exclude', 'AUDIT_*', '--report-json', self.report_path]
        with patch.dict(os.environ, {'MIGRATOR_HOME': self.test_dir}, clear=True):
            exit_code = main(argv)

        self.assertEqual(exit_code, 0)
        with open(self.report_path) as f:
            data = json.load(f)
        self.assertEqual(data['summary'], {'attempted': 2, 'succeeded': 2, 'failed': 0, 'total_rows': 8})
        self.assertEqual([t['name'] for t in data['tables']], ['DEPT', 'EMP'])
        self.assertEqual(data['tables'][0]['state'], 'done')

    def test_main_reads_environment(self):
        env = {
            'MIGRATOR_HOME': self.test_dir,
            'ORACLE_CONNECTION_STRING': sqlite_url(self.source),
            'MSSQL_CONNECTION_STRING': sqlite_url(self.target),
        }
        with patch.dict(os.environ, env, clear=True):
            exit_code = main(['--tables', 'DEPT'])

        self.assertEqual(exit_code, 0)
        self.assertEqual(fetch_all(self.target, 'SELECT COUNT(*) FROM DEPT'), [(3,)])

    def test_main_without_connections(self):
        with patch.dict(os.environ, {'MIGRATOR_HOME': self.test_dir}, clear=True), \
                patch('tools.db_migrator.prompt_connection', return_value=None):
            self.assertEqual(main([]), 2)

    def test_main_reports_failed_tables(self):
        argv = ['--source', sqlite_url(self.source), '--target', 'sqlite:////nonexistent-dir/target.db']
        with patch.dict(os.environ, {'MIGRATOR_HOME': self.test_dir}, clear=True):
            self.assertEqual(main(argv), 1)


if __name__ == '__main__':
    unittest.main()
