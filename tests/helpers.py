"""Shared helpers for building and inspecting SQLite test databases"""

import os
import sqlite3


def create_sqlite_db(path: str, script: str, rows: dict = None) -> str:
    """Create a SQLite database from a DDL script and optional {table: [rows]}"""
    with sqlite3.connect(path) as conn:
        conn.executescript(script)
        for table, table_rows in (rows or {}).items():
            if not table_rows:
                continue
            placeholders = ", ".join("?" * len(table_rows[0]))
            conn.executemany(f'INSERT INTO "{table}" VALUES ({placeholders})', table_rows)
        conn.commit()
    conn.close()
    return path


def fetch_all(path: str, sql: str, params: tuple = ()):
    conn = sqlite3.connect(path)
    try:
        return conn.execute(sql, params).fetchall()
    finally:
        conn.close()


def sqlite_url(path: str) -> str:
    return f"sqlite:///{os.path.abspath(path)}"
