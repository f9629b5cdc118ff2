#!/usr/bin/env python3
"""
PostgreSQL Adapter - Migration Target

Executes target DDL and transactional batch inserts over a single psycopg2
connection. Each migrated table gets its own adapter instance.

Usage:
    adapter = PostgreSQLAdapter(ConnectionConfig(
        host='localhost',
        database='warehouse',
        user='loader',
        password='secure_password'
    ))
    adapter.execute_ddl('CREATE TABLE "T" ("ID" INTEGER NOT NULL)')
"""

import psycopg2
import logging
from typing import Dict, Any, Optional, Sequence
from dataclasses import dataclass
from enum import Enum

from core.database_manager import TargetExecutor

# Configure logging
logger = logging.getLogger(__name__)


class SSLMode(Enum):
    """SSL connection modes"""
    DISABLE = "disable"
    ALLOW = "allow"
    PREFER = "prefer"
    REQUIRE = "require"
    VERIFY_CA = "verify-ca"
    VERIFY_FULL = "verify-full"


@dataclass
class ConnectionConfig:
    """PostgreSQL connection configuration"""
    host: str = "localhost"
    port: int = 5432
    database: str = "postgres"
    user: str = "postgres"
    password: str = ""

    # SSL settings
    ssl_mode: SSLMode = SSLMode.PREFER
    ssl_ca: Optional[str] = None

    connect_timeout: int = 10
    application_name: str = "ora2mssql"

    def to_connection_params(self) -> Dict[str, Any]:
        """Convert to psycopg2 connection parameters"""
        params = {
            'host': self.host,
            'port': self.port,
            'database': self.database,
            'user': self.user,
            'password': self.password,
            'connect_timeout': self.connect_timeout,
            'application_name': self.application_name,
        }

        if self.ssl_mode != SSLMode.DISABLE:
            params['sslmode'] = self.ssl_mode.value
            if self.ssl_ca:
                params['sslrootcert'] = self.ssl_ca

        return params


class PostgreSQLAdapter(TargetExecutor):
    """PostgreSQL migration target"""

    backend_type = 'postgresql'
    paramstyle = 'format'

    def __init__(self, config: Optional[ConnectionConfig] = None, **kwargs):
        self.config = config or ConnectionConfig(**kwargs)
        self.connection = psycopg2.connect(**self.config.to_connection_params())
        self.connection.autocommit = False
        self._cursor = self.connection.cursor()
        logger.info(f"Connected to PostgreSQL target {self.config.host}:{self.config.port}/{self.config.database}")

    def execute_ddl(self, sql: str) -> None:
        try:
            self._cursor.execute(sql)
            self.connection.commit()
        except psycopg2.Error:
            self.connection.rollback()
            raise

    def begin(self) -> None:
        # psycopg2 opens the transaction implicitly on the first statement
        pass

    def commit(self) -> None:
        self.connection.commit()

    def rollback(self) -> None:
        self.connection.rollback()

    def execute(self, sql: str, params: Sequence[Any]) -> None:
        self._cursor.execute(sql, tuple(params))

    def close(self):
        """Close the connection"""
        if self.connection is not None and not self.connection.closed:
            self._cursor.close()
            self.connection.close()
            logger.debug("PostgreSQL connection closed")
