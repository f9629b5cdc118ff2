#!/usr/bin/env python3
"""
SQL Server Adapter - Migration Target

Executes target DDL and transactional batch inserts over a single pymssql
connection (autocommit off). Each migrated table gets its own adapter
instance, so adapters are never shared between threads.
"""

import pymssql
import logging
from dataclasses import dataclass
from typing import Any, Dict, Sequence

from core.database_manager import TargetExecutor

logger = logging.getLogger(__name__)


@dataclass
class ConnectionConfig:
    """SQL Server connection configuration"""
    host: str = "localhost"
    port: int = 1433
    database: str = ""
    user: str = ""
    password: str = ""
    login_timeout: int = 30
    appname: str = "ora2mssql"

    def to_connection_params(self) -> Dict[str, Any]:
        """Convert to pymssql.connect() keyword arguments"""
        return {
            'server': self.host,
            'port': self.port,
            'user': self.user,
            'password': self.password,
            'database': self.database,
            'login_timeout': self.login_timeout,
            'appname': self.appname,
            'autocommit': False,
        }


class MSSQLAdapter(TargetExecutor):
    """SQL Server migration target"""

    backend_type = 'mssql'
    paramstyle = 'format'

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self.connection = pymssql.connect(**config.to_connection_params())
        self._cursor = self.connection.cursor()
        logger.info(f"Connected to MSSQL target {config.host}:{config.port}/{config.database}")

    def execute_ddl(self, sql: str) -> None:
        try:
            self._cursor.execute(sql)
            self.connection.commit()
        except pymssql.Error:
            self.connection.rollback()
            raise

    def begin(self) -> None:
        # autocommit is off: the first statement opens the transaction
        pass

    def commit(self) -> None:
        self.connection.commit()

    def rollback(self) -> None:
        self.connection.rollback()

    def execute(self, sql: str, params: Sequence[Any]) -> None:
        self._cursor.execute(sql, tuple(params))

    def close(self):
        """Close the connection"""
        if self.connection is not None:
            self.connection.close()
            self.connection = None
            logger.debug("MSSQL connection closed")
