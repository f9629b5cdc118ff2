#!/usr/bin/env python3
"""
Configuration Manager for the migrator
Handles environment variables, connection strings and paths centrally
"""

import os
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field

from core.database_manager import sanitize_error
from core.errors import ConfigurationError

logger = logging.getLogger(__name__)

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


@dataclass
class MigratorConfig:
    """Migrator configuration settings"""

    # Base path for the .env file - use environment or default
    base_dir: Path = None

    # Connection descriptors (loaded from environment)
    source_connection: Optional[str] = None
    target_connection: Optional[str] = None

    # Runtime settings
    batch_size: int = 1000
    max_workers: int = 1
    log_level: str = "INFO"
    exclude: List[str] = field(default_factory=list)

    def __post_init__(self):
        """Initialize paths and load environment variables"""
        self._problems: List[str] = []

        if self.base_dir is None:
            # Default to project root relative to this file
            default_root = Path(__file__).parent.parent
            self.base_dir = Path(os.environ.get('MIGRATOR_HOME', default_root))
        else:
            self.base_dir = Path(self.base_dir)

        # Connection strings from environment
        self.source_connection = os.environ.get('ORACLE_CONNECTION_STRING', self.source_connection)
        self.target_connection = os.environ.get('MSSQL_CONNECTION_STRING', self.target_connection)

        self.batch_size = self._env_int('MIGRATOR_BATCH_SIZE', self.batch_size)
        self.max_workers = self._env_int('MIGRATOR_MAX_WORKERS', self.max_workers)
        self.log_level = os.environ.get('MIGRATOR_LOG_LEVEL', self.log_level).upper()

        exclude = os.environ.get('MIGRATOR_EXCLUDE')
        if exclude:
            self.exclude = [p.strip() for p in exclude.split(',') if p.strip()]

    def _env_int(self, name: str, default: int) -> int:
        value = os.environ.get(name)
        if value is None or value.strip() == '':
            return default
        try:
            return int(value)
        except ValueError:
            self._problems.append(f"{name} must be an integer, got {value!r}")
            return default

    def get_problems(self, require_connections: bool = True) -> List[str]:
        problems = list(self._problems)

        if require_connections:
            if not self.source_connection:
                problems.append('ORACLE_CONNECTION_STRING is not set')
            if not self.target_connection:
                problems.append('MSSQL_CONNECTION_STRING is not set')

        if self.batch_size < 1:
            problems.append(f"batch size must be positive, got {self.batch_size}")
        if self.max_workers < 1:
            problems.append(f"max workers must be positive, got {self.max_workers}")
        if self.log_level not in LOG_LEVELS:
            problems.append(f"unknown log level {self.log_level!r}")

        return problems

    def validate(self, require_connections: bool = True):
        """Raise ConfigurationError listing every problem found"""
        problems = self.get_problems(require_connections)
        if problems:
            raise ConfigurationError("Invalid configuration: " + "; ".join(problems), problems)

    def get_safe_dict(self) -> Dict[str, Any]:
        """Get configuration as dict without sensitive values (side-effect free)"""
        return {
            'base_dir': str(self.base_dir),
            'source_connection': sanitize_error(self.source_connection) if self.source_connection else None,
            'target_connection': sanitize_error(self.target_connection) if self.target_connection else None,
            'batch_size': self.batch_size,
            'max_workers': self.max_workers,
            'log_level': self.log_level,
            'exclude': list(self.exclude),
        }


class ConfigManager:
    """Singleton configuration manager"""

    _instance: Optional['ConfigManager'] = None
    _config: Optional[MigratorConfig] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._config is None:
            self.load_config()

    @classmethod
    def reset(cls):
        """Forget the loaded configuration (next access reloads it)"""
        cls._instance = None
        cls._config = None

    def load_config(self):
        """Load configuration from .env file and environment.

        Priority (highest to lowest):
        1. Environment variables
        2. .env file (loaded into os.environ before config creation)
        3. MigratorConfig dataclass defaults
        """
        default_base = Path(__file__).parent.parent
        base_dir = Path(os.environ.get('MIGRATOR_HOME', default_base))
        env_file = base_dir / '.env'
        if env_file.exists():
            self._load_env_file(env_file)

        ConfigManager._config = MigratorConfig()

    def _load_env_file(self, env_file: Path):
        """Load environment variables from .env file.

        Only sets values for keys not already in os.environ,
        ensuring exported env vars take precedence over .env file.
        """
        try:
            with open(env_file, 'r') as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith('#'):
                        if '=' in line:
                            key, value = line.split('=', 1)
                            key = key.strip()
                            if key.startswith('export '):
                                key = key[len('export '):].strip()
                            value = value.strip().strip('"').strip("'")
                            if key not in os.environ:
                                os.environ[key] = value
        except OSError as e:
            logger.warning(f"Could not load .env file {env_file}: {e}")

    @property
    def config(self) -> MigratorConfig:
        """Get the current configuration"""
        if self._config is None:
            self.load_config()
        return self._config


# Global config instance
def get_config() -> MigratorConfig:
    """Get the global configuration instance"""
    return ConfigManager().config
