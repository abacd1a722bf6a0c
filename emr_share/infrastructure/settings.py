"""Application Settings and Configuration.

This module provides application-wide settings that combine configuration
from the configuration manager with application-specific defaults.
"""

import os
from typing import Optional

from emr_share import __version__
from emr_share.domain.enums import PolicyVersion
from emr_share.infrastructure.config_manager import ConfigManager, StoreConfig

# Application metadata
APP_NAME = "EMR-Share"
APP_VERSION = __version__


class Settings:
    """Application settings loaded from configuration manager and environment.

    Store and policy configuration are loaded lazily on first access, so
    environment changes made before that point (tests, the CLI) take effect.

    Parameters:
        default_store_type: Backend used when EMR_STORE_TYPE is unset
        default_db_path: DuckDB file used when EMR_DB_PATH is unset
    """

    def __init__(self, default_store_type: str = "memory", default_db_path: Optional[str] = None):
        self._default_store_type = default_store_type
        self._default_db_path = default_db_path
        self._store_config: Optional[StoreConfig] = None
        self._config_manager: Optional[ConfigManager] = None

        self.app_name = os.getenv("EMR_APP_NAME", APP_NAME)

        # Logging
        self.log_level = os.getenv("EMR_LOG_LEVEL", "WARNING")
        self.log_json = os.getenv("EMR_LOG_JSON", "false").lower() == "true"

    @property
    def config_manager(self) -> ConfigManager:
        if self._config_manager is None:
            self._config_manager = ConfigManager.from_environment(
                default_store_type=self._default_store_type,
                default_db_path=self._default_db_path,
            )
        return self._config_manager

    @property
    def store_config(self) -> StoreConfig:
        """Get the record store configuration."""
        if self._store_config is None:
            self._store_config = self.config_manager.get_store_config()
        return self._store_config

    @property
    def policy_version(self) -> PolicyVersion:
        """Get the configured access policy version."""
        return self.config_manager.get_policy_config().version

    def get_db_path(self) -> str:
        """Get database path for DuckDB.

        Returns:
            Database path or ':memory:' for in-memory database
        """
        if self.store_config.store_type == "duckdb":
            return self.store_config.db_path or ":memory:"
        raise ValueError(f"Store type '{self.store_config.store_type}' does not use db_path")


def get_settings(default_store_type: str = "memory", default_db_path: Optional[str] = None) -> Settings:
    """Build settings from the current environment."""
    return Settings(default_store_type=default_store_type, default_db_path=default_db_path)
