"""Configuration Manager for the record store and access policy.

This module loads backend and policy configuration from environment
variables or a JSON file and validates it with Pydantic before use.

Security Impact:
    - Configuration is validated before any store is opened (fail-fast)
    - Database paths are checked so a typo cannot silently create files elsewhere
    - Supports .env files for local development via python-dotenv

Architecture:
    - Follows Hexagonal Architecture: Infrastructure layer isolated from domain
    - Type-safe configuration using Pydantic models
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from emr_share.domain.enums import PolicyVersion

logger = logging.getLogger(__name__)

SUPPORTED_STORE_TYPES = ["memory", "duckdb"]


class StoreConfig(BaseModel):
    """Record store configuration.

    Parameters:
        store_type: Backend type ('memory' or 'duckdb')
        db_path: Path to the DuckDB file, or ':memory:'
    """

    store_type: str = Field(default="memory", description="Store backend (memory, duckdb)")
    db_path: Optional[str] = Field(None, description="Path to database file (for DuckDB)")

    @field_validator("store_type")
    @classmethod
    def validate_store_type(cls, v: str) -> str:
        """Validate store type."""
        if v.lower() not in SUPPORTED_STORE_TYPES:
            raise ValueError(f"Unsupported store type: {v}. Supported: {SUPPORTED_STORE_TYPES}")
        return v.lower()

    @field_validator("db_path")
    @classmethod
    def validate_db_path(cls, v: Optional[str]) -> Optional[str]:
        """Validate database directory exists (if a path is provided)."""
        if v is None or v == ":memory:":
            return v

        db_path_obj = Path(v)
        if not db_path_obj.parent.exists():
            raise ValueError(f"Database directory does not exist: {db_path_obj.parent}")

        return str(db_path_obj)

    @model_validator(mode="after")
    def memory_store_has_no_path(self) -> "StoreConfig":
        if self.store_type == "memory" and self.db_path not in (None, ":memory:"):
            logger.warning(f"db_path {self.db_path} ignored for the in-memory store")
        return self


class PolicyConfig(BaseModel):
    """Access policy configuration.

    Parameters:
        version: Policy generation to enforce
    """

    version: PolicyVersion = Field(default=PolicyVersion.CURRENT, description="Access policy version")

    @field_validator("version", mode="before")
    @classmethod
    def normalize_version(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v


class ConfigManager:
    """Configuration manager for store and policy settings.

    Example Usage:
        ```python
        # Load from environment variables
        config = ConfigManager.from_environment()
        store_config = config.get_store_config()

        # Load from file
        config = ConfigManager.from_file("config.json")
        policy_config = config.get_policy_config()
        ```
    """

    def __init__(self, config_data: Dict[str, Any]):
        self._config_data = config_data
        self._store_config: Optional[StoreConfig] = None
        self._policy_config: Optional[PolicyConfig] = None

    @classmethod
    def from_environment(
        cls,
        default_store_type: str = "memory",
        default_db_path: Optional[str] = None,
    ) -> "ConfigManager":
        """Load configuration from environment variables.

        Environment Variables:
            - EMR_STORE_TYPE: Store backend (memory, duckdb)
            - EMR_DB_PATH: Path to database file (for DuckDB)
            - EMR_POLICY_VERSION: Access policy version (current, legacy)

        A ``.env`` file in the working directory is loaded first, without
        overriding variables that are already set.

        Parameters:
            default_store_type: Backend used when EMR_STORE_TYPE is unset
            default_db_path: DuckDB file used when EMR_DB_PATH is unset
        """
        env_path = Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            logger.debug(f"Loaded environment variables from {env_path}")

        store_type = os.getenv("EMR_STORE_TYPE") or default_store_type
        db_path = os.getenv("EMR_DB_PATH")
        if not db_path and store_type.lower() == "duckdb":
            db_path = default_db_path

        config_data = {
            "store": {
                "store_type": store_type,
                "db_path": db_path,
            },
            "policy": {
                "version": os.getenv("EMR_POLICY_VERSION", PolicyVersion.CURRENT.value),
            },
        }

        return cls(config_data)

    @classmethod
    def from_file(cls, config_path: str) -> "ConfigManager":
        """Load configuration from a JSON file.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config file is invalid
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, "r") as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {str(e)}")

        return cls(config_data)

    def get_store_config(self) -> StoreConfig:
        """Get the validated store configuration."""
        if self._store_config is None:
            self._store_config = StoreConfig(**self._config_data.get("store", {}))
        return self._store_config

    def get_policy_config(self) -> PolicyConfig:
        """Get the validated policy configuration."""
        if self._policy_config is None:
            self._policy_config = PolicyConfig(**self._config_data.get("policy", {}))
        return self._policy_config


# ============================================================================
# Convenience Functions
# ============================================================================

def get_store_config() -> StoreConfig:
    """Load the store configuration from the environment.

    Defaults to the in-memory store if nothing is configured.
    """
    return ConfigManager.from_environment().get_store_config()
