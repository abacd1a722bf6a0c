"""Composition root for EMR-Share.

Builds the record store, directory, access policy and record service from
settings. The transaction shell (cli.py) and embedding applications call
build_service() once per process.

Architecture:
    - Follows Hexagonal Architecture principles
    - Storage adapter is selected via configuration manager
    - Domain objects receive their ports through constructors
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from emr_share.adapters.storage import DuckDBAdapter, InMemoryStore
from emr_share.domain.directory import Directory
from emr_share.domain.policy import AccessPolicy
from emr_share.domain.services import RecordService
from emr_share.infrastructure.logging_config import setup_logging
from emr_share.infrastructure.settings import APP_VERSION, Settings, get_settings

logger = logging.getLogger(__name__)

Store = Union[InMemoryStore, DuckDBAdapter]


@dataclass
class Application:
    """Wired service plus the store backing it (so callers can close it)."""
    service: RecordService
    store: Store
    directory: Directory

    def close(self) -> None:
        if isinstance(self.store, DuckDBAdapter):
            self.store.close()


def create_store(settings: Settings) -> Store:
    """Create the record store configured in ``settings``.

    Raises:
        ValueError: If store type is unsupported
    """
    store_config = settings.store_config

    if store_config.store_type == "duckdb":
        db_path = settings.get_db_path()
        logger.info(f"Initializing DuckDB store with path: {db_path}")
        store = DuckDBAdapter(db_path=db_path)
        store.initialize_schema()
        return store
    elif store_config.store_type == "memory":
        logger.info("Initializing in-memory store")
        return InMemoryStore()
    else:
        raise ValueError(f"Unsupported store type: {store_config.store_type}")


def build_service(settings: Optional[Settings] = None, configure_logging: bool = True) -> Application:
    """Wire store, directory, policy and service from settings."""
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(use_json=settings.log_json, log_level=settings.log_level)
    logger.info(f"Starting {settings.app_name} {APP_VERSION} with the {settings.policy_version.value} access policy")

    store = create_store(settings)
    directory = Directory(store)
    policy = AccessPolicy(settings.policy_version)
    service = RecordService(store, directory, policy=policy)
    return Application(service=service, store=store, directory=directory)
