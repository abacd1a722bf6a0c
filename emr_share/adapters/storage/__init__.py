"""Storage adapters for EMR-Share.

This module contains storage adapters that implement the RecordStorePort and
PrincipalStorePort interfaces for persisting records and directory entries.
"""

from emr_share.adapters.storage.duckdb_adapter import DuckDBAdapter
from emr_share.adapters.storage.memory_adapter import InMemoryStore

__all__ = ["DuckDBAdapter", "InMemoryStore"]
