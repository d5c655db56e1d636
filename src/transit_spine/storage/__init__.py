"""Partition/row keyed storage on SQLite.

Architecture::

    database.py        Database (one connection, RLock, transactions)
    tables.py          table_name, KeyedTable, typed entity/metadata stores
    manager.py         StorageManager (catalog + snapshot source), StorageDiffSink
"""

from .database import Database
from .manager import StorageDiffSink, StorageManager
from .tables import (
    AgencyStore,
    DiffMetadataStore,
    EntityStore,
    KeyedTable,
    PublishMetadataStore,
    RegionStore,
    RouteStore,
    StopStore,
    table_name,
)

__all__ = [
    "AgencyStore",
    "Database",
    "DiffMetadataStore",
    "EntityStore",
    "KeyedTable",
    "PublishMetadataStore",
    "RegionStore",
    "RouteStore",
    "StopStore",
    "StorageDiffSink",
    "StorageManager",
    "table_name",
]
