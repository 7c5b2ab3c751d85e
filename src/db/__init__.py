"""
Data access layer for the billing core.

Exports the generic row store interface, its backends and connection
utilities.
"""

from src.db.store import (
    AnyOf,
    Condition,
    DataStore,
    FilterOp,
    Query,
    QuerySpec,
    StoreError,
)
from src.db.memory_store import InMemoryDataStore
from src.db.sql_store import SQLAlchemyDataStore
from src.db.connection import (
    check_db_connection,
    close_db_connection,
    create_data_store,
    get_engine,
)

__all__ = [
    # Interface
    "DataStore",
    "Query",
    "QuerySpec",
    "Condition",
    "AnyOf",
    "FilterOp",
    "StoreError",
    # Backends
    "InMemoryDataStore",
    "SQLAlchemyDataStore",
    # Connection
    "get_engine",
    "create_data_store",
    "close_db_connection",
    "check_db_connection",
]
