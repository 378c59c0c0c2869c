"""
Persistence layer for Brigade state.

SQLite-backed ledger of cache volumes and their fixed sizes.
"""

from .manager import PersistenceManager, cache_volume_name
from .errors import PersistenceError, SchemaError

__all__ = ["PersistenceManager", "PersistenceError", "SchemaError", "cache_volume_name"]
