"""Database layer package.

Public re-exports so callers can write::

    from pathtree.db import get_connection, init_db, SqliteNodeStore
"""

from pathtree.db.connection import get_connection
from pathtree.db.schema import init_db
from pathtree.db.models import Node
from pathtree.db.store import NodeStore, SqliteNodeStore, SupportsTransactions

__all__ = [
    "get_connection",
    "init_db",
    "Node",
    "NodeStore",
    "SqliteNodeStore",
    "SupportsTransactions",
]
