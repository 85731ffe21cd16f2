"""Database layer package.

Public re-exports so callers can write::

    from familytree.db import get_connection, init_db
    from familytree.db import family
"""

from familytree.db.connection import get_connection
from familytree.db.migrations import init_db
from familytree.db import data_entry, family, photos

__all__ = ["get_connection", "init_db", "data_entry", "family", "photos"]
