"""SQLite connection for the family tree store.

The API keeps one connection for the whole process; the CLI opens one per
command::

    conn = get_connection()
    init_db(conn)
    try:
        snapshot = get_tree(conn)
    finally:
        conn.close()
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

from familytree.config import settings

IN_MEMORY = ":memory:"


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Open the tree database.

    Edge and photo-tag rows rely on ``ON DELETE CASCADE``, so foreign keys
    are switched on for every connection.  File databases use WAL and wait
    up to ``settings.request_timeout`` seconds for a lock held by another
    process (a CLI command running next to the API server).

    Args:
        db_path: Override the DB path.  Defaults to ``settings.db_path``;
            pass ``":memory:"`` for a throwaway database.
    """
    path = str(db_path or settings.db_path)
    in_memory = path == IN_MEMORY
    if not in_memory:
        settings.ensure_workspace()

    conn = sqlite3.connect(path, timeout=settings.request_timeout, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    if not in_memory:
        conn.execute("PRAGMA journal_mode = WAL")
    return conn
