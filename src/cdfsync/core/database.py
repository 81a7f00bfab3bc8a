"""SQLite connection factory.

``connect()`` opens (and creates, if needed) the site database and makes
sure the cdf-sync tables exist.  ``":memory:"`` gives a throwaway
database, which is what the test-suite uses.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

from .schema import create_tables

if TYPE_CHECKING:
    from .settings import CdfSyncSettings


def connect(path: str = ":memory:", *, create: bool = True) -> sqlite3.Connection:
    """Open a SQLite connection to ``path``.

    Args:
        path: File path or ``":memory:"``
        create: Create the cdf-sync tables when missing

    Returns:
        sqlite3 connection with autocommit disabled (callers commit)
    """
    if path not in ("", ":memory:"):
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path or ":memory:", check_same_thread=False)
    if create:
        create_tables(conn)
    return conn


def connect_from_settings(settings: CdfSyncSettings, *, create: bool = True) -> sqlite3.Connection:
    """Open the database at ``settings.database_path``."""
    return connect(settings.database_path, create=create)
