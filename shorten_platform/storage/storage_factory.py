"""
Storage factory – switch storage backend from config (lazy env version)
======================================================================

This module centralizes selection of the storage backend (SQLite vs PostgreSQL)
so the rest of the app can stay ignorant of where data lives.

- Reads environment **at call time** to avoid stale values in tests.
- Imports the PostgreSQL backend **only if** the selected backend is "postgres".

Environment variables
---------------------
- SHORTEN_STORAGE_BACKEND:  "sqlite" (default) or "postgres"
- SHORTEN_STORAGE_FILEPATH: database file if backend=="sqlite"
- SHORTEN_DB_DSN:           DSN string if backend=="postgres"
- SHORTEN_DB_MAX_OPEN / SHORTEN_DB_MAX_IDLE / SHORTEN_DB_MAX_LIFETIME: pool bounds
"""

import logging
import os
from typing import Optional

from shorten_platform.config import get_float, get_int
from shorten_platform.storage.base import Transactioner
from shorten_platform.storage.sqlite_storage import SQLiteStorage

log = logging.getLogger("shorten.storage")


def _pool_options(kwargs: dict) -> dict:
    return {
        "max_open": kwargs.get("max_open", get_int("SHORTEN_DB_MAX_OPEN", 16)),
        "max_idle": kwargs.get("max_idle", get_int("SHORTEN_DB_MAX_IDLE", 4)),
        "max_lifetime": kwargs.get("max_lifetime", get_float("SHORTEN_DB_MAX_LIFETIME", 30.0)),
    }


def get_transactioner(backend: Optional[str] = None, **kwargs) -> Transactioner:
    """
    Return a Transactioner based on configuration.

    Parameters
    ----------
    backend : str, optional
        "sqlite" (default) or "postgres". If omitted, reads SHORTEN_STORAGE_BACKEND.
    kwargs : dict
        Extra args for the backend: filepath="..." for sqlite, dsn="..." for postgres,
        and max_open / max_idle / max_lifetime for either.

    Returns
    -------
    Transactioner-compatible instance
    """
    # Read env **now** to avoid capturing stale values at import time
    be = (backend or os.getenv("SHORTEN_STORAGE_BACKEND", "sqlite")).strip().lower()
    log.info("selected storage backend: %r", be)

    if be == "sqlite":
        filepath = kwargs.get("filepath") or os.getenv("SHORTEN_STORAGE_FILEPATH", "shorten.db")
        return SQLiteStorage(filepath, **_pool_options(kwargs))

    if be == "postgres":
        dsn = kwargs.get("dsn") or os.getenv("SHORTEN_DB_DSN", "")
        if not dsn:
            raise ValueError("DB_DSN is required for postgres backend (env SHORTEN_DB_DSN)")
        # Local import to avoid hard dependency when not using postgres
        from shorten_platform.storage.db_storage import DBStorage
        return DBStorage(dsn=dsn, **_pool_options(kwargs))

    raise ValueError(f"Unknown storage backend: {be!r}")
