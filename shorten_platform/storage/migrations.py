"""
Schema migrations.

Each backend dialect has an ordered list of idempotent statements; `up`
applies them one transaction each. Schema evolution beyond creating the
`shorten` table is not handled here.
"""

import logging
from typing import Dict, List

from ..errors import ShortenError
from .base import Transactioner

log = logging.getLogger("shorten.storage")

MIGRATIONS: Dict[str, List[str]] = {
    "sqlite": [
        """
        CREATE TABLE IF NOT EXISTS shorten (
            id INTEGER PRIMARY KEY,
            url TEXT NOT NULL CHECK(LENGTH(url) > 0),
            hash TEXT NOT NULL CHECK(LENGTH(hash) > 0) UNIQUE,
            created_at INTEGER NOT NULL
        )
        """,
    ],
    "postgres": [
        """
        CREATE TABLE IF NOT EXISTS shorten (
            id BIGSERIAL PRIMARY KEY,
            url TEXT NOT NULL CHECK (LENGTH(url) > 0),
            hash TEXT NOT NULL CHECK (LENGTH(hash) > 0) UNIQUE,
            created_at BIGINT NOT NULL
        )
        """,
    ],
}


def up(transactioner: Transactioner) -> None:
    """Apply every migration for the transactioner's dialect."""
    statements = MIGRATIONS.get(transactioner.dialect)
    if statements is None:
        raise ValueError(f"No migrations for dialect {transactioner.dialect!r}")

    for number, statement in enumerate(statements, start=1):
        try:
            transactioner.with_tx(lambda run: run.execute(statement))
        except Exception as err:
            raise ShortenError.wrap(f"apply migration {number}", err) from err
        log.debug("applied migration %d (%s)", number, transactioner.dialect)
