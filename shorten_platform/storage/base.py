"""
Base storage interfaces for Shorten Platform.

Purpose:
    Define a small, stable contract that relational backends (SQLite,
    PostgreSQL) implement without requiring changes to the repository or
    service code.

    - `Runner` executes parameterized SQL. Placeholders are always written
      in the DB-API "format" style (`%s`); a backend translates them if its
      driver uses another style.
    - `Transactioner` hands a `Runner` to a unit of work, either inside an
      explicit transaction or directly on a pooled connection.

Testing & Coverage:
    These are abstract methods and are not executed directly in tests.
    We annotate them with `# pragma: no cover` so coverage tools don't
    penalize the project for un-runnable abstract declarations.

LLM Prompt Example:
    "Show how a capability interface over transactional and non-transactional
    execution keeps transaction decisions out of repository code."
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple, TypeVar

Row = Tuple[Any, ...]
Params = Sequence[Any]
T = TypeVar("T")


@dataclass(frozen=True)
class ExecResult:
    """Outcome of a mutation: rows affected and the id of an inserted row."""
    affected: int
    last_id: Optional[int] = None


class Deadline:
    """Absolute point in (monotonic) time after which storage calls are aborted."""

    def __init__(self, at: float):
        self.at = at

    @classmethod
    def after(cls, timeout: Optional[float]) -> Optional["Deadline"]:
        if timeout is None:
            return None
        return cls(time.monotonic() + timeout)

    def remaining(self) -> float:
        return max(0.0, self.at - time.monotonic())

    def expired(self) -> bool:
        return time.monotonic() >= self.at


class Runner(ABC):
    """Minimal capability to run SQL, independent of transaction state."""

    @abstractmethod  # pragma: no cover
    def execute(self, query: str, params: Params = ()) -> ExecResult:
        """
        Run a mutation.

        When the statement returns rows (e.g. `INSERT ... RETURNING id`),
        the first column of the first row is reported as `last_id`.
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def query_one(self, query: str, params: Params = ()) -> Optional[Row]:
        """Return the first row, or None when the query yields nothing."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def query(self, query: str, params: Params = ()) -> List[Row]:
        """Return every row produced by the query (possibly empty)."""
        raise NotImplementedError


UnitOfWork = Callable[[Runner], T]


class Transactioner(ABC):
    """Runs units of work with or without an explicit transaction."""

    #: SQL dialect name, used to pick DDL for migrations.
    dialect: str = ""

    @abstractmethod  # pragma: no cover
    def with_tx(self, action: UnitOfWork, timeout: Optional[float] = None) -> Any:
        """
        Run `action` inside a transaction.

        If `action` raises, the transaction is rolled back and the exception
        propagates. Otherwise the transaction is committed (a failing commit
        raises) and `action`'s return value is returned.
        """
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def without_tx(self, action: UnitOfWork, timeout: Optional[float] = None) -> Any:
        """Run `action` on a pooled connection; each statement commits on its own."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def close(self) -> None:
        """Release every pooled connection."""
        raise NotImplementedError
