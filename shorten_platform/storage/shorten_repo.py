"""
Shorten repository: maps the `Shorten` record onto the `shorten` table.

Every method receives the `Runner` to use, so the same repository works
inside or outside a transaction; the caller (the service, through a
`Transactioner`) decides which.

LLM Prompt Example:
    "Explain why a repository that takes its runner as an argument stays
    stateless and lets the service layer own transaction boundaries."
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List

from ..errors import NotFoundError, ShortenError
from ..models import Pager, Shorten
from .base import Runner


class BaseShortenRepo(ABC):
    """Abstract persistence contract for the shorten entity."""

    @abstractmethod  # pragma: no cover
    def persist(self, run: Runner, entity: Shorten) -> int:
        """Insert the entity and return its storage-assigned id (NOT_UNIQUE on hash clash)."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def retrieve_by_id(self, run: Runner, id: int) -> Shorten:
        """Return the entity with `id` or raise NotFoundError."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def retrieve_by_hash(self, run: Runner, hash: str) -> Shorten:
        """Return the entity with `hash` or raise NotFoundError."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def list(self, run: Runner, pager: Pager) -> List[Shorten]:
        """Return a page of entities ordered by ascending id."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def delete(self, run: Runner, id: int) -> None:
        """Delete the entity with `id` or raise NotFoundError."""
        raise NotImplementedError


class ShortenRepo(BaseShortenRepo):
    """SQL implementation; queries are portable across the supported dialects."""

    def persist(self, run: Runner, entity: Shorten) -> int:
        created_at = entity.created_at or datetime.now(timezone.utc)
        try:
            res = run.execute(
                """
                INSERT INTO shorten (url, hash, created_at)
                VALUES (%s, %s, %s)
                RETURNING id
                """,
                (entity.url, entity.hash, Shorten.timestamp(created_at)),
            )
        except ShortenError as err:
            raise ShortenError.wrap("exec", err) from err
        return int(res.last_id)

    def retrieve_by_id(self, run: Runner, id: int) -> Shorten:
        row = run.query_one(
            "SELECT id, url, hash, created_at FROM shorten WHERE id = %s", (id,)
        )
        if row is None:
            raise NotFoundError("retrieve single: not found")
        return self._entity(row)

    def retrieve_by_hash(self, run: Runner, hash: str) -> Shorten:
        row = run.query_one(
            "SELECT id, url, hash, created_at FROM shorten WHERE hash = %s", (hash,)
        )
        if row is None:
            raise NotFoundError("retrieve single: not found")
        return self._entity(row)

    def list(self, run: Runner, pager: Pager) -> List[Shorten]:
        rows = run.query(
            """
            SELECT id, url, hash, created_at
            FROM shorten
            ORDER BY id
            LIMIT %s
            OFFSET %s
            """,
            (pager.limit, pager.offset),
        )
        return [self._entity(row) for row in rows]

    def delete(self, run: Runner, id: int) -> None:
        res = run.execute("DELETE FROM shorten WHERE id = %s", (id,))
        if res.affected != 1:
            raise NotFoundError("delete: not found")

    @staticmethod
    def _entity(row) -> Shorten:
        id, url, hash, created_at = row
        return Shorten(
            id=int(id), url=url, hash=hash, created_at=Shorten.from_timestamp(created_at)
        )
