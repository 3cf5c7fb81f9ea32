"""
ShortenService module for Shorten Platform.

Responsibilities:
    - Validate caller input (blank URL, caller-supplied hash, pager bounds)
    - Compute the deterministic hash of a URL
    - Create-or-reuse: a URL whose hash already exists maps to the existing id
    - Orchestrate repository calls through the injected Transactioner

Design notes:
    - The service holds no mutable state; every call is one round trip through
      the Transactioner and the repository, so it is safe to share between
      request threads.
    - Storage errors are never swallowed. They are wrapped with operation
      context and keep their error kind so the HTTP layer can map them.
    - Creation reads then writes without a shared transaction. When a
      concurrent creation wins the race, the insert fails with NOT_UNIQUE and
      the winner's row is read back and reused.

LLM Prompt Example:
    "Explain how deterministic hashing plus a unique constraint gives
    idempotent creation, and how to resolve the check-then-insert race
    without a long-held transaction."
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from ..errors import ErrorKind, ShortenError, ValidationError, is_kind
from ..models import Pager, Shorten
from ..storage.base import Runner, Transactioner
from ..storage.shorten_repo import BaseShortenRepo
from .strategies import BaseStrategy, get_strategy_from_config

log = logging.getLogger("shorten.service")


def _require_not_blank(value: Optional[str], name: str) -> None:
    if value is None or not value.strip():
        raise ValidationError({name: "blank or empty"})


class ShortenService:
    """
    Create, read, list, delete and resolve shortens.

    Args:
        transactioner (Transactioner): Runs units of work against storage.
        repo (BaseShortenRepo): Persistence mapping for the entity.
        strategy (Optional[BaseStrategy]): Hash function; resolved from config when omitted.
        hash_length (Optional[int]): Hash length; config default (7) when omitted.
    """

    def __init__(
        self,
        transactioner: Transactioner,
        repo: BaseShortenRepo,
        strategy: Optional[BaseStrategy] = None,
        hash_length: Optional[int] = None,
    ):
        self.tr = transactioner
        self.repo = repo
        self.strategy = strategy or get_strategy_from_config()
        self.hash_length = hash_length

    def compute_hash(self, url: str) -> str:
        return self.strategy.generate(url, length=self.hash_length)

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    def create(self, url: str, hash: str = "", timeout: Optional[float] = None) -> int:
        """
        Create a shorten for `url` and return its id.

        Rules:
            - `url` must not be blank.
            - `hash` must be blank; hashes are always computed here.
            - If a row with the computed hash exists, its id is returned and
              nothing is written.

        Raises:
            ValidationError: On blank url or supplied hash.
            ShortenError: Wrapped storage failure (kind preserved).
        """
        _require_not_blank(url, "url")
        if hash and hash.strip():
            raise ValidationError({"hash": "not empty"})

        computed = self.compute_hash(url)

        def unit(run: Runner) -> int:
            try:
                return self.repo.retrieve_by_hash(run, computed).id
            except Exception as err:
                if not is_kind(err, ErrorKind.NOT_FOUND):
                    raise ShortenError.wrap(f"lookup by hash {computed!r}", err) from err

            entity = Shorten(
                id=None, url=url, hash=computed, created_at=datetime.now(timezone.utc)
            )
            try:
                return self.repo.persist(run, entity)
            except Exception as err:
                if not is_kind(err, ErrorKind.NOT_UNIQUE):
                    raise
                log.debug("hash %s inserted concurrently, reusing existing row", computed)
            return self.repo.retrieve_by_hash(run, computed).id

        try:
            id = self.tr.without_tx(unit, timeout=timeout)
        except Exception as err:
            raise ShortenError.wrap("persist short", err) from err

        log.debug("shorten %d for hash %s", id, computed)
        return id

    def get(self, id: int, timeout: Optional[float] = None) -> Shorten:
        """Return the shorten with `id` (NOT_FOUND when absent)."""
        try:
            return self.tr.without_tx(lambda run: self.repo.retrieve_by_id(run, id), timeout=timeout)
        except Exception as err:
            raise ShortenError.wrap(f"retrieve shorten by id {id}", err) from err

    def list(self, pager: Pager, timeout: Optional[float] = None) -> List[Shorten]:
        """
        Return up to `pager.limit` shortens ordered by id, skipping `pager.offset`.

        Raises:
            ValidationError: If limit < 1 or offset < 0.
        """
        if pager.limit < 1:
            raise ValidationError({"limit": "is lesser then 1"})
        if pager.offset < 0:
            raise ValidationError({"offset": "is negative"})

        try:
            return self.tr.without_tx(lambda run: self.repo.list(run, pager), timeout=timeout)
        except Exception as err:
            raise ShortenError.wrap("list shortens", err) from err

    def delete(self, id: int, timeout: Optional[float] = None) -> None:
        """Delete the shorten with `id` (NOT_FOUND when nothing was removed)."""
        try:
            self.tr.without_tx(lambda run: self.repo.delete(run, id), timeout=timeout)
        except Exception as err:
            raise ShortenError.wrap(f"delete shorten {id}", err) from err

    def resolve(self, hash: str, timeout: Optional[float] = None) -> str:
        """Return the original URL stored under `hash`, unmodified."""
        _require_not_blank(hash, "hash")
        try:
            short = self.tr.without_tx(
                lambda run: self.repo.retrieve_by_hash(run, hash), timeout=timeout
            )
        except Exception as err:
            raise ShortenError.wrap(f"retrieve shorten by hash {hash!r}", err) from err
        return short.url
