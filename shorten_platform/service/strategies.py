"""
Strategies for hash generation in shorten_platform.

Provided strategies:
- MD5HexStrategy: hex(MD5(url)) -> truncate to L (default; "8ffdefb" for "https://www.google.com")
- SHA256HexStrategy: hex(SHA-256(url)) -> truncate to L

Both are deterministic: every process computes the same hash for the same URL,
which is what makes creation idempotent. Two different URLs may still truncate
to the same hash; the service treats that as reuse of the existing entry.

Configuration (via shorten_platform.config.settings):
- HASH_STRATEGY: "md5" (default) or "sha256"
- HASH_LENGTH: default length (7; clamped 4..32)
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Type

from shorten_platform.config import settings

log = logging.getLogger("shorten.service")


def _safe_len(length: Optional[int]) -> int:
    """
    Resolve desired hash length from arg or config, clamped to [4, 32].
    """
    L = int(length) if length is not None else int(getattr(settings, "HASH_LENGTH", 7))
    return max(4, min(32, L))


class BaseStrategy(ABC):
    """Abstract base for hash generation strategies."""

    @abstractmethod
    def generate(self, url: str, *, length: Optional[int] = None) -> str:
        """Return the hash for `url`, truncated to `length` characters."""
        raise NotImplementedError


@dataclass(frozen=True)
class MD5HexStrategy(BaseStrategy):
    """MD5 over the UTF-8 bytes -> lowercase hex -> truncate."""
    def generate(self, url: str, *, length: Optional[int] = None) -> str:
        return hashlib.md5(url.encode("utf-8")).hexdigest()[:_safe_len(length)]


@dataclass(frozen=True)
class SHA256HexStrategy(BaseStrategy):
    """SHA-256 over the UTF-8 bytes -> lowercase hex -> truncate."""
    def generate(self, url: str, *, length: Optional[int] = None) -> str:
        return hashlib.sha256(url.encode("utf-8")).hexdigest()[:_safe_len(length)]


STRATEGY_REGISTRY: Dict[str, Type[BaseStrategy]] = {
    "md5": MD5HexStrategy,
    "sha256": SHA256HexStrategy,
    "sha-256": SHA256HexStrategy,
}


def get_strategy_from_config(name: Optional[str] = None) -> BaseStrategy:
    """
    Resolve the active strategy from parameter or settings.HASH_STRATEGY.
    Unknown names fall back to md5.
    """
    key = (name or getattr(settings, "HASH_STRATEGY", "md5") or "md5").strip().lower()
    cls = STRATEGY_REGISTRY.get(key)
    if cls is None:
        log.warning("unknown hash strategy %r, falling back to md5", key)
        cls = MD5HexStrategy
    return cls()
