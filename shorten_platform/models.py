"""
Domain records shared by the service and the storage layer.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class Shorten:
    """A persisted short link: storage-assigned id, original url and its hash."""
    id: Optional[int]
    url: str
    hash: str
    created_at: Optional[datetime] = None

    @staticmethod
    def timestamp(created_at: datetime) -> int:
        """Epoch seconds as stored in the `created_at` column."""
        return int(created_at.timestamp())

    @staticmethod
    def from_timestamp(value: int) -> datetime:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)


@dataclass(frozen=True)
class Pager:
    """Limit/offset window for listing."""
    limit: int
    offset: int = 0
