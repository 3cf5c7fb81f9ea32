"""
Unit tests for ShortenService using in-memory doubles.

The Transactioner double runs the unit of work directly and records which
entry point (with_tx / without_tx) and timeout were used; the repository
double keeps rows in a dict. No database is involved.
"""

import pytest

from shorten_platform.errors import (
    ErrorKind,
    NotFoundError,
    ShortenError,
    ValidationError,
    is_kind,
)
from shorten_platform.models import Pager, Shorten
from shorten_platform.service.shorten_service import ShortenService
from shorten_platform.service.strategies import MD5HexStrategy
from shorten_platform.storage.base import Transactioner
from shorten_platform.storage.shorten_repo import BaseShortenRepo


class FakeTransactioner(Transactioner):
    dialect = "fake"

    def __init__(self):
        self.calls = []

    def with_tx(self, action, timeout=None):
        self.calls.append(("with_tx", timeout))
        return action("runner")

    def without_tx(self, action, timeout=None):
        self.calls.append(("without_tx", timeout))
        return action("runner")

    def close(self):
        pass


class FakeRepo(BaseShortenRepo):
    def __init__(self):
        self.rows = {}
        self.next_id = 1
        self.persisted = 0

    def persist(self, run, entity):
        if any(r.hash == entity.hash for r in self.rows.values()):
            raise ShortenError("exec: UNIQUE constraint failed", kind=ErrorKind.NOT_UNIQUE)
        id = self.next_id
        self.next_id += 1
        self.rows[id] = Shorten(id=id, url=entity.url, hash=entity.hash, created_at=entity.created_at)
        self.persisted += 1
        return id

    def retrieve_by_id(self, run, id):
        if id not in self.rows:
            raise NotFoundError("retrieve single: not found")
        return self.rows[id]

    def retrieve_by_hash(self, run, hash):
        for row in self.rows.values():
            if row.hash == hash:
                return row
        raise NotFoundError("retrieve single: not found")

    def list(self, run, pager):
        ordered = [self.rows[k] for k in sorted(self.rows)]
        return ordered[pager.offset:pager.offset + pager.limit]

    def delete(self, run, id):
        if self.rows.pop(id, None) is None:
            raise NotFoundError("delete: not found")


class RacingRepo(FakeRepo):
    """Simulates a concurrent writer committing the same hash between lookup and insert."""

    def persist(self, run, entity):
        self.rows[42] = Shorten(id=42, url=entity.url, hash=entity.hash)
        raise ShortenError("exec: UNIQUE constraint failed", kind=ErrorKind.NOT_UNIQUE)


class BrokenRepo(FakeRepo):
    def retrieve_by_hash(self, run, hash):
        raise ShortenError("disk I/O error")


@pytest.fixture
def tr():
    return FakeTransactioner()


@pytest.fixture
def repo():
    return FakeRepo()


@pytest.fixture
def svc(tr, repo):
    return ShortenService(tr, repo, strategy=MD5HexStrategy(), hash_length=7)


# ---------------------------------------------------------------------
# create
# ---------------------------------------------------------------------

def test_create_persists_with_computed_hash(svc, repo):
    id = svc.create("https://www.google.com")
    assert id == 1
    assert repo.rows[1].hash == "8ffdefb"
    assert repo.rows[1].url == "https://www.google.com"
    assert repo.rows[1].created_at is not None


def test_create_reuses_existing_hash(svc, repo):
    first = svc.create("https://example.com/x")
    second = svc.create("https://example.com/x")
    assert first == second
    assert repo.persisted == 1


def test_create_runs_without_tx_and_passes_timeout(svc, tr):
    svc.create("https://example.com/x", timeout=1.5)
    assert tr.calls == [("without_tx", 1.5)]


@pytest.mark.parametrize("url", ["", "   ", None])
def test_create_rejects_blank_url(svc, repo, url):
    with pytest.raises(ValidationError) as exc:
        svc.create(url)
    assert exc.value.details == {"url": "blank or empty"}
    assert exc.value.kind is ErrorKind.BAD_INPUT
    assert repo.persisted == 0


def test_create_rejects_caller_supplied_hash(svc, repo):
    with pytest.raises(ValidationError) as exc:
        svc.create("https://example.com", hash="abc")
    assert exc.value == ValidationError({"hash": "not empty"})
    assert repo.persisted == 0


def test_create_recovers_from_concurrent_insert(tr):
    svc = ShortenService(tr, RacingRepo(), strategy=MD5HexStrategy())
    assert svc.create("https://example.com/race") == 42


def test_create_wraps_lookup_failure(tr):
    svc = ShortenService(tr, BrokenRepo(), strategy=MD5HexStrategy())
    with pytest.raises(ShortenError) as exc:
        svc.create("https://example.com")
    msg = str(exc.value)
    assert msg.startswith("persist short: lookup by hash")
    assert "disk I/O error" in msg
    assert exc.value.kind is None


# ---------------------------------------------------------------------
# get / list / delete / resolve
# ---------------------------------------------------------------------

def test_get_returns_entity(svc):
    id = svc.create("https://example.com/get")
    entity = svc.get(id)
    assert entity.id == id
    assert entity.url == "https://example.com/get"


def test_get_missing_is_not_found(svc):
    with pytest.raises(ShortenError) as exc:
        svc.get(99)
    assert is_kind(exc.value, ErrorKind.NOT_FOUND)
    assert str(exc.value).startswith("retrieve shorten by id 99")


def test_list_pages_in_id_order(svc):
    ids = [svc.create(f"https://example.com/{i}") for i in range(5)]
    page = svc.list(Pager(limit=2, offset=1))
    assert [s.id for s in page] == ids[1:3]


@pytest.mark.parametrize(
    "pager, details",
    [
        (Pager(limit=0, offset=0), {"limit": "is lesser then 1"}),
        (Pager(limit=10, offset=-1), {"offset": "is negative"}),
    ],
)
def test_list_validates_pager(svc, tr, pager, details):
    with pytest.raises(ValidationError) as exc:
        svc.list(pager)
    assert exc.value.details == details
    assert tr.calls == []


def test_delete_then_get_is_not_found(svc):
    id = svc.create("https://example.com/del")
    svc.delete(id)
    with pytest.raises(ShortenError) as exc:
        svc.get(id)
    assert is_kind(exc.value, ErrorKind.NOT_FOUND)


def test_delete_missing_is_not_found(svc):
    with pytest.raises(ShortenError) as exc:
        svc.delete(7)
    assert exc.value.kind is ErrorKind.NOT_FOUND


def test_resolve_returns_original_url(svc):
    url = "https://example.com/path?q=1#frag"
    svc.create(url)
    assert svc.resolve(svc.compute_hash(url)) == url


def test_resolve_blank_hash(svc):
    with pytest.raises(ValidationError) as exc:
        svc.resolve(" ")
    assert exc.value.details == {"hash": "blank or empty"}


def test_resolve_unknown_hash(svc):
    with pytest.raises(ShortenError) as exc:
        svc.resolve("deadbee")
    assert exc.value.kind is ErrorKind.NOT_FOUND
