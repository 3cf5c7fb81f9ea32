"""
End-to-end API tests through the FastAPI app factory with SQLite storage.

LLM Prompt Example:
    "Show how to test a REST API end to end with TestClient, asserting on
    status codes and headers rather than implementation details."
"""

import pytest
from fastapi.testclient import TestClient

from main import create_app, main
from shorten_platform.errors import ErrorKind, ShortenError

GOOGLE = "https://www.google.com"


def _create(client, url):
    return client.post("/api/shorten", json={"url": url})


def test_full_lifecycle(client):
    resp = _create(client, GOOGLE)
    assert resp.status_code == 201
    assert resp.headers["location"] == "/api/shorten/1"
    assert resp.content == b""

    resp = client.get("/api/shorten/1")
    assert resp.status_code == 200
    assert resp.json() == {"id": 1, "url": GOOGLE, "hash": "8ffdefb"}

    resp = client.get("/8ffdefb")
    assert resp.status_code == 307
    assert resp.headers["location"] == GOOGLE

    resp = client.delete("/api/shorten/1")
    assert resp.status_code == 204
    assert resp.content == b""

    assert client.get("/api/shorten/1").status_code == 404
    assert client.get("/8ffdefb").status_code == 404
    assert client.delete("/api/shorten/1").status_code == 404


def test_create_is_idempotent(client):
    first = _create(client, "https://example.com/same")
    second = _create(client, "https://example.com/same")
    assert first.status_code == second.status_code == 201
    assert first.headers["location"] == second.headers["location"]
    assert len(client.get("/api/shorten").json()) == 1


def test_resolve_returns_url_unmodified(client):
    url = "https://example.com/a?x=1&y=%20#frag"
    _create(client, url)
    hash = client.get("/api/shorten/1").json()["hash"]
    assert client.get(f"/{hash}").headers["location"] == url


def test_list_paging(client):
    for i in range(4):
        _create(client, f"https://example.com/{i}")

    resp = client.get("/api/shorten", params={"limit": 2, "offset": 1})
    assert resp.status_code == 200
    assert [s["id"] for s in resp.json()] == [2, 3]
    assert [s["url"] for s in resp.json()] == ["https://example.com/1", "https://example.com/2"]

    assert len(client.get("/api/shorten").json()) == 4
    assert client.get("/api/shorten", params={"offset": 10}).json() == []


@pytest.mark.parametrize(
    "body",
    [
        {"url": ""},
        {"url": "   "},
        {},
        {"url": "https://example.com", "hash": "abc"},
        {"url": 5},
    ],
)
def test_create_bad_input(client, body):
    resp = client.post("/api/shorten", json=body)
    assert resp.status_code == 400
    assert resp.content == b""


def test_create_malformed_json(client):
    resp = client.post(
        "/api/shorten", content=b"{not json", headers={"content-type": "application/json"}
    )
    assert resp.status_code == 400


def test_create_requires_json_content_type(client):
    resp = client.post(
        "/api/shorten", content=b"url=https://x.com", headers={"content-type": "text/plain"}
    )
    assert resp.status_code == 415


@pytest.mark.parametrize(
    "params",
    [{"limit": 0}, {"offset": -1}, {"limit": "abc"}, {"offset": "1.5"}],
)
def test_list_bad_input(client, params):
    assert client.get("/api/shorten", params=params).status_code == 400


def test_non_numeric_id_is_bad_input(client):
    assert client.get("/api/shorten/abc").status_code == 400
    assert client.delete("/api/shorten/abc").status_code == 400


def test_debug_mode_exposes_error_details(debug_client):
    resp = debug_client.post("/api/shorten", json={"url": ""})
    assert resp.status_code == 400
    assert "blank or empty" in resp.json()["detail"]

    resp = debug_client.get("/api/shorten/42")
    assert resp.status_code == 404
    assert resp.json()["detail"].startswith("retrieve shorten by id 42")


def test_probes_and_version(client):
    assert client.get("/-/liveness").status_code == 200
    assert client.get("/-/readiness").status_code == 200
    info = client.get("/-/version").json()
    assert set(info) == {"version", "commit_sha", "build_timestamp"}


class StubService:
    """Service double that fails every call with a preset error."""

    def __init__(self, err):
        self.err = err

    def create(self, url, hash="", timeout=None):
        raise self.err

    def get(self, id, timeout=None):
        raise self.err


@pytest.mark.parametrize(
    "err, status",
    [
        (ShortenError("persist short: exec: dup", kind=ErrorKind.NOT_UNIQUE), 409),
        (ShortenError("persist short: disk full"), 500),
        (ShortenError("list shortens: storage deadline exceeded"), 500),
    ],
)
def test_error_kind_mapping(err, status):
    client = TestClient(create_app(service=StubService(err)))
    assert _create(client, "https://example.com").status_code == status
    assert client.get("/api/shorten/1").status_code == status


def test_version_flag_prints_build_info(capsys):
    assert main(["--version"]) == 0
    out = capsys.readouterr().out
    assert '"version"' in out and '"commit_sha"' in out
