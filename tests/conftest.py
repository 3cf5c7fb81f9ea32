"""
Global pytest fixtures for the Shorten Platform test suite.

Responsibilities:
    - Provide a migrated, file-backed SQLite Transactioner per test (tmp_path)
    - Provide a ShortenService wired to that storage
    - Provide FastAPI TestClients via the app factory (normal and debug mode)

Why an app factory?
    Using `create_app(service=...)` lets each test inject its own storage, so
    no test ever touches a shared database file.

LLM Prompt Example:
    "Show how to structure pytest fixtures to isolate database state per test
    and support both integration and unit tests without external services."
"""

import pytest
from fastapi.testclient import TestClient

from main import create_app
from shorten_platform.config import _Settings
from shorten_platform.service.shorten_service import ShortenService
from shorten_platform.service.strategies import MD5HexStrategy
from shorten_platform.storage import migrations
from shorten_platform.storage.shorten_repo import ShortenRepo
from shorten_platform.storage.sqlite_storage import SQLiteStorage


class DebugSettings(_Settings):
    LOG_LEVEL = "debug"


class InfoSettings(_Settings):
    LOG_LEVEL = "info"
    REQUEST_TIMEOUT = 0.0


@pytest.fixture
def transactioner(tmp_path):
    """
    Provide a fresh SQLite storage with the schema applied.

    LLM Prompt Example:
        "Explain how a temporary database file per test keeps integration
        tests deterministic without mocking the driver."
    """
    storage = SQLiteStorage(str(tmp_path / "shorten.db"))
    migrations.up(storage)
    yield storage
    storage.close()


@pytest.fixture
def repo() -> ShortenRepo:
    return ShortenRepo()


@pytest.fixture
def service(transactioner, repo) -> ShortenService:
    """ShortenService with the md5 strategy and the default hash length (7)."""
    return ShortenService(transactioner, repo, strategy=MD5HexStrategy(), hash_length=7)


@pytest.fixture
def client(service) -> TestClient:
    """
    Provide a fresh TestClient with a new app instance.

    Redirects are not followed so resolver responses can be asserted directly.
    """
    app = create_app(service=service, app_settings=InfoSettings())
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def debug_client(service) -> TestClient:
    """TestClient for an app running in debug mode (error details in bodies)."""
    app = create_app(service=service, app_settings=DebugSettings())
    return TestClient(app, follow_redirects=False)
