"""
Main API module for Shorten Platform.

Responsibilities:
    - Expose REST endpoints to create, read, list and delete shortens
    - Resolve a hash back to its original URL with a temporary redirect
    - Map service error kinds to HTTP status codes
    - Liveness/readiness probes and build information

Architecture:
    - App Factory pattern (create_app) for test isolation and DI.
    - SQLite storage by default; PostgreSQL through the storage factory.
    - ShortenService owns validation, hashing and create-or-reuse rules.

Run:
    python main.py                # serves on SHORTEN_HTTP_HOST:SHORTEN_HTTP_PORT
    python main.py --version      # prints build information as JSON

LLM Prompt Example:
    "Explain how to structure a FastAPI service with an application factory,
    injected dependencies, and a clean separation between API and business logic."
"""

import argparse
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from shorten_platform.config import settings
from shorten_platform.errors import ErrorKind, ShortenError
from shorten_platform.logging_config import setup_logging
from shorten_platform.models import Pager
from shorten_platform.service.shorten_service import ShortenService
from shorten_platform.service.strategies import get_strategy_from_config
from shorten_platform.storage import migrations
from shorten_platform.storage.base import Transactioner
from shorten_platform.storage.shorten_repo import ShortenRepo
from shorten_platform.storage.storage_factory import get_transactioner
from shorten_platform.web.middleware import LoggingMiddleware

API_PREFIX = "/api/shorten"

STATUS_BY_KIND = {
    ErrorKind.BAD_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_UNIQUE: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


class CreateShortenRequest(BaseModel):
    """Request payload for creating a new shorten. `hash` is accepted only to be rejected."""
    url: str = ""
    hash: str = ""


class ShortenResponse(BaseModel):
    id: int
    url: str
    hash: str


def create_app(
    service: Optional[ShortenService] = None,
    transactioner: Optional[Transactioner] = None,
    app_settings=None,
) -> FastAPI:
    """
    Factory function to build and configure a new FastAPI app instance.

    Args:
        service: Pre-built service (tests); built from storage when omitted.
        transactioner: Storage to build the service on; from the storage factory when omitted.
        app_settings: Settings object; the module-level `settings` when omitted.

    Returns:
        FastAPI: A fully configured application instance.

    Why an app factory?
        - Enables per-test isolation in pytest.
        - Encourages dependency injection and easy swapping of implementations.
        - Avoids accidental global state across workers/processes.
    """
    cfg = app_settings or settings
    log = setup_logging(cfg.LOG_LEVEL).getChild("http")

    # ----------------------------------------------------------------
    # Per-app instances (isolated for tests, swappable for production)
    # ----------------------------------------------------------------
    owned: Optional[Transactioner] = None
    if service is None:
        if transactioner is None:
            transactioner = owned = get_transactioner()  # ← sqlite or postgres based on env
        migrations.up(transactioner)
        service = ShortenService(
            transactioner,
            ShortenRepo(),
            strategy=get_strategy_from_config(cfg.HASH_STRATEGY),
            hash_length=cfg.HASH_LENGTH,
        )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        if owned is not None:
            owned.close()
            log.info("storage closed")

    app = FastAPI(
        title="Shorten Platform",
        description="Deterministic URL shortener",
        version=cfg.VERSION,
        docs_url="/docs",
        lifespan=lifespan,
    )
    app.add_middleware(LoggingMiddleware, logger=log)
    timeout = cfg.request_timeout

    # ----------------------------------------------------------------
    # Utilities
    # ----------------------------------------------------------------
    def _error_response(status_code: int, detail: Any) -> Response:
        """Error details go back to the client only in debug mode."""
        if cfg.debug:
            return JSONResponse({"detail": detail}, status_code=status_code)
        return Response(status_code=status_code)

    def _requires_json(request: Request) -> None:
        media_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
        if media_type != "application/json":
            raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE)

    @app.exception_handler(ShortenError)
    async def _shorten_error(request: Request, err: ShortenError) -> Response:
        status_code = STATUS_BY_KIND.get(err.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
        log.error(
            "req_seq=%s %s %s failed: %s",
            getattr(request.state, "req_seq", "-"),
            request.method,
            request.url.path,
            err,
        )
        return _error_response(status_code, str(err))

    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, err: RequestValidationError) -> Response:
        log.error(
            "req_seq=%s %s %s bad request: %s",
            getattr(request.state, "req_seq", "-"),
            request.method,
            request.url.path,
            err.errors(),
        )
        return _error_response(status.HTTP_400_BAD_REQUEST, jsonable_errors(err))

    # ----------------------------------------------------------------
    # Probes
    # ----------------------------------------------------------------
    @app.get("/-/liveness")
    def liveness() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/-/readiness")
    def readiness() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/-/version")
    def version() -> Dict[str, str]:
        return {
            "version": cfg.VERSION,
            "commit_sha": cfg.COMMIT_SHA,
            "build_timestamp": cfg.BUILD_TIMESTAMP,
        }

    # ----------------------------------------------------------------
    # Shorten API
    # ----------------------------------------------------------------
    @app.post(API_PREFIX, status_code=status.HTTP_201_CREATED, dependencies=[Depends(_requires_json)])
    def create_shorten(req: CreateShortenRequest) -> Response:
        """
        Create (or reuse) a shorten for the given URL.

        Returns:
            201 with a `location` header pointing at the shorten resource.
        """
        id = service.create(req.url, req.hash, timeout=timeout)
        return Response(
            status_code=status.HTTP_201_CREATED,
            headers={"location": f"{API_PREFIX}/{id}"},
        )

    @app.get(API_PREFIX, response_model=List[ShortenResponse])
    def list_shortens(
        limit: int = Query(cfg.LIST_LIMIT, description="Maximum number of shortens."),
        offset: int = Query(0, description="Number of shortens to skip."),
    ) -> List[ShortenResponse]:
        entities = service.list(Pager(limit=limit, offset=offset), timeout=timeout)
        return [ShortenResponse(id=e.id, url=e.url, hash=e.hash) for e in entities]

    @app.get(API_PREFIX + "/{id}", response_model=ShortenResponse)
    def get_shorten(id: int) -> ShortenResponse:
        entity = service.get(id, timeout=timeout)
        return ShortenResponse(id=entity.id, url=entity.url, hash=entity.hash)

    @app.delete(API_PREFIX + "/{id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_shorten(id: int) -> Response:
        service.delete(id, timeout=timeout)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # ----------------------------------------------------------------
    # Resolver (registered last so it never shadows the routes above)
    # ----------------------------------------------------------------
    @app.get("/{hash}")
    def resolve(hash: str) -> Response:
        url = service.resolve(hash, timeout=timeout)
        return RedirectResponse(url=url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)

    return app


def jsonable_errors(err: RequestValidationError) -> List[Dict[str, Any]]:
    return [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in err.errors()
    ]


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Shorten Platform API server")
    parser.add_argument("-v", "--version", action="store_true", help="print build information and exit")
    args = parser.parse_args(argv)

    if args.version:
        print(json.dumps({
            "version": settings.VERSION,
            "commit_sha": settings.COMMIT_SHA,
            "build_timestamp": settings.BUILD_TIMESTAMP,
        }))
        return 0

    import uvicorn

    logging.getLogger("shorten").info(
        "version=%s commit_sha=%s build_timestamp=%s",
        settings.VERSION, settings.COMMIT_SHA, settings.BUILD_TIMESTAMP,
    )
    uvicorn.run(
        "main:create_app",
        factory=True,
        host=settings.HTTP_HOST,
        port=settings.HTTP_PORT,
        log_level=settings.LOG_LEVEL,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
